import logging
from datetime import datetime, timedelta, timezone

from flask import Flask, Blueprint, current_app, jsonify, request
from flask_socketio import SocketIO, emit, join_room, leave_room

from fleetscope import config
from fleetscope import sessions
from fleetscope.models import db, Vehicle
from fleetscope.forms import (RouteHistoryForm, TimeWindowForm, FleetWindowForm, MovementForm,
                              SessionForm, TrackForm, SeekForm, RateForm)
from fleetscope.store import SampleStore, SampleStoreError, SqlSampleStore, RestSampleStore
from fleetscope.analytics.events import TripEventDetector, driving_insights
from fleetscope.analytics.export import export_records, violation_report
from fleetscope.analytics.heatmap import SignalHeatmapAggregator, MovementHeatmap
from fleetscope.analytics.periods import PeriodComparator, DEFAULT_PERIODS
from fleetscope.analytics.routes import RouteClusterer
from fleetscope.analytics.samples import VehicleTrack
from fleetscope.analytics.scheduler import SocketIOScheduler
from fleetscope.analytics.segments import SegmentClassifier, summarize_trip
from fleetscope.analytics.session import AnalysisSession, SessionLimitExceeded
from fleetscope.analytics.traffic import TrafficAggregator

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__)


def get_store() -> SampleStore:
    store = current_app.config.get('SAMPLE_STORE')
    if isinstance(store, SampleStore):
        return store
    if store == 'rest':
        return RestSampleStore(current_app.config['REST_URL'], current_app.config['REST_KEY'],
                               timeout=current_app.config['REST_TIMEOUT'])
    return SqlSampleStore(db.session)


def report_tz():
    return timezone(timedelta(hours=current_app.config['REPORT_UTC_OFFSET_HOURS']))


def trip_gap():
    minutes = current_app.config['TRIP_GAP_MINUTES']
    return timedelta(minutes=minutes) if minutes else None


def form_error(form):
    return jsonify(success=False, errors=form.errors), 400


def store_error(e):
    return jsonify(success=False, error=str(e)), 502


def vehicle_speed_limit(vehicle_id, requested=None):
    if requested is not None:
        return requested
    vehicle = db.session.get(Vehicle, vehicle_id)
    if vehicle and vehicle.max_speed:
        return vehicle.max_speed
    return current_app.config['DEFAULT_SPEED_LIMIT']


@api.route('/api/vehicles')
def list_vehicles():
    organization_id = request.args.get('organization_id')
    if not organization_id:
        return jsonify(success=False, error='organization_id is required'), 400
    try:
        vehicles = get_store().list_vehicles(organization_id)
    except SampleStoreError as e:
        return store_error(e)
    return jsonify(success=True, vehicles=vehicles)


@api.route('/api/vehicles/<vehicle_id>/route-history')
def route_history(vehicle_id):
    form = RouteHistoryForm(formdata=request.args)
    if not form.validate():
        return form_error(form)

    start, end = form.window()
    speed_limit = vehicle_speed_limit(vehicle_id, form.speed_limit.data)

    try:
        samples = get_store().fetch_samples(vehicle_id, start, end)
    except SampleStoreError as e:
        return store_error(e)

    track = VehicleTrack(vehicle_id=vehicle_id, label=vehicle_id, speed_limit=speed_limit, samples=samples)
    classified = SegmentClassifier().classify(track)
    events = TripEventDetector(speed_limit=speed_limit).detect(track.samples)

    return jsonify(
        success=True,
        track=classified.to_dict(),
        trip=summarize_trip(track.samples).to_dict(),
        events=[e.to_dict() for e in events],
        insights=driving_insights(track.samples)
    )


@api.route('/api/vehicles/<vehicle_id>/route-history/export')
def route_history_export(vehicle_id):
    form = RouteHistoryForm(formdata=request.args)
    if not form.validate():
        return form_error(form)

    start, end = form.window()
    speed_limit = vehicle_speed_limit(vehicle_id, form.speed_limit.data)

    try:
        samples = get_store().fetch_samples(vehicle_id, start, end)
    except SampleStoreError as e:
        return store_error(e)

    return jsonify(
        success=True,
        records=export_records(samples, speed_limit),
        violations=violation_report(samples, speed_limit)
    )


@api.route('/api/traffic-flow')
def traffic_flow():
    form = FleetWindowForm(formdata=request.args)
    if not form.validate():
        return form_error(form)

    days = form.days.data or 7
    now = datetime.now(timezone.utc)
    earliest = now - timedelta(days=days * (max(DEFAULT_PERIODS) + 1))

    try:
        samples = get_store().fetch_organization_samples(form.organization_id.data, earliest, now)
    except SampleStoreError as e:
        return store_error(e)

    cutoff = now - timedelta(days=days)
    current = [s for s in samples if s.timestamp >= cutoff]

    traffic = TrafficAggregator(tz=report_tz()).aggregate(current)
    routes = RouteClusterer(trip_gap=trip_gap()).top_routes(current)
    periods = PeriodComparator(days=days, tz=report_tz()).compare(samples, DEFAULT_PERIODS, now=now)

    return jsonify(
        success=True,
        days=days,
        traffic=traffic.to_dict(),
        top_routes=[r.to_dict() for r in routes],
        periods=[p.to_dict() for p in periods]
    )


@api.route('/api/signal-heatmap')
def signal_heatmap():
    form = FleetWindowForm(formdata=request.args)
    if not form.validate():
        return form_error(form)

    start = datetime.now(timezone.utc) - timedelta(days=form.days.data or 7)
    try:
        samples = get_store().fetch_organization_samples(form.organization_id.data, start)
    except SampleStoreError as e:
        return store_error(e)

    heatmap = SignalHeatmapAggregator().aggregate(samples)
    return jsonify(
        success=True,
        stats=heatmap.stats(),
        points=[p.to_dict() for p in heatmap.points],
        geojson=heatmap.to_geojson()
    )


@api.route('/api/movement-heatmap')
def movement_heatmap():
    form = MovementForm(formdata=request.args)
    if not form.validate():
        return form_error(form)

    start = datetime.now(timezone.utc) - timedelta(hours=form.hours.data or 24)
    try:
        samples = get_store().fetch_organization_samples(form.organization_id.data, start)
    except SampleStoreError as e:
        return store_error(e)

    return jsonify(success=True, **MovementHeatmap().analyze(samples, form.filter.data))


def _session_or_404(session_id):
    session = sessions.get_session(session_id, current_app.config['SESSION_TTL'])
    if session is None:
        return None, (jsonify(success=False, error='Unknown playback session'), 404)
    return session, None


def _load_session(session):
    store = get_store()
    try:
        applied = session.load(store.fetch_samples)
    except SampleStoreError as e:
        return store_error(e)
    return jsonify(success=True, applied=applied, session=session.to_dict())


@api.route('/api/playback/sessions', methods=['POST'])
def create_playback_session():
    form = SessionForm()
    if not form.validate():
        return form_error(form)

    start, end = form.window()
    socketio = current_app.extensions['socketio']
    session = AnalysisSession(
        organization_id=form.organization_id.data,
        start=start,
        end=end,
        scheduler=current_app.config['PLAYBACK_SCHEDULER'](),
        max_tracks=current_app.config['MAX_COMPARISON_TRACKS'],
        tick_ms=current_app.config['PLAYBACK_TICK_MS']
    )
    session_id = session.session_id
    session.playback.register_callback(
        'on_frame', lambda frame: socketio.emit('playback_frame', frame, to=session_id)
    )
    sessions.register_session(session, current_app.config['SESSION_TTL'])
    logger.info("Created playback session %s", session_id)
    return jsonify(success=True, session=session.to_dict()), 201


@api.route('/api/playback/sessions/<session_id>')
def get_playback_session(session_id):
    session, error = _session_or_404(session_id)
    if error:
        return error
    return jsonify(success=True, session=session.to_dict())


@api.route('/api/playback/sessions/<session_id>', methods=['DELETE'])
def delete_playback_session(session_id):
    if not sessions.drop_session(session_id):
        return jsonify(success=False, error='Unknown playback session'), 404
    return jsonify(success=True)


@api.route('/api/playback/sessions/<session_id>/tracks', methods=['POST'])
def add_session_track(session_id):
    session, error = _session_or_404(session_id)
    if error:
        return error

    form = TrackForm()
    if not form.validate():
        return form_error(form)

    vehicle_id = str(form.vehicle_id.data)
    try:
        session.add_track(vehicle_id, form.label.data or vehicle_id,
                          vehicle_speed_limit(vehicle_id, form.speed_limit.data))
    except SessionLimitExceeded as e:
        return jsonify(success=False, error=str(e)), 409

    return _load_session(session)


@api.route('/api/playback/sessions/<session_id>/tracks/<vehicle_id>', methods=['DELETE'])
def remove_session_track(session_id, vehicle_id):
    session, error = _session_or_404(session_id)
    if error:
        return error
    if not session.remove_track(vehicle_id):
        return jsonify(success=False, error='Vehicle is not part of this session'), 404
    return jsonify(success=True, session=session.to_dict())


@api.route('/api/playback/sessions/<session_id>/window', methods=['POST'])
def change_session_window(session_id):
    session, error = _session_or_404(session_id)
    if error:
        return error

    form = TimeWindowForm()
    if not form.validate():
        return form_error(form)

    session.set_window(*form.window())
    return _load_session(session)


@api.route('/api/playback/sessions/<session_id>/<action>', methods=['POST'])
def control_playback(session_id, action):
    session, error = _session_or_404(session_id)
    if error:
        return error

    playback = session.playback
    if action == 'play':
        playback.play()
    elif action == 'pause':
        playback.pause()
    elif action == 'toggle':
        playback.toggle()
    elif action == 'reset':
        playback.reset()
    elif action == 'seek':
        form = SeekForm()
        if not form.validate():
            return form_error(form)
        try:
            playback.seek(form.index.data)
        except ValueError as e:
            return jsonify(success=False, error=str(e)), 400
    elif action == 'rate':
        form = RateForm()
        if not form.validate():
            return form_error(form)
        try:
            playback.set_rate(form.rate.data)
        except ValueError as e:
            return jsonify(success=False, error=str(e)), 400
    else:
        return jsonify(success=False, error=f'Unknown playback action: {action}'), 404

    return jsonify(success=True, frame=playback.frame())


def register_socket_handlers(socketio: SocketIO):
    @socketio.on('join_playback')
    def handle_join_playback(data):
        session_id = (data or {}).get('session_id')
        session = sessions.get_session(session_id, current_app.config['SESSION_TTL'])
        if session is None:
            emit('playback_error', {'error': 'Unknown playback session'})
            return
        join_room(session_id)
        emit('playback_frame', session.playback.frame())

    @socketio.on('leave_playback')
    def handle_leave_playback(data):
        session_id = (data or {}).get('session_id')
        if session_id:
            leave_room(session_id)


def create_app(overrides=None):
    app = Flask(__name__)
    app.secret_key = config.get_secret_key()
    app.config["SQLALCHEMY_DATABASE_URI"] = config.get_database_url()
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {"pool_pre_ping": True}
    app.config.update(
        SAMPLE_STORE=config.SAMPLE_STORE,
        REST_URL=config.REST_URL,
        REST_KEY=config.REST_KEY,
        REST_TIMEOUT=config.REST_TIMEOUT,
        DEFAULT_SPEED_LIMIT=config.DEFAULT_SPEED_LIMIT,
        MAX_COMPARISON_TRACKS=config.MAX_COMPARISON_TRACKS,
        PLAYBACK_TICK_MS=config.PLAYBACK_TICK_MS,
        TRIP_GAP_MINUTES=config.TRIP_GAP_MINUTES,
        REPORT_UTC_OFFSET_HOURS=config.REPORT_UTC_OFFSET_HOURS,
        SESSION_TTL=config.SESSION_TTL,
        SOCKETIO_ASYNC_MODE='threading',
    )
    if overrides:
        app.config.update(overrides)

    db.init_app(app)
    socketio = SocketIO(app, cors_allowed_origins="*", async_mode=app.config['SOCKETIO_ASYNC_MODE'])
    app.config.setdefault('PLAYBACK_SCHEDULER', lambda: SocketIOScheduler(socketio))
    register_socket_handlers(socketio)
    app.register_blueprint(api)

    with app.app_context():
        db.create_all()

    return app
