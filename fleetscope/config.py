import os
import logging
import secrets

logger = logging.getLogger(__name__)


def _env_int(name, default):
    value = os.environ.get(name)
    if value is None or value == '':
        return default
    return int(value)


def _env_float(name, default):
    value = os.environ.get(name)
    if value is None or value == '':
        return default
    return float(value)


def get_database_url():
    db_url = os.environ.get("DATABASE_URL", "sqlite:///fleetscope.db")
    if db_url.startswith('postgres://'):
        db_url = db_url.replace('postgres://', 'postgresql://', 1)
    return db_url


def get_secret_key():
    secret = os.environ.get("FLASK_SECRET_KEY")
    if not secret:
        secret = secrets.token_hex(32)
        logger.warning("FLASK_SECRET_KEY not set. Using generated key for this session.")
    return secret


SAMPLE_STORE = os.environ.get("FLEETSCOPE_SAMPLE_STORE", "sql")
REST_URL = os.environ.get("FLEETSCOPE_REST_URL", "")
REST_KEY = os.environ.get("FLEETSCOPE_REST_KEY", "")
REST_TIMEOUT = _env_int("FLEETSCOPE_REST_TIMEOUT", 30)

DEFAULT_SPEED_LIMIT = _env_float("FLEETSCOPE_DEFAULT_SPEED_LIMIT", 80)
MAX_COMPARISON_TRACKS = _env_int("FLEETSCOPE_MAX_COMPARISON_TRACKS", 4)
PLAYBACK_TICK_MS = _env_int("FLEETSCOPE_PLAYBACK_TICK_MS", 50)
TRIP_GAP_MINUTES = _env_int("FLEETSCOPE_TRIP_GAP_MINUTES", 30)
REPORT_UTC_OFFSET_HOURS = _env_float("FLEETSCOPE_REPORT_UTC_OFFSET_HOURS", 0)
SESSION_TTL = _env_int("FLEETSCOPE_SESSION_TTL", 3600)
