import math
from datetime import date, datetime, time, timezone

from flask_wtf import FlaskForm
from wtforms import StringField, DateField, FloatField, IntegerField, SelectField
from wtforms.validators import DataRequired, Optional, NumberRange, Regexp, ValidationError

TIME_PATTERN = r'^([01]\d|2[0-3]):[0-5]\d$'


class ApiForm(FlaskForm):
    class Meta:
        csrf = False


class Finite:
    """Require a finite number. Zero passes, unlike DataRequired."""

    def __init__(self, message=None):
        self.message = message or 'A finite number is required.'

    def __call__(self, form, field):
        if field.data is None or not math.isfinite(field.data):
            raise ValidationError(self.message)


def _parse_hhmm(value: str, seconds: int = 0) -> time:
    hours, minutes = value.split(':')
    return time(int(hours), int(minutes), seconds)


class TimeWindowForm(ApiForm):
    date = DateField('Date', format='%Y-%m-%d', default=date.today, validators=[Optional()])
    start = StringField('Start Time', default='00:00', validators=[Optional(), Regexp(TIME_PATTERN)])
    end = StringField('End Time', default='23:59', validators=[Optional(), Regexp(TIME_PATTERN)])

    def validate_end(self, field):
        if self.start.data and field.data and field.data < self.start.data:
            raise ValidationError('End time must not precede start time.')

    def window(self):
        day = self.date.data or date.today()
        start = datetime.combine(day, _parse_hhmm(self.start.data or '00:00'), tzinfo=timezone.utc)
        end = datetime.combine(day, _parse_hhmm(self.end.data or '23:59', 59), tzinfo=timezone.utc)
        return start, end


class RouteHistoryForm(TimeWindowForm):
    speed_limit = FloatField('Speed Limit', validators=[Optional(), NumberRange(min=0)])


class FleetWindowForm(ApiForm):
    organization_id = StringField('Organization', validators=[DataRequired()])
    days = IntegerField('Days', default=7, validators=[Optional(), NumberRange(min=1, max=90)])


class MovementForm(ApiForm):
    organization_id = StringField('Organization', validators=[DataRequired()])
    hours = IntegerField('Hours', default=24, validators=[Optional(), NumberRange(min=1, max=168)])
    filter = SelectField('Filter', default='all', choices=[
        ('all', 'All'),
        ('moving', 'Moving'),
        ('stationary', 'Stationary')
    ])


class SessionForm(TimeWindowForm):
    organization_id = StringField('Organization', validators=[Optional()])


class TrackForm(ApiForm):
    vehicle_id = StringField('Vehicle', validators=[DataRequired()])
    label = StringField('Label', validators=[Optional()])
    speed_limit = FloatField('Speed Limit', validators=[Optional(), NumberRange(min=0)])


class SeekForm(ApiForm):
    index = FloatField('Index', validators=[Finite()])


class RateForm(ApiForm):
    rate = FloatField('Rate', validators=[Finite(), NumberRange(min=0.01, max=64)])
