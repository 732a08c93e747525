from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import DeclarativeBase
from datetime import datetime


class Base(DeclarativeBase):
    pass


db = SQLAlchemy(model_class=Base)


class Vehicle(db.Model):
    __tablename__ = 'vehicles'

    id = db.Column(db.String(64), primary_key=True)
    plate = db.Column(db.String(20), nullable=False)
    organization_id = db.Column(db.String(64), nullable=False, index=True)
    max_speed = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    telemetry = db.relationship('VehicleTelemetry', backref='vehicle', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'plate': self.plate,
            'organization_id': self.organization_id,
            'max_speed': self.max_speed
        }

    def __repr__(self):
        return f'<Vehicle {self.plate}>'


class VehicleTelemetry(db.Model):
    __tablename__ = 'vehicle_telemetry'

    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.String(64), db.ForeignKey('vehicles.id'), nullable=False, index=True)
    organization_id = db.Column(db.String(64), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    speed_kmh = db.Column(db.Float, nullable=True)
    heading = db.Column(db.Float, nullable=True)
    gps_signal_strength = db.Column(db.Float, nullable=True)
    engine_on = db.Column(db.Boolean, nullable=True)

    def to_row(self):
        return {
            'vehicle_id': self.vehicle_id,
            'created_at': self.created_at,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'speed_kmh': self.speed_kmh,
            'heading': self.heading,
            'gps_signal_strength': self.gps_signal_strength,
            'engine_on': self.engine_on
        }

    def __repr__(self):
        return f'<VehicleTelemetry {self.vehicle_id} @ {self.created_at}>'
