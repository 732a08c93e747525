"""
Sample store adapters.
Both adapters return samples ordered ascending by timestamp and keep rows
with null coordinates; the analytics layer filters those itself.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

import requests

from fleetscope.analytics.samples import TelemetrySample

logger = logging.getLogger(__name__)

TELEMETRY_COLUMNS = "vehicle_id,created_at,latitude,longitude,speed_kmh,heading,gps_signal_strength,engine_on"


class SampleStoreError(Exception):
    pass


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SampleStore:
    def fetch_samples(self, vehicle_id: str, start: datetime, end: datetime) -> List[TelemetrySample]:
        raise NotImplementedError

    def fetch_organization_samples(self, organization_id: str, start: datetime,
                                   end: Optional[datetime] = None) -> List[TelemetrySample]:
        raise NotImplementedError

    def list_vehicles(self, organization_id: str) -> List[dict]:
        raise NotImplementedError


class SqlSampleStore(SampleStore):
    def __init__(self, session):
        self.session = session

    def fetch_samples(self, vehicle_id, start, end):
        from fleetscope.models import VehicleTelemetry

        try:
            rows = self.session.query(VehicleTelemetry).filter(
                VehicleTelemetry.vehicle_id == vehicle_id,
                VehicleTelemetry.created_at >= _utc(start),
                VehicleTelemetry.created_at <= _utc(end)
            ).order_by(VehicleTelemetry.created_at.asc()).all()
        except Exception as e:
            logger.error("Telemetry query failed for vehicle %s: %s", vehicle_id, e)
            raise SampleStoreError(f"Failed to load telemetry: {e}")

        return [TelemetrySample.from_row(r.to_row()) for r in rows]

    def fetch_organization_samples(self, organization_id, start, end=None):
        from fleetscope.models import VehicleTelemetry

        query = self.session.query(VehicleTelemetry).filter(
            VehicleTelemetry.organization_id == organization_id,
            VehicleTelemetry.created_at >= _utc(start)
        )
        if end is not None:
            query = query.filter(VehicleTelemetry.created_at < _utc(end))

        try:
            rows = query.order_by(VehicleTelemetry.created_at.asc()).all()
        except Exception as e:
            logger.error("Telemetry query failed for organization %s: %s", organization_id, e)
            raise SampleStoreError(f"Failed to load telemetry: {e}")

        return [TelemetrySample.from_row(r.to_row()) for r in rows]

    def list_vehicles(self, organization_id):
        from fleetscope.models import Vehicle

        vehicles = self.session.query(Vehicle).filter_by(organization_id=organization_id).all()
        return [v.to_dict() for v in vehicles]


class RestSampleStore(SampleStore):
    """Reads a PostgREST-style ``vehicle_telemetry`` endpoint of the hosted data store."""

    def __init__(self, base_url: str, api_key: str = '', timeout: int = 30,
                 http: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.http = http or requests.Session()
        if api_key:
            self.http.headers.update({
                'apikey': api_key,
                'Authorization': f'Bearer {api_key}'
            })

    def _get(self, table: str, params: list) -> list:
        try:
            response = self.http.get(f"{self.base_url}/rest/v1/{table}",
                                     params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Sample store request failed: %s", e)
            raise SampleStoreError(f"Failed to reach sample store: {e}")

        if not response.ok:
            error_data = response.json() if response.text else {}
            message = error_data.get('message', f'status {response.status_code}')
            logger.error("Sample store returned an error: %s", message)
            raise SampleStoreError(f"Sample store error: {message}")

        return response.json() or []

    def fetch_samples(self, vehicle_id, start, end):
        params = [
            ('select', TELEMETRY_COLUMNS),
            ('vehicle_id', f'eq.{vehicle_id}'),
            ('created_at', f'gte.{_utc(start).isoformat()}'),
            ('created_at', f'lte.{_utc(end).isoformat()}'),
            ('order', 'created_at.asc'),
        ]
        return [TelemetrySample.from_row(row) for row in self._get('vehicle_telemetry', params)]

    def fetch_organization_samples(self, organization_id, start, end=None):
        params = [
            ('select', TELEMETRY_COLUMNS),
            ('organization_id', f'eq.{organization_id}'),
            ('created_at', f'gte.{_utc(start).isoformat()}'),
        ]
        if end is not None:
            params.append(('created_at', f'lt.{_utc(end).isoformat()}'))
        params.append(('order', 'created_at.asc'))
        return [TelemetrySample.from_row(row) for row in self._get('vehicle_telemetry', params)]

    def list_vehicles(self, organization_id):
        params = [
            ('select', 'id,plate,organization_id,max_speed'),
            ('organization_id', f'eq.{organization_id}'),
        ]
        return self._get('vehicles', params)
