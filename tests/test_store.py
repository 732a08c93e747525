import unittest
from datetime import datetime, timezone

import requests

from fleetscope.store import RestSampleStore, SampleStoreError

START = datetime(2024, 5, 1, 0, 0, tzinfo=timezone.utc)
END = datetime(2024, 5, 1, 23, 59, 59, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code
        self.ok = status_code < 400
        self.text = '' if payload is None else 'body'

    def json(self):
        return self.payload


class FakeHttp:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        if self.error:
            raise self.error
        return self.response


class RestSampleStoreTests(unittest.TestCase):
    def test_fetch_samples_builds_an_ordered_window_query(self):
        http = FakeHttp(FakeResponse([
            {'vehicle_id': 'v1', 'created_at': '2024-05-01T08:00:00Z', 'latitude': 9.03,
             'longitude': 38.74, 'speed_kmh': 42, 'heading': 90, 'gps_signal_strength': 75,
             'engine_on': True},
            {'vehicle_id': 'v1', 'created_at': '2024-05-01T08:00:10+00:00', 'latitude': None,
             'longitude': None, 'speed_kmh': None, 'heading': None, 'gps_signal_strength': None,
             'engine_on': None},
        ]))
        store = RestSampleStore('https://store.example/', api_key='secret', timeout=5, http=http)

        samples = store.fetch_samples('v1', START, END)

        url, params, timeout = http.calls[0]
        self.assertEqual(url, 'https://store.example/rest/v1/vehicle_telemetry')
        self.assertEqual(timeout, 5)
        self.assertIn(('vehicle_id', 'eq.v1'), params)
        self.assertIn(('created_at', 'gte.2024-05-01T00:00:00+00:00'), params)
        self.assertIn(('created_at', 'lte.2024-05-01T23:59:59+00:00'), params)
        self.assertIn(('order', 'created_at.asc'), params)
        self.assertEqual(http.headers['Authorization'], 'Bearer secret')

        self.assertEqual(len(samples), 2)
        self.assertEqual(samples[0].speed, 42.0)
        self.assertEqual(samples[0].signal_strength, 75.0)
        self.assertEqual(samples[0].timestamp, datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc))
        self.assertFalse(samples[1].has_coordinates)
        self.assertEqual(samples[1].speed, 0.0)

    def test_organization_query_uses_half_open_end(self):
        http = FakeHttp(FakeResponse([]))
        store = RestSampleStore('https://store.example', http=http)

        self.assertEqual(store.fetch_organization_samples('org-1', START, END), [])
        params = http.calls[0][1]
        self.assertIn(('organization_id', 'eq.org-1'), params)
        self.assertIn(('created_at', 'lt.2024-05-01T23:59:59+00:00'), params)
        self.assertNotIn('Authorization', http.headers)

    def test_error_status_is_raised_as_store_error(self):
        http = FakeHttp(FakeResponse({'message': 'permission denied'}, status_code=401))
        store = RestSampleStore('https://store.example', http=http)

        with self.assertRaises(SampleStoreError) as ctx:
            store.fetch_samples('v1', START, END)
        self.assertIn('permission denied', str(ctx.exception))

    def test_connection_failure_is_raised_as_store_error(self):
        http = FakeHttp(error=requests.ConnectionError('refused'))
        store = RestSampleStore('https://store.example', http=http)

        with self.assertRaises(SampleStoreError):
            store.list_vehicles('org-1')
