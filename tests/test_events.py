import unittest
from datetime import timedelta

from fleetscope.analytics.events import TripEventDetector, driving_insights, format_duration

from support import T0, sample


def minutes(n):
    return T0 + timedelta(minutes=n)


class TripEventDetectorTests(unittest.TestCase):
    def setUp(self):
        self.detector = TripEventDetector(speed_limit=80)

    def test_stop_is_closed_when_vehicle_moves_again(self):
        samples = [
            sample(9.0, 38.7, 0, at=minutes(0), engine_on=False),
            sample(9.0, 38.7, 0, at=minutes(1), engine_on=False),
            sample(9.0, 38.7, 2, at=minutes(3), engine_on=False),
            sample(9.01, 38.7, 30, at=minutes(4), engine_on=True),
        ]
        events = self.detector.detect(samples)

        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].type, 'stop')
        self.assertEqual(events[0].duration_minutes, 4)
        self.assertEqual(events[0].description, 'Stopped for 4m')
        self.assertEqual(events[0].end_time, minutes(4))

    def test_idle_needs_five_minutes(self):
        short = [
            sample(9.0, 38.7, 0, at=minutes(0), engine_on=True),
            sample(9.0, 38.7, 0, at=minutes(3), engine_on=True),
            sample(9.01, 38.7, 40, at=minutes(4), engine_on=True),
        ]
        long = [
            sample(9.0, 38.7, 0, at=minutes(0), engine_on=True),
            sample(9.0, 38.7, 0, at=minutes(5), engine_on=True),
            sample(9.01, 38.7, 40, at=minutes(6), engine_on=True),
        ]

        self.assertEqual(self.detector.detect(short), [])
        events = self.detector.detect(long)
        self.assertEqual([e.type for e in events], ['idle'])
        self.assertEqual(events[0].description, 'Idling for 6m')

    def test_open_stop_is_closed_at_the_last_sample(self):
        samples = [
            sample(9.0, 38.7, 40, at=minutes(0), engine_on=True),
            sample(9.0, 38.7, 0, at=minutes(1), engine_on=False),
            sample(9.0, 38.7, 0, at=minutes(10), engine_on=False),
        ]
        events = self.detector.detect(samples)

        self.assertEqual([e.type for e in events], ['stop'])
        self.assertEqual(events[0].duration_minutes, 9)

    def test_speeding_within_two_minutes_is_merged(self):
        samples = [
            sample(9.00, 38.7, 90, at=minutes(0)),
            sample(9.01, 38.7, 95, at=minutes(1)),
            sample(9.02, 38.7, 60, at=minutes(2)),
            sample(9.03, 38.7, 99, at=minutes(5)),
        ]
        events = self.detector.detect(samples)

        self.assertEqual([e.type for e in events], ['speeding', 'speeding'])
        self.assertEqual(events[0].speed, 90)
        self.assertEqual(events[0].description, 'Speeding: 90 km/h (limit: 80 km/h)')
        self.assertEqual(events[1].start_time, minutes(5))

    def test_single_sample_has_no_events(self):
        self.assertEqual(self.detector.detect([sample(9.0, 38.7, 120)]), [])

    def test_format_duration(self):
        self.assertEqual(format_duration(45), '45m')
        self.assertEqual(format_duration(75), '1h 15m')


class DrivingInsightsTests(unittest.TestCase):
    def test_steady_efficient_trip(self):
        samples = [sample(9.0 + i * 0.01, 38.7, 40, at=minutes(i), engine_on=True) for i in range(10)]
        ids = [i['id'] for i in driving_insights(samples)]

        self.assertEqual(ids, ['low-idle', 'consistent-speed'])

    def test_high_idle_is_flagged(self):
        samples = [sample(9.0, 38.7, 0, at=minutes(i), engine_on=True) for i in range(4)]
        samples.append(sample(9.01, 38.7, 40, at=minutes(5), engine_on=True))
        insights = driving_insights(samples)

        self.assertEqual(insights[0]['id'], 'high-idle')
        self.assertEqual(insights[0]['description'], '80% of journey spent idling.')

    def test_empty_trip(self):
        self.assertEqual(driving_insights([]), [])
