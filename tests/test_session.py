import unittest
from datetime import timedelta

from fleetscope.analytics.playback import PlaybackState
from fleetscope.analytics.samples import TRACK_COLORS
from fleetscope.analytics.session import AnalysisSession, SessionLimitExceeded, StaleFetch

from support import T0, ManualScheduler, make_samples


class AnalysisSessionTests(unittest.TestCase):
    def setUp(self):
        self.scheduler = ManualScheduler()
        self.session = AnalysisSession(organization_id='org-1', start=T0,
                                       end=T0 + timedelta(hours=1), scheduler=self.scheduler)

    def fetch(self, vehicle_id, start, end):
        return make_samples(5, start=start, vehicle_id=vehicle_id)

    def test_fifth_track_is_rejected_without_side_effects(self):
        for vehicle_id in 'abcd':
            self.session.add_track(vehicle_id, vehicle_id.upper(), 80)
        self.session.load(self.fetch)
        generation = self.session.generation

        with self.assertRaises(SessionLimitExceeded) as ctx:
            self.session.add_track('e', 'E', 80)

        self.assertEqual(str(ctx.exception), 'Maximum 4 vehicles can be compared at once')
        self.assertEqual(list(self.session.tracks), ['a', 'b', 'c', 'd'])
        self.assertEqual(self.session.generation, generation)
        self.assertEqual(self.session.playback.max_track_length, 5)

    def test_tracks_get_distinct_colours_and_freed_colours_are_reused(self):
        for vehicle_id in 'abc':
            self.session.add_track(vehicle_id, vehicle_id, 80)
        colors = [t.color for t in self.session.tracks.values()]
        self.assertEqual(colors, [c['primary'] for c in TRACK_COLORS[:3]])

        self.session.remove_track('a')
        track = self.session.add_track('d', 'd', 80)
        self.assertEqual(track.color, TRACK_COLORS[0]['primary'])

    def test_fetch_from_an_older_generation_is_discarded(self):
        self.session.add_track('a', 'A', 80)
        token = self.session.begin_fetch()
        self.session.set_window(T0, T0 + timedelta(hours=2))

        with self.assertRaises(StaleFetch):
            self.session.apply_fetch(token, {'a': make_samples(5)})
        self.assertEqual(len(self.session.tracks['a']), 0)

    def test_load_reports_when_the_window_changed_mid_fetch(self):
        self.session.add_track('a', 'A', 80)

        def fetch(vehicle_id, start, end):
            self.session.set_window(T0, T0 + timedelta(hours=3))
            return make_samples(5)

        self.assertFalse(self.session.load(fetch))
        self.assertEqual(len(self.session.tracks['a']), 0)
        self.assertTrue(self.session.load(self.fetch))
        self.assertEqual(len(self.session.tracks['a']), 5)

    def test_changing_the_vehicle_set_resets_playback(self):
        self.session.add_track('a', 'A', 80)
        self.session.load(self.fetch)
        self.session.playback.play()
        self.scheduler.advance(200)
        self.assertEqual(self.session.playback.state, PlaybackState.PLAYING)

        self.session.add_track('b', 'B', 80)

        self.assertEqual(self.session.playback.state, PlaybackState.IDLE)
        self.assertEqual(self.session.playback.cursor.fractional_index, 0.0)
        self.assertFalse(self.scheduler.is_running)

    def test_adding_a_known_vehicle_is_a_no_op(self):
        first = self.session.add_track('a', 'A', 80)
        generation = self.session.generation
        self.assertIs(self.session.add_track('a', 'A', 80), first)
        self.assertEqual(self.session.generation, generation)

    def test_window_end_must_not_precede_start(self):
        with self.assertRaises(ValueError):
            self.session.set_window(T0, T0 - timedelta(minutes=1))

    def test_to_dict_lists_classified_tracks(self):
        self.session.add_track('a', 'A', 80)
        self.session.load(self.fetch)
        data = self.session.to_dict()

        self.assertEqual(data['organization_id'], 'org-1')
        self.assertEqual(data['tracks'][0]['vehicle_id'], 'a')
        self.assertEqual(data['playback']['max_track_length'], 5)
