import time
import unittest

from fleetscope import sessions
from fleetscope.analytics.playback import PlaybackState
from fleetscope.analytics.session import AnalysisSession

from support import ManualScheduler, make_samples


class SessionRegistryTests(unittest.TestCase):
    def tearDown(self):
        sessions.clear()

    def make_session(self):
        return AnalysisSession(scheduler=ManualScheduler())

    def age(self, session, seconds):
        sessions._sessions[session.session_id]['timestamp'] = time.time() - seconds

    def test_registering_evicts_expired_sessions_nobody_asked_for(self):
        forgotten = sessions.register_session(self.make_session(), ttl=60)
        forgotten.add_track('a', 'A', 80)
        forgotten.apply_fetch(forgotten.begin_fetch(), {'a': make_samples(5)})
        forgotten.playback.play()
        self.age(forgotten, 120)

        fresh = sessions.register_session(self.make_session(), ttl=60)

        self.assertNotIn(forgotten.session_id, sessions._sessions)
        self.assertIn(fresh.session_id, sessions._sessions)
        self.assertEqual(forgotten.playback.state, PlaybackState.IDLE)
        self.assertFalse(forgotten.playback.scheduler.is_running)

    def test_live_sessions_survive_registration(self):
        recent = sessions.register_session(self.make_session(), ttl=60)
        self.age(recent, 30)

        sessions.register_session(self.make_session(), ttl=60)

        self.assertIs(sessions.get_session(recent.session_id, ttl=60), recent)

    def test_expired_session_is_not_returned(self):
        session = sessions.register_session(self.make_session(), ttl=60)
        self.age(session, 61)

        self.assertIsNone(sessions.get_session(session.session_id, ttl=60))
        self.assertFalse(sessions.drop_session(session.session_id))

    def test_purge_reports_removed_count(self):
        registered = [sessions.register_session(self.make_session()) for _ in range(3)]
        for session in registered:
            self.age(session, sessions.SESSION_TTL + 1)

        self.assertEqual(sessions.purge_expired(), 3)
        self.assertEqual(sessions._sessions, {})
