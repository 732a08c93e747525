import time
from threading import Lock

_sessions = {}
_lock = Lock()

SESSION_TTL = 3600


def register_session(session, ttl=None):
    purge_expired(ttl)
    with _lock:
        _sessions[session.session_id] = {
            'session': session,
            'timestamp': time.time()
        }
    return session


def get_session(session_id, ttl=None):
    ttl = SESSION_TTL if ttl is None else ttl
    expired = None
    with _lock:
        entry = _sessions.get(session_id)
        if entry is None:
            return None
        if time.time() - entry['timestamp'] < ttl:
            entry['timestamp'] = time.time()
            return entry['session']
        expired = _sessions.pop(session_id)['session']
    expired.playback.reset()
    return None


def drop_session(session_id):
    with _lock:
        entry = _sessions.pop(session_id, None)
    if entry:
        entry['session'].playback.reset()
        return True
    return False


def purge_expired(ttl=None):
    ttl = SESSION_TTL if ttl is None else ttl
    now = time.time()
    with _lock:
        stale = [k for k, v in _sessions.items() if now - v['timestamp'] >= ttl]
        removed = [_sessions.pop(k)['session'] for k in stale]
    for session in removed:
        session.playback.reset()
    return len(removed)


def clear():
    with _lock:
        removed = [v['session'] for v in _sessions.values()]
        _sessions.clear()
    for session in removed:
        session.playback.reset()
