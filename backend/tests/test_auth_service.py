from filedrop.services.auth_service import MS_PER_HOUR, AdminAuth, SessionService


def make_auth(clock, ttl_hours=1):
    return AdminAuth("correct horse", SessionService(ttl_ms=ttl_hours * MS_PER_HOUR, clock=clock))


def test_wrong_password_creates_no_session(clock):
    auth = make_auth(clock)
    assert auth.login("battery staple") is None
    assert len(auth.sessions) == 0


def test_login_and_check(clock):
    auth = make_auth(clock)
    token, expires_at = auth.login("correct horse")

    assert expires_at == clock.now + MS_PER_HOUR
    assert auth.check_session(token)
    assert not auth.check_session("forged-token")
    assert not auth.check_session(None)


def test_session_expiry_slides_on_use(clock):
    auth = make_auth(clock)
    token, _ = auth.login("correct horse")

    clock.advance(MS_PER_HOUR - 1)
    assert auth.check_session(token)
    clock.advance(MS_PER_HOUR - 1)
    assert auth.check_session(token)
    clock.advance(MS_PER_HOUR + 1)
    assert not auth.check_session(token)


def test_invalidate(clock):
    auth = make_auth(clock)
    token, _ = auth.login("correct horse")
    auth.invalidate_session(token)
    assert not auth.check_session(token)


def test_sweep_drops_only_stale_sessions(clock):
    sessions = SessionService(ttl_ms=MS_PER_HOUR, clock=clock)
    sessions.create()
    clock.advance(2 * MS_PER_HOUR)
    fresh, _ = sessions.create()

    assert sessions.sweep() == 1
    assert len(sessions) == 1
    assert sessions.check(fresh)
