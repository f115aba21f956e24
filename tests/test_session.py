import pytest

from redapid.session import (
    SESSION_MAX_LIFETIME,
    Session,
    SessionLifetimeError,
)
from redapid.string_object import ObjectError, OutOfRangeError, StringObject


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_lifetime_above_maximum_rejected():
    with pytest.raises(SessionLifetimeError):
        Session(SESSION_MAX_LIFETIME + 1)
    with pytest.raises(OutOfRangeError):
        Session(SESSION_MAX_LIFETIME + 1)


def test_session_expires_after_lifetime():
    clock = FakeClock()
    expired = []
    session = Session(30, clock=clock, on_expire=expired.append)
    assert session.is_expired(clock.now + 29) is False
    assert session.is_expired(clock.now + 30) is True
    assert expired == [session]


def test_zero_lifetime_never_expires_by_time():
    clock = FakeClock()
    session = Session(0, clock=clock)
    assert session.is_expired(clock.now + 10**9) is False
    session.expire()
    assert session.is_expired() is True


def test_keep_alive_extends_lifetime():
    clock = FakeClock()
    session = Session(30, clock=clock)
    clock.now += 20
    session.keep_alive(30)
    assert session.is_expired(clock.now + 29) is False
    assert session.is_expired(clock.now + 30) is True


def test_keep_alive_rejects_long_lifetime():
    session = Session(30, clock=FakeClock())
    with pytest.raises(SessionLifetimeError):
        session.keep_alive(SESSION_MAX_LIFETIME + 1)


def test_keep_alive_after_expire_fails():
    session = Session(30, clock=FakeClock())
    session.expire()
    with pytest.raises(ObjectError):
        session.keep_alive(30)


def test_external_reference_counting():
    session = Session(30, clock=FakeClock())
    a = StringObject.wrap("a")
    b = StringObject.wrap("b")
    assert session.add_external_reference(a) == 1
    assert session.add_external_reference(a) == 2
    session.add_external_reference(b)
    assert session.external_reference_count() == 3
    assert session.remove_external_reference(a) == 1
    assert session.external_reference_count() == 2
    assert session.references == [(a, 1), (b, 1)]


def test_remove_unknown_reference():
    session = Session(30, clock=FakeClock())
    with pytest.raises(ValueError):
        session.remove_external_reference(StringObject.wrap("x"))


def test_expire_releases_references():
    released = []
    session = Session(30, clock=FakeClock(), on_release=lambda o, c: released.append((o, c)))
    obj = StringObject.wrap("list")
    session.add_external_reference(obj)
    session.add_external_reference(obj)
    session.expire()
    assert released == [(obj, 2)]
    assert session.external_reference_count() == 0
    with pytest.raises(ObjectError):
        session.add_external_reference(obj)


def test_expire_is_idempotent():
    calls = []
    session = Session(30, clock=FakeClock(), on_expire=calls.append)
    session.expire()
    session.expire()
    assert calls == [session]


def test_close_releases_without_expire_callback():
    released = []
    expired = []
    obj = StringObject.wrap("file")
    with Session(
        30,
        clock=FakeClock(),
        on_expire=expired.append,
        on_release=lambda o, c: released.append((o, c)),
    ) as session:
        session.add_external_reference(obj)
    assert session.closed is True
    assert released == [(obj, 1)]
    assert expired == []
    assert session.is_expired() is False


def test_session_id_range():
    with pytest.raises(ValueError):
        Session(30, session_id=-1)
    session = Session(30, session_id=42, clock=FakeClock())
    assert session.id == 42