"""
tests/test_auth_service.py

AuthService against in-memory SQLite with a controllable clock.
"""

from __future__ import annotations

import datetime as dt

import pytest
from sqlalchemy.exc import OperationalError

from app.services.auth_service import (
    AuthenticationError,
    AuthService,
    AuthStoreError,
    RegistrationError,
    normalize_email,
)


SECRET_KEY = "auth-service-test-key-with-32-plus-characters"
START = dt.datetime(2024, 1, 1, 12, 0, tzinfo=dt.timezone.utc)


class FakeClock:
    def __init__(self, now: dt.datetime) -> None:
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture()
def svc(session_factory, clock) -> AuthService:
    return AuthService(
        session_factory=session_factory,
        secret_key=SECRET_KEY,
        token_ttl_minutes=60,
        min_password_length=6,
        clock=clock,
    )


class TestSignUp:
    def test_creates_account_and_session(self, svc) -> None:
        info = svc.sign_up(email=" Ana@Example.COM ", password="secreto1", display_name=" Ana ")

        assert info.user.email == "ana@example.com"
        assert info.user.display_name == "Ana"
        assert info.expires_at == START + dt.timedelta(minutes=60)
        assert svc.get_session(info.access_token) is not None

    def test_duplicate_email_rejected(self, svc) -> None:
        svc.sign_up(email="ana@example.com", password="secreto1")
        with pytest.raises(RegistrationError, match="already exists"):
            svc.sign_up(email="ANA@example.com", password="otraclave")

    def test_short_password_rejected(self, svc) -> None:
        with pytest.raises(RegistrationError, match="at least 6"):
            svc.sign_up(email="ana@example.com", password="12345")

    @pytest.mark.parametrize("email", ["", "sin-arroba", "@example.com", "ana@"])
    def test_invalid_email_rejected(self, svc, email: str) -> None:
        with pytest.raises(RegistrationError):
            svc.sign_up(email=email, password="secreto1")


class TestSignIn:
    def test_valid_credentials(self, svc) -> None:
        created = svc.sign_up(email="ana@example.com", password="secreto1")
        info = svc.sign_in(email="ANA@example.com", password="secreto1")

        assert info.user.id == created.user.id
        assert info.session_id != created.session_id

    def test_wrong_password(self, svc) -> None:
        svc.sign_up(email="ana@example.com", password="secreto1")
        with pytest.raises(AuthenticationError, match="Invalid login credentials"):
            svc.sign_in(email="ana@example.com", password="incorrecta")

    def test_unknown_account(self, svc) -> None:
        with pytest.raises(AuthenticationError):
            svc.sign_in(email="nadie@example.com", password="secreto1")


class TestSessions:
    def test_sign_out_revokes_token(self, svc) -> None:
        info = svc.sign_up(email="ana@example.com", password="secreto1")
        svc.sign_out(info.access_token)

        assert svc.get_session(info.access_token) is None
        with pytest.raises(AuthenticationError):
            svc.require_session(info.access_token)

    def test_sign_out_unknown_token_is_noop(self, svc) -> None:
        svc.sign_out("not-a-token")
        svc.sign_out(None)

    def test_expiry_follows_clock(self, svc, clock) -> None:
        info = svc.sign_up(email="ana@example.com", password="secreto1")

        clock.now = START + dt.timedelta(minutes=59)
        assert svc.get_session(info.access_token) is not None
        clock.now = START + dt.timedelta(minutes=61)
        assert svc.get_session(info.access_token) is None

    def test_token_signed_with_other_key_rejected(self, svc, session_factory, clock) -> None:
        other = AuthService(session_factory=session_factory, secret_key="x" * 40, clock=clock)
        info = other.sign_up(email="ana@example.com", password="secreto1")

        assert svc.get_session(info.access_token) is None

    def test_sessions_are_independent(self, svc) -> None:
        first = svc.sign_up(email="ana@example.com", password="secreto1")
        second = svc.sign_in(email="ana@example.com", password="secreto1")
        svc.sign_out(first.access_token)

        assert svc.get_session(second.access_token) is not None


class TestListeners:
    def test_events_and_unsubscribe(self, svc) -> None:
        events: list[tuple[str, object]] = []
        unsubscribe = svc.subscribe(lambda event, session: events.append((event, session)))

        info = svc.sign_up(email="ana@example.com", password="secreto1")
        svc.sign_out(info.access_token)
        unsubscribe()
        svc.sign_in(email="ana@example.com", password="secreto1")

        assert [event for event, _ in events] == ["SIGNED_IN", "SIGNED_OUT"]
        assert events[0][1] == info
        assert events[1][1] is None

    def test_failing_listener_does_not_break_sign_in(self, svc) -> None:
        def broken(event, session):
            raise RuntimeError("listener down")

        svc.subscribe(broken)
        info = svc.sign_up(email="ana@example.com", password="secreto1")
        assert info.user.email == "ana@example.com"


class TestStoreFailures:
    @pytest.fixture()
    def broken_svc(self, clock) -> AuthService:
        def broken_factory():
            raise OperationalError("SELECT", {}, Exception("connection refused"))

        return AuthService(session_factory=broken_factory, secret_key=SECRET_KEY, clock=clock)

    def test_sign_in_store_failure(self, broken_svc, caplog) -> None:
        with pytest.raises(AuthStoreError):
            broken_svc.sign_in(email="ana@example.com", password="secreto1")
        assert "auth_store_failed" in caplog.text

    def test_sign_up_store_failure(self, broken_svc) -> None:
        with pytest.raises(AuthStoreError):
            broken_svc.sign_up(email="ana@example.com", password="secreto1")

    def test_store_failure_is_not_an_authentication_error(self, broken_svc) -> None:
        with pytest.raises(Exception) as excinfo:
            broken_svc.sign_in(email="ana@example.com", password="secreto1")
        assert not isinstance(excinfo.value, AuthenticationError)


def test_normalize_email() -> None:
    assert normalize_email("  Ana@Example.com ") == "ana@example.com"
    assert normalize_email(None) == ""  # type: ignore[arg-type]
