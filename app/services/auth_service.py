"""
app/services/auth_service.py

Email/password accounts and server-side sessions.

A sign-in issues a signed access token carrying the account id (``sub``),
the session id (``sid``) and an expiry (``exp``). The token is only honoured
while its ``auth_sessions`` row exists, is unexpired and has not been
revoked, so signing out invalidates it immediately.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.logging_utils import log_event
from db.models.user_account import AuthSession, UserAccount

logger = logging.getLogger(__name__)

AuthEvent = Literal["SIGNED_IN", "SIGNED_OUT"]


class AuthenticationError(ValueError):
    """
    Raised when credentials or an access token are rejected.
    """


class RegistrationError(AuthenticationError):
    """
    Raised when a new account cannot be created.
    """


class AuthStoreError(RuntimeError):
    """
    Raised when the account store cannot be reached during sign-up or sign-in.
    """


@dataclass(frozen=True)
class AuthUser:
    id: uuid.UUID
    email: str
    display_name: str


@dataclass(frozen=True)
class AuthSessionInfo:
    """
    An authenticated session as seen by callers.
    """

    access_token: str
    session_id: uuid.UUID
    user: AuthUser
    expires_at: dt.datetime


SessionListener = Callable[[AuthEvent, "AuthSessionInfo | None"], None]


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _as_utc(value: dt.datetime) -> dt.datetime:
    # SQLite hands timezone-aware columns back naive.
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class AuthService:
    """
    Account registration, sign-in, token validation and sign-out.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker,
        secret_key: str,
        algorithm: str = "HS256",
        token_ttl_minutes: int = 720,
        min_password_length: int = 6,
        clock: Callable[[], dt.datetime] = _utcnow,
    ) -> None:
        if not secret_key:
            raise ValueError("secret_key is required.")
        self._session_factory = session_factory
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._token_ttl = dt.timedelta(minutes=max(1, token_ttl_minutes))
        self._min_password_length = max(1, min_password_length)
        self._clock = clock
        self._pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
        self._listeners: list[SessionListener] = []
        self._listeners_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register *listener* for session changes. Returns an unsubscribe callable.
        """

        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: AuthEvent, session: AuthSessionInfo | None) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event, session)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Auth listener failed event=%s: %s", event, exc)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def sign_up(self, *, email: str, password: str, display_name: str = "") -> AuthSessionInfo:
        """
        Create an account and open a session for it.
        """

        address = normalize_email(email)
        if "@" not in address or address.startswith("@") or address.endswith("@"):
            raise RegistrationError("A valid email address is required.")
        if len(password or "") < self._min_password_length:
            raise RegistrationError(
                f"Password must be at least {self._min_password_length} characters long."
            )

        try:
            with self._session_factory() as db:
                existing = db.scalar(select(UserAccount.id).where(UserAccount.email == address))
                if existing is not None:
                    raise RegistrationError("An account with this email already exists.")

                account = UserAccount(
                    id=uuid.uuid4(),
                    email=address,
                    display_name=(display_name or "").strip(),
                    password_hash=self._pwd_context.hash(password),
                )
                db.add(account)
                try:
                    db.flush()
                    info = self._open_session(db, account)
                    db.commit()
                except IntegrityError as exc:
                    db.rollback()
                    raise RegistrationError("An account with this email already exists.") from exc
                except SQLAlchemyError:
                    db.rollback()
                    raise
        except SQLAlchemyError as exc:
            log_event(logger, logging.ERROR, "auth_store_failed", operation="sign_up", error=str(exc))
            raise AuthStoreError("Account store is unavailable.") from exc

        log_event(logger, logging.INFO, "auth_signed_up", user_id=info.user.id)
        self._notify("SIGNED_IN", info)
        return info

    def sign_in(self, *, email: str, password: str) -> AuthSessionInfo:
        address = normalize_email(email)
        try:
            with self._session_factory() as db:
                account = db.scalar(select(UserAccount).where(UserAccount.email == address))
                if account is None or not self._pwd_context.verify(password or "", account.password_hash):
                    log_event(logger, logging.WARNING, "auth_sign_in_rejected", email=address)
                    raise AuthenticationError("Invalid login credentials.")
                try:
                    info = self._open_session(db, account)
                    db.commit()
                except SQLAlchemyError:
                    db.rollback()
                    raise
        except SQLAlchemyError as exc:
            log_event(logger, logging.ERROR, "auth_store_failed", operation="sign_in", error=str(exc))
            raise AuthStoreError("Account store is unavailable.") from exc

        log_event(logger, logging.INFO, "auth_signed_in", user_id=info.user.id)
        self._notify("SIGNED_IN", info)
        return info

    def get_session(self, access_token: str | None) -> AuthSessionInfo | None:
        """
        Return the live session behind *access_token*, or None.
        """

        if not access_token:
            return None
        claims = self._decode(access_token)
        if claims is None:
            return None

        try:
            session_id = uuid.UUID(str(claims.get("sid")))
            user_id = uuid.UUID(str(claims.get("sub")))
        except ValueError:
            return None

        with self._session_factory() as db:
            row = db.get(AuthSession, session_id)
            if row is None or row.user_id != user_id or row.revoked_at is not None:
                return None
            expires_at = _as_utc(row.expires_at)
            if expires_at <= self._clock():
                return None
            account = db.get(UserAccount, user_id)
            if account is None:
                return None
            return AuthSessionInfo(
                access_token=access_token,
                session_id=session_id,
                user=AuthUser(id=account.id, email=account.email, display_name=account.display_name),
                expires_at=expires_at,
            )

    def require_session(self, access_token: str | None) -> AuthSessionInfo:
        session = self.get_session(access_token)
        if session is None:
            raise AuthenticationError("Session is missing, expired or revoked.")
        return session

    def sign_out(self, access_token: str | None) -> None:
        """
        Revoke the session behind *access_token*. Unknown tokens are ignored.
        """

        session = self.get_session(access_token)
        if session is None:
            return

        with self._session_factory() as db:
            row = db.get(AuthSession, session.session_id)
            if row is not None and row.revoked_at is None:
                row.revoked_at = self._clock()
                try:
                    db.commit()
                except SQLAlchemyError:
                    db.rollback()
                    raise

        log_event(logger, logging.INFO, "auth_signed_out", user_id=session.user.id)
        self._notify("SIGNED_OUT", None)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open_session(self, db: Session, account: UserAccount) -> AuthSessionInfo:
        issued_at = self._clock()
        expires_at = issued_at + self._token_ttl
        row = AuthSession(
            id=uuid.uuid4(),
            user_id=account.id,
            created_at=issued_at,
            expires_at=expires_at,
        )
        db.add(row)
        db.flush()

        token = jwt.encode(
            {
                "sub": str(account.id),
                "sid": str(row.id),
                "iat": int(issued_at.timestamp()),
                "exp": int(expires_at.timestamp()),
            },
            self._secret_key,
            algorithm=self._algorithm,
        )
        return AuthSessionInfo(
            access_token=token,
            session_id=row.id,
            user=AuthUser(id=account.id, email=account.email, display_name=account.display_name),
            expires_at=expires_at,
        )

    def _decode(self, token: str) -> dict | None:
        try:
            # Expiry is checked against the session row with the injected clock.
            return jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            logger.debug("Rejected access token: %s", exc)
            return None
