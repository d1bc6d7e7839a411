"""
auth/service.py -- AuthService: the five authentication operations.

  register          create an account, send a welcome message
  login             check credentials; issue a session or a 2FA challenge
  verify_two_factor exchange a pending 2FA code for a session
  forgot_password   issue a time-limited reset token
  reset_password    exchange a reset token for a new password

plus current_user (session lookup for GET /auth/me) and set_two_factor.

Ordering rule: persist first, notify second. Every state transition is
committed to the store before the Notifier is called. If delivery then
fails, nothing is rolled back -- the operation raises DeliveryFailedError
carrying the committed result, so the client does not retry a registration
or login that already succeeded server-side.

Enumeration: login returns the same UnauthorizedError for unknown email and
wrong password and runs bcrypt in both branches. forgot_password returns the
same success for unknown and known emails. reset_password reports an unknown
email as an invalid token.

Logging never includes passwords, hashes, codes, or tokens. Store failures
are logged by exception type only and surface as InternalError.

Layer rule: no imports from api/ or core/. All collaborators are injected.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import (
    ConflictError,
    DeliveryFailedError,
    InternalError,
    InvalidOrExpiredError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailedError,
)
from auth.models import LoginResult, User
from auth.notifier import NotificationError, Notifier
from auth.store import UserStore
from auth.tokens import MAX_PASSWORD_BYTES, PasswordHasher, SecretGenerator, SessionIssuer

logger = logging.getLogger("authgate.auth")

DEFAULT_TWO_FA_TTL = 10 * 60
DEFAULT_RESET_TTL = 30 * 60


def _missing(*values) -> bool:
    """Identifiers are missing when None, blank, or a non-positive id."""
    for v in values:
        if v is None:
            return True
        if isinstance(v, str) and not v.strip():
            return True
        if isinstance(v, int) and not isinstance(v, bool) and v <= 0:
            return True
    return False


def _missing_password(password: str | None) -> bool:
    # Whitespace is part of the secret; only an absent or empty value is missing.
    return password is None or password == ""


def _check_password_length(password: str) -> None:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationFailedError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")


@contextmanager
def _store_guard(operation: str) -> Iterator[None]:
    """Map unexpected store failures to InternalError without leaking details."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Store failure during %s: %s", operation, type(exc).__name__)
        raise InternalError() from exc


class AuthService:
    """Coordinates store, hasher, secrets, sessions and notifier.

    clock returns the current time in epoch seconds; tests pass a fake to
    move past challenge expiry without sleeping.
    """

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        secrets: SecretGenerator,
        sessions: SessionIssuer,
        notifier: Notifier,
        clock: Callable[[], float] = time.time,
        two_fa_ttl: int = DEFAULT_TWO_FA_TTL,
        reset_ttl: int = DEFAULT_RESET_TTL,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.secrets = secrets
        self.sessions = sessions
        self.notifier = notifier
        self.clock = clock
        self.two_fa_ttl = two_fa_ttl
        self.reset_ttl = reset_ttl

    def _now(self) -> int:
        return int(self.clock())

    def _notify(self, to_address: str, subject: str, body: str, result: dict) -> None:
        try:
            self.notifier.send(to_address, subject, body)
        except NotificationError as exc:
            logger.error("Delivery of %r failed after commit: %s", subject, exc)
            raise DeliveryFailedError(result=result) from exc

    # ------------------------------------------------------------------
    # register
    # ------------------------------------------------------------------

    def register(self, name: str | None, email: str | None, password: str | None) -> dict:
        """Create an account with 2FA enabled. Returns {"id", "email"}."""
        if _missing(email) or _missing_password(password):
            raise ValidationFailedError("Email and password required.")
        _check_password_length(password)

        with _store_guard("register"):
            if self.store.get_by_email(email) is not None:
                raise ConflictError()
            password_hash = self.hasher.hash(password)
            try:
                user_id = self.store.create_user(name or None, email, password_hash)
            except IntegrityError as exc:
                # Lost a race with a concurrent registration of the same email.
                raise ConflictError() from exc

        logger.info("Registered user id=%d", user_id)
        result = {"id": user_id, "email": email}
        self._notify(
            email,
            "Welcome!",
            f"Hello {name or ''}, your account has been created.",
            result,
        )
        return result

    # ------------------------------------------------------------------
    # login / verify
    # ------------------------------------------------------------------

    def login(self, email: str | None, password: str | None) -> LoginResult:
        """Check credentials; issue a token or a pending 2FA challenge."""
        if _missing(email) or _missing_password(password):
            raise ValidationFailedError("Email and password required.")

        with _store_guard("login"):
            user = self.store.get_by_email(email)
            if user is None:
                self.hasher.dummy_verify(password)
                logger.info("Failed login (bad credentials)")
                raise UnauthorizedError()
            if not self.hasher.verify(password, user.password_hash):
                logger.info("Failed login (bad credentials) for user id=%d", user.id)
                raise UnauthorizedError()

            if not user.two_fa_enabled:
                return LoginResult(user_id=user.id, email=user.email, token=self.sessions.issue(user.id, user.email))

            code = self.secrets.two_fa_code()
            expires_at = self._now() + self.two_fa_ttl
            self.store.set_two_fa_challenge(user.id, code, expires_at)

        logger.info("2FA challenge issued for user id=%d", user.id)
        result = LoginResult(user_id=user.id, email=user.email, two_fa_required=True)
        minutes = self.two_fa_ttl // 60
        self._notify(
            user.email,
            "Your 2FA Code",
            f"Your verification code is: {code} (valid {minutes} minutes)",
            {"twoFaRequired": True, "user": {"id": user.id, "email": user.email}},
        )
        return result

    def verify_two_factor(self, user_id: int | None, code: str | None) -> str:
        """Consume the pending code and return a session token."""
        if _missing(user_id, code):
            raise ValidationFailedError("userId and code required.")

        with _store_guard("verify_two_factor"):
            user = self.store.get_by_id(user_id)
            if user is None:
                raise NotFoundError()
            # The compare-and-clear re-checks code and expiry atomically; a
            # pre-read alone could act on a challenge a concurrent login replaced.
            if not self.store.consume_two_fa_challenge(user.id, code, self._now()):
                raise InvalidOrExpiredError("Invalid or expired code.")

        logger.info("2FA verified for user id=%d", user.id)
        return self.sessions.issue(user.id, user.email)

    # ------------------------------------------------------------------
    # password reset
    # ------------------------------------------------------------------

    def forgot_password(self, email: str | None) -> dict:
        """Issue a reset token if the account exists. Always returns {"ok": True}."""
        if _missing(email):
            raise ValidationFailedError("Email required.")

        result = {"ok": True}
        with _store_guard("forgot_password"):
            user = self.store.get_by_email(email)
            if user is None:
                return result
            token = self.secrets.reset_token()
            self.store.set_reset_challenge(email, token, self._now() + self.reset_ttl)

        logger.info("Password reset issued for user id=%d", user.id)
        minutes = self.reset_ttl // 60
        self._notify(
            email,
            "Password reset",
            f"Use the following token to reset your password: {token}. It expires in {minutes} minutes.",
            result,
        )
        return result

    def reset_password(self, email: str | None, token: str | None, new_password: str | None) -> dict:
        """Exchange a valid reset token for a new password."""
        if _missing(email, token) or _missing_password(new_password):
            raise ValidationFailedError("Missing fields.")
        _check_password_length(new_password)

        with _store_guard("reset_password"):
            user = self.store.get_by_email(email)
            now = self._now()
            if (
                user is None
                or user.reset_token is None
                or user.reset_expires is None
                or user.reset_token != token
                or now >= user.reset_expires
            ):
                raise InvalidOrExpiredError("Invalid or expired reset token.")
            new_hash = self.hasher.hash(new_password)
            if not self.store.consume_reset_challenge(email, token, new_hash, now):
                raise InvalidOrExpiredError("Invalid or expired reset token.")

        logger.info("Password reset completed for user id=%d", user.id)
        result = {"ok": True}
        self._notify(email, "Password changed", "Your password was successfully changed.", result)
        return result

    # ------------------------------------------------------------------
    # sessions
    # ------------------------------------------------------------------

    def current_user(self, token: str | None) -> User:
        """Resolve a session token to its user, or raise UnauthorizedError."""
        payload = self.sessions.decode(token) if token else None
        if payload is None:
            raise UnauthorizedError("Authentication required.")
        with _store_guard("current_user"):
            user = self.store.get_by_id(payload["user_id"])
        if user is None:
            raise UnauthorizedError("Authentication required.")
        return user

    def set_two_factor(self, user_id: int, enabled: bool | None) -> bool:
        if enabled is None:
            raise ValidationFailedError("enabled required.")
        with _store_guard("set_two_factor"):
            if not self.store.set_two_fa_enabled(user_id, enabled):
                raise NotFoundError()
        logger.info("2FA %s for user id=%d", "enabled" if enabled else "disabled", user_id)
        return enabled
