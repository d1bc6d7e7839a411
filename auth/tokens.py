"""
auth/tokens.py -- Password hashing, single-use secrets, and session JWTs.

Security design decisions:
  Passwords: bcrypt directly (no passlib wrapper). The cost factor is stored
       inside every hash string ("$2b$12$..."), so raising BCRYPT_ROUNDS later
       only affects new hashes -- existing ones keep verifying. dummy_verify()
       lets login spend the same bcrypt work on unknown emails, so response
       time does not reveal whether an account exists.

  Secrets: both the 2FA code and the reset token come from the `secrets`
       CSPRNG. These values gate account takeover; `random` is never
       acceptable here. Codes are uniform over 100000..999999. Reset tokens
       are token_urlsafe(36): 48 URL-safe characters, 288 bits of entropy.

  JWT: python-jose with HS256. Tokens carry sub (user id), email, iat and
       exp. Verification returns None on any failure -- the caller turns that
       into 401. There is no revocation list; a token is valid until exp.

Nothing here reads settings. api/main.py builds these objects from
core.config at startup and injects them into AuthService.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

logger = logging.getLogger("authgate.auth")

_ALGORITHM = "HS256"

# bcrypt ignores everything past 72 bytes and bcrypt>=5 refuses longer input.
MAX_PASSWORD_BYTES = 72


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


class PasswordHasher:
    """Adaptive one-way hashing for account passwords."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        # Computed once so the first unknown-email login is not measurably
        # slower than later ones.
        self._dummy_hash = self.hash("authgate_timing_dummy")

    def hash(self, password: str) -> str:
        """Return a salted bcrypt hash of the given plaintext password."""
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, password: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash."""
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            # Malformed hash or over-long password.
            return False

    def dummy_verify(self, password: str) -> None:
        """Spend one verification's worth of bcrypt work and discard the result."""
        self.verify(password, self._dummy_hash)


# ---------------------------------------------------------------------------
# Single-use secrets
# ---------------------------------------------------------------------------


class SecretGenerator:
    """Produces 2FA codes and password-reset tokens from the OS CSPRNG."""

    def two_fa_code(self) -> str:
        """Return a six-digit code, uniform over 100000..999999."""
        return str(100000 + secrets.randbelow(900000))

    def reset_token(self) -> str:
        """Return a 48-character URL-safe token (288 bits of entropy)."""
        return secrets.token_urlsafe(36)


# ---------------------------------------------------------------------------
# Session JWTs
# ---------------------------------------------------------------------------


class SessionIssuer:
    """Mints and verifies stateless, signed session tokens."""

    def __init__(self, secret_key: str, expire_seconds: int = 3600) -> None:
        if not secret_key:
            raise ValueError("SessionIssuer requires a signing key.")
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds

    def issue(self, user_id: int, email: str) -> str:
        """Encode a signed JWT with user identity and expiry.

        Args:
            user_id: Numeric user ID, stored as the `sub` claim (string per RFC 7519).
            email:   Account email, echoed for client display.
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "email": email,
            "iat": now,
            "exp": now + timedelta(seconds=self.expire_seconds),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def decode(self, token: str) -> dict | None:
        """Decode and verify a JWT. Returns the payload dict or None on any failure.

        Returning None (rather than raising) keeps the caller simple: any
        invalid, expired, or incomplete token is treated as unauthenticated.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWTError:
            return None
        if "sub" not in payload or "email" not in payload:
            return None
        try:
            payload["user_id"] = int(payload["sub"])
        except (TypeError, ValueError):
            return None
        return payload
