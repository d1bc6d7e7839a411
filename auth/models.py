"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). The store maps rows
to these; the service and routes do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """A registered identity and its pending secrets.

    Challenge pairs (two_fa_code/two_fa_expires, reset_token/reset_expires) are
    written and cleared together by the store, so either both halves are set
    or both are None. Expiries are epoch seconds.

    password_hash never leaves the auth package -- response models only
    expose id, email and name.
    """

    email: str
    password_hash: str
    id: int | None = None
    name: str | None = None
    two_fa_enabled: bool = True
    two_fa_code: str | None = field(default=None, repr=False)
    two_fa_expires: int | None = None
    reset_token: str | None = field(default=None, repr=False)
    reset_expires: int | None = None
    created_at: int | None = None


@dataclass
class LoginResult:
    """Outcome of a successful credential check.

    Exactly one of token / two_fa_required is meaningful: with 2FA disabled a
    session token is issued immediately; with 2FA enabled token is None and
    the client must call verify-2fa with the delivered code.
    """

    user_id: int
    email: str
    token: str | None = None
    two_fa_required: bool = False
