"""
auth/store.py -- SQLAlchemy Core persistence layer for user credentials.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper.
Service and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  The engine is created with hide_parameters=True. SQLAlchemy otherwise
  embeds bound values (password hashes, 2FA codes, reset tokens) in the
  text of its exceptions, and those end up in logs.

Concurrency:
  Every mutation is a single UPDATE against one row, and SQLite serializes
  writers, so operations on a single user are linearizable. Challenge pairs
  (code + expiry, token + expiry) are always written together in the same
  statement, never one column at a time.

  consume_two_fa_challenge() and consume_reset_challenge() are compare-and-
  swap updates: the WHERE clause re-checks the secret and its expiry. A
  verify request that raced a newer login therefore cannot clear the newer
  code -- it matches zero rows and fails.

  UNIQUE(email) makes registration race-free: the loser of two concurrent
  inserts gets IntegrityError.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import time
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from auth.models import User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("two_fa_enabled", Integer, nullable=False, server_default="1"),
    Column("two_fa_code", String(16)),
    Column("two_fa_expires", Integer),  # epoch seconds
    Column("reset_token", String(128)),
    Column("reset_expires", Integer),  # epoch seconds
    Column("created_at", Integer, nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _ensure_sqlite_dir(db_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    database = make_url(db_url).database
    if not database or database == ":memory:" or database.startswith("file:"):
        return
    Path(database).parent.mkdir(parents=True, exist_ok=True)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records and their pending challenges.

    Usage:
        store = UserStore("sqlite:///./data/authgate.db")
        user_id = store.create_user("Alice", "alice@x.com", hasher.hash("secret1"))
        user = store.get_by_email("alice@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            _ensure_sqlite_dir(db_url)
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, hide_parameters=True)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, name: str | None, email: str, password_hash: str) -> int:
        """Insert a new user (2FA enabled) and return its assigned ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        The service turns that into ConflictError.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    name=name,
                    email=email,
                    password_hash=password_hash,
                    two_fa_enabled=1,
                    created_at=int(time.time()),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def count_by_email(self, email: str) -> int:
        """Return how many rows hold this exact email (0 or 1 under UNIQUE)."""
        stmt = select(func.count()).select_from(_users).where(_users.c.email == email)
        with self.engine.connect() as conn:
            result = conn.execute(stmt).scalar()
        return result or 0

    def update_password_hash(self, email: str, new_hash: str) -> bool:
        """Replace the password hash. Returns True if a row was updated."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.email == email).values(password_hash=new_hash))
            conn.commit()
        return result.rowcount > 0

    def set_two_fa_enabled(self, user_id: int, enabled: bool) -> bool:
        """Toggle the second factor. Disabling also drops any pending code."""
        values: dict = {"two_fa_enabled": 1 if enabled else 0}
        if not enabled:
            values.update(two_fa_code=None, two_fa_expires=None)
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # 2FA challenge
    # ------------------------------------------------------------------

    def set_two_fa_challenge(self, user_id: int, code: str, expires_at: int) -> None:
        """Store a pending 2FA code, overwriting any previous one."""
        with self.engine.connect() as conn:
            conn.execute(
                _users.update().where(_users.c.id == user_id).values(two_fa_code=code, two_fa_expires=expires_at)
            )
            conn.commit()

    def clear_two_fa_challenge(self, user_id: int) -> None:
        """Drop the pending 2FA code. Idempotent."""
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(two_fa_code=None, two_fa_expires=None))
            conn.commit()

    def consume_two_fa_challenge(self, user_id: int, code: str, now: int) -> bool:
        """Clear the pending code only if it equals `code` and has not expired.

        Returns True if this call consumed the challenge. A second call with
        the same code returns False because the first one cleared it.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(
                    (_users.c.id == user_id)
                    & (_users.c.two_fa_code == code)
                    & (_users.c.two_fa_expires.is_not(None))
                    & (_users.c.two_fa_expires > now)
                )
                .values(two_fa_code=None, two_fa_expires=None)
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reset challenge
    # ------------------------------------------------------------------

    def set_reset_challenge(self, email: str, token: str, expires_at: int) -> None:
        """Store a pending reset token, overwriting any previous one."""
        with self.engine.connect() as conn:
            conn.execute(
                _users.update().where(_users.c.email == email).values(reset_token=token, reset_expires=expires_at)
            )
            conn.commit()

    def clear_reset_challenge(self, email: str) -> None:
        """Drop the pending reset token. Idempotent."""
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.email == email).values(reset_token=None, reset_expires=None))
            conn.commit()

    def consume_reset_challenge(self, email: str, token: str, new_hash: str, now: int) -> bool:
        """Set the new password hash and clear the reset pair in one statement.

        Applies only if the stored token equals `token` and has not expired.
        Returns True if the password was changed.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(
                    (_users.c.email == email)
                    & (_users.c.reset_token == token)
                    & (_users.c.reset_expires.is_not(None))
                    & (_users.c.reset_expires > now)
                )
                .values(password_hash=new_hash, reset_token=None, reset_expires=None)
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        password_hash=row.password_hash,
        two_fa_enabled=bool(row.two_fa_enabled),
        two_fa_code=row.two_fa_code,
        two_fa_expires=row.two_fa_expires,
        reset_token=row.reset_token,
        reset_expires=row.reset_expires,
        created_at=row.created_at,
    )
