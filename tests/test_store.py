"""Unit tests for auth/store.py -- UserStore persistence and challenge semantics.

Covers:
- create_user defaults (2FA on, created_at set) and lookups by id/email
- UNIQUE(email): second insert raises IntegrityError, one row remains
- Challenge pairs are set, overwritten and cleared together
- consume_two_fa_challenge / consume_reset_challenge are single-use and
  expiry-checked (expiry instant itself is already expired)
- A stale code cannot consume a newer challenge
- 2FA and reset challenges are independent
"""

import pytest
from sqlalchemy.exc import IntegrityError

from auth.store import UserStore

NOW = 1_700_000_000


@pytest.fixture
def alice_id(store: UserStore) -> int:
    return store.create_user("Alice", "alice@x.com", "$2b$04$fakehash")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class TestUsers:
    def test_create_and_lookup(self, store: UserStore, alice_id: int) -> None:
        by_email = store.get_by_email("alice@x.com")
        by_id = store.get_by_id(alice_id)
        assert by_email == by_id
        assert by_email.name == "Alice"
        assert by_email.password_hash == "$2b$04$fakehash"
        assert by_email.two_fa_enabled is True
        assert by_email.created_at is not None
        assert by_email.two_fa_code is None and by_email.reset_token is None

    def test_unknown_lookups_return_none(self, store: UserStore) -> None:
        assert store.get_by_email("nobody@x.com") is None
        assert store.get_by_id(999) is None

    def test_duplicate_email_rejected(self, store: UserStore, alice_id: int) -> None:
        with pytest.raises(IntegrityError):
            store.create_user("Other", "alice@x.com", "$2b$04$otherhash")
        assert store.count_by_email("alice@x.com") == 1

    def test_email_match_is_case_sensitive(self, store: UserStore, alice_id: int) -> None:
        assert store.get_by_email("Alice@x.com") is None
        store.create_user(None, "Alice@x.com", "$2b$04$h")
        assert store.count_by_email("Alice@x.com") == 1

    def test_ids_are_distinct(self, store: UserStore, alice_id: int) -> None:
        bob_id = store.create_user(None, "bob@x.com", "$2b$04$h")
        assert bob_id != alice_id
        assert store.get_by_id(bob_id).name is None

    def test_update_password_hash(self, store: UserStore, alice_id: int) -> None:
        assert store.update_password_hash("alice@x.com", "$2b$04$new") is True
        assert store.get_by_id(alice_id).password_hash == "$2b$04$new"
        assert store.update_password_hash("nobody@x.com", "$2b$04$new") is False

    def test_disable_two_fa_drops_pending_code(self, store: UserStore, alice_id: int) -> None:
        store.set_two_fa_challenge(alice_id, "123456", NOW + 600)
        assert store.set_two_fa_enabled(alice_id, False) is True
        user = store.get_by_id(alice_id)
        assert user.two_fa_enabled is False
        assert user.two_fa_code is None and user.two_fa_expires is None

    def test_set_two_fa_enabled_unknown_user(self, store: UserStore) -> None:
        assert store.set_two_fa_enabled(42, True) is False


# ---------------------------------------------------------------------------
# 2FA challenge
# ---------------------------------------------------------------------------


class TestTwoFaChallenge:
    def test_set_overwrites_previous(self, store: UserStore, alice_id: int) -> None:
        store.set_two_fa_challenge(alice_id, "111111", NOW + 600)
        store.set_two_fa_challenge(alice_id, "222222", NOW + 700)
        user = store.get_by_id(alice_id)
        assert (user.two_fa_code, user.two_fa_expires) == ("222222", NOW + 700)

    def test_clear_is_idempotent(self, store: UserStore, alice_id: int) -> None:
        store.set_two_fa_challenge(alice_id, "111111", NOW + 600)
        store.clear_two_fa_challenge(alice_id)
        store.clear_two_fa_challenge(alice_id)
        user = store.get_by_id(alice_id)
        assert user.two_fa_code is None and user.two_fa_expires is None

    def test_consume_is_single_use(self, store: UserStore, alice_id: int) -> None:
        store.set_two_fa_challenge(alice_id, "111111", NOW + 600)
        assert store.consume_two_fa_challenge(alice_id, "111111", NOW) is True
        assert store.consume_two_fa_challenge(alice_id, "111111", NOW) is False
        assert store.get_by_id(alice_id).two_fa_code is None

    def test_wrong_code_leaves_challenge(self, store: UserStore, alice_id: int) -> None:
        store.set_two_fa_challenge(alice_id, "111111", NOW + 600)
        assert store.consume_two_fa_challenge(alice_id, "999999", NOW) is False
        assert store.get_by_id(alice_id).two_fa_code == "111111"

    def test_expiry_instant_is_expired(self, store: UserStore, alice_id: int) -> None:
        store.set_two_fa_challenge(alice_id, "111111", NOW + 600)
        assert store.consume_two_fa_challenge(alice_id, "111111", NOW + 600) is False
        assert store.consume_two_fa_challenge(alice_id, "111111", NOW + 599) is True

    def test_stale_code_cannot_clear_newer_challenge(self, store: UserStore, alice_id: int) -> None:
        """Code A, then code B: a verify carrying A fails and B stays pending."""
        store.set_two_fa_challenge(alice_id, "111111", NOW + 600)
        store.set_two_fa_challenge(alice_id, "222222", NOW + 600)
        assert store.consume_two_fa_challenge(alice_id, "111111", NOW) is False
        assert store.get_by_id(alice_id).two_fa_code == "222222"

    def test_consume_without_pending_code(self, store: UserStore, alice_id: int) -> None:
        assert store.consume_two_fa_challenge(alice_id, "111111", NOW) is False


# ---------------------------------------------------------------------------
# Reset challenge
# ---------------------------------------------------------------------------


class TestResetChallenge:
    def test_set_and_clear(self, store: UserStore, alice_id: int) -> None:
        store.set_reset_challenge("alice@x.com", "tok-1", NOW + 1800)
        user = store.get_by_id(alice_id)
        assert (user.reset_token, user.reset_expires) == ("tok-1", NOW + 1800)
        store.clear_reset_challenge("alice@x.com")
        store.clear_reset_challenge("alice@x.com")
        user = store.get_by_id(alice_id)
        assert user.reset_token is None and user.reset_expires is None

    def test_consume_swaps_hash_and_clears(self, store: UserStore, alice_id: int) -> None:
        store.set_reset_challenge("alice@x.com", "tok-1", NOW + 1800)
        assert store.consume_reset_challenge("alice@x.com", "tok-1", "$2b$04$new", NOW) is True
        user = store.get_by_id(alice_id)
        assert user.password_hash == "$2b$04$new"
        assert user.reset_token is None and user.reset_expires is None
        assert store.consume_reset_challenge("alice@x.com", "tok-1", "$2b$04$again", NOW) is False
        assert store.get_by_id(alice_id).password_hash == "$2b$04$new"

    def test_consume_rejects_wrong_or_expired_token(self, store: UserStore, alice_id: int) -> None:
        store.set_reset_challenge("alice@x.com", "tok-1", NOW + 1800)
        assert store.consume_reset_challenge("alice@x.com", "tok-2", "$2b$04$new", NOW) is False
        assert store.consume_reset_challenge("alice@x.com", "tok-1", "$2b$04$new", NOW + 1800) is False
        assert store.get_by_id(alice_id).password_hash == "$2b$04$fakehash"

    def test_challenges_are_independent(self, store: UserStore, alice_id: int) -> None:
        store.set_two_fa_challenge(alice_id, "111111", NOW + 600)
        store.set_reset_challenge("alice@x.com", "tok-1", NOW + 1800)
        store.clear_reset_challenge("alice@x.com")
        assert store.get_by_id(alice_id).two_fa_code == "111111"
        store.set_reset_challenge("alice@x.com", "tok-2", NOW + 1800)
        assert store.consume_two_fa_challenge(alice_id, "111111", NOW) is True
        assert store.get_by_id(alice_id).reset_token == "tok-2"


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def test_ping(store: UserStore) -> None:
    assert store.ping() is True


def test_file_database_creates_parent_dir(tmp_path) -> None:
    db_path = tmp_path / "nested" / "dir" / "auth.db"
    s = UserStore(f"sqlite:///{db_path}")
    try:
        s.create_user(None, "a@x.com", "$2b$04$h")
        assert db_path.exists()
    finally:
        s.close()


def test_data_survives_reopen(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'auth.db'}"
    first = UserStore(url)
    uid = first.create_user("A", "a@x.com", "$2b$04$h")
    first.close()
    second = UserStore(url)
    try:
        assert second.get_by_id(uid).email == "a@x.com"
    finally:
        second.close()
