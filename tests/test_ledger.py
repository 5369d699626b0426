from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import select

from errors import (
    InvalidStatus,
    NotFound,
    PasswordMismatch,
    PasswordTooShort,
    UsernameConflict,
    UsernameTooShort,
)
from ledger import RequestLedger
from models import PanelRequest


def _as_utc(value):
    # SQLite devuelve valores naive; se interpretan como UTC.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _rows(db):
    with db.session() as s:
        return s.exec(select(PanelRequest)).all()


def test_password_mismatch_never_reaches_store(hasher):
    detached = RequestLedger(db=None, hasher=hasher)
    with pytest.raises(PasswordMismatch):
        detached.submit("alice", "secret1", "secret2", "203.0.113.42")


def test_mismatch_is_checked_before_length(ledger, db):
    with pytest.raises(PasswordMismatch):
        ledger.submit("alice", "abc", "abd", "203.0.113.42")
    assert _rows(db) == []


def test_short_password_is_rejected(ledger, db):
    with pytest.raises(PasswordTooShort):
        ledger.submit("alice", "12345", "12345", "203.0.113.42")
    assert _rows(db) == []


def test_short_username_is_rejected(ledger):
    with pytest.raises(UsernameTooShort):
        ledger.submit("  al ", "secret1", "secret1", "203.0.113.42")


def test_submit_stores_pending_request_with_hashed_password(ledger, db, hasher):
    result = ledger.submit("alice", "secret1", "secret1", "203.0.113.42")
    assert result["maskedIp"] == "203.0.***.***"
    [row] = _rows(db)
    assert row.status == "pending"
    assert row.user_ip == "203.0.113.42"
    assert row.approved_at is None
    assert row.password != "secret1"
    assert hasher.verify("secret1", row.password)


@pytest.mark.parametrize("blocking_status", ["pending", "approved"])
def test_active_request_blocks_same_username(ledger, blocking_status):
    first = ledger.submit("alice", "secret1", "secret1", "203.0.113.42")
    if blocking_status != "pending":
        ledger.update_status(first["id"], blocking_status, None)
    with pytest.raises(UsernameConflict):
        ledger.submit("alice", "secret2", "secret2", "198.51.100.7")


def test_rejected_request_frees_username(ledger, db):
    first = ledger.submit("alice", "secret1", "secret1", "203.0.113.42")
    ledger.update_status(first["id"], "rejected", "duplicate")
    ledger.submit("alice", "secret2", "secret2", "198.51.100.7")
    statuses = sorted(r.status for r in _rows(db))
    assert statuses == ["pending", "rejected"]


def test_usernames_are_case_sensitive(ledger):
    ledger.submit("alice", "secret1", "secret1", "203.0.113.42")
    ledger.submit("Alice", "secret1", "secret1", "203.0.113.42")


def test_unique_constraint_catches_concurrent_insert(ledger, db):
    # Fila de otro escritor que el chequeo previo no ve como activa.
    with db.session() as s:
        s.add(PanelRequest(username="alice", password="x", status="rejected", active_username="alice"))
        s.commit()
    with pytest.raises(UsernameConflict):
        ledger.submit("alice", "secret1", "secret1", "203.0.113.42")
    assert len(_rows(db)) == 1


def test_update_status_sets_and_clears_approved_at(ledger, db):
    created = ledger.submit("alice", "secret1", "secret1", "203.0.113.42")
    approved = ledger.update_status(created["id"], "approved", "welcome")
    assert approved.approved_at is not None
    assert approved.admin_notes == "welcome"

    reverted = ledger.update_status(created["id"], "pending", None)
    assert reverted.status == "pending"
    assert reverted.approved_at is None
    assert reverted.admin_notes is None


def test_rejection_also_stamps_approved_at(ledger):
    created = ledger.submit("alice", "secret1", "secret1", "203.0.113.42")
    rejected = ledger.update_status(created["id"], "rejected", "no")
    assert rejected.approved_at is not None


def test_update_unknown_request(ledger):
    with pytest.raises(NotFound):
        ledger.update_status(999, "approved", None)


def test_update_with_unknown_status(ledger):
    created = ledger.submit("alice", "secret1", "secret1", "203.0.113.42")
    with pytest.raises(InvalidStatus):
        ledger.update_status(created["id"], "archived", None)


def test_reactivating_taken_username_conflicts(ledger):
    old = ledger.submit("alice", "secret1", "secret1", "203.0.113.42")
    ledger.update_status(old["id"], "rejected", None)
    ledger.submit("alice", "secret2", "secret2", "198.51.100.7")
    with pytest.raises(UsernameConflict):
        ledger.update_status(old["id"], "approved", None)


def test_list_all_is_newest_first_and_masked(ledger):
    ledger.submit("alice", "secret1", "secret1", "203.0.113.42")
    ledger.submit("bob", "secret1", "secret1", "2001:db8::1")
    rows = ledger.list_all()
    assert [r["username"] for r in rows] == ["bob", "alice"]
    assert rows[0]["masked_ip"] == "2001:db8***"
    assert rows[1]["masked_ip"] == "203.0.***.***"
    assert all("password" not in r and "user_ip" not in r for r in rows)


def test_stats_counts_by_status(ledger):
    a = ledger.submit("alice", "secret1", "secret1", "203.0.113.42")
    b = ledger.submit("bob", "secret1", "secret1", "203.0.113.43")
    ledger.submit("carol", "secret1", "secret1", "203.0.113.44")
    ledger.update_status(a["id"], "approved", None)
    ledger.update_status(b["id"], "rejected", None)
    assert ledger.stats() == {"pending": 1, "approved": 1, "rejected": 1, "total": 3}


def test_new_request_timestamps_are_timezone_aware():
    request = PanelRequest(username="alice", password="x")
    assert request.created_at.tzinfo is not None


def test_timestamps_are_persisted_in_utc(ledger, db):
    before = datetime.now(timezone.utc) - timedelta(seconds=1)
    created = ledger.submit("alice", "secret1", "secret1", "203.0.113.42")
    ledger.update_status(created["id"], "approved", None)
    after = datetime.now(timezone.utc) + timedelta(seconds=1)
    [row] = _rows(db)
    assert before <= _as_utc(row.created_at) <= after
    assert before <= _as_utc(row.approved_at) <= after


def test_username_is_stored_as_submitted(ledger, db):
    ledger.submit("alice", "secret1", "secret1", "203.0.113.42")
    ledger.submit(" alice", "secret1", "secret1", "203.0.113.42")
    assert sorted(r.username for r in _rows(db)) == [" alice", "alice"]
