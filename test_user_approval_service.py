from types import SimpleNamespace

import pytest

from errors import NotFoundError, ValidationError
from user_approval_service import PENDING_USERS, USERS, approve_request, build_profile, process_approved_users


def test_approve_request(db):
    db.seed(PENDING_USERS, "req-1", {"email": "a@hopeline.ng", "role": "driver", "status": "pending"})
    approve_request(db, "req-1")
    assert db.data(PENDING_USERS, "req-1")["status"] == "approved"


def test_approve_request_errors(db):
    with pytest.raises(ValidationError):
        approve_request(db, "")
    with pytest.raises(NotFoundError):
        approve_request(db, "missing")


def test_build_profile_defaults():
    profile = build_profile("uid-1", "musa@hopeline.ng", "driver", None)
    assert profile["displayName"] == "musa"
    assert profile["language"] == "English"
    assert profile["isOnline"] is False
    assert profile["profileCompleted"] == 0


def test_process_creates_accounts_and_isolates_failures(db):
    db.seed(PENDING_USERS, "ok", {"email": "ok@hopeline.ng", "role": "admin", "language": "Hausa", "status": "approved"})
    db.seed(PENDING_USERS, "bad", {"email": "taken@hopeline.ng", "role": "driver", "status": "approved"})
    db.seed(PENDING_USERS, "waiting", {"email": "later@hopeline.ng", "role": "driver", "status": "pending"})

    def create_user(email, email_verified):
        assert email_verified is True
        if email.startswith("taken"):
            raise ValueError("EMAIL_EXISTS")
        return SimpleNamespace(uid="uid-ok")

    created = []
    result = process_approved_users(db, create_auth_user=create_user, on_created=lambda uid, email: created.append(uid))

    assert result.processed == ["ok@hopeline.ng"]
    assert result.failed == ["bad"]
    assert created == ["uid-ok"]

    assert db.data(PENDING_USERS, "ok") is None
    profile = db.data(USERS, "uid-ok")
    assert profile["role"] == "admin"
    assert profile["language"] == "Hausa"

    failed = db.data(PENDING_USERS, "bad")
    assert failed["status"] == "failed"
    assert "EMAIL_EXISTS" in failed["error"]
    assert db.data(PENDING_USERS, "waiting")["status"] == "pending"


def test_hook_failure_does_not_undo_account(db):
    db.seed(PENDING_USERS, "ok", {"email": "ok@hopeline.ng", "role": "admin", "status": "approved"})

    def broken_hook(uid, email):
        raise RuntimeError("smtp down")

    result = process_approved_users(
        db, create_auth_user=lambda **kw: SimpleNamespace(uid="u9"), on_created=broken_hook
    )
    assert result.to_dict() == {"processed": ["ok@hopeline.ng"], "failed": []}
    assert db.data(USERS, "u9") is not None


def test_nothing_to_process(db):
    result = process_approved_users(db, create_auth_user=lambda **kw: pytest.fail("should not be called"))
    assert result.to_dict() == {"processed": [], "failed": []}
