from datetime import timedelta

import pytest

from credentials import CredentialStore, check_new_password, hash_reset_token
from database import COLL_HOSTS, epoch_seconds, utcnow
from errors import ValidationError
from identity import Account, AccountKind


@pytest.fixture
def store(db, settings):
    return CredentialStore(db, settings)


@pytest.fixture
def host(db, store):
    doc = {"phone_number": "0500000001", "email": "host@example.com",
           **store.password_fields("password123", is_new=True)}
    doc["_id"] = db[COLL_HOSTS].insert_one(doc).inserted_id
    return Account(AccountKind.HOST, doc)


def test_hash_is_salted_and_verifies(store):
    first = store.hash("password123")
    second = store.hash("password123")
    assert first != second
    assert store.verify("password123", first)
    assert not store.verify("wrong-password", first)


def test_verify_without_hash_is_false(store):
    assert not store.verify("password123", None)


def test_new_account_has_no_change_watermark(store):
    fields = store.password_fields("password123", is_new=True)
    assert "password_changed_at" not in fields


def test_set_password_stamps_change_one_second_back(store, host):
    before = utcnow()
    account = store.set_password(host, "newpassword1")
    changed_at = account.doc["password_changed_at"]
    assert before - timedelta(seconds=2) <= changed_at <= before
    assert store.verify("newpassword1", account.password_hash)


def test_changed_password_after(store, host):
    account = store.set_password(host, "newpassword1")
    changed = epoch_seconds(account.doc["password_changed_at"])
    assert store.changed_password_after(account, changed - 10)
    assert not store.changed_password_after(account, changed + 10)


def test_changed_password_after_without_change(store, host):
    assert not store.changed_password_after(host, 0)


def test_reset_token_stores_only_the_hash(db, store, host):
    token = store.issue_reset_token(host)
    doc = db[COLL_HOSTS].find_one({"_id": host.id})
    assert doc["password_reset_token"] == hash_reset_token(token)
    assert doc["password_reset_token"] != token
    assert doc["password_reset_expires"] > utcnow() + timedelta(minutes=9)


def test_clear_reset_token(db, store, host):
    store.issue_reset_token(host)
    store.clear_reset_token(host)
    doc = db[COLL_HOSTS].find_one({"_id": host.id})
    assert "password_reset_token" not in doc
    assert "password_reset_expires" not in doc


def test_set_password_clears_reset_token(db, store, host):
    store.issue_reset_token(host)
    store.set_password(host, "newpassword1")
    doc = db[COLL_HOSTS].find_one({"_id": host.id})
    assert "password_reset_token" not in doc


@pytest.mark.parametrize("password, confirm, message", [
    (None, None, "Please provide"),
    ("short", "short", "at least 8"),
    ("password123", "password124", "not the same"),
])
def test_check_new_password_rejects(password, confirm, message):
    with pytest.raises(ValidationError) as exc:
        check_new_password(password, confirm)
    assert message in exc.value.message
