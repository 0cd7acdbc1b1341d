from datetime import timedelta

from bson import ObjectId

from database import COLL_OTPS, utcnow
from otp import OtpLedger, generate_code


def test_generate_code_is_six_digits():
    for _ in range(200):
        code = generate_code()
        assert len(code) == 6
        assert 100000 <= int(code) <= 999999


def test_verify_consumes_the_code(db, settings):
    ledger = OtpLedger(db, settings)
    code = ledger.issue("0500000001", "signup")

    record = ledger.verify("0500000001", code)
    assert record["user_type"] == "signup"
    assert ledger.verify("0500000001", code) is None


def test_new_code_replaces_previous(db, settings):
    ledger = OtpLedger(db, settings)
    first = ledger.issue("0500000001", "signup")
    second = ledger.issue("0500000001", "signup")
    if first != second:
        assert ledger.verify("0500000001", first) is None
    assert db[COLL_OTPS].count_documents({"phone_number": "0500000001"}) <= 1
    assert ledger.verify("0500000001", second) is not None


def test_wrong_code_is_not_found(db, settings):
    ledger = OtpLedger(db, settings)
    code = ledger.issue("0500000001", "signup")
    wrong = "100000" if code != "100000" else "100001"
    assert ledger.verify("0500000001", wrong) is None
    # unlimited attempts by default
    assert ledger.verify("0500000001", code) is not None


def test_expired_code_is_not_found_before_purge(db, settings):
    ledger = OtpLedger(db, settings)
    code = ledger.issue("0500000001", "signup")
    db[COLL_OTPS].update_one({"phone_number": "0500000001"},
                             {"$set": {"expires_at": utcnow() - timedelta(seconds=1)}})
    assert ledger.verify("0500000001", code) is None


def test_code_for_other_phone_does_not_match(db, settings):
    ledger = OtpLedger(db, settings)
    code = ledger.issue("0500000001", "signup")
    assert ledger.verify("0500000002", code) is None


def test_attempt_cap_discards_code(db, settings):
    capped = settings.model_copy(update={"otp_max_attempts": 2})
    ledger = OtpLedger(db, capped)
    code = ledger.issue("0500000001", "signup")
    wrong = "100000" if code != "100000" else "100001"

    assert ledger.verify("0500000001", wrong) is None
    assert ledger.verify("0500000001", wrong) is None
    assert ledger.verify("0500000001", code) is None


def test_discard(db, settings):
    ledger = OtpLedger(db, settings)
    ledger.issue("0500000001", "signup")
    ledger.discard("0500000001")
    assert db[COLL_OTPS].count_documents({}) == 0


def test_issued_record_shape(db, settings):
    ledger = OtpLedger(db, settings)
    ledger.issue("0500000009", "host", ObjectId("64b000000000000000000001"))
    record = db[COLL_OTPS].find_one({"phone_number": "0500000009"})
    assert record["user_id"] == "64b000000000000000000001"
    assert record["user_type"] == "host"
    assert record["attempts"] == 0
    assert record["expires_at"] > record["created_at"]
