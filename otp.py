"""
Phone verification codes.

One live code per phone number. Codes are single use and expire after
``otp_ttl_seconds``; the TTL index only garbage-collects, the expiry is
checked on every read.
"""
import logging
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional

from fastapi import Depends
from pymongo.database import Database

from database import COLL_OTPS, get_db, utcnow
from schemas import Otp
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


def generate_code() -> str:
    return str(100000 + secrets.randbelow(900000))


class OtpLedger:
    def __init__(self, db: Database, settings: Settings):
        self.collection = db[COLL_OTPS]
        self.ttl = timedelta(seconds=settings.otp_ttl_seconds)
        self.max_attempts = settings.otp_max_attempts

    def issue(self, phone_number: str, user_type: str, user_id: Any = None) -> str:
        self.collection.delete_many({"phone_number": phone_number})
        now = utcnow()
        record = Otp(
            phone_number=phone_number,
            otp_code=generate_code(),
            user_type=user_type,
            user_id=str(user_id) if user_id else None,
            expires_at=now + self.ttl,
        ).model_dump()
        record["created_at"] = now
        self.collection.insert_one(record)
        logger.info("Issued %s OTP for %s", user_type, phone_number)
        return record["otp_code"]

    def verify(self, phone_number: str, code: str) -> Optional[Dict[str, Any]]:
        """Consume a matching live code. ``None`` covers wrong, expired and used codes alike."""
        now = utcnow()
        record = self.collection.find_one_and_delete({
            "phone_number": phone_number,
            "otp_code": str(code),
            "expires_at": {"$gt": now},
        })
        if record is None and self.max_attempts:
            self._count_failure(phone_number, now)
        return record

    def _count_failure(self, phone_number: str, now) -> None:
        live = {"phone_number": phone_number, "expires_at": {"$gt": now}}
        self.collection.update_many(live, {"$inc": {"attempts": 1}})
        result = self.collection.delete_many({**live, "attempts": {"$gte": self.max_attempts}})
        if result.deleted_count:
            logger.warning("Discarded OTP for %s after %d failed attempts", phone_number, self.max_attempts)

    def discard(self, phone_number: str) -> None:
        self.collection.delete_many({"phone_number": phone_number})


def get_otp_ledger(db: Database = Depends(get_db),
                   settings: Settings = Depends(get_settings)) -> OtpLedger:
    return OtpLedger(db, settings)
