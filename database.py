"""
MongoDB access.

The client is created lazily from ``Settings`` and handed to components
through the ``get_db`` dependency; nothing else holds a connection.
"""
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import Depends
from pymongo import MongoClient
from pymongo.database import Database

from errors import DependencyError, ValidationError
from settings import Settings, get_settings

# Collections
COLL_HOSTS = "host"
COLL_VENDORS = "vendor"
COLL_WHITELABELS = "whitelabel"
COLL_OTPS = "otp"
COLL_EVENTS = "event"
COLL_GUESTS = "guest"
COLL_NOTIFICATIONS = "notificationpreferences"

SECRET_FIELDS = ("password_hash", "password_reset_token", "password_reset_expires")


@lru_cache
def get_client(url: str) -> MongoClient:
    return MongoClient(url)


def get_db(settings: Settings = Depends(get_settings)) -> Database:
    if not settings.database_url or not settings.database_name:
        raise DependencyError("Database not configured")
    return get_client(settings.database_url)[settings.database_name]


def utcnow() -> datetime:
    """Current time as naive UTC, the form pymongo reads datetimes back in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def epoch_seconds(value: datetime) -> int:
    return int(to_naive_utc(value).replace(tzinfo=timezone.utc).timestamp())


def object_id(value: Any, label: str = "id") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not value or not ObjectId.is_valid(str(value)):
        raise ValidationError(f"Invalid {label}: {value}")
    return ObjectId(str(value))


def create_document(db: Database, collection_name: str, data: Dict[str, Any]) -> ObjectId:
    now = utcnow()
    doc = dict(data)
    doc.setdefault("created_at", now)
    doc.setdefault("updated_at", now)
    return db[collection_name].insert_one(doc).inserted_id


def get_documents(db: Database, collection_name: str, filter_dict: Optional[dict] = None,
                  limit: Optional[int] = None) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize(value: Any) -> Any:
    """Render a stored document for a JSON response.

    ``_id`` becomes ``id``, ObjectIds become strings and secret credential
    fields are dropped.
    """
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            if key in SECRET_FIELDS:
                continue
            out["id" if key == "_id" else key] = serialize(item)
        return out
    return value


def ensure_indexes(db: Database) -> None:
    db[COLL_HOSTS].create_index("email", unique=True, sparse=True)
    db[COLL_HOSTS].create_index("phone_number")
    db[COLL_VENDORS].create_index("identity.email", unique=True)
    db[COLL_VENDORS].create_index("identity.phone_number")
    db[COLL_WHITELABELS].create_index("email", unique=True)
    db[COLL_WHITELABELS].create_index("username", unique=True)
    # expires_at already carries the absolute deadline
    db[COLL_OTPS].create_index("expires_at", expireAfterSeconds=0)
    db[COLL_OTPS].create_index("phone_number")
    db[COLL_EVENTS].create_index("host")
    db[COLL_EVENTS].create_index("event_details.date")
    db[COLL_EVENTS].create_index("status")
    db[COLL_EVENTS].create_index([("created_at", -1)])
    db[COLL_GUESTS].create_index("event")
    db[COLL_GUESTS].create_index([("event", 1), ("status", 1)])
    db[COLL_GUESTS].create_index("qrcode", unique=True, sparse=True)
    db[COLL_NOTIFICATIONS].create_index("host", unique=True)
