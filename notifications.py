from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import Depends
from pymongo import ReturnDocument
from pymongo.database import Database

from database import COLL_NOTIFICATIONS, get_db, utcnow
from errors import ValidationError
from schemas import NotificationPreferences


def _public(doc: dict) -> Dict[str, Any]:
    return {
        "app_notifications": doc["app_notifications"],
        "email_notifications": doc["email_notifications"],
    }


class NotificationService:
    """Per-host notification toggles, created with defaults on first access."""

    def __init__(self, db: Database):
        self.collection = db[COLL_NOTIFICATIONS]

    def _create(self, host_id: ObjectId, overrides: Optional[dict] = None) -> dict:
        now = utcnow()
        doc = NotificationPreferences(host=str(host_id)).model_dump()
        doc.update({"host": host_id, "created_at": now, "updated_at": now})
        for key, values in (overrides or {}).items():
            doc[key] = {**doc[key], **values}
        doc["_id"] = self.collection.insert_one(doc).inserted_id
        return doc

    def get(self, host_id: ObjectId) -> Dict[str, Any]:
        doc = self.collection.find_one({"host": host_id}) or self._create(host_id)
        return _public(doc)

    def update(self, host_id: ObjectId, app_notifications: Optional[Dict[str, bool]] = None,
               email_notifications: Optional[Dict[str, bool]] = None) -> Dict[str, Any]:
        if not app_notifications and not email_notifications:
            raise ValidationError("Please provide notification preferences to update")
        changes = {}
        if app_notifications:
            changes["app_notifications"] = app_notifications
        if email_notifications:
            changes["email_notifications"] = email_notifications

        doc = self.collection.find_one({"host": host_id})
        if doc is None:
            return _public(self._create(host_id, changes))

        updates = {"updated_at": utcnow()}
        for key, values in changes.items():
            updates[key] = {**doc[key], **values}
        doc = self.collection.find_one_and_update(
            {"_id": doc["_id"]}, {"$set": updates}, return_document=ReturnDocument.AFTER
        )
        return _public(doc)


def get_notification_service(db: Database = Depends(get_db)) -> NotificationService:
    return NotificationService(db)
