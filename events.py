"""
Events and their guests.

An event keeps an ordered list of guest ids; guests live in their own
collection with a back-reference to the event. ``guest_stats`` on the event
is always derived from the guests and is recomputed after every change to
the list or to a guest's status.

None of the multi-step writes here run in a transaction: creating an event
writes the event, then the guests, then patches the event, and deleting an
event removes the guests before the event.
"""
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from fastapi import Depends
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from database import COLL_EVENTS, COLL_GUESTS, COLL_HOSTS, get_db, object_id, to_naive_utc, utcnow
from errors import AuthorizationError, NotFoundError, ValidationError
from identity import Account
from schemas import EVENT_STATUSES, GUEST_STATUSES, Guest, GuestEntry, GuestStats, InvitationMethod

logger = logging.getLogger(__name__)

HOST_SUMMARY = {"username": 1, "email": 1, "phone_number": 1}
GUEST_SUMMARY = ("name", "email", "phone", "status")
GUEST_DETAIL = GUEST_SUMMARY + ("qrcode", "rsvp", "check_in", "invitation")
RSVP_STATUSES = ("confirmed", "declined")
DEFAULT_PAGE_SIZE = 100


def compute_guest_stats(statuses: List[str]) -> Dict[str, int]:
    return GuestStats(
        total_invited=len(statuses),
        total_confirmed=sum(1 for s in statuses if s == "confirmed"),
        total_attended=sum(1 for s in statuses if s == "attended"),
    ).model_dump()


def status_breakdown(statuses: List[str]) -> Dict[str, int]:
    return {s.replace("-", "_"): sum(1 for x in statuses if x == s) for s in GUEST_STATUSES}


def _clean_event_data(data: Dict[str, Any]) -> Dict[str, Any]:
    details = data.get("event_details")
    if details and details.get("date"):
        details["date"] = to_naive_utc(details["date"])
    launch = data.get("launch_settings")
    if launch and launch.get("scheduled_date"):
        launch["scheduled_date"] = to_naive_utc(launch["scheduled_date"])
    return data


def parse_sort(sort: Optional[str]) -> List[Tuple[str, int]]:
    if not sort:
        return [("created_at", DESCENDING)]
    keys = []
    for field in sort.split(","):
        field = field.strip()
        if not field:
            continue
        if field.startswith("-"):
            keys.append((field[1:], DESCENDING))
        else:
            keys.append((field, ASCENDING))
    return keys or [("created_at", DESCENDING)]


class EventService:
    def __init__(self, db: Database):
        self.db = db
        self.events = db[COLL_EVENTS]
        self.guests = db[COLL_GUESTS]

    # -- guests ------------------------------------------------------------

    def _new_guest(self, entry: GuestEntry, event_id: ObjectId, invited_by: Any = None) -> ObjectId:
        guest_id = ObjectId()
        now = utcnow()
        doc = Guest(
            name=entry.name,
            phone=entry.phone,
            email=entry.email,
            event=str(event_id),
            qrcode=f"guest_{guest_id}_{int(time.time() * 1000)}",
        ).model_dump()
        doc.update({
            "_id": guest_id,
            "event": event_id,
            "invited_by": ObjectId(str(invited_by)) if invited_by else None,
            "created_at": now,
            "updated_at": now,
        })
        self.guests.insert_one(doc)
        return guest_id

    def create_guests(self, guest_list: List[GuestEntry], event_id: ObjectId) -> List[ObjectId]:
        return [self._new_guest(g, event_id, g.invited_by) for g in guest_list]

    def reconcile_guests(self, guest_list: List[GuestEntry], event_id: ObjectId,
                         existing_ids: List[ObjectId]) -> List[ObjectId]:
        """Make the event's guests match ``guest_list``.

        Entries carrying the id of an existing guest update that guest,
        entries without one create a guest, and existing guests missing from
        the list are deleted.
        """
        existing = {str(i) for i in existing_ids}
        keep = [ObjectId(g.id) for g in guest_list if g.id and g.id in existing]
        self.guests.delete_many({"event": event_id, "_id": {"$nin": keep}})

        guest_ids = []
        for entry in guest_list:
            entry_id = entry.id
            if entry_id and entry_id in existing:
                oid = ObjectId(entry_id)
                self.guests.update_one(
                    {"_id": oid},
                    {"$set": {"name": entry.name, "phone": entry.phone, "email": entry.email,
                              "updated_at": utcnow()}},
                )
                guest_ids.append(oid)
            else:
                guest_ids.append(self._new_guest(entry, event_id, entry.invited_by))
        return guest_ids

    def _guest_statuses(self, event: dict) -> List[str]:
        ids = event.get("guest_list") or []
        if not ids:
            return []
        by_id = {g["_id"]: g.get("status") for g in self.guests.find({"_id": {"$in": ids}}, {"status": 1})}
        return [by_id[i] for i in ids if i in by_id]

    def recompute_guest_stats(self, event: dict) -> Dict[str, int]:
        stats = compute_guest_stats(self._guest_statuses(event))
        self.events.update_one({"_id": event["_id"]}, {"$set": {"guest_stats": stats}})
        event["guest_stats"] = stats
        return stats

    # -- loading -----------------------------------------------------------

    def _load(self, event_id: Any) -> dict:
        event = self.events.find_one({"_id": object_id(event_id, "event id")})
        if not event:
            raise NotFoundError("No event found with that ID")
        return event

    def _load_owned(self, event_id: Any, requester: Account, action: str) -> dict:
        event = self._load(event_id)
        if event.get("host") != requester.id:
            raise AuthorizationError(f"You are not authorized to {action} this event")
        return event

    def populate(self, event: dict, guest_fields=GUEST_SUMMARY) -> dict:
        event = dict(event)
        host = self.db[COLL_HOSTS].find_one({"_id": event.get("host")}, HOST_SUMMARY)
        if host:
            event["host"] = host
        ids = event.get("guest_list") or []
        if ids:
            projection = {f: 1 for f in guest_fields}
            by_id = {g["_id"]: g for g in self.guests.find({"_id": {"$in": ids}}, projection)}
            event["guest_list"] = [by_id[i] for i in ids if i in by_id]
        return event

    # -- commands ----------------------------------------------------------

    def create_event(self, data: Dict[str, Any], guest_list: List[GuestEntry], owner: Account) -> dict:
        if not data.get("event_details"):
            raise ValidationError("Event details are required")
        if not guest_list:
            raise ValidationError("At least one guest is required")

        now = utcnow()
        doc = _clean_event_data(dict(data))
        doc.update({
            "host": owner.id,
            "guest_list": [],
            "status": doc.get("status") or "draft",
            "guest_stats": compute_guest_stats([]),
            "created_at": now,
            "updated_at": now,
        })
        doc.setdefault("supervisors_list", [])
        event_id = self.events.insert_one(doc).inserted_id

        guest_ids = self.create_guests(guest_list, event_id)
        self.events.update_one({"_id": event_id}, {"$set": {"guest_list": guest_ids}})
        event = self._load(event_id)
        self.recompute_guest_stats(event)
        logger.info("Created event %s with %d guests", event_id, len(guest_ids))
        return self.populate(event)

    def update_event(self, event_id: Any, patch: Dict[str, Any],
                     guest_list: Optional[List[GuestEntry]], requester: Account) -> dict:
        existing = self._load_owned(event_id, requester, "update")
        patch = _clean_event_data({k: v for k, v in patch.items() if v is not None})
        if patch:
            patch["updated_at"] = utcnow()
            self.events.update_one({"_id": existing["_id"]}, {"$set": patch})

        if guest_list is not None:
            guest_ids = self.reconcile_guests(guest_list, existing["_id"], existing.get("guest_list") or [])
            self.events.update_one({"_id": existing["_id"]}, {"$set": {"guest_list": guest_ids}})

        event = self._load(existing["_id"])
        self.recompute_guest_stats(event)
        return self.populate(event, GUEST_DETAIL)

    def delete_event(self, event_id: Any, requester: Account) -> None:
        event = self._load_owned(event_id, requester, "delete")
        self.guests.delete_many({"event": event["_id"]})
        self.events.delete_one({"_id": event["_id"]})
        logger.info("Deleted event %s", event["_id"])

    def delete_all_events(self) -> int:
        self.guests.delete_many({})
        return self.events.delete_many({}).deleted_count

    def update_status(self, event_id: Any, status: Optional[str], requester: Account) -> dict:
        if not status:
            raise ValidationError("Status is required")
        if status not in EVENT_STATUSES:
            raise ValidationError("Invalid status value")
        event = self._load_owned(event_id, requester, "update")
        self.events.update_one({"_id": event["_id"]}, {"$set": {"status": status, "updated_at": utcnow()}})
        event["status"] = status
        return event

    # -- queries -----------------------------------------------------------

    def get_event(self, event_id: Any, requester: Account) -> dict:
        event = self._load_owned(event_id, requester, "view")
        return self.populate(event, GUEST_DETAIL)

    def list_events(self, requester: Optional[Account], status: Optional[str] = None,
                    event_type: Optional[str] = None, sort: Optional[str] = None,
                    page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> Tuple[List[dict], int]:
        query: Dict[str, Any] = {}
        if requester is not None:
            query["host"] = requester.id
        if status:
            query["status"] = status
        if event_type:
            query["event_details.type"] = event_type
        total = self.events.count_documents(query)
        page, limit = max(page, 1), max(limit, 1)
        cursor = self.events.find(query).sort(parse_sort(sort)).skip((page - 1) * limit).limit(limit)
        return [self.populate(e) for e in cursor], total

    def events_by_host(self, host_id: Any, requester: Account) -> List[dict]:
        if str(host_id) != str(requester.id):
            raise AuthorizationError("You are not authorized to view events for this host")
        cursor = self.events.find({"host": requester.id}).sort("event_details.date", DESCENDING)
        return [self.populate(e) for e in cursor]

    def upcoming_events(self, requester: Optional[Account]) -> List[dict]:
        query: Dict[str, Any] = {"event_details.date": {"$gt": utcnow()}}
        if requester is not None:
            query["host"] = requester.id
        cursor = self.events.find(query).sort("event_details.date", ASCENDING)
        return [self.populate(e) for e in cursor]

    def event_stats(self, event_id: Any, requester: Account) -> Dict[str, Any]:
        event = self._load_owned(event_id, requester, "view")
        stats = self.recompute_guest_stats(event)
        return {"stats": stats, "guest_status_breakdown": status_breakdown(self._guest_statuses(event))}

    # -- guest state -------------------------------------------------------

    def _load_guest(self, event_id: Any, guest_id: Any, requester: Account) -> Tuple[dict, dict]:
        event = self._load_owned(event_id, requester, "update")
        guest = self.guests.find_one({"_id": object_id(guest_id, "guest id"), "event": event["_id"]})
        if not guest:
            raise NotFoundError("No guest found with that ID for this event")
        return event, guest

    def _save_guest(self, event: dict, guest: dict, updates: Dict[str, Any]) -> dict:
        updates["updated_at"] = utcnow()
        self.guests.update_one({"_id": guest["_id"]}, {"$set": updates})
        self.recompute_guest_stats(event)
        return self.guests.find_one({"_id": guest["_id"]})

    def set_guest_status(self, event_id: Any, guest_id: Any, status: str, requester: Account) -> dict:
        if status not in GUEST_STATUSES:
            raise ValidationError("Invalid guest status value")
        event, guest = self._load_guest(event_id, guest_id, requester)
        updates: Dict[str, Any] = {"status": status}
        responded = (guest.get("rsvp") or {}).get("responded")
        if status != guest.get("status") and status in RSVP_STATUSES and not responded:
            updates["rsvp"] = {"responded": True, "responded_at": utcnow()}
        return self._save_guest(event, guest, updates)

    def respond_to_rsvp(self, event_id: Any, guest_id: Any, status: str, requester: Account) -> dict:
        if status not in GUEST_STATUSES:
            raise ValidationError("Invalid guest status value")
        event, guest = self._load_guest(event_id, guest_id, requester)
        return self._save_guest(event, guest, {
            "status": status,
            "rsvp": {"responded": True, "responded_at": utcnow()},
        })

    def check_in_guest(self, event_id: Any, guest_id: Any, requester: Account) -> dict:
        event, guest = self._load_guest(event_id, guest_id, requester)
        return self._save_guest(event, guest, {
            "check_in": {"checked_in": True, "checked_in_at": utcnow()},
            "status": "attended",
        })

    def mark_invitation_sent(self, event_id: Any, guest_id: Any, method: InvitationMethod,
                             requester: Account) -> dict:
        event, guest = self._load_guest(event_id, guest_id, requester)
        return self._save_guest(event, guest, {
            "invitation": {"sent": True, "sent_at": utcnow(), "method": method},
        })


def get_event_service(db: Database = Depends(get_db)) -> EventService:
    return EventService(db)
