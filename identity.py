"""
Account kinds and identity resolution.

Hosts and vendors live in separate collections with overlapping contact
fields. An ``Account`` is a tagged variant over the two; the resolver
probes the kinds in ``RESOLUTION_ORDER`` and the first hit wins, so a host
is authoritative when the same email or phone exists in both.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import Depends
from pymongo.database import Database

from database import COLL_HOSTS, COLL_VENDORS, get_db, utcnow


class AccountKind(str, Enum):
    HOST = "host"
    VENDOR = "vendor"

    @property
    def collection(self) -> str:
        return COLL_HOSTS if self is AccountKind.HOST else COLL_VENDORS

    @property
    def email_field(self) -> str:
        return "email" if self is AccountKind.HOST else "identity.email"

    @property
    def phone_field(self) -> str:
        return "phone_number" if self is AccountKind.HOST else "identity.phone_number"

    @property
    def base_filter(self) -> Dict[str, Any]:
        # deactivated vendors are invisible to every lookup
        return {} if self is AccountKind.HOST else {"active": {"$ne": False}}


RESOLUTION_ORDER = (AccountKind.HOST, AccountKind.VENDOR)


@dataclass
class Account:
    kind: AccountKind
    doc: Dict[str, Any]

    @property
    def id(self) -> ObjectId:
        return self.doc["_id"]

    @property
    def role(self) -> str:
        return self.doc.get("role") or self.kind.value

    @property
    def email(self) -> Optional[str]:
        if self.kind is AccountKind.HOST:
            return self.doc.get("email")
        return (self.doc.get("identity") or {}).get("email")

    @property
    def phone_number(self) -> Optional[str]:
        if self.kind is AccountKind.HOST:
            return self.doc.get("phone_number")
        return (self.doc.get("identity") or {}).get("phone_number")

    @property
    def password_hash(self) -> Optional[str]:
        return self.doc.get("password_hash")

    def refresh(self, db: Database) -> "Account":
        self.doc = db[self.kind.collection].find_one({"_id": self.id}) or self.doc
        return self


class IdentityResolver:
    def __init__(self, db: Database):
        self.db = db

    def _find(self, query_for) -> Optional[Account]:
        for kind in RESOLUTION_ORDER:
            query = query_for(kind)
            if query is None:
                continue
            doc = self.db[kind.collection].find_one({**query, **kind.base_filter})
            if doc:
                return Account(kind, doc)
        return None

    def find_by_email(self, email: str) -> Optional[Account]:
        if not email:
            return None
        email = email.lower()
        return self._find(lambda kind: {kind.email_field: email})

    def find_by_phone(self, phone_number: str) -> Optional[Account]:
        if not phone_number:
            return None
        return self._find(lambda kind: {kind.phone_field: phone_number})

    def find_by_id(self, account_id: Any, kind: Optional[AccountKind] = None) -> Optional[Account]:
        if not ObjectId.is_valid(str(account_id)):
            return None
        oid = ObjectId(str(account_id))
        return self._find(lambda k: {"_id": oid} if kind in (None, k) else None)

    def find_by_reset_token(self, hashed_token: str) -> Optional[Account]:
        return self._find(lambda kind: {
            "password_reset_token": hashed_token,
            "password_reset_expires": {"$gt": utcnow()},
        })


def get_identity_resolver(db: Database = Depends(get_db)) -> IdentityResolver:
    return IdentityResolver(db)
