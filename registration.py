"""
Account onboarding for the three account kinds.

Uniqueness is checked with a read before the insert; the unique indexes on
the collections catch whatever slips through a concurrent signup.
"""
import logging
from typing import Optional

from fastapi import Depends
from pymongo.database import Database

from credentials import CredentialStore, check_new_password, get_credential_store
from database import COLL_HOSTS, COLL_VENDORS, COLL_WHITELABELS, create_document, get_db, utcnow
from errors import ConflictError, ValidationError
from identity import Account, AccountKind
from schemas import Host, Vendor, WhiteLabel

logger = logging.getLogger(__name__)


class RegistrationService:
    def __init__(self, db: Database, credentials: CredentialStore):
        self.db = db
        self.credentials = credentials

    def signup_host(self, phone_number: str, username: Optional[str] = None, email: Optional[str] = None,
                    password: Optional[str] = None, password_confirm: Optional[str] = None) -> Account:
        email = email.lower() if email else None
        clauses = [{"phone_number": phone_number}]
        if email:
            clauses.append({"email": email})
        if username:
            clauses.append({"username": username})
        if self.db[COLL_HOSTS].find_one({"$or": clauses}):
            raise ConflictError("Host with this email, username, or phone number already exists")

        host = Host(phone_number=phone_number, username=username, email=email,
                    profile_completed=bool(username and email and password))
        doc = host.model_dump(exclude_none=True)
        if password or password_confirm:
            check_new_password(password, password_confirm)
            doc.update(self.credentials.password_fields(password, is_new=True))
        doc["_id"] = create_document(self.db, COLL_HOSTS, doc)
        logger.info("Host %s signed up (profile_completed=%s)", doc["_id"], doc["profile_completed"])
        return Account(AccountKind.HOST, self.db[COLL_HOSTS].find_one({"_id": doc["_id"]}))

    def complete_host_profile(self, account: Account, username: str, email: str,
                              password: str, password_confirm: str) -> Account:
        if account.kind is not AccountKind.HOST:
            raise ValidationError("Only host accounts have a profile to complete")
        if not username or not email:
            raise ValidationError("Please provide username, email, password and passwordConfirm")
        check_new_password(password, password_confirm)
        email = email.lower()
        taken = self.db[COLL_HOSTS].find_one({
            "_id": {"$ne": account.id},
            "$or": [{"email": email}, {"username": username}],
        })
        if taken:
            raise ConflictError("Email or username is already in use")

        self.db[COLL_HOSTS].update_one(
            {"_id": account.id},
            {"$set": {"username": username, "email": email, "profile_completed": True,
                      "updated_at": utcnow()}},
        )
        return self.credentials.set_password(account, password)

    def signup_vendor(self, vendor: Vendor, password: str, password_confirm: str) -> None:
        check_new_password(password, password_confirm)
        self.ensure_vendor_available(vendor.identity.email, vendor.identity.phone_number)
        doc = vendor.model_dump(exclude_none=True)
        doc.update(self.credentials.password_fields(password, is_new=True))
        vendor_id = create_document(self.db, COLL_VENDORS, doc)
        logger.info("Vendor %s signed up", vendor_id)

    def _taken(self, collection: str, email_field: str, phone_field: str,
               email: Optional[str], phone_number: Optional[str]) -> bool:
        clauses = []
        if email:
            clauses.append({email_field: email.lower()})
        if phone_number:
            clauses.append({phone_field: phone_number})
        return bool(clauses) and self.db[collection].find_one({"$or": clauses}) is not None

    def ensure_vendor_available(self, email: Optional[str], phone_number: Optional[str]) -> None:
        if self._taken(COLL_VENDORS, "identity.email", "identity.phone_number", email, phone_number):
            raise ConflictError("Vendor with this email, or phone number already exists")

    def ensure_whitelabel_available(self, email: Optional[str], phone_number: Optional[str]) -> None:
        if self._taken(COLL_WHITELABELS, "email", "phone_number", email, phone_number):
            raise ConflictError("WhiteLabel with this email, or phone number already exists")

    def signup_whitelabel(self, whitelabel: WhiteLabel, password: str, password_confirm: str) -> None:
        check_new_password(password, password_confirm)
        self.ensure_whitelabel_available(whitelabel.email, whitelabel.phone_number)
        doc = whitelabel.model_dump(exclude_none=True)
        doc["email"] = doc["email"].lower()
        doc.update(self.credentials.password_fields(password, is_new=True))
        whitelabel_id = create_document(self.db, COLL_WHITELABELS, doc)
        logger.info("White-label partner %s signed up", whitelabel_id)


def get_registration_service(db: Database = Depends(get_db),
                             credentials: CredentialStore = Depends(get_credential_store)) -> RegistrationService:
    return RegistrationService(db, credentials)
