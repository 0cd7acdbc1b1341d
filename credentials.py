import hashlib
import secrets
from datetime import timedelta
from typing import Optional

from fastapi import Depends
from passlib.context import CryptContext
from pymongo.database import Database

from database import epoch_seconds, get_db, utcnow
from errors import ValidationError
from identity import Account
from settings import Settings, get_settings

MIN_PASSWORD_LENGTH = 8


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def check_new_password(password: Optional[str], password_confirm: Optional[str]) -> str:
    if not password or not password_confirm:
        raise ValidationError("Please provide password and passwordConfirm")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if password != password_confirm:
        raise ValidationError("Passwords are not the same!")
    return password


class CredentialStore:
    """Password hashes, reset tokens and the password-change watermark."""

    def __init__(self, db: Database, settings: Settings):
        self.db = db
        self.settings = settings
        self.pwd_context = CryptContext(
            schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds
        )

    def hash(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def verify(self, candidate: str, password_hash: Optional[str]) -> bool:
        if not candidate or not password_hash:
            return False
        return self.pwd_context.verify(candidate, password_hash)

    def password_fields(self, password: str, is_new: bool = False) -> dict:
        """Fields to $set for a password mutation.

        Existing accounts get ``password_changed_at`` one second in the past
        so the token issued right after the change is not rejected.
        """
        fields = {"password_hash": self.hash(password)}
        if not is_new:
            fields["password_changed_at"] = utcnow() - timedelta(seconds=1)
        return fields

    def set_password(self, account: Account, password: str) -> Account:
        updates = self.password_fields(password)
        updates["updated_at"] = utcnow()
        self.db[account.kind.collection].update_one(
            {"_id": account.id},
            {"$set": updates, "$unset": {"password_reset_token": "", "password_reset_expires": ""}},
        )
        return account.refresh(self.db)

    def issue_reset_token(self, account: Account) -> str:
        token = secrets.token_hex(32)
        expires = utcnow() + timedelta(minutes=self.settings.password_reset_ttl_minutes)
        self.db[account.kind.collection].update_one(
            {"_id": account.id},
            {"$set": {"password_reset_token": hash_reset_token(token), "password_reset_expires": expires}},
        )
        return token

    def clear_reset_token(self, account: Account) -> None:
        self.db[account.kind.collection].update_one(
            {"_id": account.id},
            {"$unset": {"password_reset_token": "", "password_reset_expires": ""}},
        )

    @staticmethod
    def changed_password_after(account: Account, issued_at: int) -> bool:
        changed_at = account.doc.get("password_changed_at")
        if not changed_at:
            return False
        return issued_at < epoch_seconds(changed_at)


def get_credential_store(db: Database = Depends(get_db),
                         settings: Settings = Depends(get_settings)) -> CredentialStore:
    return CredentialStore(db, settings)
