"""
Request gates.

``protect`` is the hard gate used by every protected route; ``is_logged_in``
only tries to identify the caller and never rejects; ``restrict_to`` checks
the role of an account that ``protect`` already resolved.
"""
from typing import Optional

from fastapi import Depends, Request

from credentials import CredentialStore, get_credential_store
from errors import AuthenticationError, AppError, AuthorizationError
from identity import Account, IdentityResolver, get_identity_resolver
from sessions import COOKIE_NAME, SessionIssuer, get_session_issuer


def token_from_request(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization") or ""
    if auth.startswith("Bearer"):
        parts = auth.split(" ", 1)
        return parts[1].strip() if len(parts) > 1 and parts[1].strip() else None
    return request.cookies.get(COOKIE_NAME)


def _resolve_account(token: str, sessions: SessionIssuer, resolver: IdentityResolver,
                     credentials: CredentialStore) -> Account:
    payload = sessions.resolve(token)
    account = resolver.find_by_id(payload["id"])
    if account is None:
        raise AuthenticationError("The user belonging to this token no longer exists.")
    if credentials.changed_password_after(account, payload["iat"]):
        raise AuthenticationError("User recently changed password! Please log in again.")
    return account


def protect(
    request: Request,
    sessions: SessionIssuer = Depends(get_session_issuer),
    resolver: IdentityResolver = Depends(get_identity_resolver),
    credentials: CredentialStore = Depends(get_credential_store),
) -> Account:
    token = token_from_request(request)
    if not token:
        raise AuthenticationError("You are not logged in! Please log in to get access.")
    account = _resolve_account(token, sessions, resolver, credentials)
    request.state.user = account
    return account


def is_logged_in(
    request: Request,
    sessions: SessionIssuer = Depends(get_session_issuer),
    resolver: IdentityResolver = Depends(get_identity_resolver),
    credentials: CredentialStore = Depends(get_credential_store),
) -> Optional[Account]:
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        return None
    try:
        account = _resolve_account(token, sessions, resolver, credentials)
    except AppError:
        return None
    request.state.user = account
    return account


def restrict_to(*roles: str):
    def dependency(account: Account = Depends(protect)) -> Account:
        if account.role not in roles:
            raise AuthorizationError("You do not have permission to perform this action")
        return account

    return dependency
