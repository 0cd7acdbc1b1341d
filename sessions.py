from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, Response
from jwt import exceptions as jwt_exc

from errors import AuthenticationError
from settings import Settings, get_settings

COOKIE_NAME = "jwt"
INVALID_TOKEN = "Invalid token. Please log in again!"


class SessionIssuer:
    """Signed bearer tokens carrying only the account id.

    There is no server-side session table: a token stays valid until it
    expires or the account's password changes after it was issued.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def issue(self, account_id: Any, issued_at: Optional[datetime] = None) -> str:
        iat = issued_at or datetime.now(timezone.utc)
        payload = {
            "id": str(account_id),
            "iat": iat,
            "exp": iat + self.settings.jwt_expires_in,
        }
        return jwt.encode(payload, self.settings.jwt_secret, algorithm=self.settings.jwt_algorithm)

    def resolve(self, token: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[self.settings.jwt_algorithm],
                options={"require": ["id", "iat", "exp"]},
            )
        except jwt_exc.InvalidTokenError:
            raise AuthenticationError(INVALID_TOKEN)
        return payload

    def attach(self, response: Response, token: str) -> None:
        max_age = int(timedelta(days=self.settings.jwt_cookie_expires_in_days).total_seconds())
        response.set_cookie(
            COOKIE_NAME,
            token,
            max_age=max_age,
            expires=datetime.now(timezone.utc) + timedelta(seconds=max_age),
            httponly=True,
            secure=self.settings.is_production,
        )

    def clear(self, response: Response) -> None:
        response.set_cookie(
            COOKIE_NAME,
            "loggedout",
            max_age=10,
            expires=datetime.now(timezone.utc) + timedelta(seconds=10),
            httponly=True,
            secure=self.settings.is_production,
        )


def get_session_issuer(settings: Settings = Depends(get_settings)) -> SessionIssuer:
    return SessionIssuer(settings)
