from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import Response

from errors import AuthenticationError
from sessions import COOKIE_NAME, SessionIssuer


def test_issue_and_resolve(settings):
    sessions = SessionIssuer(settings)
    token = sessions.issue("64b000000000000000000001")
    payload = sessions.resolve(token)
    assert payload["id"] == "64b000000000000000000001"
    assert payload["exp"] - payload["iat"] == int(settings.jwt_expires_in.total_seconds())


def test_token_carries_only_the_id(settings):
    token = SessionIssuer(settings).issue("64b000000000000000000001")
    claims = jwt.decode(token, options={"verify_signature": False})
    assert set(claims) == {"id", "iat", "exp"}


def test_expired_token_is_invalid(settings):
    sessions = SessionIssuer(settings)
    issued = datetime.now(timezone.utc) - settings.jwt_expires_in - timedelta(minutes=1)
    token = sessions.issue("64b000000000000000000001", issued_at=issued)
    with pytest.raises(AuthenticationError):
        sessions.resolve(token)


def test_bad_signature_and_garbage_share_one_message(settings):
    sessions = SessionIssuer(settings)
    forged = jwt.encode({"id": "x", "iat": 1, "exp": 9999999999}, "another-secret-of-decent-length!", "HS256")
    messages = set()
    for token in (forged, "not.a.token", ""):
        with pytest.raises(AuthenticationError) as exc:
            sessions.resolve(token)
        messages.add(exc.value.message)
    assert len(messages) == 1


def test_cookie_lifetime_is_independent(settings):
    custom = settings.model_copy(update={"jwt_cookie_expires_in_days": 3})
    response = Response()
    SessionIssuer(custom).attach(response, "token-value")
    header = response.headers["set-cookie"]
    assert header.startswith(f"{COOKIE_NAME}=token-value")
    assert "HttpOnly" in header
    assert f"Max-Age={3 * 24 * 3600}" in header
    assert "Secure" not in header


def test_cookie_is_secure_in_production(settings):
    response = Response()
    SessionIssuer(settings.model_copy(update={"app_env": "production"})).attach(response, "t")
    assert "Secure" in response.headers["set-cookie"]


def test_clear_sets_loggedout(settings):
    response = Response()
    SessionIssuer(settings).clear(response)
    assert response.headers["set-cookie"].startswith(f"{COOKIE_NAME}=loggedout")
