import pytest

from tests.helpers import bearer, signup_host


@pytest.fixture
def headers(client):
    token, _ = signup_host(client, "0500000300")
    return bearer(token)


def test_defaults_created_on_first_read(client, headers):
    resp = client.get("/api/host/notifications", headers=headers)
    assert resp.status_code == 200
    prefs = resp.json()["data"]["notifications"]
    assert all(prefs["app_notifications"].values())
    assert not any(prefs["email_notifications"].values())
    assert set(prefs["email_notifications"]) == {
        "event_updates", "event_dates", "package_renewal",
        "before_sending_invitations", "after_sending_invitations",
    }


def test_partial_update_merges(client, headers):
    resp = client.patch(
        "/api/host/notifications",
        json={"app_notifications": {"event_dates": False}},
        headers=headers,
    )
    assert resp.status_code == 200
    prefs = resp.json()["data"]["notifications"]
    assert prefs["app_notifications"]["event_dates"] is False
    assert prefs["app_notifications"]["event_updates"] is True

    resp = client.patch(
        "/api/host/notifications",
        json={"email_notifications": {"package_renewal": True}},
        headers=headers,
    )
    prefs = resp.json()["data"]["notifications"]
    assert prefs["app_notifications"]["event_dates"] is False
    assert prefs["email_notifications"]["package_renewal"] is True

    assert client.get("/api/host/notifications", headers=headers).json()["data"]["notifications"] == prefs


def test_empty_update_rejected(client, headers):
    resp = client.patch("/api/host/notifications", json={}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Please provide notification preferences to update"


def test_unknown_key_rejected(client, headers):
    resp = client.patch(
        "/api/host/notifications",
        json={"app_notifications": {"marketing": True}},
        headers=headers,
    )
    assert resp.status_code == 400


def test_preferences_are_per_host(client, headers):
    client.patch("/api/host/notifications", json={"app_notifications": {"event_dates": False}}, headers=headers)
    other_token, _ = signup_host(client, "0500000301")
    prefs = client.get("/api/host/notifications", headers=bearer(other_token)).json()["data"]["notifications"]
    assert prefs["app_notifications"]["event_dates"] is True


def test_requires_login(client):
    assert client.get("/api/host/notifications").status_code == 401
