import json
import re

from errors import DependencyError

TEST_SECRET = "test-secret-key-with-enough-length-for-hs256"


class FakeMessenger:
    """Records outbound messages instead of sending them."""

    def __init__(self):
        self.emails = []
        self.sms = []
        self.fail = False

    def send_email(self, to, subject, message):
        if self.fail:
            raise DependencyError("Failed to send email. Please try again later.")
        self.emails.append({"to": to, "subject": subject, "message": message})

    def send_sms(self, phone_number, message):
        if self.fail:
            raise DependencyError("Failed to send SMS. Please try again later.")
        self.sms.append({"to": phone_number, "message": message})

    def last_code(self):
        return re.search(r"\b(\d{6})\b", self.sms[-1]["message"]).group(1)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def signup_host(client, phone_number, **fields):
    resp = client.post("/api/auth/signup/host", json={"phone_number": phone_number, **fields})
    assert resp.status_code == 201, resp.text
    body = resp.json()
    client.cookies.clear()
    return body["token"], body["data"]["user"]


def full_host(client, phone_number, username, email, password="password123"):
    return signup_host(
        client,
        phone_number,
        username=username,
        email=email,
        password=password,
        password_confirm=password,
    )


def event_form(guests, **sections):
    form = {
        "event_details": json.dumps(sections.pop("event_details", {
            "title": "Summer Wedding",
            "type": "wedding",
            "date": "2099-06-01T18:00:00Z",
            "time": "18:00",
            "location": {"address": "1 Garden Rd", "latitude": 24.7, "longitude": 46.6},
        })),
        "guest_list": json.dumps(guests),
    }
    for key, value in sections.items():
        form[key] = json.dumps(value)
    return form
