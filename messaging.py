"""
Outbound email and SMS.

Both channels POST JSON to an HTTP provider. Without a configured endpoint
the message is only logged, which is how local development works.
"""
import logging

import requests
from fastapi import Depends

from errors import DependencyError
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10

EMAIL_FOOTER = (
    '<hr style="border: 1px solid #eee; margin: 20px 0;">'
    '<p style="color: #999; font-size: 12px;">'
    "This is an automated message, please do not reply to this email.</p>"
)


def render_email(subject: str, message: str) -> str:
    if "<" in message:
        return message
    if "password reset" in subject.lower():
        body = (
            "<h2>Password Reset Request</h2>"
            "<p>You requested a password reset. Follow the link below to reset your password:</p>"
            f'<p><a href="{message}">Reset Password</a></p>'
            "<p>If you didn't request this, please ignore this email. "
            "This link will expire in 10 minutes.</p>"
        )
    else:
        body = f'<div style="padding: 20px;">{message}</div>'
    return f'<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">{body}{EMAIL_FOOTER}</div>'


class Messenger:
    def __init__(self, settings: Settings):
        self.settings = settings

    def _post(self, url: str, api_key: str, payload: dict, channel: str) -> None:
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        try:
            resp = requests.post(url, json=payload, headers=headers, timeout=REQUEST_TIMEOUT)
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Error sending %s: %s", channel, exc)
            raise DependencyError(f"Failed to send {channel}. Please try again later.")

    def send_email(self, to: str, subject: str, message: str) -> None:
        if not self.settings.mail_api_url:
            logger.info("Email to %s [%s]: %s", to, subject, message)
            return
        self._post(
            self.settings.mail_api_url,
            self.settings.mail_api_key,
            {"from": self.settings.mail_from, "to": to, "subject": subject,
             "html": render_email(subject, message)},
            "email",
        )

    def send_sms(self, phone_number: str, message: str) -> None:
        if not self.settings.sms_api_url:
            logger.info("SMS to %s: %s", phone_number, message)
            return
        self._post(self.settings.sms_api_url, self.settings.sms_api_key,
                   {"to": phone_number, "message": message}, "SMS")


def get_messenger(settings: Settings = Depends(get_settings)) -> Messenger:
    return Messenger(settings)
