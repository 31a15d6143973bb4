from __future__ import annotations

import httpx

from ..httpclient import http_client
from .config import DEFAULT_NOTIFICATION_CONFIG, NotificationConfig


class NotificationError(Exception):
    """A message could not be handed to its provider."""


async def send_email(
    *,
    to: str,
    subject: str,
    html: str,
    text: str,
    config: NotificationConfig = DEFAULT_NOTIFICATION_CONFIG,
    client: httpx.AsyncClient | None = None,
) -> None:
    if not config.resend_api_key:
        raise NotificationError("RESEND_API_KEY is not configured.")

    payload = {"from": config.email_from, "to": to, "subject": subject, "html": html, "text": text}
    headers = {"Authorization": f"Bearer {config.resend_api_key}"}

    async with http_client(client, config.timeout) as http:
        response = await http.post(config.resend_url, json=payload, headers=headers)

    if response.is_error:
        raise NotificationError(response.text or "Email request failed.")


async def send_sms(
    *,
    to: str,
    body: str,
    config: NotificationConfig = DEFAULT_NOTIFICATION_CONFIG,
    client: httpx.AsyncClient | None = None,
) -> None:
    if not (config.twilio_account_sid and config.twilio_auth_token and config.twilio_from_number):
        raise NotificationError("Twilio credentials are not configured.")

    url = f"{config.twilio_api_base}/Accounts/{config.twilio_account_sid}/Messages.json"
    form = {"To": to, "From": config.twilio_from_number, "Body": body}

    async with http_client(client, config.timeout) as http:
        response = await http.post(
            url, data=form, auth=(config.twilio_account_sid, config.twilio_auth_token)
        )

    if response.is_error:
        raise NotificationError(response.text or "SMS request failed.")
