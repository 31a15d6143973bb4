from __future__ import annotations

import os
from dataclasses import dataclass

from ..config import env_flag


@dataclass(frozen=True)
class NotificationConfig:
    base_url: str = os.getenv("APP_BASE_URL", "http://localhost:5173")
    email_from: str = os.getenv("EMAIL_FROM", "chowsr <hello@chowsr.app>")
    resend_api_key: str = os.getenv("RESEND_API_KEY", "")
    resend_url: str = "https://api.resend.com/emails"
    twilio_account_sid: str = os.getenv("TWILIO_ACCOUNT_SID", "")
    twilio_auth_token: str = os.getenv("TWILIO_AUTH_TOKEN", "")
    twilio_from_number: str = os.getenv("TWILIO_FROM_NUMBER", "")
    twilio_api_base: str = "https://api.twilio.com/2010-04-01"
    email_enabled: bool = env_flag("ENABLE_EMAIL", True)
    sms_enabled: bool = env_flag("ENABLE_SMS", True)
    timeout: float = 10.0


DEFAULT_NOTIFICATION_CONFIG = NotificationConfig()
