"""
Notification delivery.

Responsibilities:
- Send invite and result messages by email (Resend) or SMS (Twilio).
- Let each channel be switched off independently.
- Report per-message outcomes without letting one failure stop a batch.
"""
