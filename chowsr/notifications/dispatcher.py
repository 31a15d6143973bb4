from __future__ import annotations

import asyncio
import html
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from .config import DEFAULT_NOTIFICATION_CONFIG, NotificationConfig
from .transports import send_email, send_sms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationResult:
    status: str  # "sent" | "skipped"
    reason: str | None = None


EMAIL_DISABLED = NotificationResult(status="skipped", reason="email_disabled")
SMS_DISABLED = NotificationResult(status="skipped", reason="sms_disabled")
SENT = NotificationResult(status="sent")


def join_url(group_code: str, config: NotificationConfig = DEFAULT_NOTIFICATION_CONFIG) -> str:
    return f"{config.base_url.rstrip('/')}/?code={group_code}"


async def send_invite_notification(
    *,
    type: str,
    to: str,
    group_name: str,
    group_code: str,
    config: NotificationConfig = DEFAULT_NOTIFICATION_CONFIG,
    client: httpx.AsyncClient | None = None,
) -> NotificationResult:
    """Invite one contact. Raises ``NotificationError`` if the provider rejects it."""
    link = join_url(group_code, config)

    if type == "email":
        if not config.email_enabled:
            return EMAIL_DISABLED
        safe_name = html.escape(group_name)
        await send_email(
            to=to,
            subject=f"You're invited to {group_name} on chowsr",
            text=(
                f'You\'ve been invited to join "{group_name}" on chowsr.\n\n'
                f"Join with code: {group_code}\nOpen: {link}"
            ),
            html=(
                f"<p>You've been invited to join <strong>{safe_name}</strong> on chowsr.</p>"
                f"<p><strong>Group code:</strong> {group_code}</p>"
                f'<p><a href="{link}">Join this group</a></p>'
            ),
            config=config,
            client=client,
        )
        return SENT

    if not config.sms_enabled:
        return SMS_DISABLED
    await send_sms(
        to=to,
        body=f"chowsr invite: {group_name}. Code {group_code}. {link}",
        config=config,
        client=client,
    )
    return SENT


async def send_result_notification(
    *,
    member: Any,
    group: Any,
    restaurant: Any | None,
    config: NotificationConfig = DEFAULT_NOTIFICATION_CONFIG,
    client: httpx.AsyncClient | None = None,
) -> NotificationResult | None:
    """Tell one member where the group is eating. No restaurant, no message."""
    if restaurant is None:
        return None

    if member.type == "email":
        if not config.email_enabled:
            return EMAIL_DISABLED
        await send_email(
            to=member.contact,
            subject=f"chowsr decision for {group.name}",
            text=(
                f'Voting is complete for "{group.name}". '
                f"You're eating at {restaurant.name} ({restaurant.cuisine})."
            ),
            html=(
                f"<p>Voting is complete for <strong>{html.escape(group.name)}</strong>.</p>"
                f"<p>You're eating at <strong>{html.escape(restaurant.name)}</strong> "
                f"({html.escape(restaurant.cuisine)}).</p>"
            ),
            config=config,
            client=client,
        )
        return SENT

    if not config.sms_enabled:
        return SMS_DISABLED
    await send_sms(
        to=member.contact,
        body=f"chowsr: {group.name} is going to {restaurant.name}.",
        config=config,
        client=client,
    )
    return SENT


async def notify_members(
    group: Any,
    members: Sequence[Any],
    restaurant: Any | None,
) -> list[Any]:
    """Send the result to every member at once; failures are logged, never raised."""
    if restaurant is None:
        return []

    outcomes = await asyncio.gather(
        *(
            send_result_notification(member=member, group=group, restaurant=restaurant)
            for member in members
        ),
        return_exceptions=True,
    )
    for member, outcome in zip(members, outcomes):
        if isinstance(outcome, Exception):
            logger.warning(
                "result notification failed for member %s of group %s: %s",
                member.id,
                group.code,
                outcome,
            )
    return outcomes
