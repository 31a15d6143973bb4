from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import httpx

from chowsr.app import app
from chowsr.lookup.restaurants import NearbyRestaurant
from chowsr.notifications.dispatcher import SENT

from .conftest import FIXED_NOW


def nearby(*ids):
    return [
        NearbyRestaurant(
            id=rid,
            name=f"Place {rid}",
            cuisine="Restaurant",
            distance_miles=0.1 * (n + 1),
            distance=f"{0.1 * (n + 1):.1f} mi",
        )
        for n, rid in enumerate(ids)
    ]


def create_group(client, deadline=None, **overrides) -> str:
    body = {
        "name": "Team lunch",
        "locationType": "text",
        "locationValue": "Philadelphia",
        "radius": 3,
        "deadline": (deadline or FIXED_NOW + timedelta(hours=2)).isoformat(),
    }
    body.update(overrides)
    resp = client.post("/api/groups", json=body)
    assert resp.status_code == 200, resp.text
    return resp.json()["group"]["code"]


def invite(client, code, *emails):
    with patch("chowsr.app.send_invite_notification", new=AsyncMock(return_value=SENT)):
        resp = client.post(
            f"/api/groups/{code}/invites",
            json={"invites": [{"type": "email", "value": email} for email in emails]},
        )
    assert resp.status_code == 200, resp.text
    return resp.json()["invites"]


def join(client, code, name, contact, type="email"):
    return client.post(
        f"/api/groups/{code}/join", json={"name": name, "type": type, "contact": contact}
    )


def seed_restaurants(client, code, *ids):
    with patch("chowsr.app.lookup_restaurants", new=AsyncMock(return_value=nearby(*ids))):
        resp = client.post(f"/api/groups/{code}/restaurants")
    assert resp.status_code == 200, resp.text
    return [r["id"] for r in resp.json()["restaurants"]]


def group_with_members(client, *names, deadline=None):
    """Create a group whose first name is the host and everyone else is invited and joined."""
    code = create_group(client, deadline=deadline)
    emails = [f"{name.lower()}@example.com" for name in names]
    host = join(client, code, names[0], emails[0]).json()["member"]["id"]
    member_ids = [host]
    if len(names) > 1:
        invite(client, code, *emails[1:])
        for name, email in zip(names[1:], emails[1:]):
            member_ids.append(join(client, code, name, email).json()["member"]["id"])
    return code, member_ids


def post_together(*paths):
    """Fire POSTs at the app concurrently on one event loop."""

    async def scenario():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            return await asyncio.gather(*(http.post(path) for path in paths))

    return asyncio.run(scenario())
