from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from chowsr.app import _finalize_locks
from chowsr.notifications.dispatcher import SENT
from chowsr.storage import repository

from .conftest import FIXED_NOW
from .helpers import (
    create_group,
    group_with_members,
    join,
    post_together,
    seed_restaurants,
)


@pytest.fixture(autouse=True)
def frozen_now():
    with patch("chowsr.app.utcnow", return_value=FIXED_NOW):
        yield


@pytest.fixture
def send_result():
    send = AsyncMock(return_value=SENT)
    with patch("chowsr.notifications.dispatcher.send_result_notification", new=send):
        yield send


def _vote(client, code, member_id, restaurant_id, decision="yes"):
    return client.post(f"/api/groups/{code}/votes", json={
        "memberId": member_id,
        "restaurantId": restaurant_id,
        "decision": decision,
    })


# ── Validation ───────────────────────────────────────────────────────────


def test_vote_from_unknown_member(client):
    code, _ = group_with_members(client, "Ana")
    [rid] = seed_restaurants(client, code, "node-1")
    resp = _vote(client, code, "ghost", rid)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid member."


def test_vote_from_member_of_another_group(client):
    code, _ = group_with_members(client, "Ana")
    _, [outsider] = group_with_members(client, "Zed")
    [rid] = seed_restaurants(client, code, "node-1")
    resp = _vote(client, code, outsider, rid)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid member."


def test_vote_for_unlisted_restaurant(client):
    code, [ana] = group_with_members(client, "Ana")
    seed_restaurants(client, code, "node-1")
    resp = _vote(client, code, ana, "node-1")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid restaurant."


def test_vote_with_bad_decision(client):
    code, [ana, _bo] = group_with_members(client, "Ana", "Bo")
    [rid] = seed_restaurants(client, code, "node-1")
    resp = _vote(client, code, ana, rid, "maybe")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid vote decision."


def test_vote_without_decision_field(client):
    code, [ana, _bo] = group_with_members(client, "Ana", "Bo")
    [rid] = seed_restaurants(client, code, "node-1")
    resp = client.post(f"/api/groups/{code}/votes", json={"memberId": ana, "restaurantId": rid})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid vote decision."


# ── Casting and retracting ───────────────────────────────────────────────


def test_vote_change_and_retract(client, send_result):
    code, [ana, bo, cy] = group_with_members(client, "Ana", "Bo", "Cy")
    r1, r2 = seed_restaurants(client, code, "node-1", "node-2")

    body = _vote(client, code, ana, r1, "yes").json()
    assert body["summary"][r1] == {"yes": 1, "no": 0}
    assert body["summary"][r2] == {"yes": 0, "no": 0}
    assert body["status"]["threshold"] == 2
    assert body["status"]["votingComplete"] is False
    assert body["group"]["status"] == "open"

    body = _vote(client, code, ana, r1, "no").json()
    assert body["summary"][r1] == {"yes": 0, "no": 1}

    body = _vote(client, code, ana, r1, None).json()
    assert body["summary"][r1] == {"yes": 0, "no": 0}
    send_result.assert_not_awaited()


def test_refresh_wipes_votes(client, send_result):
    code, [ana, bo, cy] = group_with_members(client, "Ana", "Bo", "Cy")
    [r1] = seed_restaurants(client, code, "node-1")
    _vote(client, code, ana, r1)
    seed_restaurants(client, code, "node-1", "node-2")
    summary = client.get(f"/api/groups/{code}/state").json()["summary"]
    assert all(counts == {"yes": 0, "no": 0} for counts in summary.values())


# ── Finalisation ─────────────────────────────────────────────────────────


def test_consensus_closes_group_and_notifies_once(client, send_result):
    code, [ana, bo, cy] = group_with_members(client, "Ana", "Bo", "Cy")
    r1, r2 = seed_restaurants(client, code, "node-1", "node-2")

    _vote(client, code, ana, r2)
    body = _vote(client, code, bo, r2).json()

    assert body["status"]["consensusRestaurantId"] == r2
    assert body["status"]["winnerRestaurantId"] == r2
    assert body["status"]["votingComplete"] is True
    assert body["group"]["status"] == "closed"
    assert body["group"]["decidedRestaurantId"] == r2
    assert body["group"]["resultSentAt"] is not None
    assert send_result.await_count == 3
    notified = {call.kwargs["member"].name for call in send_result.await_args_list}
    assert notified == {"Ana", "Bo", "Cy"}
    assert send_result.await_args.kwargs["restaurant"].id == r2

    # Closing again, or voting on a closed group, changes nothing.
    again = client.post(f"/api/groups/{code}/close").json()
    late = _vote(client, code, cy, r1, "yes").json()
    assert again["group"]["decidedRestaurantId"] == r2
    assert late["summary"][r1] == {"yes": 0, "no": 0}
    assert late["status"]["winnerRestaurantId"] == r2
    assert send_result.await_count == 3


def test_notification_failures_do_not_block_the_result(client):
    code, [ana] = group_with_members(client, "Ana")
    [rid] = seed_restaurants(client, code, "node-1")
    send = AsyncMock(side_effect=RuntimeError("provider down"))
    with patch("chowsr.notifications.dispatcher.send_result_notification", new=send):
        body = _vote(client, code, ana, rid).json()
    assert body["group"]["status"] == "closed"
    assert body["group"]["resultSentAt"] is not None
    send.assert_awaited_once()


def test_close_before_deadline_without_consensus_keeps_voting_open(client, send_result):
    code, [ana, bo] = group_with_members(client, "Ana", "Bo")
    [rid] = seed_restaurants(client, code, "node-1")
    _vote(client, code, ana, rid)

    body = client.post(f"/api/groups/{code}/close").json()
    assert body["status"]["votingComplete"] is False
    assert body["group"]["status"] == "open"
    send_result.assert_not_awaited()


def test_deadline_close_picks_tie_break_winner(client, send_result):
    past = FIXED_NOW - timedelta(minutes=5)
    code, [ana, bo, cy] = group_with_members(client, "Ana", "Bo", "Cy", deadline=past)
    r1, r2 = seed_restaurants(client, code, "node-1", "node-2")

    # cast before the deadline so nothing closes until /close
    with patch("chowsr.app.utcnow", return_value=past - timedelta(minutes=1)):
        _vote(client, code, ana, r1, "yes")
        _vote(client, code, bo, r1, "no")
        _vote(client, code, ana, r2, "yes")

    body = client.post(f"/api/groups/{code}/close").json()
    assert body["status"]["deadlineReached"] is True
    assert body["status"]["consensusRestaurantId"] is None
    assert body["status"]["winnerRestaurantId"] == r2
    assert body["group"]["status"] == "closed"
    assert body["group"]["decidedRestaurantId"] == r2
    assert send_result.await_count == 3


def test_deadline_without_yes_votes_closes_without_winner(client, send_result):
    past = FIXED_NOW - timedelta(minutes=5)
    code, [ana, bo] = group_with_members(client, "Ana", "Bo", deadline=past)
    [rid] = seed_restaurants(client, code, "node-1")

    body = _vote(client, code, ana, rid, "no").json()
    assert body["status"]["votingComplete"] is True
    assert body["status"]["winnerRestaurantId"] is None
    assert body["group"]["status"] == "closed"
    assert body["group"]["decidedRestaurantId"] is None
    assert body["group"]["resultSentAt"] is None
    send_result.assert_not_awaited()


def test_group_with_no_members_never_closes(client, send_result):
    past = FIXED_NOW - timedelta(minutes=5)
    code = create_group(client, deadline=past)
    body = client.post(f"/api/groups/{code}/close").json()
    assert body["status"]["votingComplete"] is False
    assert body["group"]["status"] == "open"


def test_state_reports_consensus(client, send_result):
    code, [ana, bo] = group_with_members(client, "Ana", "Bo")
    r1, _ = seed_restaurants(client, code, "node-1", "node-2")
    _vote(client, code, ana, r1)
    _vote(client, code, bo, r1)
    state = client.get(f"/api/groups/{code}/state").json()
    assert state["status"]["consensusRestaurantId"] == r1
    assert sorted(m["name"] for m in state["members"]) == ["Ana", "Bo"]
    assert len(state["invites"]) == 2
    assert join(client, code, "Late", "late@example.com").status_code == 403


def test_missing_winner_record_skips_send_but_stamps(client, session_factory, send_result):
    code, [ana, bo] = group_with_members(client, "Ana", "Bo")
    seed_restaurants(client, code, "node-1")
    with session_factory() as db:
        group = repository.get_group_by_code(db, code)
        repository.close_group(db, group.id, f"{group.id}:gone", FIXED_NOW)

    body = client.post(f"/api/groups/{code}/close").json()

    assert body["status"]["winnerRestaurantId"].endswith(":gone")
    assert body["group"]["resultSentAt"] is not None
    send_result.assert_not_awaited()


# ── Concurrency ──────────────────────────────────────────────────────────


def test_concurrent_closes_send_the_result_once(client):
    past = FIXED_NOW - timedelta(minutes=5)
    code, [ana, bo] = group_with_members(client, "Ana", "Bo", deadline=past)
    [rid] = seed_restaurants(client, code, "node-1")
    with patch("chowsr.app.utcnow", return_value=past - timedelta(minutes=1)):
        _vote(client, code, ana, rid)

    sent = []

    async def slow_send(*, member, group, restaurant):
        await asyncio.sleep(0.05)
        sent.append(member.name)
        return SENT

    with patch("chowsr.notifications.dispatcher.send_result_notification", new=slow_send):
        first, second = post_together(
            f"/api/groups/{code}/close", f"/api/groups/{code}/close"
        )

    assert first.status_code == second.status_code == 200
    assert sorted(sent) == ["Ana", "Bo"]
    assert first.json()["group"]["decidedRestaurantId"] == rid
    assert second.json()["group"]["decidedRestaurantId"] == rid
    assert second.json()["group"]["resultSentAt"] is not None
    assert len(_finalize_locks) == 0
