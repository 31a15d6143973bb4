"""
Vote summary and status computation.

Pure functions over a group, its member count, the per-restaurant vote
counts and the restaurant list (in ranking order). Nothing here touches the
database or the clock; callers pass ``now`` in.

Consensus
---------
A restaurant reaches consensus once its yes-count hits the threshold
``max(1, ceil(members * 0.66))``. The first restaurant in list order to get
there wins outright, even before the deadline.

Deadline tie-break
------------------
If the deadline passes without consensus, only restaurants with at least one
yes vote are eligible. They are ranked by ``yes - no``, then by raw yes-count;
anything still tied goes to the restaurant listed first.
"""
from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from .models import VoteCounts, VotingStatus

CONSENSUS_RATIO = 0.66


def consensus_threshold(member_count: int) -> int:
    return max(1, math.ceil(member_count * CONSENSUS_RATIO))


def summarize_votes(
    raw: Mapping[str, Mapping[str, int]],
    restaurants: Sequence[Any],
) -> dict[str, VoteCounts]:
    """Give every listed restaurant a count, zero-filled; drop votes for unlisted ids."""
    summary: dict[str, VoteCounts] = {}
    for restaurant in restaurants:
        counts = raw.get(restaurant.id) or {}
        summary[restaurant.id] = VoteCounts(yes=counts.get("yes", 0), no=counts.get("no", 0))
    return summary


def _counts(summary: Mapping[str, VoteCounts], restaurant_id: str) -> VoteCounts:
    return summary.get(restaurant_id) or VoteCounts()


def compute_winner(
    summary: Mapping[str, VoteCounts],
    restaurants: Sequence[Any],
) -> str | None:
    candidates = []
    for restaurant in restaurants:
        counts = _counts(summary, restaurant.id)
        if counts.yes > 0:
            candidates.append((restaurant.id, counts.yes - counts.no, counts.yes))

    if not candidates:
        return None

    # sort() is stable, so a full tie keeps list order
    candidates.sort(key=lambda c: (c[1], c[2]), reverse=True)
    return candidates[0][0]


def compute_status(
    group: Any,
    member_count: int,
    summary: Mapping[str, VoteCounts],
    restaurants: Sequence[Any],
    now: datetime,
) -> VotingStatus:
    threshold = consensus_threshold(member_count)
    deadline_reached = group.deadline is not None and group.deadline <= now

    consensus_id = next(
        (r.id for r in restaurants if _counts(summary, r.id).yes >= threshold),
        None,
    )

    winner_id = group.decided_restaurant_id or consensus_id
    if winner_id is None and deadline_reached and member_count > 0:
        winner_id = compute_winner(summary, restaurants)

    voting_complete = group.status == "closed" or (
        member_count > 0 and (deadline_reached or consensus_id is not None)
    )

    return VotingStatus(
        threshold=threshold,
        deadline_reached=deadline_reached,
        consensus_restaurant_id=consensus_id,
        winner_restaurant_id=winner_id,
        voting_complete=voting_complete,
    )
