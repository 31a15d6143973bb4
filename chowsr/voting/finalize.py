from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime

from sqlalchemy.orm import Session

from ..notifications.dispatcher import notify_members
from ..storage import repository
from ..storage.tables import Group, Member, Restaurant
from .models import VoteCounts, VotingStatus
from .status import compute_status

logger = logging.getLogger(__name__)


async def finalize_group_if_needed(
    db: Session,
    group: Group,
    members: Sequence[Member],
    restaurants: Sequence[Restaurant],
    summary: Mapping[str, VoteCounts],
    status: VotingStatus,
    now: datetime,
) -> tuple[Group, VotingStatus]:
    """Close a finished group and send its result, each at most once.

    Safe to call after every vote and on every explicit close: an open group
    is closed only through a status-guarded update, and the result batch only
    goes out while ``result_sent_at`` is still empty. Individual send failures
    are logged by the dispatcher and do not stop the sent stamp.
    """
    if not status.voting_complete:
        return group, status

    if group.status != "closed":
        if repository.close_group(db, group.id, status.winner_restaurant_id, now):
            logger.info(
                "group %s closed, winner=%s", group.code, status.winner_restaurant_id
            )
        group = repository.refresh_group(db, group)

    # A concurrent close may have recorded its own winner; that one is authoritative.
    winner_id = group.decided_restaurant_id or status.winner_restaurant_id
    if winner_id and group.result_sent_at is None:
        restaurant = next((r for r in restaurants if r.id == winner_id), None)
        if restaurant is None:
            logger.warning(
                "winning restaurant %s for group %s is gone, skipping result messages",
                winner_id,
                group.code,
            )
        await notify_members(group, members, restaurant)
        repository.mark_result_sent(db, group.id, now)
        group = repository.refresh_group(db, group)

    return group, compute_status(group, len(members), summary, restaurants, now)
