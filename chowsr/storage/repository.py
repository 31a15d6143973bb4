from __future__ import annotations

import secrets
import uuid
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from .tables import Group, Invite, Member, Restaurant, Vote


def new_id() -> str:
    return uuid.uuid4().hex


def new_group_code() -> str:
    return secrets.token_hex(3).upper()


# ── Groups ───────────────────────────────────────────────────────────────


def create_group(
    db: Session,
    *,
    id: str,
    code: str,
    name: str,
    location_type: str,
    location_value: str,
    radius: float,
    deadline: datetime,
    created_at: datetime,
) -> Group:
    group = Group(
        id=id,
        code=code.upper(),
        name=name,
        location_type=location_type,
        location_value=location_value,
        radius=radius,
        deadline=deadline,
        created_at=created_at,
        status="open",
    )
    db.add(group)
    db.commit()
    db.refresh(group)
    return group


def get_group_by_code(db: Session, code: str) -> Group | None:
    return db.execute(select(Group).where(Group.code == code.upper())).scalar_one_or_none()


def get_group_by_id(db: Session, group_id: str) -> Group | None:
    return db.get(Group, group_id)


def close_group(
    db: Session,
    group_id: str,
    decided_restaurant_id: str | None,
    decided_at: datetime,
) -> bool:
    """Move an open group to closed. Returns False if it was already closed."""
    result = db.execute(
        update(Group)
        .where(Group.id == group_id, Group.status == "open")
        .values(
            status="closed",
            decided_restaurant_id=decided_restaurant_id,
            decided_at=decided_at,
        )
    )
    db.commit()
    return result.rowcount > 0


def mark_result_sent(db: Session, group_id: str, sent_at: datetime) -> bool:
    result = db.execute(
        update(Group)
        .where(Group.id == group_id, Group.result_sent_at.is_(None))
        .values(result_sent_at=sent_at)
    )
    db.commit()
    return result.rowcount > 0


def refresh_group(db: Session, group: Group) -> Group:
    db.refresh(group)
    return group


# ── Invites ──────────────────────────────────────────────────────────────


def list_invites(db: Session, group_id: str) -> Sequence[Invite]:
    return (
        db.execute(
            select(Invite).where(Invite.group_id == group_id).order_by(Invite.created_at)
        )
        .scalars()
        .all()
    )


def insert_invites(db: Session, group_id: str, invites: Iterable[dict[str, Any]]) -> None:
    db.add_all(Invite(group_id=group_id, **invite) for invite in invites)
    db.commit()


def update_invite_status(
    db: Session,
    invite_id: str,
    status: str,
    sent_at: datetime,
    error: str | None = None,
) -> None:
    db.execute(
        update(Invite)
        .where(Invite.id == invite_id)
        .values(status=status, sent_at=sent_at, error=error)
    )
    db.commit()


def mark_invite_joined(db: Session, invite_id: str, joined_at: datetime) -> None:
    db.execute(
        update(Invite).where(Invite.id == invite_id).values(status="joined", joined_at=joined_at)
    )
    db.commit()


def delete_invite(db: Session, group_id: str, invite_id: str) -> Invite | None:
    """Remove a not-yet-joined invite. Returns None when nothing was removed."""
    invite = db.execute(
        select(Invite).where(Invite.id == invite_id, Invite.group_id == group_id)
    ).scalar_one_or_none()
    if invite is None or invite.status == "joined":
        return None
    db.delete(invite)
    db.commit()
    return invite


def find_invite(db: Session, group_id: str, normalized: str, type: str) -> Invite | None:
    return (
        db.execute(
            select(Invite).where(
                Invite.group_id == group_id,
                Invite.normalized == normalized,
                Invite.type == type,
            )
        )
        .scalars()
        .first()
    )


# ── Members ──────────────────────────────────────────────────────────────


def create_member(
    db: Session,
    *,
    id: str,
    group_id: str,
    name: str,
    type: str,
    contact: str,
    joined_at: datetime,
) -> Member:
    member = Member(
        id=id, group_id=group_id, name=name, type=type, contact=contact, joined_at=joined_at
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


def get_member_by_id(db: Session, member_id: str) -> Member | None:
    return db.get(Member, member_id)


def list_members(db: Session, group_id: str) -> Sequence[Member]:
    return (
        db.execute(
            select(Member).where(Member.group_id == group_id).order_by(Member.joined_at)
        )
        .scalars()
        .all()
    )


def count_members(db: Session, group_id: str) -> int:
    return db.execute(
        select(func.count()).select_from(Member).where(Member.group_id == group_id)
    ).scalar_one()


# ── Restaurants ──────────────────────────────────────────────────────────


def store_restaurants(db: Session, group_id: str, restaurants: Iterable[Any]) -> None:
    """Replace a group's restaurant list, dropping every vote cast against the old one.

    Each item needs ``id``, ``name``, ``cuisine``, ``distance_miles`` and
    ``distance`` attributes. Ids are scoped to the group on the way in.
    """
    try:
        db.execute(delete(Vote).where(Vote.group_id == group_id))
        for old in list_restaurants(db, group_id):
            db.delete(old)
        db.flush()
        db.add_all(
            Restaurant(
                id=f"{group_id}:{item.id}",
                group_id=group_id,
                position=position,
                name=item.name,
                cuisine=item.cuisine,
                distance_miles=item.distance_miles,
                distance=item.distance,
            )
            for position, item in enumerate(restaurants)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise


def list_restaurants(db: Session, group_id: str) -> Sequence[Restaurant]:
    return (
        db.execute(
            select(Restaurant)
            .where(Restaurant.group_id == group_id)
            .order_by(Restaurant.position)
        )
        .scalars()
        .all()
    )


# ── Votes ────────────────────────────────────────────────────────────────


def upsert_vote(
    db: Session,
    *,
    id: str,
    group_id: str,
    restaurant_id: str,
    member_id: str,
    decision: str,
    created_at: datetime,
) -> None:
    stmt = sqlite_insert(Vote).values(
        id=id,
        group_id=group_id,
        restaurant_id=restaurant_id,
        member_id=member_id,
        decision=decision,
        created_at=created_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Vote.group_id, Vote.restaurant_id, Vote.member_id],
        set_={"decision": stmt.excluded.decision, "created_at": stmt.excluded.created_at},
    )
    db.execute(stmt)
    db.commit()


def delete_vote(db: Session, group_id: str, restaurant_id: str, member_id: str) -> None:
    db.execute(
        delete(Vote).where(
            Vote.group_id == group_id,
            Vote.restaurant_id == restaurant_id,
            Vote.member_id == member_id,
        )
    )
    db.commit()


def get_vote_summary(db: Session, group_id: str) -> dict[str, dict[str, int]]:
    """Return ``{restaurant_id: {"yes": n, "no": n}}`` for restaurants with votes."""
    rows = db.execute(
        select(
            Vote.restaurant_id,
            func.sum(case((Vote.decision == "yes", 1), else_=0)).label("yes_count"),
            func.sum(case((Vote.decision == "no", 1), else_=0)).label("no_count"),
        )
        .where(Vote.group_id == group_id)
        .group_by(Vote.restaurant_id)
    )
    return {
        row.restaurant_id: {"yes": int(row.yes_count), "no": int(row.no_count)}
        for row in rows
    }
