from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..voting.models import VoteCounts, VotingStatus


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ── Requests ─────────────────────────────────────────────────────────────
# Fields are optional so that missing input becomes a 400 from the handler
# (after the group lookup) rather than a schema error.


class GroupCreate(CamelModel):
    name: str | None = None
    location_type: str | None = None
    location_value: str | None = None
    radius: float | None = None
    deadline: datetime | None = None


class InviteIn(CamelModel):
    type: str | None = None
    value: str | None = None


class InviteBatch(CamelModel):
    invites: list[InviteIn] = Field(default_factory=list)


class JoinRequest(CamelModel):
    name: str | None = None
    type: str | None = None
    contact: str | None = None


class VoteRequest(CamelModel):
    member_id: str | None = None
    restaurant_id: str | None = None
    decision: str | None = None


# ── Records ──────────────────────────────────────────────────────────────


class GroupOut(CamelModel):
    id: str
    code: str
    name: str
    location_type: str
    location_value: str
    radius: float
    deadline: datetime
    created_at: datetime
    status: str
    decided_restaurant_id: str | None = None
    decided_at: datetime | None = None
    result_sent_at: datetime | None = None


class InviteOut(CamelModel):
    id: str
    group_id: str
    type: str
    value: str
    normalized: str
    status: str
    created_at: datetime
    sent_at: datetime | None = None
    joined_at: datetime | None = None
    error: str | None = None


class MemberOut(CamelModel):
    id: str
    group_id: str
    name: str
    type: str
    contact: str
    joined_at: datetime


class RestaurantOut(CamelModel):
    id: str
    group_id: str
    name: str
    cuisine: str
    distance_miles: float
    distance: str


# ── Responses ────────────────────────────────────────────────────────────


class GroupResponse(CamelModel):
    group: GroupOut


class GroupStateResponse(CamelModel):
    group: GroupOut
    invites: list[InviteOut]
    members: list[MemberOut]
    restaurants: list[RestaurantOut]
    summary: dict[str, VoteCounts]
    status: VotingStatus


class InvitesResponse(CamelModel):
    invites: list[InviteOut]


class JoinResponse(CamelModel):
    group: GroupOut
    member: MemberOut
    members: list[MemberOut]


class MembersResponse(CamelModel):
    members: list[MemberOut]


class RestaurantsResponse(CamelModel):
    restaurants: list[RestaurantOut]


class LookupResponse(CamelModel):
    restaurants: list[RestaurantOut]
    status: str
    summary: dict[str, VoteCounts]
    error: str | None = None


class VoteResponse(CamelModel):
    summary: dict[str, VoteCounts]
    status: VotingStatus
    restaurants: list[RestaurantOut]
    group: GroupOut
