from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from sqlalchemy.orm import Session

from .config import DEFAULT_APP_CONFIG
from .groups.contacts import coerce_contact_type, normalize_contact
from .groups.models import (
    GroupCreate,
    GroupResponse,
    GroupStateResponse,
    InviteBatch,
    InvitesResponse,
    JoinRequest,
    JoinResponse,
    LookupResponse,
    MembersResponse,
    RestaurantsResponse,
    VoteRequest,
    VoteResponse,
)
from .lookup.errors import LookupTimeout, NoResults, RestaurantLookupError
from .locks import GroupLocks
from .lookup.restaurants import lookup_restaurants
from .notifications.dispatcher import send_invite_notification
from .rate_limit import limit_restaurant_lookups
from .storage import repository
from .storage.repository import new_group_code, new_id
from .storage.session import get_db, init_db
from .storage.tables import Group, Member, Restaurant
from .voting.finalize import finalize_group_if_needed
from .voting.models import VoteCounts, VotingStatus
from .voting.status import compute_status, summarize_votes

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="chowsr", version="1.0.0", lifespan=lifespan)

# Same-group refreshes wait for each other; different groups run in parallel.
_refresh_locks = GroupLocks()
# Finalization runs one request at a time per group so the result goes out once.
_finalize_locks = GroupLocks()


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request.", "errors": jsonable_encoder(exc.errors())},
    )


def _group_or_404(db: Session, code: str) -> Group:
    group = repository.get_group_by_code(db, code)
    if group is None:
        raise HTTPException(status_code=404, detail="Group not found.")
    return group


def _voting_state(
    db: Session, group: Group, now: datetime
) -> tuple[Sequence[Member], Sequence[Restaurant], dict[str, VoteCounts], VotingStatus]:
    members = repository.list_members(db, group.id)
    restaurants = repository.list_restaurants(db, group.id)
    summary = summarize_votes(repository.get_vote_summary(db, group.id), restaurants)
    status = compute_status(group, len(members), summary, restaurants, now)
    return members, restaurants, summary, status


# ── Health ───────────────────────────────────────────────────────────────


@app.get("/api/health")
def health() -> dict[str, bool]:
    return {"ok": True}


# ── Groups ───────────────────────────────────────────────────────────────


@app.post("/api/groups", response_model=GroupResponse)
def create_group(body: GroupCreate, db: Session = Depends(get_db)) -> dict:
    name = (body.name or "").strip()
    location_type = (body.location_type or "").strip()
    location_value = (body.location_value or "").strip()
    if not (name and location_type and location_value and body.radius and body.deadline):
        raise HTTPException(status_code=400, detail="Missing required fields.")

    code = new_group_code()
    while repository.get_group_by_code(db, code) is not None:
        code = new_group_code()

    group = repository.create_group(
        db,
        id=new_id(),
        code=code,
        name=name,
        location_type=location_type,
        location_value=location_value,
        radius=body.radius,
        deadline=body.deadline,
        created_at=utcnow(),
    )
    logger.info("group %s created for %s", group.code, group.location_value)
    return {"group": group}


@app.get("/api/groups/{code}", response_model=GroupResponse)
def get_group(code: str, db: Session = Depends(get_db)) -> dict:
    return {"group": _group_or_404(db, code)}


@app.get("/api/groups/{code}/state", response_model=GroupStateResponse)
def group_state(code: str, db: Session = Depends(get_db)) -> dict:
    group = _group_or_404(db, code)
    members, restaurants, summary, status = _voting_state(db, group, utcnow())
    return {
        "group": group,
        "invites": repository.list_invites(db, group.id),
        "members": members,
        "restaurants": restaurants,
        "summary": summary,
        "status": status,
    }


# ── Invites & joining ────────────────────────────────────────────────────


@app.post("/api/groups/{code}/invites", response_model=InvitesResponse)
async def create_invites(code: str, body: InviteBatch, db: Session = Depends(get_db)) -> dict:
    group = _group_or_404(db, code)
    if not body.invites:
        raise HTTPException(status_code=400, detail="No invites provided.")

    seen = {(invite.type, invite.normalized) for invite in repository.list_invites(db, group.id)}
    created_at = utcnow()
    new_invites: list[dict] = []
    for item in body.invites:
        contact_type = coerce_contact_type(item.type)
        value = (item.value or "").strip()
        normalized = normalize_contact(value, contact_type)
        if not normalized or (contact_type, normalized) in seen:
            continue
        seen.add((contact_type, normalized))
        new_invites.append({
            "id": new_id(),
            "type": contact_type,
            "value": value,
            "normalized": normalized,
            "status": "pending",
            "created_at": created_at,
        })

    if not new_invites:
        raise HTTPException(status_code=400, detail="No valid invites.")

    repository.insert_invites(db, group.id, new_invites)

    outcomes = await asyncio.gather(
        *(
            send_invite_notification(
                type=invite["type"],
                to=invite["value"],
                group_name=group.name,
                group_code=group.code,
            )
            for invite in new_invites
        ),
        return_exceptions=True,
    )

    for invite, outcome in zip(new_invites, outcomes):
        if isinstance(outcome, Exception):
            logger.warning("invite %s for group %s failed: %s", invite["id"], group.code, outcome)
            repository.update_invite_status(
                db, invite["id"], "failed", utcnow(), str(outcome) or "Invite failed."
            )
        elif outcome is not None and outcome.status == "skipped":
            repository.update_invite_status(db, invite["id"], "skipped", utcnow(), outcome.reason)
        else:
            repository.update_invite_status(db, invite["id"], "sent", utcnow())

    return {"invites": repository.list_invites(db, group.id)}


@app.delete("/api/groups/{code}/invites/{invite_id}", response_model=InvitesResponse)
def delete_invite(code: str, invite_id: str, db: Session = Depends(get_db)) -> dict:
    group = _group_or_404(db, code)
    if repository.delete_invite(db, group.id, invite_id) is None:
        raise HTTPException(status_code=400, detail="Invite cannot be removed.")
    return {"invites": repository.list_invites(db, group.id)}


@app.post("/api/groups/{code}/join", response_model=JoinResponse)
def join_group(code: str, body: JoinRequest, db: Session = Depends(get_db)) -> dict:
    group = _group_or_404(db, code)

    contact_type = coerce_contact_type(body.type)
    contact = (body.contact or "").strip()
    normalized = normalize_contact(contact, contact_type)
    name = (body.name or "").strip()
    if not name or not normalized:
        raise HTTPException(status_code=400, detail="Missing name or contact.")

    invite = repository.find_invite(db, group.id, normalized, contact_type)

    # The first person in is the host; they invite themselves.
    if invite is None and repository.count_members(db, group.id) == 0:
        repository.insert_invites(db, group.id, [{
            "id": new_id(),
            "type": contact_type,
            "value": contact,
            "normalized": normalized,
            "status": "pending",
            "created_at": utcnow(),
        }])
        invite = repository.find_invite(db, group.id, normalized, contact_type)

    if invite is None:
        raise HTTPException(
            status_code=403,
            detail="That contact was not invited yet. Ask the host to add you.",
        )
    if invite.status == "joined":
        raise HTTPException(status_code=403, detail="That contact already joined.")

    member = repository.create_member(
        db,
        id=new_id(),
        group_id=group.id,
        name=name,
        type=contact_type,
        contact=invite.value,
        joined_at=utcnow(),
    )
    repository.mark_invite_joined(db, invite.id, utcnow())

    return {"group": group, "member": member, "members": repository.list_members(db, group.id)}


@app.get("/api/groups/{code}/members", response_model=MembersResponse)
def list_members(code: str, db: Session = Depends(get_db)) -> dict:
    group = _group_or_404(db, code)
    return {"members": repository.list_members(db, group.id)}


# ── Restaurants ──────────────────────────────────────────────────────────


@app.get("/api/groups/{code}/restaurants", response_model=RestaurantsResponse)
def list_restaurants(code: str, db: Session = Depends(get_db)) -> dict:
    group = _group_or_404(db, code)
    return {"restaurants": repository.list_restaurants(db, group.id)}


@app.post(
    "/api/groups/{code}/restaurants",
    response_model=LookupResponse,
    dependencies=[Depends(limit_restaurant_lookups)],
)
async def refresh_restaurants(code: str, db: Session = Depends(get_db)) -> dict:
    group = _group_or_404(db, code)

    async with _refresh_locks.hold(group.id):
        try:
            found = await lookup_restaurants(
                group.location_value, group.radius, DEFAULT_APP_CONFIG.restaurant_timeout
            )
        except RestaurantLookupError as exc:
            logger.warning(
                "restaurant lookup failed group=%s code=%s location=%r radius=%s: %s: %s",
                group.id,
                group.code,
                group.location_value,
                group.radius,
                type(exc).__name__,
                exc,
            )
            if isinstance(exc, NoResults):
                repository.store_restaurants(db, group.id, [])
                return {"restaurants": [], "status": "empty", "summary": {}, "error": str(exc)}
            if isinstance(exc, LookupTimeout):
                raise HTTPException(status_code=504, detail=str(exc)) from exc
            raise HTTPException(
                status_code=502, detail=str(exc) or "Unable to load restaurants."
            ) from exc

        repository.store_restaurants(db, group.id, found)
        stored = repository.list_restaurants(db, group.id)

    return {"restaurants": stored, "status": "success", "summary": summarize_votes({}, stored)}


# ── Voting ───────────────────────────────────────────────────────────────


@app.post("/api/groups/{code}/votes", response_model=VoteResponse)
async def cast_vote(code: str, body: VoteRequest, db: Session = Depends(get_db)) -> dict:
    group = _group_or_404(db, code)

    member = repository.get_member_by_id(db, body.member_id) if body.member_id else None
    if member is None or member.group_id != group.id:
        raise HTTPException(status_code=400, detail="Invalid member.")

    restaurants = repository.list_restaurants(db, group.id)
    if not any(r.id == body.restaurant_id for r in restaurants):
        raise HTTPException(status_code=400, detail="Invalid restaurant.")

    now = utcnow()
    if group.status == "closed":
        _, restaurants, summary, status = _voting_state(db, group, now)
        return {"summary": summary, "status": status, "restaurants": restaurants, "group": group}

    # Explicit null retracts; a missing decision is malformed.
    if "decision" not in body.model_fields_set:
        raise HTTPException(status_code=400, detail="Invalid vote decision.")
    if body.decision is None:
        repository.delete_vote(db, group.id, body.restaurant_id, member.id)
    elif body.decision in ("yes", "no"):
        repository.upsert_vote(
            db,
            id=new_id(),
            group_id=group.id,
            restaurant_id=body.restaurant_id,
            member_id=member.id,
            decision=body.decision,
            created_at=now,
        )
    else:
        raise HTTPException(status_code=400, detail="Invalid vote decision.")

    return await _finalize(db, group, now)


@app.post("/api/groups/{code}/close", response_model=VoteResponse)
async def close_group(code: str, db: Session = Depends(get_db)) -> dict:
    group = _group_or_404(db, code)
    return await _finalize(db, group, utcnow())


async def _finalize(db: Session, group: Group, now: datetime) -> dict:
    async with _finalize_locks.hold(group.id):
        # another request may have closed or notified while we waited
        group = repository.refresh_group(db, group)
        members, restaurants, summary, status = _voting_state(db, group, now)
        group, status = await finalize_group_if_needed(
            db, group, members, restaurants, summary, status, now
        )
    return {"summary": summary, "status": status, "restaurants": restaurants, "group": group}


# ── Client bundle ────────────────────────────────────────────────────────


def mount_client(target: FastAPI, dist: Path) -> None:
    """Serve a built single-page client; unknown non-API paths get its index.html."""
    root = dist.resolve()
    index = root / "index.html"

    @target.get("/{full_path:path}", include_in_schema=False)
    def client_app(full_path: str):
        if full_path.startswith("api/"):
            raise HTTPException(status_code=404, detail="Not found.")
        candidate = (root / full_path).resolve()
        if full_path and candidate.is_file() and candidate.is_relative_to(root):
            return FileResponse(str(candidate))
        return FileResponse(str(index))


if DEFAULT_APP_CONFIG.client_dist.is_dir():
    mount_client(app, DEFAULT_APP_CONFIG.client_dist)
