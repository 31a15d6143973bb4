from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Store timestamps as naive UTC and hand them back timezone-aware."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class Group(Base):
    __tablename__ = "groups"

    id = Column(String, primary_key=True)
    code = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    location_type = Column(String, nullable=False)
    location_value = Column(String, nullable=False)
    radius = Column(Float, nullable=False)
    deadline = Column(UTCDateTime, nullable=False)
    created_at = Column(UTCDateTime, nullable=False)
    status = Column(String, nullable=False, default="open")
    decided_restaurant_id = Column(String, nullable=True)
    decided_at = Column(UTCDateTime, nullable=True)
    result_sent_at = Column(UTCDateTime, nullable=True)

    invites = relationship("Invite", back_populates="group", cascade="all, delete")
    members = relationship("Member", back_populates="group", cascade="all, delete")


class Invite(Base):
    __tablename__ = "invites"

    id = Column(String, primary_key=True)
    group_id = Column(String, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    type = Column(String, nullable=False)
    value = Column(String, nullable=False)
    normalized = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending")
    created_at = Column(UTCDateTime, nullable=False)
    sent_at = Column(UTCDateTime, nullable=True)
    joined_at = Column(UTCDateTime, nullable=True)
    error = Column(Text, nullable=True)

    group = relationship("Group", back_populates="invites")


Index("invites_lookup", Invite.group_id, Invite.normalized, Invite.type)


class Member(Base):
    __tablename__ = "members"

    id = Column(String, primary_key=True)
    group_id = Column(String, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)
    contact = Column(String, nullable=False)
    joined_at = Column(UTCDateTime, nullable=False)

    group = relationship("Group", back_populates="members")


class Restaurant(Base):
    __tablename__ = "restaurants"

    # Scoped as "<group id>:<osm type>-<osm id>" so two groups can hold the same place.
    id = Column(String, primary_key=True)
    group_id = Column(String, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String, nullable=False)
    cuisine = Column(String, nullable=False)
    distance_miles = Column(Float, nullable=False)
    distance = Column(String, nullable=False)


class Vote(Base):
    __tablename__ = "votes"

    id = Column(String, primary_key=True)
    group_id = Column(String, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    restaurant_id = Column(
        String, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False
    )
    member_id = Column(String, ForeignKey("members.id", ondelete="CASCADE"), nullable=False)
    decision = Column(String, nullable=False)
    created_at = Column(UTCDateTime, nullable=False)


Index("votes_unique", Vote.group_id, Vote.restaurant_id, Vote.member_id, unique=True)
