"""Database models for school calendar events."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from schoolhub_api.core.rbac.types import Role
from schoolhub_api.db import Base
from schoolhub_api.db.mixins import (
    TimestampMixin,
    ULIDPrimaryKeyMixin,
    enum_values,
    role_enum,
)

__all__ = ["Event", "EventAudience", "EventStatus", "EventVisibility"]


class EventStatus(str, Enum):
    """Lifecycle states for events."""

    SCHEDULED = "SCHEDULED"
    POSTPONED = "POSTPONED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class EventVisibility(str, Enum):
    """Whether an event is shared with an audience or private to its creator."""

    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"


class Event(ULIDPrimaryKeyMixin, TimestampMixin, Base):
    """A calendar entry, optionally scoped to a class."""

    __tablename__ = "events"
    __table_args__ = (Index("events_status_end_time_idx", "status", "end_time"),)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[EventStatus] = mapped_column(
        SAEnum(
            EventStatus,
            name="event_status",
            native_enum=False,
            length=20,
            values_callable=enum_values,
        ),
        nullable=False,
        default=EventStatus.SCHEDULED,
    )
    visibility: Mapped[EventVisibility] = mapped_column(
        SAEnum(
            EventVisibility,
            name="event_visibility",
            native_enum=False,
            length=20,
            values_callable=enum_values,
        ),
        nullable=False,
        default=EventVisibility.PUBLIC,
    )
    creator_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    creator_role: Mapped[Role] = mapped_column(role_enum(), nullable=False)
    class_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("classes.id", ondelete="CASCADE"), nullable=True, index=True
    )

    audiences: Mapped[list["EventAudience"]] = relationship(
        "EventAudience",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def target_roles(self) -> list[Role]:
        return sorted((audience.role for audience in self.audiences), key=lambda role: role.value)


class EventAudience(Base):
    """Role targeted by an event."""

    __tablename__ = "event_target_roles"

    event_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("events.id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[Role] = mapped_column(role_enum(), primary_key=True)
