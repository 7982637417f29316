"""Database models for announcements and their read receipts."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from schoolhub_api.common.time import utc_now
from schoolhub_api.core.rbac.types import Role
from schoolhub_api.db import Base
from schoolhub_api.db.mixins import TimestampMixin, ULIDPrimaryKeyMixin, role_enum

__all__ = ["Announcement", "AnnouncementAudience", "AnnouncementDismissal", "AnnouncementRead"]


class Announcement(ULIDPrimaryKeyMixin, TimestampMixin, Base):
    """A message for a class or for one or more roles."""

    __tablename__ = "announcements"
    __table_args__ = (
        Index("announcements_archived_created_idx", "is_archived", "created_at"),
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    creator_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    creator_role: Mapped[Role] = mapped_column(role_enum(), nullable=False)
    class_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("classes.id", ondelete="CASCADE"), nullable=True, index=True
    )
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    audiences: Mapped[list["AnnouncementAudience"]] = relationship(
        "AnnouncementAudience",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def target_roles(self) -> list[Role]:
        return sorted((audience.role for audience in self.audiences), key=lambda role: role.value)


class AnnouncementAudience(Base):
    """Role targeted by an announcement."""

    __tablename__ = "announcement_target_roles"

    announcement_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("announcements.id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[Role] = mapped_column(role_enum(), primary_key=True)


class AnnouncementRead(Base):
    """Read receipt of an announcement by a user."""

    __tablename__ = "announcement_reads"

    announcement_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("announcements.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String(26), primary_key=True, index=True)
    read_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )


class AnnouncementDismissal(Base):
    """An announcement a user removed from their own feed."""

    __tablename__ = "announcement_dismissals"

    announcement_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("announcements.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String(26), primary_key=True, index=True)
    dismissed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
