"""Database model for per-lesson attendance records."""

from __future__ import annotations

from datetime import date

from sqlalchemy import Boolean, Date, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from schoolhub_api.db import Base
from schoolhub_api.db.mixins import TimestampMixin, ULIDPrimaryKeyMixin

__all__ = ["Attendance"]


class Attendance(ULIDPrimaryKeyMixin, TimestampMixin, Base):
    """Presence of one student at one lesson on one day."""

    __tablename__ = "attendance"
    __table_args__ = (UniqueConstraint("student_id", "lesson_id", "attended_on"),)

    attended_on: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    present: Mapped[bool] = mapped_column(Boolean, nullable=False)
    student_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    lesson_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    class_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True
    )
