"""Database model for grades."""

from __future__ import annotations

from enum import Enum

from sqlalchemy import CheckConstraint, Enum as SAEnum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from schoolhub_api.db import Base
from schoolhub_api.db.mixins import TimestampMixin, ULIDPrimaryKeyMixin, enum_values

__all__ = ["Grade", "GradeType"]


class GradeType(str, Enum):
    """What a grade was awarded for."""

    EXAM = "EXAM"
    ASSIGNMENT = "ASSIGNMENT"
    PARTICIPATION = "PARTICIPATION"
    FINAL = "FINAL"


class Grade(ULIDPrimaryKeyMixin, TimestampMixin, Base):
    """A score recorded by a teacher for a student."""

    __tablename__ = "grades"
    __table_args__ = (CheckConstraint("score >= 0 AND score <= 100", name="score_range"),)

    score: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[GradeType] = mapped_column(
        SAEnum(
            GradeType,
            name="grade_type",
            native_enum=False,
            length=20,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    student_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    class_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    teacher_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False, index=True
    )
