"""Database models for the school roster: classes, people and lessons."""

from __future__ import annotations

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from schoolhub_api.db import Base
from schoolhub_api.db.mixins import TimestampMixin, ULIDPrimaryKeyMixin

__all__ = ["Lesson", "Parent", "SchoolClass", "Student", "Teacher"]


class Teacher(ULIDPrimaryKeyMixin, TimestampMixin, Base):
    """Teaching staff. The id doubles as the principal id in tokens."""

    __tablename__ = "teachers"

    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    surname: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(254), nullable=True)

    supervised_classes: Mapped[list["SchoolClass"]] = relationship(
        "SchoolClass", back_populates="supervisor"
    )
    lessons: Mapped[list["Lesson"]] = relationship("Lesson", back_populates="teacher")


class Parent(ULIDPrimaryKeyMixin, TimestampMixin, Base):
    """Guardian of one or more students."""

    __tablename__ = "parents"

    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    surname: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(254), nullable=True)

    students: Mapped[list["Student"]] = relationship("Student", back_populates="parent")


class SchoolClass(ULIDPrimaryKeyMixin, TimestampMixin, Base):
    """A class (cohort) of students, optionally supervised by a teacher."""

    __tablename__ = "classes"

    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    capacity: Mapped[int | None] = mapped_column(nullable=True)
    supervisor_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True, index=True
    )

    supervisor: Mapped[Teacher | None] = relationship(
        Teacher, back_populates="supervised_classes"
    )
    students: Mapped[list["Student"]] = relationship("Student", back_populates="school_class")
    lessons: Mapped[list["Lesson"]] = relationship("Lesson", back_populates="school_class")


class Student(ULIDPrimaryKeyMixin, TimestampMixin, Base):
    """Enrolled student linked to a class and a parent."""

    __tablename__ = "students"

    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    surname: Mapped[str] = mapped_column(String(100), nullable=False)
    class_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    parent_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("parents.id", ondelete="SET NULL"), nullable=True, index=True
    )

    school_class: Mapped[SchoolClass] = relationship(SchoolClass, back_populates="students")
    parent: Mapped[Parent | None] = relationship(Parent, back_populates="students")


class Lesson(ULIDPrimaryKeyMixin, TimestampMixin, Base):
    """A recurring lesson taught by a teacher to a class."""

    __tablename__ = "lessons"
    __table_args__ = (UniqueConstraint("class_id", "name", "day"),)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    day: Mapped[str] = mapped_column(String(16), nullable=False, default="MONDAY")
    class_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    teacher_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False, index=True
    )

    school_class: Mapped[SchoolClass] = relationship(SchoolClass, back_populates="lessons")
    teacher: Mapped[Teacher] = relationship(Teacher, back_populates="lessons")
