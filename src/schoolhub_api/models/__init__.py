"""Aggregate every ORM model so ``Base.metadata`` is complete on import."""

from schoolhub_api.features.announcements.models import (
    Announcement,
    AnnouncementAudience,
    AnnouncementDismissal,
    AnnouncementRead,
)
from schoolhub_api.features.assignments.models import Assignment, AssignmentSubmission
from schoolhub_api.features.attendance.models import Attendance
from schoolhub_api.features.events.models import Event, EventAudience
from schoolhub_api.features.grades.models import Grade
from schoolhub_api.features.school.models import Lesson, Parent, SchoolClass, Student, Teacher

__all__ = [
    "Announcement",
    "AnnouncementAudience",
    "AnnouncementDismissal",
    "AnnouncementRead",
    "Assignment",
    "AssignmentSubmission",
    "Attendance",
    "Event",
    "EventAudience",
    "Grade",
    "Lesson",
    "Parent",
    "SchoolClass",
    "Student",
    "Teacher",
]
