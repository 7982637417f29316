"""Real-time event names and envelope helpers.

Event names are part of the client contract and must not change.
"""

from __future__ import annotations

import enum
from typing import Any

from fastapi.encoders import jsonable_encoder


class RealtimeEvent(str, enum.Enum):
    """Events exchanged over the real-time channel."""

    # server -> client: connection lifecycle
    CONNECTED = "connected"
    ERROR = "error"
    # client -> server
    AUTH = "auth"
    JOIN_ROOMS = "joinRooms"
    # server -> client: domain notifications
    NEW_ANNOUNCEMENT = "newAnnouncement"
    READ_STATUS = "readStatus"
    UNREAD_COUNT = "unreadCount"
    ANNOUNCEMENT_DELETED = "announcementDeleted"
    ANNOUNCEMENT_ARCHIVE_STATUS = "announcementArchiveStatus"
    ANNOUNCEMENT_ARCHIVED = "announcementArchived"
    MARK_ATTENDANCE = "markAttendance"
    EVENT_CREATED = "eventCreated"
    EVENT_UPDATED = "eventUpdated"
    DELETE_EVENT = "deleteEvent"
    EVENTS_UPDATED = "eventsUpdated"
    CREATE_ASSIGNMENT = "createAssignment"
    DELETE_ASSIGNMENT = "deleteAssignment"


CONNECTED_MESSAGE = "Successfully connected to real-time updates"
AUTH_REQUIRED_MESSAGE = "Authentication required"
INVALID_TOKEN_MESSAGE = "Invalid authentication token"
AUTH_TIMEOUT_MESSAGE = "Authentication timed out"
INVALID_MESSAGE = "Invalid message"


def event_name(event: RealtimeEvent | str) -> str:
    return event.value if isinstance(event, RealtimeEvent) else str(event)


def envelope(event: RealtimeEvent | str, payload: Any) -> dict[str, Any]:
    """Return the JSON frame for ``event`` with a JSON-safe ``payload``."""

    return {"event": event_name(event), "data": jsonable_encoder(payload)}


__all__ = [
    "AUTH_REQUIRED_MESSAGE",
    "AUTH_TIMEOUT_MESSAGE",
    "CONNECTED_MESSAGE",
    "INVALID_MESSAGE",
    "INVALID_TOKEN_MESSAGE",
    "RealtimeEvent",
    "envelope",
    "event_name",
]
