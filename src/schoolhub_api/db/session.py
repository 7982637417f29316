"""Request-scoped database sessions."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub_api.settings import get_app_settings

from .engine import get_sessionmaker


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield a session for one request.

    Services commit their own writes through ``realtime.outbox.committed`` so
    broadcasts follow the commit. Whatever is still open when the request ends
    was never meant to persist and is rolled back.
    """

    session_factory = get_sessionmaker(get_app_settings(request.app))
    async with session_factory() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                await session.rollback()


__all__ = ["get_session", "get_sessionmaker"]
