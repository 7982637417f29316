"""Shared pytest fixtures for SchoolHub tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from schoolhub_api.common.ids import generate_ulid
from schoolhub_api.core.auth.principal import Principal
from schoolhub_api.core.auth.tokens import mint_access_token
from schoolhub_api.core.guard import AccessGuard
from schoolhub_api.core.rbac.resolver import VisibilityResolver
from schoolhub_api.core.rbac.types import Role
from schoolhub_api.db import Base, reset_database_state
from schoolhub_api.db.engine import create_engine_from_settings
from schoolhub_api.db.session import get_sessionmaker
from schoolhub_api.features.announcements.service import AnnouncementsService
from schoolhub_api.features.assignments.service import AssignmentsService
from schoolhub_api.features.attendance.service import AttendanceService
from schoolhub_api.features.events.service import EventsService
from schoolhub_api.features.grades.service import GradesService
from schoolhub_api.features.school.models import Lesson, Parent, SchoolClass, Student, Teacher
from schoolhub_api.features.school.service import DirectoryService
from schoolhub_api.main import create_app
from schoolhub_api.realtime.gateway import Connection, InMemoryBroadcastGateway
from schoolhub_api.realtime.rooms import rooms_for_join
from schoolhub_api.settings import Settings


@dataclass(frozen=True)
class Roster:
    """Ids of the seeded school.

    ``teacher_a`` supervises class 1 and teaches its lesson; ``teacher_b``
    teaches class 2. ``parent_1`` has a child in each class, ``parent_2``
    only in class 1.
    """

    class_1: str
    class_2: str
    teacher_a: str
    teacher_b: str
    lesson_1: str
    lesson_2: str
    parent_1: str
    parent_2: str
    student_1: str
    student_2: str
    student_3: str
    admin: str
    super_admin: str


class FakeSocket:
    """In-memory stand-in for a WebSocket used by gateway tests."""

    def __init__(self, *, fail: bool = False, delay: float = 0.0) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed_with: int | None = None
        self._fail = fail
        self._delay = delay

    async def send_json(self, data: Any) -> None:
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._fail:
            raise RuntimeError("socket is gone")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    def events(self) -> list[str]:
        return [message["event"] for message in self.sent]

    def of(self, event: str) -> list[Any]:
        return [message["data"] for message in self.sent if message["event"] == event]


async def seed_roster(session_factory: async_sessionmaker[AsyncSession]) -> Roster:
    async with session_factory() as session:
        teacher_a = Teacher(username="t.adams", name="Tara", surname="Adams")
        teacher_b = Teacher(username="t.baker", name="Theo", surname="Baker")
        session.add_all([teacher_a, teacher_b])
        await session.flush()

        class_1 = SchoolClass(name="1A", capacity=30, supervisor_id=teacher_a.id)
        class_2 = SchoolClass(name="2B", capacity=30)
        parent_1 = Parent(username="p.cole", name="Pat", surname="Cole")
        parent_2 = Parent(username="p.diaz", name="Pia", surname="Diaz")
        session.add_all([class_1, class_2, parent_1, parent_2])
        await session.flush()

        lesson_1 = Lesson(name="Maths", day="MONDAY", class_id=class_1.id, teacher_id=teacher_a.id)
        lesson_2 = Lesson(name="Physics", day="TUESDAY", class_id=class_2.id, teacher_id=teacher_b.id)
        student_1 = Student(
            username="s.cole", name="Sam", surname="Cole", class_id=class_1.id, parent_id=parent_1.id
        )
        student_2 = Student(
            username="s.diaz", name="Sia", surname="Diaz", class_id=class_1.id, parent_id=parent_2.id
        )
        student_3 = Student(
            username="s.cole2", name="Sol", surname="Cole", class_id=class_2.id, parent_id=parent_1.id
        )
        session.add_all([lesson_1, lesson_2, student_1, student_2, student_3])
        await session.commit()

        return Roster(
            class_1=class_1.id,
            class_2=class_2.id,
            teacher_a=teacher_a.id,
            teacher_b=teacher_b.id,
            lesson_1=lesson_1.id,
            lesson_2=lesson_2.id,
            parent_1=parent_1.id,
            parent_2=parent_2.id,
            student_1=student_1.id,
            student_2=student_2.id,
            student_3=student_3.id,
            admin=generate_ulid(),
            super_admin=generate_ulid(),
        )


def principals_for(roster: Roster) -> SimpleNamespace:
    return SimpleNamespace(
        teacher_a=Principal(id=roster.teacher_a, role=Role.TEACHER),
        teacher_b=Principal(id=roster.teacher_b, role=Role.TEACHER),
        student_1=Principal(id=roster.student_1, role=Role.STUDENT),
        student_2=Principal(id=roster.student_2, role=Role.STUDENT),
        student_3=Principal(id=roster.student_3, role=Role.STUDENT),
        parent_1=Principal(id=roster.parent_1, role=Role.PARENT),
        parent_2=Principal(id=roster.parent_2, role=Role.PARENT),
        admin=Principal(id=roster.admin, role=Role.ADMIN),
        super_admin=Principal(id=roster.super_admin, role=Role.SUPER_ADMIN),
    )


# ---------------------------------------------------------------------------
# Settings and database
# ---------------------------------------------------------------------------


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        database_dsn=f"sqlite+aiosqlite:///{tmp_path / 'schoolhub.sqlite'}",
        jwt_secret="test-secret",
        scheduler_enabled=False,
        realtime_handshake_timeout=0.5,
    )


@pytest_asyncio.fixture()
async def engine(settings: Settings) -> AsyncIterator[AsyncEngine]:
    import schoolhub_api.models  # noqa: F401

    engine = create_engine_from_settings(settings)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture()
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def roster(session_factory: async_sessionmaker[AsyncSession]) -> Roster:
    return await seed_roster(session_factory)


@pytest.fixture()
def people(roster: Roster) -> SimpleNamespace:
    return principals_for(roster)


# ---------------------------------------------------------------------------
# Realtime
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture()
async def gateway() -> AsyncIterator[InMemoryBroadcastGateway]:
    gateway = InMemoryBroadcastGateway()
    yield gateway
    await gateway.close()


@pytest.fixture()
def socket_cls() -> type[FakeSocket]:
    return FakeSocket


@pytest.fixture()
def connect(
    gateway: InMemoryBroadcastGateway,
) -> Callable[..., Awaitable[tuple[FakeSocket, Connection]]]:
    """Register a fake socket for ``principal`` and join its default rooms."""

    async def _connect(
        principal: Principal,
        *,
        class_id: str | None = None,
        socket: FakeSocket | None = None,
    ) -> tuple[FakeSocket, Connection]:
        socket = socket or FakeSocket()
        connection = await gateway.register(socket, principal)
        await gateway.join(connection, rooms_for_join(principal.role, principal.id, class_id))
        return socket, connection

    return _connect


@pytest.fixture()
def services(session: AsyncSession, gateway: InMemoryBroadcastGateway) -> SimpleNamespace:
    resolver = VisibilityResolver(session)
    guard = AccessGuard(resolver)
    common = {"session": session, "resolver": resolver, "guard": guard}
    return SimpleNamespace(
        announcements=AnnouncementsService(**common, gateway=gateway),
        events=EventsService(**common, gateway=gateway),
        attendance=AttendanceService(**common, gateway=gateway),
        assignments=AssignmentsService(**common, gateway=gateway),
        grades=GradesService(**common),
        directory=DirectoryService(session=session, resolver=resolver),
        resolver=resolver,
        guard=guard,
    )


# ---------------------------------------------------------------------------
# HTTP application
# ---------------------------------------------------------------------------


@pytest.fixture()
def token_for(settings: Settings) -> Callable[..., str]:
    def _token(principal: Principal, *, expires_in: timedelta | None = None) -> str:
        return mint_access_token(
            subject=principal.id,
            role=principal.role,
            settings=settings,
            expires_in=expires_in,
        )

    return _token


@pytest.fixture()
def auth_headers(token_for: Callable[..., str]) -> Callable[[Principal], dict[str, str]]:
    def _headers(principal: Principal) -> dict[str, str]:
        return {"Authorization": f"Bearer {token_for(principal)}"}

    return _headers


@pytest.fixture()
def app(settings: Settings) -> FastAPI:
    reset_database_state()
    return create_app(settings)


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """HTTPX client bound to the app with its lifespan running."""

    async with LifespanManager(app) as manager:
        transport = ASGITransport(app=manager.app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client


@pytest.fixture()
def seed_school() -> Callable[[async_sessionmaker[AsyncSession]], Awaitable[SimpleNamespace]]:
    """Return a coroutine that seeds the roster and returns its principals."""

    async def _seed(session_factory: async_sessionmaker[AsyncSession]) -> SimpleNamespace:
        roster = await seed_roster(session_factory)
        people = principals_for(roster)
        people.roster = roster
        return people

    return _seed


@pytest_asyncio.fixture()
async def api_people(
    async_client: AsyncClient, settings: Settings, seed_school
) -> SimpleNamespace:
    """Seed the migrated application database and return its principals."""

    return await seed_school(get_sessionmaker(settings))
