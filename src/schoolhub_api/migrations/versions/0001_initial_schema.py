"""Initial SchoolHub schema.

Creates the directory tables (teachers, parents, classes, lessons, students),
announcements with their audience, read-receipt and dismissal tables, events with
their audience table, attendance, assignments with submissions, and grades.
Role audiences live in join tables so visibility filters can use EXISTS.
"""

from __future__ import annotations

from alembic import op

import schoolhub_api.models  # noqa: F401
from schoolhub_api.db.base import Base

revision = "0001_initial_schema"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def upgrade() -> None:
    Base.metadata.create_all(bind=op.get_bind())


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind())
