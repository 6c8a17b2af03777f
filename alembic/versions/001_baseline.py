"""Baseline: creates every table from the ORM models.

Later migrations alter this schema incrementally.

Revision ID: 001_baseline
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

from wordduel.db import models  # noqa: F401
from wordduel.db.base import Base

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    Base.metadata.create_all(bind=op.get_bind())
    # Team names are unique regardless of case
    op.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_teams_name_lower ON teams (lower(name))")


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_teams_name_lower")
    Base.metadata.drop_all(bind=op.get_bind())
