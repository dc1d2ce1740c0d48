"""Create users, portfolios and projects tables

Revision ID: 001
Revises: None
Create Date: 2026-10-17 00:00:00.000000+00:00

What:  Initial schema. Portfolios are created before projects because
       projects.portfolio_id references portfolios.id.

Rollback: downgrade() drops all three tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "email",
            sa.String(255),
            nullable=False,
            comment="Login email, unique per user",
        ),
        sa.Column(
            "nickname",
            sa.String(50),
            nullable=False,
            comment="Display name shown on portfolios",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "portfolios",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            nullable=False,
            comment="Owner of the portfolio",
        ),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        # Read in full at every startup to build the autocomplete index
        sa.Column(
            "tech_stack",
            sa.String(1000),
            nullable=True,
            comment="Comma-separated tech keywords; source of the autocomplete index",
        ),
        sa.Column(
            "image_path",
            sa.String(255),
            nullable=True,
            comment="Relative path from storage root to the cover image",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_portfolios_user_id", "portfolios", ["user_id"])

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            nullable=False,
            comment="Owner of the project",
        ),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column(
            "portfolio_id",
            sa.Integer(),
            nullable=True,
            comment="Portfolio this project is shown in, if any",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["portfolio_id"], ["portfolios.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_projects_portfolio_id", "projects", ["portfolio_id"])


def downgrade() -> None:
    """Drop all tables in reverse dependency order. All data is lost."""
    op.drop_index("idx_projects_portfolio_id", table_name="projects")
    op.drop_table("projects")
    op.drop_index("idx_portfolios_user_id", table_name="portfolios")
    op.drop_table("portfolios")
    op.drop_table("users")
