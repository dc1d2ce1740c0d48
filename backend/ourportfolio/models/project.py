"""
OurPortfolio Backend — Project SQLAlchemy Model
================================================

What:  ORM model representing the `projects` table.
Why:   A portfolio bundles projects. The link is stored on the project side
       (`portfolio_id`), so a project belongs to at most one portfolio.
"""

from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ourportfolio.database import Base


class Project(Base):
    """A single project owned by a user, optionally attached to a portfolio."""

    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="Owner of the project",
    )

    title: Mapped[str] = mapped_column(String(100), nullable=False)

    # SET NULL: deleting a portfolio releases its projects instead of deleting them
    portfolio_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("portfolios.id", ondelete="SET NULL"),
        nullable=True,
        comment="Portfolio this project is shown in, if any",
    )

    __table_args__ = (
        Index("idx_projects_portfolio_id", "portfolio_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Project(id={self.id}, user_id={self.user_id}, "
            f"portfolio_id={self.portfolio_id})>"
        )
