"""
OurPortfolio Backend — Portfolio SQLAlchemy Model
==================================================

What:  ORM model representing the `portfolios` table.
Why:   The system of record for portfolios. Its `tech_stack` column is the
       only input to the in-memory tech-stack index.
Who:   Written by PortfolioService; read in bulk by the index at startup.

Table Design:
    - Integer primary key: immutable once assigned; it is the value stored
      in the index under every keyword the portfolio lists.
    - tech_stack: free text, comma-separated ("python,fastapi,postgresql").
      Nullable: a portfolio without a tech stack contributes no keywords.
    - image_path: relative path from the storage root to the cover image.
    - user_id index: "portfolios of user X" is the common ownership query.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from ourportfolio.database import Base


class Portfolio(Base):
    """
    A user's portfolio.

    Lifecycle:
        1. Created by POST /api/portfolios; indexed after commit
        2. Updated by PUT; old keywords removed, new keywords inserted after commit
        3. Deleted by DELETE; keywords removed right after the delete commits
    """

    __tablename__ = "portfolios"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="Owner of the portfolio",
    )

    title: Mapped[str] = mapped_column(String(100), nullable=False)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    tech_stack: Mapped[Optional[str]] = mapped_column(
        String(1000),
        nullable=True,
        comment="Comma-separated tech keywords; source of the autocomplete index",
    )

    image_path: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Relative path from storage root to the cover image",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_portfolios_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Portfolio(id={self.id}, user_id={self.user_id}, title='{self.title}')>"
