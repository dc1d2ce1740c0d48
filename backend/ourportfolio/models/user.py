"""
OurPortfolio Backend — User SQLAlchemy Model
=============================================

What:  ORM model representing the `users` table.
Why:   Portfolios and projects are owned by users; ownership checks in the
       lifecycle manager compare against these ids.
Note:  Signup, login and OAuth live outside this service. Rows are created
       by the identity service; this backend only reads them.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ourportfolio.database import Base


class User(Base):
    """A registered user who may own projects and portfolios."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        comment="Login email, unique per user",
    )

    nickname: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Display name shown on portfolios",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, nickname='{self.nickname}')>"
