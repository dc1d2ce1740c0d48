"""User response schema."""

from datetime import datetime

from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    """Public profile of a user, returned by GET /api/users/{id}."""
    id: int
    email: str
    nickname: str
    created_at: datetime
    portfolio_count: int = Field(description="Number of portfolios the user owns")
