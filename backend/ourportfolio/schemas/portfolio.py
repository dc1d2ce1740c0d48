"""
OurPortfolio Backend — Portfolio Request/Response Schemas
==========================================================

What:  Pydantic models defining the portfolio API contract.
Why:   Strict input validation, automatic serialization, and OpenAPI docs.

Design Decision:
    Create/update arrive as multipart forms (the cover image rides along),
    so routes assemble a PortfolioRequest from the form fields and hand it
    to the service. The service never sees FastAPI types.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ourportfolio.config import settings
from ourportfolio.services.keywords import extract_keywords


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class PortfolioRequest(BaseModel):
    """
    Fields shared by create and update.

    tech_stack:
        Comma-separated keywords, e.g. "python,fastapi,postgresql".
        None (or blank) means "no tech stack" and contributes no keywords.
    project_id_list:
        Projects to show in the portfolio. Required (may be empty); every id
        must belong to the caller.
    """
    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=5000)
    tech_stack: Optional[str] = Field(default=None, max_length=1000)
    project_id_list: Optional[List[int]] = Field(default=None)

    @field_validator("tech_stack")
    @classmethod
    def blank_tech_stack_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class PortfolioResponse(BaseModel):
    """Full representation of a portfolio."""
    id: int = Field(description="Portfolio identifier")
    user_id: int = Field(description="Owner")
    title: str
    description: Optional[str] = None
    tech_stack: Optional[str] = Field(default=None, description="Raw comma-separated tech stack")
    keywords: List[str] = Field(default_factory=list, description="Tech stack split into keywords")
    image_url: Optional[str] = Field(default=None, description="URL path of the cover image")
    project_ids: List[int] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_portfolio(cls, portfolio, project_ids: List[int]) -> "PortfolioResponse":
        return cls(
            id=portfolio.id,
            user_id=portfolio.user_id,
            title=portfolio.title,
            description=portfolio.description,
            tech_stack=portfolio.tech_stack,
            keywords=extract_keywords(portfolio.tech_stack, lowercase=settings.keyword_lowercase),
            image_url=f"/api/files/{portfolio.image_path}" if portfolio.image_path else None,
            project_ids=sorted(project_ids),
            created_at=portfolio.created_at,
            updated_at=portfolio.updated_at,
        )


class PortfolioListResponse(BaseModel):
    """
    Paginated portfolio list, newest first.

    next_cursor is the id of the last item; pass it back as `cursor` to get
    the following page.
    """
    portfolios: List[PortfolioResponse]
    next_cursor: Optional[int] = None
    has_more: bool
