"""
OurPortfolio Backend — Portfolio Route Handlers
================================================

What:  Portfolio CRUD, tech-stack autocomplete, and cover image serving.
How:   Extracts request data, delegates to PortfolioService or the index
       synchronizer, returns JSON.

Autocomplete:
    GET /api/portfolios/autocomplete?keyword=ja → ["java", "javascript"]
    Served entirely from memory; no database session is opened.
    Declared before /portfolios/{portfolio_id} so the literal path wins.

Writes:
    Multipart forms (the cover image rides along). Repeat `project_id_list`
    once per project id. The caller is identified by X-User-ID.
"""

import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ourportfolio.config import settings
from ourportfolio.database import get_db_session
from ourportfolio.exceptions import NotFoundError
from ourportfolio.routes.deps import get_current_user_id
from ourportfolio.schemas.common import ErrorResponse, MessageResponse
from ourportfolio.schemas.portfolio import (
    PortfolioListResponse,
    PortfolioRequest,
    PortfolioResponse,
)
from ourportfolio.services.file_service import MEDIA_TYPES, file_service
from ourportfolio.services.index_sync import tech_stack_index
from ourportfolio.services.portfolio_service import ImageUpload, portfolio_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Portfolios"])

WRITE_RESPONSES = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    401: {"description": "Missing X-User-ID", "model": ErrorResponse},
    403: {"description": "Not the owner", "model": ErrorResponse},
    404: {"description": "User, portfolio, or project not found", "model": ErrorResponse},
}


async def _read_image(image: Optional[UploadFile]) -> Optional[ImageUpload]:
    """Browsers send an empty part with no filename when no file was chosen."""
    if image is None or not image.filename:
        return None
    try:
        content = await image.read()
        return ImageUpload(filename=image.filename, content=content, content_length=image.size)
    finally:
        await image.close()


@router.get(
    "/portfolios/autocomplete",
    response_model=List[str],
    summary="Autocomplete tech-stack keywords",
    description=(
        "Returns the indexed tech-stack keywords starting with `keyword`, "
        "in alphabetical order. An empty keyword returns every keyword."
    ),
)
async def autocomplete(
    keyword: str = Query(default="", max_length=100, description="Prefix typed so far"),
    limit: Optional[int] = Query(
        default=None,
        ge=1,
        le=settings.autocomplete_max_results,
        description="Return at most this many keywords",
    ),
) -> List[str]:
    return tech_stack_index.autocomplete(keyword, limit=limit)


@router.get(
    "/portfolios",
    response_model=PortfolioListResponse,
    summary="List portfolios, newest first",
)
async def list_portfolios(
    keyword: Optional[str] = Query(
        default=None,
        max_length=100,
        description="Only portfolios whose tech stack contains exactly this keyword",
    ),
    limit: int = Query(default=20, ge=1, le=100),
    cursor: Optional[int] = Query(
        default=None,
        description="next_cursor from the previous page; omit for the first page",
    ),
    db: AsyncSession = Depends(get_db_session),
) -> PortfolioListResponse:
    return await portfolio_service.list_portfolios(
        db=db, keyword=keyword, limit=limit, cursor=cursor
    )


@router.get(
    "/portfolios/{portfolio_id}",
    response_model=PortfolioResponse,
    responses={404: {"description": "Portfolio not found", "model": ErrorResponse}},
    summary="Get a single portfolio",
)
async def get_portfolio(
    portfolio_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> PortfolioResponse:
    return await portfolio_service.get_portfolio(db=db, portfolio_id=portfolio_id)


@router.post(
    "/portfolios",
    status_code=201,
    response_model=PortfolioResponse,
    responses=WRITE_RESPONSES,
    summary="Create a portfolio",
)
async def create_portfolio(
    title: str = Form(..., max_length=100),
    description: Optional[str] = Form(default=None),
    tech_stack: Optional[str] = Form(default=None, description="Comma-separated, e.g. python,fastapi"),
    project_id_list: Optional[List[int]] = Form(default=None),
    image: Optional[UploadFile] = File(default=None),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> PortfolioResponse:
    request = PortfolioRequest(
        title=title,
        description=description,
        tech_stack=tech_stack,
        project_id_list=project_id_list,
    )
    upload = await _read_image(image)
    return await portfolio_service.create_portfolio(
        db=db, user_id=user_id, request=request, image=upload
    )


@router.put(
    "/portfolios/{portfolio_id}",
    response_model=PortfolioResponse,
    responses=WRITE_RESPONSES,
    summary="Update a portfolio",
)
async def update_portfolio(
    portfolio_id: int,
    title: str = Form(..., max_length=100),
    description: Optional[str] = Form(default=None),
    tech_stack: Optional[str] = Form(default=None),
    project_id_list: Optional[List[int]] = Form(default=None),
    image: Optional[UploadFile] = File(default=None),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> PortfolioResponse:
    request = PortfolioRequest(
        title=title,
        description=description,
        tech_stack=tech_stack,
        project_id_list=project_id_list,
    )
    upload = await _read_image(image)
    return await portfolio_service.update_portfolio(
        db=db, portfolio_id=portfolio_id, user_id=user_id, request=request, image=upload
    )


@router.delete(
    "/portfolios/{portfolio_id}",
    response_model=MessageResponse,
    responses=WRITE_RESPONSES,
    summary="Delete a portfolio",
)
async def delete_portfolio(
    portfolio_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await portfolio_service.delete_portfolio(db=db, portfolio_id=portfolio_id, user_id=user_id)
    return MessageResponse(message="Portfolio deleted")


@router.get(
    "/files/{file_path:path}",
    summary="Serve portfolio cover images",
    responses={
        200: {"description": "Image file"},
        400: {"description": "Path outside storage", "model": ErrorResponse},
        404: {"description": "File not found", "model": ErrorResponse},
    },
)
async def serve_file(file_path: str) -> FileResponse:
    full_path = file_service.resolve(file_path)
    if not full_path.is_file():
        raise NotFoundError(resource="file", resource_id=file_path)

    return FileResponse(
        path=str(full_path),
        media_type=MEDIA_TYPES.get(Path(full_path).suffix.lower(), "application/octet-stream"),
        headers={"Cache-Control": "public, max-age=86400"},
    )
