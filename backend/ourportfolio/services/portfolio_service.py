"""
OurPortfolio Backend — Portfolio Service (Lifecycle Manager)
=============================================================

What:  Create / read / update / delete portfolios and keep the tech-stack
       index in step with every committed write.
Why:   The index is derived from `portfolios.tech_stack`; the only safe
       place to mirror a write into it is right after that write commits.
How:   Each mutating method validates ownership, writes through the session,
       commits, and only then calls the index synchronizer.
Who:   Called by the portfolio route handlers.

Write Flow (create):
    ┌──────────┐   ┌──────────────┐   ┌────────────┐   ┌──────────┐   ┌────────────┐
    │  User    │──▶│  Projects    │──▶│  Image     │──▶│  INSERT  │──▶│  Index     │
    │  exists? │   │  owned?      │   │  stored    │   │  COMMIT  │   │  keywords  │
    └──────────┘   └──────────────┘   └────────────┘   └──────────┘   └────────────┘

    Failure before COMMIT: stored image removed, index untouched.
    Index calls never fail, so nothing after COMMIT can undo the write.

Update:  every keyword the index holds for the portfolio is removed and the
         new ones inserted, so a changed tech stack leaves no stale entries.
Delete:  the portfolio's keywords are removed as soon as the delete commits.

Ordering:
    Writes to one portfolio run under its write lock (from the
    synchronizer) from the row read until the index call returns, so the
    index sees overlapping writes in the order they committed.
"""

import logging
from typing import Dict, List, NamedTuple, Optional

from sqlalchemy import desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ourportfolio.exceptions import (
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    OurPortfolioError,
    ValidationError,
)
from ourportfolio.models.portfolio import Portfolio
from ourportfolio.models.project import Project
from ourportfolio.models.user import User
from ourportfolio.schemas.portfolio import (
    PortfolioListResponse,
    PortfolioRequest,
    PortfolioResponse,
)
from ourportfolio.services.file_service import FileService, file_service
from ourportfolio.services.index_sync import TechStackIndexSynchronizer, tech_stack_index

logger = logging.getLogger(__name__)


class ImageUpload(NamedTuple):
    """An uploaded cover image, already read into memory by the route."""

    filename: str
    content: bytes
    content_length: Optional[int] = None


class PortfolioService:
    """
    Business logic for portfolio operations.

    Args:
        index: Synchronizer to notify after commits (defaults to the app singleton)
        files: Image storage (defaults to the app singleton)
    """

    def __init__(
        self,
        index: Optional[TechStackIndexSynchronizer] = None,
        files: Optional[FileService] = None,
    ):
        self.index = index or tech_stack_index
        self.files = files or file_service

    # ── Create ────────────────────────────────────────────────────────────

    async def create_portfolio(
        self,
        db: AsyncSession,
        user_id: int,
        request: PortfolioRequest,
        image: Optional[ImageUpload] = None,
    ) -> PortfolioResponse:
        """
        Create a portfolio owned by `user_id`.

        Raises:
            NotFoundError: user or a listed project does not exist
            ValidationError: project_id_list missing, or image rejected
            ForbiddenError: a listed project belongs to another user
            FileStorageError: image could not be written
            DatabaseError: unexpected persistence failure
        """
        absolute_path: Optional[str] = None

        try:
            await self._require_user(db, user_id)
            projects = await self._owned_projects(db, user_id, request.project_id_list)

            image_path: Optional[str] = None
            if image is not None:
                absolute_path, image_path = await self.files.validate_and_store(
                    filename=image.filename,
                    content=image.content,
                    content_length=image.content_length,
                )

            portfolio = Portfolio(
                user_id=user_id,
                title=request.title,
                description=request.description,
                tech_stack=request.tech_stack,
                image_path=image_path,
            )
            db.add(portfolio)
            await db.flush()  # assigns portfolio.id

            for project in projects:
                project.portfolio_id = portfolio.id

            # Visible to other writers once committed; hold the lock until indexed
            async with self.index.write_lock(portfolio.id):
                await db.commit()
                self.index.portfolio_created(portfolio.id, portfolio.tech_stack)

        except Exception as e:
            if absolute_path:
                await self.files.cleanup_file(absolute_path)
            if isinstance(e, OurPortfolioError):
                raise
            logger.error("Unexpected error creating portfolio: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the portfolio. Please try again.",
                context={"user_id": user_id, "error_type": type(e).__name__},
            ) from e

        logger.info("Portfolio %s created by user %s", portfolio.id, user_id)

        return PortfolioResponse.from_portfolio(portfolio, [p.id for p in projects])

    # ── Update ────────────────────────────────────────────────────────────

    async def update_portfolio(
        self,
        db: AsyncSession,
        portfolio_id: int,
        user_id: int,
        request: PortfolioRequest,
        image: Optional[ImageUpload] = None,
    ) -> PortfolioResponse:
        """
        Replace a portfolio's fields and project set.

        The project set becomes exactly `request.project_id_list`: projects
        no longer listed are detached. A new image replaces the old one,
        whose file is removed after the commit.

        Concurrency:
            The portfolio's write lock is held from the row read until the
            index has been updated, so overlapping writes to one portfolio
            reach the index in commit order.
        """
        absolute_path: Optional[str] = None
        replaced_image: Optional[str] = None

        try:
            async with self.index.write_lock(portfolio_id):
                await self._require_user(db, user_id)
                portfolio = await self._get_owned_portfolio(db, portfolio_id, user_id)
                projects = await self._owned_projects(db, user_id, request.project_id_list)

                new_image_path: Optional[str] = None
                if image is not None:
                    absolute_path, new_image_path = await self.files.validate_and_store(
                        filename=image.filename,
                        content=image.content,
                        content_length=image.content_length,
                    )

                wanted = {project.id for project in projects}
                result = await db.execute(
                    select(Project).where(Project.portfolio_id == portfolio.id)
                )
                for attached in result.scalars().all():
                    if attached.id not in wanted:
                        attached.portfolio_id = None
                for project in projects:
                    project.portfolio_id = portfolio.id

                portfolio.title = request.title
                portfolio.description = request.description
                portfolio.tech_stack = request.tech_stack
                if new_image_path is not None:
                    replaced_image = portfolio.image_path
                    portfolio.image_path = new_image_path

                await db.commit()
                self.index.portfolio_updated(portfolio.id, portfolio.tech_stack)

        except Exception as e:
            if absolute_path:
                await self.files.cleanup_file(absolute_path)
            if isinstance(e, OurPortfolioError):
                raise
            logger.error(
                "Unexpected error updating portfolio %s: %s", portfolio_id, str(e), exc_info=True
            )
            raise DatabaseError(
                message="Could not update the portfolio. Please try again.",
                context={"portfolio_id": portfolio_id, "error_type": type(e).__name__},
            ) from e

        if replaced_image:
            await self._remove_stored_image(replaced_image)
        logger.info("Portfolio %s updated by user %s", portfolio.id, user_id)

        return PortfolioResponse.from_portfolio(portfolio, sorted(wanted))

    # ── Delete ────────────────────────────────────────────────────────────

    async def delete_portfolio(
        self,
        db: AsyncSession,
        portfolio_id: int,
        user_id: int,
    ) -> None:
        """
        Delete a portfolio and drop its keywords from the index.

        Its projects are detached, not deleted. Runs under the portfolio's
        write lock, like update.
        """
        try:
            async with self.index.write_lock(portfolio_id):
                await self._require_user(db, user_id)
                portfolio = await self._get_owned_portfolio(db, portfolio_id, user_id)
                image_path = portfolio.image_path

                await db.execute(
                    update(Project)
                    .where(Project.portfolio_id == portfolio.id)
                    .values(portfolio_id=None)
                )
                await db.delete(portfolio)
                await db.commit()
                self.index.portfolio_deleted(portfolio_id)

        except OurPortfolioError:
            raise
        except Exception as e:
            logger.error(
                "Unexpected error deleting portfolio %s: %s", portfolio_id, str(e), exc_info=True
            )
            raise DatabaseError(
                message="Could not delete the portfolio. Please try again.",
                context={"portfolio_id": portfolio_id, "error_type": type(e).__name__},
            ) from e

        if image_path:
            await self._remove_stored_image(image_path)
        logger.info("Portfolio %s deleted by user %s", portfolio_id, user_id)

    # ── Read ──────────────────────────────────────────────────────────────

    async def get_portfolio(self, db: AsyncSession, portfolio_id: int) -> PortfolioResponse:
        """
        Retrieve a single portfolio by id.

        Raises:
            NotFoundError: no such portfolio (→ 404)
            DatabaseError: query failed (→ 500)
        """
        try:
            portfolio = await db.get(Portfolio, portfolio_id)
            if portfolio is None:
                raise NotFoundError(resource="portfolio", resource_id=str(portfolio_id))

            result = await db.execute(
                select(Project.id).where(Project.portfolio_id == portfolio_id)
            )
            project_ids = list(result.scalars().all())

        except NotFoundError:
            raise
        except Exception as e:
            logger.error("Database error fetching portfolio %s: %s", portfolio_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the portfolio. Please try again.",
                context={"portfolio_id": portfolio_id},
            ) from e

        return PortfolioResponse.from_portfolio(portfolio, project_ids)

    async def list_portfolios(
        self,
        db: AsyncSession,
        keyword: Optional[str] = None,
        limit: int = 20,
        cursor: Optional[int] = None,
    ) -> PortfolioListResponse:
        """
        List portfolios newest-first with id-cursor pagination.

        Keyword filter:
            Candidate ids come from the in-memory index (exact keyword match),
            so filtering never scans `tech_stack` with LIKE.

        Pagination:
            cursor is the id of the last item of the previous page;
            WHERE id < :cursor ORDER BY id DESC LIMIT :limit + 1
        """
        query = select(Portfolio)

        if keyword is not None and keyword.strip():
            candidate_ids = self.index.portfolio_ids(keyword.strip())
            if not candidate_ids:
                return PortfolioListResponse(portfolios=[], next_cursor=None, has_more=False)
            query = query.where(Portfolio.id.in_(candidate_ids))

        if cursor is not None:
            query = query.where(Portfolio.id < cursor)

        # One extra row tells us whether another page exists
        query = query.order_by(desc(Portfolio.id)).limit(limit + 1)

        try:
            result = await db.execute(query)
            portfolios = list(result.scalars().all())

            has_more = len(portfolios) > limit
            if has_more:
                portfolios = portfolios[:limit]

            project_map: Dict[int, List[int]] = {p.id: [] for p in portfolios}
            if portfolios:
                project_rows = await db.execute(
                    select(Project.id, Project.portfolio_id).where(
                        Project.portfolio_id.in_(list(project_map))
                    )
                )
                for project_id, owner_id in project_rows.all():
                    project_map[owner_id].append(project_id)

        except Exception as e:
            logger.error("Database error listing portfolios: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve portfolios. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        return PortfolioListResponse(
            portfolios=[
                PortfolioResponse.from_portfolio(p, project_map[p.id]) for p in portfolios
            ],
            next_cursor=portfolios[-1].id if has_more and portfolios else None,
            has_more=has_more,
        )

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _require_user(self, db: AsyncSession, user_id: int) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return user

    async def _get_owned_portfolio(
        self, db: AsyncSession, portfolio_id: int, user_id: int
    ) -> Portfolio:
        # FOR UPDATE on PostgreSQL; populate_existing refreshes an already-loaded row
        result = await db.execute(
            select(Portfolio)
            .where(Portfolio.id == portfolio_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        portfolio = result.scalar_one_or_none()
        if portfolio is None:
            raise NotFoundError(resource="portfolio", resource_id=str(portfolio_id))
        if portfolio.user_id != user_id:
            raise ForbiddenError(resource="portfolio", resource_id=str(portfolio_id))
        return portfolio

    async def _owned_projects(
        self,
        db: AsyncSession,
        user_id: int,
        project_ids: Optional[List[int]],
    ) -> List[Project]:
        """Load the listed projects, checking existence and ownership."""
        if project_ids is None:
            raise ValidationError(
                message="project_id_list is required (it may be empty).",
                field="project_id_list",
            )

        projects: List[Project] = []
        for project_id in dict.fromkeys(project_ids):
            project = await db.get(Project, project_id)
            if project is None:
                raise NotFoundError(resource="project", resource_id=str(project_id))
            if project.user_id != user_id:
                raise ForbiddenError(resource="project", resource_id=str(project_id))
            projects.append(project)
        return projects

    async def _remove_stored_image(self, relative_path: str) -> None:
        try:
            path = self.files.resolve(relative_path)
        except ValidationError:
            logger.warning("Refusing to remove image outside storage root: %s", relative_path)
            return
        await self.files.cleanup_file(str(path))


# ── Singleton Instance ────────────────────────────────────────────────────
portfolio_service = PortfolioService()
