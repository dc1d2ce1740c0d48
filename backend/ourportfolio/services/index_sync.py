"""
OurPortfolio Backend — Tech-Stack Index Synchronizer
=====================================================

What:  Keeps the in-memory PrefixIndex consistent with the `portfolios` table
       and serves autocomplete queries from it.
Why:   The index is a cache of `portfolios.tech_stack`. It must be warm
       before the first request and must follow every committed write.
How:   - warm_up(): one blocking read of (id, tech_stack) for all portfolios,
         retried with tenacity, then PrefixIndex.rebuild()
       - portfolio_created / portfolio_updated / portfolio_deleted: called by
         PortfolioService after its commit returns
       - autocomplete(): read-only prefix query
Who:   The module-level `tech_stack_index` singleton is warmed in the app
       lifespan and shared by every request handler.

Failure Policy:
    If the database cannot be read at startup after all retry attempts,
    warm_up() raises IndexUnavailableError and the app refuses to start.
    There is no degraded mode that serves an empty or partial index.

Consistency Windows:
    Mutations run only after the database commit. If a commit succeeds but
    the process dies before the index call, nothing is lost: the index is
    rebuilt from the database on the next start.

    Concurrent writes to one portfolio are serialized by write_lock(): the
    row read, the commit and the index call of one request finish before
    the next request reads the row. Update and delete remove the keywords
    the index holds for the id, not a tech stack the caller read earlier.
"""

import asyncio
import logging
import weakref
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ourportfolio.config import settings
from ourportfolio.exceptions import IndexUnavailableError
from ourportfolio.models.portfolio import Portfolio
from ourportfolio.services.prefix_index import PrefixIndex, TechStackRecord

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


class TechStackIndexSynchronizer:
    """
    Single owner of the process-wide tech-stack PrefixIndex.

    Readiness:
        `ready` is False until the first successful warm_up(). The health
        route reports it so load balancers hold traffic until the index is warm.
    """

    def __init__(self, index: PrefixIndex):
        self.index = index
        self._ready = False
        self._write_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    @property
    def ready(self) -> bool:
        return self._ready

    # ── Startup rebuild ───────────────────────────────────────────────────

    async def warm_up(self, session_factory: SessionFactory) -> int:
        """
        Rebuild the index from every portfolio row.

        Retry policy (tenacity):
            Retries SQLAlchemy and OS-level connection errors with exponential
            backoff + jitter, up to settings.index_rebuild_max_attempts.

        Returns:
            Number of distinct keywords in the rebuilt index.

        Raises:
            IndexUnavailableError: the database could not be read.
        """
        attempts = settings.index_rebuild_max_attempts
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type((SQLAlchemyError, OSError)),
                stop=stop_after_attempt(attempts),
                wait=wait_exponential_jitter(
                    initial=settings.index_rebuild_min_wait,
                    max=settings.index_rebuild_max_wait,
                    jitter=settings.index_rebuild_jitter,
                ),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    records = await self._read_records(session_factory)
        except (SQLAlchemyError, OSError) as e:
            logger.critical(
                "Tech-stack index rebuild failed after %d attempts: %s",
                attempts,
                str(e),
            )
            raise IndexUnavailableError(
                attempts=attempts,
                context={"error_type": type(e).__name__},
            ) from e

        self.index.rebuild(records)
        self._ready = True
        logger.info(
            "Tech-stack index warm: %d portfolios, %d keywords",
            len(records),
            len(self.index),
        )
        return len(self.index)

    async def _read_records(self, session_factory: SessionFactory) -> List[TechStackRecord]:
        """SELECT id, tech_stack FROM portfolios ORDER BY id."""
        async with session_factory() as session:
            result = await session.execute(
                select(Portfolio.id, Portfolio.tech_stack).order_by(Portfolio.id)
            )
            return [TechStackRecord(row.id, row.tech_stack) for row in result.all()]

    # ── Write ordering ────────────────────────────────────────────────────

    def write_lock(self, portfolio_id: int) -> asyncio.Lock:
        """
        Lock serializing writes to one portfolio.

        Held by PortfolioService from the moment it reads the row until the
        index call after commit returns, so index mutations for a portfolio
        happen in the same order as its commits. Locks are dropped once no
        writer holds a reference.
        """
        lock = self._write_locks.get(portfolio_id)
        if lock is None:
            lock = asyncio.Lock()
            self._write_locks[portfolio_id] = lock
        return lock

    # ── Write acknowledgments (call only after commit) ────────────────────

    def portfolio_created(self, portfolio_id: int, tech_stack: Optional[str]) -> None:
        """Index the keywords of a newly committed portfolio."""
        keywords = self.index.keywords_of(tech_stack)
        self.index.assign(portfolio_id, keywords)
        logger.debug("Indexed portfolio %s: %s", portfolio_id, keywords)

    def portfolio_updated(self, portfolio_id: int, tech_stack: Optional[str]) -> None:
        """
        Re-index a portfolio after its tech stack was committed.

        Every keyword the index holds for the id is removed, then the new
        keywords are inserted. The old set comes from the index itself.
        """
        previous = self.index.keywords_for(portfolio_id)
        keywords = self.index.keywords_of(tech_stack)
        self.index.assign(portfolio_id, keywords)
        logger.debug("Re-indexed portfolio %s: %s -> %s", portfolio_id, previous, keywords)

    def portfolio_deleted(self, portfolio_id: int) -> None:
        """Remove every keyword the index holds for a deleted portfolio."""
        self.index.discard(portfolio_id)
        logger.debug("Unindexed portfolio %s", portfolio_id)

    # ── Query path ────────────────────────────────────────────────────────

    def autocomplete(self, prefix: str, limit: Optional[int] = None) -> List[str]:
        """Alphabetically ordered keywords starting with `prefix`. Read-only."""
        keywords = self.index.query_prefix(prefix)
        if limit is not None:
            keywords = keywords[:limit]
        return keywords

    def portfolio_ids(self, keyword: str) -> List[int]:
        """Ids of portfolios listing exactly `keyword`."""
        return self.index.portfolio_ids(keyword)


# ── Singleton Instance ────────────────────────────────────────────────────
tech_stack_index = TechStackIndexSynchronizer(
    PrefixIndex(lowercase=settings.keyword_lowercase)
)
