"""
OurPortfolio Backend — Portfolio Service Tests
===============================================

What:  Tests for PortfolioService against a real SQLite database.
Why:   The service is where writes and index updates meet; the ordering
       (commit first, index second) is only observable with a real session.
How:   Each test gets its own database, storage directory and index.

What we test:
    ✅ Create / update / delete keep the index equal to the table
    ✅ Ownership and existence checks (403 / 404 / 400 paths)
    ✅ Failed writes leave the index and the storage directory untouched
    ✅ Listing with keyword filter and cursor pagination
"""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from ourportfolio.exceptions import (
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from ourportfolio.models import Portfolio, Project
from ourportfolio.schemas.portfolio import PortfolioRequest
from ourportfolio.services.file_service import FileService
from ourportfolio.services.index_sync import TechStackIndexSynchronizer
from ourportfolio.services.keywords import extract_keywords
from ourportfolio.services.portfolio_service import ImageUpload, PortfolioService
from ourportfolio.services.prefix_index import PrefixIndex


def _request(tech_stack="python,fastapi", projects=(1,), title="My work"):
    return PortfolioRequest(
        title=title,
        description="Things I built",
        tech_stack=tech_stack,
        project_id_list=list(projects) if projects is not None else None,
    )


def _stored_files(root):
    return [p for p in Path(root).rglob("*") if p.is_file()]


@pytest.fixture
def service(fresh_index, temp_storage):
    return PortfolioService(index=fresh_index, files=FileService(temp_storage))


class TestCreatePortfolio:

    @pytest.mark.asyncio
    async def test_create_indexes_after_commit(self, service, db_session, seeded):
        result = await service.create_portfolio(db_session, 1, _request())

        assert result.id is not None
        assert result.keywords == ["python", "fastapi"]
        assert result.project_ids == [1]
        assert service.index.autocomplete("py") == ["python"]
        assert service.index.portfolio_ids("fastapi") == [result.id]

    @pytest.mark.asyncio
    async def test_create_attaches_projects(self, service, db_session, session_factory, seeded):
        result = await service.create_portfolio(db_session, 1, _request(projects=[1, 2, 1]))

        async with session_factory() as session:
            rows = await session.execute(
                select(Project.id).where(Project.portfolio_id == result.id)
            )
            assert sorted(rows.scalars().all()) == [1, 2]

    @pytest.mark.asyncio
    async def test_create_without_tech_stack(self, service, db_session, seeded):
        result = await service.create_portfolio(db_session, 1, _request(tech_stack="  "))

        assert result.tech_stack is None
        assert result.keywords == []
        assert len(service.index.index) == 0

    @pytest.mark.asyncio
    async def test_create_with_empty_project_list(self, service, db_session, seeded):
        result = await service.create_portfolio(db_session, 1, _request(projects=[]))
        assert result.project_ids == []

    @pytest.mark.asyncio
    async def test_create_stores_image(self, service, db_session, seeded, temp_storage, sample_image_bytes):
        image = ImageUpload("cover.jpg", sample_image_bytes, len(sample_image_bytes))

        result = await service.create_portfolio(db_session, 1, _request(), image=image)

        assert result.image_url.startswith("/api/files/")
        assert result.image_url.endswith(".jpg")
        assert len(_stored_files(temp_storage)) == 1

    @pytest.mark.asyncio
    async def test_unknown_user(self, service, db_session, seeded):
        with pytest.raises(NotFoundError, match="user"):
            await service.create_portfolio(db_session, 99, _request())
        assert len(service.index.index) == 0

    @pytest.mark.asyncio
    async def test_missing_project_list(self, service, db_session, seeded):
        with pytest.raises(ValidationError, match="project_id_list"):
            await service.create_portfolio(db_session, 1, _request(projects=None))

    @pytest.mark.asyncio
    async def test_unknown_project(self, service, db_session, seeded):
        with pytest.raises(NotFoundError, match="project"):
            await service.create_portfolio(db_session, 1, _request(projects=[42]))
        assert len(service.index.index) == 0

    @pytest.mark.asyncio
    async def test_someone_elses_project(self, service, db_session, seeded):
        with pytest.raises(ForbiddenError):
            await service.create_portfolio(db_session, 1, _request(projects=[3]))
        assert len(service.index.index) == 0

    @pytest.mark.asyncio
    async def test_rejected_image_leaves_nothing_behind(self, service, db_session, seeded, temp_storage):
        image = ImageUpload("cover.gif", b"GIF89a", 6)

        with pytest.raises(ValidationError, match="not supported"):
            await service.create_portfolio(db_session, 1, _request(), image=image)

        assert _stored_files(temp_storage) == []
        assert len(service.index.index) == 0

    @pytest.mark.asyncio
    async def test_commit_failure_does_not_index(self, fresh_index, temp_storage, mock_db_session, sample_image_bytes):
        """If the commit fails the index must not learn about the portfolio."""
        service = PortfolioService(index=fresh_index, files=FileService(temp_storage))
        owner_project = Project(id=1, user_id=1, title="p")
        mock_db_session.get = AsyncMock(side_effect=[object(), owner_project])
        mock_db_session.commit = AsyncMock(side_effect=RuntimeError("connection lost"))
        image = ImageUpload("cover.png", sample_image_bytes, len(sample_image_bytes))

        with pytest.raises(DatabaseError):
            await service.create_portfolio(mock_db_session, 1, _request(), image=image)

        assert len(fresh_index.index) == 0
        assert _stored_files(temp_storage) == []


class TestUpdatePortfolio:

    @pytest.mark.asyncio
    async def test_update_replaces_keywords(self, service, db_session, seeded):
        created = await service.create_portfolio(db_session, 1, _request(tech_stack="java,spring"))

        updated = await service.update_portfolio(
            db_session, created.id, 1, _request(tech_stack="kotlin,spring")
        )

        assert updated.keywords == ["kotlin", "spring"]
        assert service.index.autocomplete("") == ["kotlin", "spring"]
        assert service.index.autocomplete("ja") == []

    @pytest.mark.asyncio
    async def test_update_keeps_keywords_of_other_portfolios(self, service, db_session, seeded):
        first = await service.create_portfolio(db_session, 1, _request(tech_stack="java", projects=[1]))
        second = await service.create_portfolio(db_session, 1, _request(tech_stack="java", projects=[2]))

        await service.update_portfolio(db_session, first.id, 1, _request(tech_stack="go", projects=[1]))

        assert service.index.portfolio_ids("java") == [second.id]
        assert service.index.portfolio_ids("go") == [first.id]

    @pytest.mark.asyncio
    async def test_update_detaches_unlisted_projects(self, service, db_session, session_factory, seeded):
        created = await service.create_portfolio(db_session, 1, _request(projects=[1, 2]))

        updated = await service.update_portfolio(db_session, created.id, 1, _request(projects=[2]))

        assert updated.project_ids == [2]
        async with session_factory() as session:
            project = await session.get(Project, 1)
            assert project.portfolio_id is None

    @pytest.mark.asyncio
    async def test_update_replaces_image_file(self, service, db_session, seeded, temp_storage, sample_image_bytes):
        first_image = ImageUpload("a.jpg", sample_image_bytes, len(sample_image_bytes))
        second_image = ImageUpload("b.png", sample_image_bytes, len(sample_image_bytes))
        created = await service.create_portfolio(db_session, 1, _request(), image=first_image)

        updated = await service.update_portfolio(
            db_session, created.id, 1, _request(), image=second_image
        )

        files = _stored_files(temp_storage)
        assert len(files) == 1
        assert files[0].suffix == ".png"
        assert updated.image_url != created.image_url

    @pytest.mark.asyncio
    async def test_update_someone_elses_portfolio(self, service, db_session, seeded):
        created = await service.create_portfolio(db_session, 1, _request(tech_stack="java"))

        with pytest.raises(ForbiddenError):
            await service.update_portfolio(
                db_session, created.id, 2, _request(tech_stack="go", projects=[3])
            )

        assert service.index.autocomplete("") == ["java"]

    @pytest.mark.asyncio
    async def test_update_missing_portfolio(self, service, db_session, seeded):
        with pytest.raises(NotFoundError, match="portfolio"):
            await service.update_portfolio(db_session, 404, 1, _request())


class TestDeletePortfolio:

    @pytest.mark.asyncio
    async def test_delete_removes_keywords(self, service, db_session, seeded):
        created = await service.create_portfolio(db_session, 1, _request(tech_stack="python"))
        assert service.index.autocomplete("py") == ["python"]

        await service.delete_portfolio(db_session, created.id, 1)

        assert service.index.autocomplete("py") == []
        assert "python" not in service.index.index

    @pytest.mark.asyncio
    async def test_delete_keeps_shared_keywords(self, service, db_session, seeded):
        first = await service.create_portfolio(db_session, 1, _request(tech_stack="python", projects=[1]))
        second = await service.create_portfolio(db_session, 1, _request(tech_stack="python,django", projects=[2]))

        await service.delete_portfolio(db_session, second.id, 1)

        assert service.index.autocomplete("") == ["python"]
        assert service.index.portfolio_ids("python") == [first.id]

    @pytest.mark.asyncio
    async def test_delete_detaches_projects_and_removes_row(self, service, db_session, session_factory, seeded):
        created = await service.create_portfolio(db_session, 1, _request(projects=[1, 2]))

        await service.delete_portfolio(db_session, created.id, 1)

        async with session_factory() as session:
            assert await session.get(Portfolio, created.id) is None
            project_rows = await session.execute(select(Project.portfolio_id))
            assert set(project_rows.scalars().all()) == {None}

    @pytest.mark.asyncio
    async def test_delete_removes_image(self, service, db_session, seeded, temp_storage, sample_image_bytes):
        image = ImageUpload("cover.jpg", sample_image_bytes, len(sample_image_bytes))
        created = await service.create_portfolio(db_session, 1, _request(), image=image)

        await service.delete_portfolio(db_session, created.id, 1)

        assert _stored_files(temp_storage) == []

    @pytest.mark.asyncio
    async def test_delete_someone_elses_portfolio(self, service, db_session, seeded):
        created = await service.create_portfolio(db_session, 1, _request(tech_stack="python"))

        with pytest.raises(ForbiddenError):
            await service.delete_portfolio(db_session, created.id, 2)

        assert service.index.autocomplete("py") == ["python"]

    @pytest.mark.asyncio
    async def test_delete_missing_portfolio(self, service, db_session, seeded):
        with pytest.raises(NotFoundError):
            await service.delete_portfolio(db_session, 404, 1)

    @pytest.mark.asyncio
    async def test_index_matches_table_after_mixed_writes(self, service, db_session, session_factory, seeded):
        """Rebuilding from the table yields the same index the writes produced."""
        a = await service.create_portfolio(db_session, 1, _request(tech_stack="java,spring", projects=[1]))
        b = await service.create_portfolio(db_session, 1, _request(tech_stack="java,react", projects=[2]))
        c = await service.create_portfolio(db_session, 2, _request(tech_stack="go,grpc", projects=[3]))
        await service.update_portfolio(db_session, a.id, 1, _request(tech_stack="kotlin", projects=[1]))
        await service.delete_portfolio(db_session, c.id, 2)

        live = {k: service.index.portfolio_ids(k) for k in service.index.autocomplete("")}

        restarted = TechStackIndexSynchronizer(PrefixIndex())
        await restarted.warm_up(session_factory)
        rebuilt = {k: restarted.portfolio_ids(k) for k in restarted.autocomplete("")}

        assert live == rebuilt
        assert sorted(live) == ["java", "kotlin", "react"]
        assert live["java"] == [b.id]


class TestReadPortfolios:

    @pytest.mark.asyncio
    async def test_get_portfolio(self, service, db_session, seeded):
        created = await service.create_portfolio(db_session, 1, _request(projects=[1, 2]))

        fetched = await service.get_portfolio(db_session, created.id)

        assert fetched.title == "My work"
        assert fetched.project_ids == [1, 2]
        assert fetched.keywords == ["python", "fastapi"]

    @pytest.mark.asyncio
    async def test_get_missing_portfolio(self, service, db_session, seeded):
        with pytest.raises(NotFoundError):
            await service.get_portfolio(db_session, 404)

    @pytest.mark.asyncio
    async def test_list_newest_first_with_cursor(self, service, db_session, seeded):
        ids = []
        for n in range(5):
            created = await service.create_portfolio(
                db_session, 1, _request(title=f"P{n}", projects=[])
            )
            ids.append(created.id)

        first_page = await service.list_portfolios(db_session, limit=2)
        assert [p.id for p in first_page.portfolios] == [ids[4], ids[3]]
        assert first_page.has_more is True
        assert first_page.next_cursor == ids[3]

        second_page = await service.list_portfolios(db_session, limit=2, cursor=first_page.next_cursor)
        assert [p.id for p in second_page.portfolios] == [ids[2], ids[1]]

        last_page = await service.list_portfolios(db_session, limit=2, cursor=second_page.next_cursor)
        assert [p.id for p in last_page.portfolios] == [ids[0]]
        assert last_page.has_more is False
        assert last_page.next_cursor is None

    @pytest.mark.asyncio
    async def test_list_filtered_by_keyword(self, service, db_session, seeded):
        java = await service.create_portfolio(db_session, 1, _request(tech_stack="java,spring", projects=[1]))
        await service.create_portfolio(db_session, 1, _request(tech_stack="python", projects=[2]))

        result = await service.list_portfolios(db_session, keyword="java")

        assert [p.id for p in result.portfolios] == [java.id]
        assert result.portfolios[0].project_ids == [1]

    @pytest.mark.asyncio
    async def test_list_filter_is_exact_keyword(self, service, db_session, seeded):
        await service.create_portfolio(db_session, 1, _request(tech_stack="javascript", projects=[]))

        result = await service.list_portfolios(db_session, keyword="java")

        assert result.portfolios == []
        assert result.has_more is False

    @pytest.mark.asyncio
    async def test_list_empty(self, service, db_session, seeded):
        result = await service.list_portfolios(db_session)
        assert result.portfolios == []
        assert result.next_cursor is None


class TestConcurrentWrites:
    """Overlapping writes to one portfolio, each on its own session."""

    async def _create(self, service, session_factory, tech_stack):
        async with session_factory() as db:
            created = await service.create_portfolio(
                db, 1, _request(tech_stack=tech_stack, projects=[])
            )
        return created.id

    async def _update(self, service, session_factory, portfolio_id, tech_stack):
        async with session_factory() as db:
            return await service.update_portfolio(
                db, portfolio_id, 1, _request(tech_stack=tech_stack, projects=[])
            )

    async def _delete(self, service, session_factory, portfolio_id):
        async with session_factory() as db:
            await service.delete_portfolio(db, portfolio_id, 1)

    async def _committed_keywords(self, session_factory, portfolio_id):
        async with session_factory() as db:
            row = await db.get(Portfolio, portfolio_id)
        return None if row is None else extract_keywords(row.tech_stack)

    @pytest.mark.asyncio
    async def test_overlapping_updates_index_the_committed_stack(self, service, session_factory, seeded):
        portfolio_id = await self._create(service, session_factory, "java")

        await asyncio.gather(
            self._update(service, session_factory, portfolio_id, "kotlin"),
            self._update(service, session_factory, portfolio_id, "scala"),
        )

        committed = await self._committed_keywords(session_factory, portfolio_id)
        assert committed in (["kotlin"], ["scala"])
        assert service.index.autocomplete("") == committed
        assert service.index.index.keywords_for(portfolio_id) == committed

    @pytest.mark.asyncio
    async def test_many_overlapping_updates(self, service, session_factory, seeded):
        portfolio_id = await self._create(service, session_factory, "java")
        stacks = ["go,grpc", "rust", "python,django", "elixir,phoenix", "ruby"]

        await asyncio.gather(*(
            self._update(service, session_factory, portfolio_id, stack) for stack in stacks
        ))

        committed = await self._committed_keywords(session_factory, portfolio_id)
        assert sorted(service.index.autocomplete("")) == sorted(committed)

    @pytest.mark.asyncio
    async def test_update_racing_delete_leaves_no_stale_keywords(self, service, session_factory, seeded):
        portfolio_id = await self._create(service, session_factory, "java")

        results = await asyncio.gather(
            self._update(service, session_factory, portfolio_id, "kotlin"),
            self._delete(service, session_factory, portfolio_id),
            return_exceptions=True,
        )

        # Deleted first: the update finds no row
        for result in results:
            if isinstance(result, Exception):
                assert isinstance(result, NotFoundError)
        assert await self._committed_keywords(session_factory, portfolio_id) is None
        assert service.index.autocomplete("") == []
        assert service.index.index.keywords_for(portfolio_id) == []
