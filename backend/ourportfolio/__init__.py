"""
OurPortfolio Backend — Application Package Initializer
======================================================

What: Marks the `ourportfolio` directory as a Python package.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Portfolio lifecycle, index sync
    ├─────────────────────────────────────┤
    │   In-memory Tech-Stack Index        │  ← Derived from the DB, never authoritative
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    The index sits beside the service layer: portfolio writes go to the
    database first and are mirrored into the index only after commit.
"""

__version__ = "1.0.0"
