# Services package init
"""
OurPortfolio Backend — Services Layer
======================================

What:  Business logic layer sitting between routes (HTTP) and database (persistence).

Service Inventory:
    - keywords:          Tech-stack string → keyword list (pure function)
    - PrefixIndex:       In-memory keyword → portfolio-id index with prefix queries
    - TechStackIndexSynchronizer: Startup rebuild, post-commit sync, autocomplete
    - PortfolioService:  Portfolio create/read/update/delete (drives the synchronizer)
    - UserService:       User profile lookups
    - FileService:       Portfolio image validation, storage, and cleanup
"""
