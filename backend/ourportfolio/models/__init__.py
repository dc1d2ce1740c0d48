# Models package init
# Importing every model registers its table on Base.metadata (Alembic, tests).
from ourportfolio.models.user import User
from ourportfolio.models.project import Project
from ourportfolio.models.portfolio import Portfolio

__all__ = ["User", "Project", "Portfolio"]
