"""User lookups. Users are created by the identity service; this backend only reads them."""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ourportfolio.exceptions import DatabaseError, NotFoundError
from ourportfolio.models.portfolio import Portfolio
from ourportfolio.models.user import User
from ourportfolio.schemas.user import UserResponse

logger = logging.getLogger(__name__)


class UserService:

    async def get_user(self, db: AsyncSession, user_id: int) -> UserResponse:
        """
        Fetch a user's public profile with their portfolio count.

        Raises:
            NotFoundError: no such user (→ 404)
            DatabaseError: query failed (→ 500)
        """
        try:
            user = await db.get(User, user_id)
            if user is None:
                raise NotFoundError(resource="user", resource_id=str(user_id))

            count_result = await db.execute(
                select(func.count(Portfolio.id)).where(Portfolio.user_id == user_id)
            )
            portfolio_count = count_result.scalar() or 0

        except NotFoundError:
            raise
        except Exception as e:
            logger.error("Database error fetching user %s: %s", user_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the user. Please try again.",
                context={"user_id": user_id},
            ) from e

        return UserResponse(
            id=user.id,
            email=user.email,
            nickname=user.nickname,
            created_at=user.created_at,
            portfolio_count=portfolio_count,
        )


user_service = UserService()
