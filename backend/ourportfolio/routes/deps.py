"""
Request-scoped dependencies shared by route modules.

Caller identity:
    Authentication happens upstream (gateway / identity service), which
    forwards the authenticated user's id in the X-User-ID header. Write
    endpoints require it; read endpoints ignore it.
"""

from typing import Optional

from fastapi import Header

from ourportfolio.exceptions import UnauthorizedError


async def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-ID"),
) -> int:
    if not x_user_id:
        raise UnauthorizedError()
    try:
        return int(x_user_id)
    except ValueError:
        raise UnauthorizedError(
            message="X-User-ID header must be an integer user id",
            context={"x_user_id": x_user_id},
        )
