"""
API Dependencies

Common dependencies for API endpoints including authentication, database
access and the acting user.
"""

from typing import Annotated
from fastapi import Depends, HTTPException, Header, status

from ..config import settings
from ..core.database import Database, get_db
from ..core.models import Actor
from ..scheduler import Scheduler


async def get_database() -> Database:
    """Dependency to get database instance"""
    return await get_db()


DatabaseDep = Annotated[Database, Depends(get_database)]


async def get_scheduler(db: DatabaseDep) -> Scheduler:
    """Dependency to get a scheduler bound to the database"""
    return Scheduler(db)


SchedulerDep = Annotated[Scheduler, Depends(get_scheduler)]


async def verify_api_key(x_api_key: str = Header(None)) -> str:
    """Verify API key for protected endpoints"""
    if not settings.api_key:
        # No API key configured, allow all requests
        return ""

    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required. Provide X-API-Key header."
        )

    if x_api_key != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key"
        )

    return x_api_key


APIKeyDep = Annotated[str, Depends(verify_api_key)]


async def get_actor(db: DatabaseDep, x_user_id: int = Header(None)) -> Actor:
    """Resolve the acting user from the X-User-Id header set by the auth proxy"""
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User required. Provide X-User-Id header."
        )

    user = await db.get_user(x_user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown user {x_user_id}"
        )

    return Actor(
        user_id=user["userid"],
        team_id=user["team"],
        role_rank=user["usergroup"]
    )


ActorDep = Annotated[Actor, Depends(get_actor)]
