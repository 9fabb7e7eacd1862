"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_ledger.config import get_settings
from attendance_ledger.database import init_db
from attendance_ledger.services.blob_store import BlobStore, PublicUrlBlobStore
from attendance_ledger.services.identity import RoleProvider, StaticRoleProvider


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency. Routes commit explicitly."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_actor_id(
    x_user_id: Annotated[str | None, Header()] = None
) -> UUID:
    """Extract the acting user's ID from header."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-ID header is required",
        )
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-ID format",
        )


def get_role_provider() -> RoleProvider:
    return StaticRoleProvider.from_settings(get_settings())


def get_blob_store() -> BlobStore:
    return PublicUrlBlobStore(get_settings().blob_public_base_url)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
ActorId = Annotated[UUID, Depends(get_actor_id)]
Roles = Annotated[RoleProvider, Depends(get_role_provider)]
Blobs = Annotated[BlobStore, Depends(get_blob_store)]
