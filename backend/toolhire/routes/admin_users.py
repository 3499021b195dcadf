"""
ToolHire Backend: Admin User Routes
=====================================

GET    /api/admin/users          paginated list, optional search
GET    /api/admin/users/{id}     single user
DELETE /api/admin/users/{id}     remove the account and everything it owns

The DELETE runs inside the request's session: get_db_session commits
after the whole cascade succeeded, or rolls all of it back.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from toolhire.database import get_db_session
from toolhire.routes.dependencies import require_admin
from toolhire.schemas.common import DataResponse, ErrorResponse
from toolhire.schemas.user import AccountDeletionResponse, UserListResponse, UserResponse
from toolhire.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin/users",
    tags=["Admin Users"],
    dependencies=[Depends(require_admin)],
)

_not_found = {404: {"description": "User not found", "model": ErrorResponse}}


@router.get("", response_model=DataResponse[UserListResponse])
async def list_users(
    response: Response,
    search: Optional[str] = Query(default=None, max_length=100),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[UserListResponse]:
    result = await user_service.list_users(db, limit=limit, offset=offset, search=search)
    response.headers["X-Total-Count"] = str(result.total)
    return DataResponse(data=result)


@router.get("/{user_id}", response_model=DataResponse[UserResponse], responses=_not_found)
async def get_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[UserResponse]:
    return DataResponse(data=await user_service.get_user(db, user_id))


@router.delete(
    "/{user_id}",
    response_model=DataResponse[AccountDeletionResponse],
    responses=_not_found,
    summary="Delete a user account and all dependent records",
)
async def delete_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[AccountDeletionResponse]:
    result = await user_service.delete_user_account(db, user_id)
    logger.warning("Admin deleted user account %s", user_id)
    return DataResponse(data=result, message="User account deleted")
