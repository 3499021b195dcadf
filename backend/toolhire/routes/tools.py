"""
ToolHire Backend: Tool Catalogue Routes
=========================================

GET /api/tools           published tools, newest first
GET /api/tools/{id}      single tool

Both accept `?currency=SAR` to add display prices in that currency.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from toolhire.database import get_db_session
from toolhire.schemas.common import DataResponse, ErrorResponse
from toolhire.schemas.tool import ToolListResponse, ToolResponse
from toolhire.services.tool_service import tool_service

router = APIRouter(prefix="/api/tools", tags=["Tools"])


@router.get("", response_model=DataResponse[ToolListResponse], summary="Browse the catalogue")
async def list_tools(
    response: Response,
    currency: Optional[str] = Query(default=None, min_length=3, max_length=3),
    search: Optional[str] = Query(default=None, max_length=100),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[ToolListResponse]:
    result = await tool_service.list_tools(
        db, currency=currency, limit=limit, offset=offset, search=search
    )
    response.headers["X-Total-Count"] = str(result.total)
    return DataResponse(data=result)


@router.get(
    "/{tool_id}",
    response_model=DataResponse[ToolResponse],
    responses={404: {"description": "Tool not found", "model": ErrorResponse}},
    summary="Get a single tool",
)
async def get_tool(
    tool_id: UUID,
    currency: Optional[str] = Query(default=None, min_length=3, max_length=3),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[ToolResponse]:
    return DataResponse(data=await tool_service.get_tool(db, tool_id, currency=currency))
