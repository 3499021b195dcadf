"""Admin-facing user schemas, including the account-deletion report."""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    display_name: Optional[str] = None
    is_admin: bool
    is_active: bool
    is_suspended: bool
    last_login_at: Optional[datetime] = None
    rating_as_owner: float
    rating_as_renter: float
    completed_rentals: int
    cancelled_rentals: int
    created_at: datetime

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    items: List[UserResponse]
    total: int
    limit: int
    offset: int


class AccountDeletionResponse(BaseModel):
    user_id: uuid.UUID
    deleted: Dict[str, int] = Field(
        description="Rows removed per table, in the order they were deleted"
    )
    moderated_disputes_detached: int = Field(
        default=0, description="Disputes kept with their moderator cleared"
    )
