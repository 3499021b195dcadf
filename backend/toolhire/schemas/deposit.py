"""Schemas for deposit capture jobs and their scheduled runs."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class DepositJobResponse(BaseModel):
    id: uuid.UUID
    booking_id: uuid.UUID
    scheduled_at: datetime
    notification_sent_at: Optional[datetime] = None
    capture_attempted_at: Optional[datetime] = None
    status: str
    retry_count: int
    last_error: Optional[str] = None
    metadata: Optional[dict] = Field(default=None, validation_alias="job_metadata")
    created_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}


class ReminderRunSummary(BaseModel):
    reminded: int = 0
    cancelled: int = 0


class CaptureRunSummary(BaseModel):
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: int = 0


class DepositRunResponse(BaseModel):
    reminders: ReminderRunSummary
    captures: CaptureRunSummary


class CleanupSummary(BaseModel):
    deleted: int
