"""
User Activity Routes
====================
Read access to the activity log written by trial operations.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional

from trialbyte.database.repositories import ActivityLogRepository
from trialbyte.therapeutics.errors import translate_errors

from app.models.schemas import ActivityListResponse
from app.services.database import get_activity_repository

router = APIRouter()


@router.get("", response_model=ActivityListResponse)
def list_activity(
    limit: int = Query(100, ge=1, le=1000),
    table_name: Optional[str] = None,
    user_id: Optional[str] = None,
    repo: ActivityLogRepository = Depends(get_activity_repository),
):
    """Most recent activity entries, optionally filtered."""
    with translate_errors("Failed to fetch user activity"):
        activities = repo.get_recent(limit=limit, table_name=table_name, user_id=user_id)
    return ActivityListResponse(
        message="User activity retrieved successfully",
        total=len(activities),
        activities=activities,
    )


@router.get("/{table_name}/{record_id}", response_model=ActivityListResponse)
def get_record_activity(
    table_name: str,
    record_id: str,
    repo: ActivityLogRepository = Depends(get_activity_repository),
):
    """Activity history of one record."""
    with translate_errors("Failed to fetch user activity"):
        activities = repo.get_by_record(table_name, record_id)
    return ActivityListResponse(
        message="User activity retrieved successfully",
        total=len(activities),
        activities=activities,
    )
