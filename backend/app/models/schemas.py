"""
Pydantic Models/Schemas for API
===============================
Request and response models for the TrialByte API.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from enum import Enum

from trialbyte.therapeutics.search import SearchCriterion


# =============================================================================
# ENUMS
# =============================================================================

class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


# =============================================================================
# SEARCH
# =============================================================================

class SearchRequest(BaseModel):
    criteria: List[SearchCriterion] = Field(default_factory=list)
    sort_field: Optional[str] = None
    sort_direction: SortDirection = SortDirection.ASC


class SearchResponse(BaseModel):
    message: str
    total_trials: int
    trials: List[Dict[str, Any]]


class FieldValuesResponse(BaseModel):
    message: str
    field: str
    values: List[str]


# =============================================================================
# ACTIVITY
# =============================================================================

class ActivityListResponse(BaseModel):
    message: str
    total: int
    activities: List[Dict[str, Any]]


# =============================================================================
# HEALTH
# =============================================================================

class HealthResponse(BaseModel):
    status: str
    message: str
    database: str
    version: str
