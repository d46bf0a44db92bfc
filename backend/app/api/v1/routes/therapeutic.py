"""
Therapeutic Routes
==================
Whole-trial endpoints: create, fetch, fetch-all, cascade delete and search.
"""

from fastapi import APIRouter, Body, Depends
from typing import Any, Dict, Optional

from trialbyte.therapeutics.orchestrator import TrialAggregateService
from trialbyte.therapeutics import search

from app.models.schemas import FieldValuesResponse, SearchRequest, SearchResponse
from app.services.database import get_trial_service

router = APIRouter()


@router.post("/create-therapeutic", status_code=201)
def create_therapeutic_trial(
    payload: Optional[Dict[str, Any]] = Body(None),
    service: TrialAggregateService = Depends(get_trial_service),
):
    """Create a trial overview and all supplied sections in one request."""
    result = service.create_trial(payload)
    return {"message": "Trial created successfully with all data", **result}


@router.get("/trial/{trial_id}/all-data")
def get_trial_with_all_data(
    trial_id: str,
    service: TrialAggregateService = Depends(get_trial_service),
):
    """Get one trial with every section."""
    result = service.fetch_trial(trial_id)
    return {"message": "Therapeutic trial data retrieved successfully", **result}


@router.get("/all-trials-with-data")
def get_all_trials_with_data(service: TrialAggregateService = Depends(get_trial_service)):
    """Get every trial with every section, newest first."""
    result = service.fetch_all_trials()
    if not result["trials"]:
        return {"message": "No therapeutic trials found", "total_trials": 0, "trials": []}
    return {"message": "All therapeutic trials data retrieved successfully", **result}


@router.delete("/trial/{trial_id}/{user_id}/delete-all")
def delete_trial_with_all_data(
    trial_id: str,
    user_id: str,
    service: TrialAggregateService = Depends(get_trial_service),
):
    """Delete a trial and all of its section rows."""
    result = service.delete_trial(trial_id, user_id)
    return {
        "message": f"Successfully deleted all therapeutic data for trial {trial_id}",
        **result,
    }


@router.post("/search", response_model=SearchResponse)
def search_trials(
    search_request: Optional[SearchRequest] = None,
    service: TrialAggregateService = Depends(get_trial_service),
):
    """Filter and sort all trials server-side."""
    search_request = search_request or SearchRequest()
    trials = service.fetch_all_trials()["trials"]
    matched = search.filter_trials(trials, search_request.criteria)
    ordered = search.sort_trials(matched, search_request.sort_field, search_request.sort_direction.value)
    return SearchResponse(
        message=f"Found {len(ordered)} matching therapeutic trials",
        total_trials=len(ordered),
        trials=ordered,
    )


@router.get("/field-values/{field}", response_model=FieldValuesResponse)
def get_field_values(
    field: str,
    service: TrialAggregateService = Depends(get_trial_service),
):
    """Distinct values of one searchable field, for dropdowns."""
    trials = service.fetch_all_trials()["trials"]
    values = search.unique_field_values(trials, field)
    return FieldValuesResponse(
        message="Field values retrieved successfully",
        field=field,
        values=values,
    )
