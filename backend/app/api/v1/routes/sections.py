"""
Trial Section Routes
====================
Single-entity CRUD endpoints for the trial overview and each child section.

One router is built per section and mounted at
``/api/v1/therapeutic/<section>``.
"""

from fastapi import APIRouter, Body, Depends, Query
from typing import Any, Dict, Optional

from trialbyte.therapeutics.sections import SECTIONS_BY_NAME, TrialSectionService

from app.services.database import get_section_service


def build_section_router(name: str) -> APIRouter:
    """Build the CRUD router for one section."""
    spec = SECTIONS_BY_NAME[name]
    label = spec.label
    router = APIRouter()

    @router.post("", status_code=201)
    def create_record(
        payload: Optional[Dict[str, Any]] = Body(None),
        service: TrialSectionService = Depends(get_section_service),
    ):
        record = service.create(name, payload or {})
        return {"message": f"{label} created successfully", "data": record}

    @router.get("")
    def list_records(
        trial_id: Optional[str] = None,
        service: TrialSectionService = Depends(get_section_service),
    ):
        records = service.list(name, trial_id=trial_id)
        return {"message": f"{label} records retrieved successfully", "data": records}

    if name != "overview":

        @router.get("/trial/{trial_id}")
        def list_records_by_trial(
            trial_id: str,
            service: TrialSectionService = Depends(get_section_service),
        ):
            records = service.list_by_trial(name, trial_id)
            return {"message": f"{label} records retrieved successfully", "data": records}

        @router.put("/trial/{trial_id}")
        def update_records_by_trial(
            trial_id: str,
            payload: Optional[Dict[str, Any]] = Body(None),
            service: TrialSectionService = Depends(get_section_service),
        ):
            records = service.update_by_trial(name, trial_id, payload or {})
            return {"message": f"{label} records updated successfully", "data": records}

        @router.delete("/trial/{trial_id}")
        def delete_records_by_trial(
            trial_id: str,
            service: TrialSectionService = Depends(get_section_service),
        ):
            deleted = service.delete_by_trial(name, trial_id)
            return {"message": f"{label} records deleted successfully", "deleted": deleted}

    @router.get("/{record_id}")
    def get_record(
        record_id: str,
        service: TrialSectionService = Depends(get_section_service),
    ):
        record = service.get(name, record_id)
        return {"message": f"{label} retrieved successfully", "data": record}

    @router.put("/{record_id}")
    def update_record(
        record_id: str,
        payload: Optional[Dict[str, Any]] = Body(None),
        service: TrialSectionService = Depends(get_section_service),
    ):
        record = service.update(name, record_id, payload or {})
        return {"message": f"{label} updated successfully", "data": record}

    @router.delete("/{record_id}")
    def delete_record(
        record_id: str,
        user_id: Optional[str] = Query(None),
        payload: Optional[Dict[str, Any]] = Body(None),
        service: TrialSectionService = Depends(get_section_service),
    ):
        # user_id may arrive as a query parameter or in the body
        acting_user = user_id or (payload or {}).get("user_id")
        record = service.delete(name, record_id, acting_user)
        return {"message": f"{label} deleted successfully", "data": record}

    return router


section_routers = {name: build_section_router(name) for name in SECTIONS_BY_NAME}
