"""Response API: authenticated ingestion, public submission, listing and moderation."""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Request

from npscore.api.deps import get_core, get_organization_id
from npscore.core.errors import ValidationError
from npscore.schemas.response import SubmissionContext, validate_flag_update
from npscore.services.core import NpsCore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["responses"])


def _context(request: Request) -> SubmissionContext:
    ip = request.client.host if request.client else None
    user_agent = request.headers.get("user-agent")
    return SubmissionContext(ip_address=ip, user_agent=user_agent[:500] if user_agent else None)


@router.post("/surveys/{survey_id}/responses", status_code=201)
def ingest_response(
    survey_id: str,
    payload: Dict[str, Any] = Body(...),
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    return core.ingest_response(survey_id, organization_id, payload)


@router.post("/public/surveys/{share_code}/responses", status_code=201)
def submit_public_response(
    share_code: str,
    request: Request,
    payload: Dict[str, Any] = Body(...),
    core: NpsCore = Depends(get_core),
):
    """Public endpoint: respondents submit through the survey's share link."""
    record = core.submit_public_response_by_share_code(share_code, payload, _context(request))
    return {"success": True, "response_id": record.id}


@router.get("/responses")
def list_responses(
    survey_id: Optional[str] = None,
    segment: Optional[str] = Query(None, description="promoter, passive or detractor"),
    search: Optional[str] = Query(None, description="Matches feedback, respondent and customer name or email"),
    flagged: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    sort_by: Optional[str] = Query(None, description="created_at, completed_at or nps_score"),
    sort_order: Optional[str] = Query(None, description="asc or desc"),
    page: Optional[str] = None,
    limit: Optional[str] = None,
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    params = {
        "survey_id": survey_id,
        "segment": segment,
        "search": search,
        "flagged": flagged,
        "start_date": start_date,
        "end_date": end_date,
        "sort_by": sort_by,
        "sort_order": sort_order,
        "page": page,
        "limit": limit,
    }
    return core.list_responses(organization_id, {k: v for k, v in params.items() if v is not None})


@router.get("/responses/recent")
def get_recent_responses(
    limit: int = Query(10, ge=1, le=100),
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    return core.get_recent_responses(organization_id, limit)


@router.get("/responses/{response_id}")
def get_response(
    response_id: str,
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    return core.get_response(response_id, organization_id)


@router.patch("/responses/{response_id}/flag")
def flag_response(
    response_id: str,
    payload: Dict[str, Any] = Body(...),
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    result = validate_flag_update(payload)
    if not result.ok:
        raise ValidationError(result.error_dicts())
    update = result.value
    return core.flag_response(response_id, organization_id, update.flagged, update.reason)


@router.delete("/responses/{response_id}")
def delete_response(
    response_id: str,
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    core.delete_response(response_id, organization_id)
    return {"success": True}
