import logging
from typing import Optional

from fastapi import APIRouter, Depends

from npscore.api.deps import get_core, get_organization_id
from npscore.services.core import NpsCore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["analytics"])


@router.get("/surveys/{survey_id}/aggregate")
def get_survey_aggregate(
    survey_id: str,
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    return core.get_survey_aggregate(survey_id, organization_id)


@router.get("/customers/{customer_id}/aggregate")
def get_customer_aggregate(
    customer_id: str,
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    return core.get_customer_aggregate(customer_id, organization_id)


@router.get("/analytics/nps-trend")
def get_nps_trend(
    timeframe: Optional[str] = None,
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    """NPS per bucket; week and month bucket by day, quarter by ISO week, year by month."""
    points = core.get_trend(organization_id, timeframe)
    return {"timeframe": timeframe or core.default_timeframe, "points": points}


@router.get("/analytics/segments")
def get_segment_distribution(
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    return core.get_segment_distribution(organization_id)


@router.get("/analytics/dashboard")
def get_dashboard_metrics(
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    return core.get_dashboard_metrics(organization_id)


@router.get("/analytics/survey-performance")
def get_survey_performance(
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    """The 20 newest surveys with NPS and response rate against their target."""
    return core.get_survey_performance(organization_id)


@router.get("/analytics/customer-segments")
def get_customer_segment_analysis(
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    return {"segments": core.get_customer_segment_analysis(organization_id)}


@router.get("/analytics/responses-by-hour")
def get_responses_by_hour(
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    return core.get_responses_by_hour(organization_id)


@router.get("/analytics/response-stats")
def get_response_stats(
    survey_id: Optional[str] = None,
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    return core.get_response_stats(organization_id, survey_id)
