import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from npscore.api.deps import get_core, get_organization_id
from npscore.core.errors import ValidationError
from npscore.schemas.response import validate_campaign_event
from npscore.services.core import NpsCore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/campaigns", tags=["campaigns"])


@router.post("/{campaign_id}/events")
def record_campaign_event(
    campaign_id: str,
    payload: Dict[str, Any] = Body(...),
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    """Delivery/engagement event from the sending pipeline, e.g. {"field": "opened", "delta": 1}."""
    result = validate_campaign_event(payload)
    if not result.ok:
        raise ValidationError(result.error_dicts())
    event = result.value
    return core.record_campaign_event(campaign_id, organization_id, event.field, event.delta)


@router.get("/{campaign_id}/stats")
def get_campaign_stats(
    campaign_id: str,
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    return core.get_campaign_stats(campaign_id, organization_id)
