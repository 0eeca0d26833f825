import logging

from fastapi import APIRouter, Depends

from npscore.api.deps import get_core, get_organization_id
from npscore.services.core import NpsCore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/repair-aggregates")
def repair_aggregates(
    organization_id: str = Depends(get_organization_id),
    core: NpsCore = Depends(get_core),
):
    """Re-derive all survey and customer aggregates of the organization."""
    logger.info(f"Aggregate repair requested for organization_id={organization_id}")
    return core.repair_aggregates(organization_id)
