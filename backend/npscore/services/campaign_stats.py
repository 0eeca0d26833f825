import logging
from typing import Optional

from npscore.core.errors import NotFound, ValidationError
from npscore.models.campaign import CampaignCounter
from npscore.repositories.store import StoreFactory
from npscore.schemas.aggregate import CampaignStats
from npscore.services.classifier import percentage

logger = logging.getLogger(__name__)


def _coerce_counter(field) -> CampaignCounter:
    if isinstance(field, CampaignCounter):
        return field
    try:
        return CampaignCounter(str(field).lower())
    except ValueError:
        allowed = ", ".join(c.value for c in CampaignCounter)
        raise ValidationError.single("field", f"Unknown campaign counter '{field}' (expected one of: {allowed})") from None


class CampaignStatsTracker:
    """
    Additive funnel counters per distribution campaign.

    Increments are plain atomic ``col = col + delta`` updates: associative and
    commutative, so they need no row lock and may land in any order.
    """

    def __init__(self, store: StoreFactory):
        self.store = store

    def increment(self, campaign_id: str, field, delta: int = 1, organization_id: Optional[str] = None) -> None:
        counter = _coerce_counter(field)
        if isinstance(delta, bool) or not isinstance(delta, int) or delta < 0:
            raise ValidationError.single("delta", "Counter increments must be non-negative integers")

        with self.store() as uow:
            if organization_id is not None and uow.campaigns.get(campaign_id, organization_id) is None:
                raise NotFound("Campaign not found")
            if not uow.campaigns.increment(campaign_id, counter, delta):
                raise NotFound("Campaign not found")

        logger.info(f"Campaign counter incremented: campaign_id={campaign_id}, {counter.value}+={delta}")

    def stats(self, campaign_id: str, organization_id: Optional[str] = None) -> CampaignStats:
        with self.store() as uow:
            campaign = uow.campaigns.get(campaign_id, organization_id)
        if campaign is None:
            raise NotFound("Campaign not found")

        sent = campaign.sent_count
        return CampaignStats(
            campaign_id=campaign.id,
            sent=sent,
            delivered=campaign.delivered_count,
            opened=campaign.opened_count,
            clicked=campaign.clicked_count,
            responded=campaign.responded_count,
            bounced=campaign.bounced_count,
            unsubscribed=campaign.unsubscribed_count,
            open_rate=percentage(campaign.opened_count, sent),
            click_rate=percentage(campaign.clicked_count, sent),
            response_rate=percentage(campaign.responded_count, sent),
        )
