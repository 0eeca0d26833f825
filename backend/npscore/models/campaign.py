"""Distribution campaign counters used for attribution and funnel rates."""
import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from npscore.core.clock import utcnow
from npscore.core.database import Base
from npscore.models.survey import new_id


class CampaignCounter(str, enum.Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    OPENED = "opened"
    CLICKED = "clicked"
    RESPONDED = "responded"
    BOUNCED = "bounced"
    UNSUBSCRIBED = "unsubscribed"

    @property
    def column(self) -> str:
        return f"{self.value}_count"


class DistributionCampaign(Base):
    """Email/link/QR/widget campaign. Counters only ever go up."""
    __tablename__ = "distribution_campaigns"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = Column(String(36), nullable=False, index=True)
    survey_id = Column(String(36), ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    type = Column(String(20), default="email")  # email, link, qr, widget, sms, api

    # Stats
    sent_count = Column(Integer, default=0, nullable=False)
    delivered_count = Column(Integer, default=0, nullable=False)
    opened_count = Column(Integer, default=0, nullable=False)
    clicked_count = Column(Integer, default=0, nullable=False)
    responded_count = Column(Integer, default=0, nullable=False)
    bounced_count = Column(Integer, default=0, nullable=False)
    unsubscribed_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
