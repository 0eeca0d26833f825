"""Customer table. The aggregate fields are owned by the customer aggregator."""
import enum

from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from npscore.core.clock import utcnow
from npscore.core.database import Base
from npscore.models.survey import new_id


class CustomerSegment(str, enum.Enum):
    PROMOTER = "promoter"
    PASSIVE = "passive"
    DETRACTOR = "detractor"


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("organization_id", "email", name="uq_customers_organization_email"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = Column(String(36), nullable=False, index=True)

    email = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)

    # Aggregates
    nps_score = Column(Integer, nullable=True)  # latest submitted score
    segment = Column(String(20), nullable=True)  # promoter, passive, detractor
    last_survey_at = Column(DateTime, nullable=True)
    total_responses = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
