"""Survey responses and their per-question answers."""
import enum

from sqlalchemy import Column, Integer, String, DateTime, Text, Float, Boolean, JSON, ForeignKey, Index
from npscore.core.clock import utcnow
from npscore.core.database import Base
from npscore.models.survey import new_id


class ResponseStatus(str, enum.Enum):
    STARTED = "started"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class SurveyResponse(Base):
    __tablename__ = "survey_responses"
    __table_args__ = (
        Index("ix_survey_responses_survey_created", "survey_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    survey_id = Column(String(36), ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False)

    # Weak references: deleting the customer/campaign keeps the response
    customer_id = Column(String(36), ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    campaign_id = Column(String(36), ForeignKey("distribution_campaigns.id", ondelete="SET NULL"), nullable=True, index=True)

    # Score 0-10; segment is null iff score is null
    nps_score = Column(Integer, nullable=True)
    segment = Column(String(20), nullable=True)

    status = Column(String(20), default=ResponseStatus.STARTED.value, nullable=False)
    feedback = Column(Text, nullable=True)

    # Moderation
    flagged = Column(Boolean, default=False, nullable=False)
    flag_reason = Column(String(500), nullable=True)

    # Respondent (dropped for anonymous surveys)
    respondent_email = Column(String(255), nullable=True)
    respondent_name = Column(String(255), nullable=True)

    # Tracking
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    extra = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)


class Answer(Base):
    """One answer per question per response; deleted with its response."""
    __tablename__ = "answers"
    __table_args__ = (
        Index("ix_answers_response_question", "response_id", "question_id"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    response_id = Column(String(36), ForeignKey("survey_responses.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(String(36), nullable=False)

    value = Column(Text, nullable=True)
    numeric_value = Column(Float, nullable=True)
    selected_options = Column(JSON, nullable=True)
    other_value = Column(String(500), nullable=True)
