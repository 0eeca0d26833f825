"""Survey and question tables. Only the fields the aggregation core reads or owns."""
import enum
import uuid

from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, ForeignKey
from npscore.core.clock import utcnow
from npscore.core.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class SurveyStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"


class QuestionType(str, enum.Enum):
    NPS = "nps"
    RATING = "rating"
    MULTIPLE_CHOICE = "multiple_choice"
    CHECKBOX = "checkbox"
    TEXT = "text"
    TEXTAREA = "textarea"
    YES_NO = "yes_no"
    DATE = "date"
    EMAIL = "email"
    NUMBER = "number"


class Survey(Base):
    __tablename__ = "surveys"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = Column(String(36), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    status = Column(String(20), default=SurveyStatus.DRAFT.value, nullable=False)  # draft, active, paused, closed
    anonymous_responses = Column(Boolean, default=False, nullable=False)
    share_code = Column(String(50), unique=True, nullable=False, index=True)
    target_responses = Column(Integer, default=100, nullable=False)

    # Aggregates: written only by the survey aggregator, all in one UPDATE
    response_count = Column(Integer, default=0, nullable=False)
    promoters_count = Column(Integer, default=0, nullable=False)
    passives_count = Column(Integer, default=0, nullable=False)
    detractors_count = Column(Integer, default=0, nullable=False)
    nps_score = Column(Integer, nullable=True)  # null until something is classified

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Question(Base):
    __tablename__ = "questions"

    id = Column(String(36), primary_key=True, default=new_id)
    survey_id = Column(String(36), ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(String(30), default=QuestionType.TEXT.value, nullable=False)
    title = Column(Text, nullable=False)
    order = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow)
