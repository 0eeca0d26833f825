"""Plain records passed across the persistence abstraction.

Records reference related rows by id only; none holds a live object.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SurveyRecord(BaseModel):
    id: str
    organization_id: str
    title: str
    status: str
    anonymous_responses: bool = False
    share_code: str
    target_responses: int = 0
    response_count: int = 0
    promoters_count: int = 0
    passives_count: int = 0
    detractors_count: int = 0
    nps_score: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class QuestionRecord(BaseModel):
    id: str
    survey_id: str
    type: str
    order: int = 0

    class Config:
        from_attributes = True


class CustomerRecord(BaseModel):
    id: str
    organization_id: str
    email: str
    name: str
    nps_score: Optional[int] = None
    segment: Optional[str] = None
    last_survey_at: Optional[datetime] = None
    total_responses: int = 0

    class Config:
        from_attributes = True


class CampaignRecord(BaseModel):
    id: str
    organization_id: str
    survey_id: str
    name: str
    sent_count: int = 0
    delivered_count: int = 0
    opened_count: int = 0
    clicked_count: int = 0
    responded_count: int = 0
    bounced_count: int = 0
    unsubscribed_count: int = 0

    class Config:
        from_attributes = True


class AnswerRecord(BaseModel):
    id: str
    question_id: str
    value: Optional[str] = None
    numeric_value: Optional[float] = None
    selected_options: Optional[List[str]] = None
    other_value: Optional[str] = None

    class Config:
        from_attributes = True


class ResponseRecord(BaseModel):
    id: str
    survey_id: str
    customer_id: Optional[str] = None
    campaign_id: Optional[str] = None
    nps_score: Optional[int] = None
    segment: Optional[str] = None
    status: str
    feedback: Optional[str] = None
    flagged: bool = False
    flag_reason: Optional[str] = None
    respondent_email: Optional[str] = None
    respondent_name: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    answers: List[AnswerRecord] = Field(default_factory=list)

    class Config:
        from_attributes = True


class NewResponse(BaseModel):
    """Everything the coordinator has decided about a response before it is persisted."""
    survey_id: str
    customer_id: Optional[str] = None
    campaign_id: Optional[str] = None
    nps_score: Optional[int] = None
    segment: Optional[str] = None
    status: str
    feedback: Optional[str] = None
    respondent_email: Optional[str] = None
    respondent_name: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class SegmentCounts(BaseModel):
    total: int = 0
    promoters: int = 0
    passives: int = 0
    detractors: int = 0

    @property
    def unclassified(self) -> int:
        return self.total - self.promoters - self.passives - self.detractors


class ScoredResponse(BaseModel):
    """Minimal projection the trend and customer aggregators read."""
    created_at: datetime
    completed_at: Optional[datetime] = None
    nps_score: Optional[int] = None
    segment: Optional[str] = None

    class Config:
        from_attributes = True


class ResponsePage(BaseModel):
    responses: List[ResponseRecord] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10


class CustomerSegmentTotals(BaseModel):
    """Customers currently in one segment and the sum of their latest scores."""
    segment: str
    customers: int = 0
    score_total: int = 0
