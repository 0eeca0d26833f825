"""Read models returned by the aggregators."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class SurveyAggregate(BaseModel):
    survey_id: str
    response_count: int = 0
    promoters: int = 0
    passives: int = 0
    detractors: int = 0
    unclassified: int = 0
    nps_score: Optional[int] = None


class CustomerAggregate(BaseModel):
    customer_id: str
    nps_score: Optional[int] = None
    segment: Optional[str] = None
    last_survey_at: Optional[datetime] = None
    total_responses: int = 0


class TrendPoint(BaseModel):
    bucket_key: str
    nps: int
    responses: int
    promoters: int
    passives: int
    detractors: int


class SegmentDistribution(BaseModel):
    promoters: int = 0
    passives: int = 0
    detractors: int = 0
    promoters_percentage: float = 0.0
    passives_percentage: float = 0.0
    detractors_percentage: float = 0.0


class CampaignStats(BaseModel):
    campaign_id: str
    sent: int = 0
    delivered: int = 0
    opened: int = 0
    clicked: int = 0
    responded: int = 0
    bounced: int = 0
    unsubscribed: int = 0
    open_rate: float = 0.0
    click_rate: float = 0.0
    response_rate: float = 0.0


class RepairSummary(BaseModel):
    organization_id: str
    surveys_recomputed: int = 0
    customers_recomputed: int = 0


class DashboardMetrics(BaseModel):
    nps_score: int = 0
    total_responses: int = 0
    response_rate: float = 0.0
    active_surveys: int = 0
    total_customers: int = 0
    promoters_percentage: float = 0.0
    passives_percentage: float = 0.0
    detractors_percentage: float = 0.0


class SurveyPerformance(BaseModel):
    survey_id: str
    title: str
    status: str
    nps_score: int = 0
    response_count: int = 0
    target_responses: int = 0
    response_rate: float = 0.0


class SegmentAnalysis(BaseModel):
    segment: str
    name: str
    count: int = 0
    percentage: float = 0.0
    avg_nps: float = 0.0


class HourlyCount(BaseModel):
    hour: int
    count: int


class ResponseStats(BaseModel):
    survey_id: Optional[str] = None
    total: int = 0
    promoters: int = 0
    passives: int = 0
    detractors: int = 0
    nps_score: int = 0
