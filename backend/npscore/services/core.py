"""
NpsCore: the single entry point a host calls.

Wires the ingestion coordinator and the aggregators around one store factory
and one clock, and adds the organization-scoped read and repair operations.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from npscore.core.clock import utcnow
from npscore.core.config import Settings, get_settings
from npscore.core.database import create_engine_from_settings, create_session_factory
from npscore.core.errors import NotFound
from npscore.repositories.sqlalchemy_store import SqlAlchemyStore
from npscore.repositories.store import StoreFactory
from npscore.schemas.aggregate import (
    CampaignStats,
    CustomerAggregate,
    DashboardMetrics,
    HourlyCount,
    RepairSummary,
    ResponseStats,
    SegmentAnalysis,
    SegmentDistribution,
    SurveyAggregate,
    SurveyPerformance,
    TrendPoint,
)
from npscore.schemas.records import ResponsePage, ResponseRecord
from npscore.services.campaign_stats import CampaignStatsTracker
from npscore.services.customer_aggregator import CustomerAggregator
from npscore.services.dashboard import DashboardReporter
from npscore.services.ingestion import IngestionCoordinator
from npscore.services.survey_aggregator import SurveyAggregator
from npscore.services.trend import TrendAggregator

logger = logging.getLogger(__name__)


class NpsCore:
    def __init__(self, store: StoreFactory, clock: Callable[[], datetime] = utcnow,
                 default_timeframe: str = "month"):
        self.store = store
        self.clock = clock
        self.default_timeframe = default_timeframe

        self.surveys = SurveyAggregator(store)
        self.customers = CustomerAggregator(store)
        self.campaigns = CampaignStatsTracker(store)
        self.trends = TrendAggregator(store, clock=clock)
        self.dashboard = DashboardReporter(store)
        self.ingestion = IngestionCoordinator(store, self.surveys, self.customers, self.campaigns, clock=clock)

    # ── Responses ───────────────────────────────────────────────────

    def ingest_response(self, survey_id: str, organization_id: str, payload) -> ResponseRecord:
        return self.ingestion.ingest(survey_id, organization_id, payload)

    def submit_public_response(self, survey_id: str, organization_id: str, payload, context=None) -> ResponseRecord:
        return self.ingestion.submit_public(survey_id, organization_id, payload, context)

    def submit_public_response_by_share_code(self, share_code: str, payload, context=None) -> ResponseRecord:
        return self.ingestion.submit_public_by_share_code(share_code, payload, context)

    def get_response(self, response_id: str, organization_id: str) -> ResponseRecord:
        return self.ingestion.get_response(response_id, organization_id)

    def flag_response(self, response_id: str, organization_id: str, flagged: bool,
                      reason: Optional[str] = None) -> ResponseRecord:
        return self.ingestion.flag_response(response_id, organization_id, flagged, reason)

    def delete_response(self, response_id: str, organization_id: str) -> None:
        self.ingestion.delete_response(response_id, organization_id)

    def list_responses(self, organization_id: str, query=None) -> ResponsePage:
        return self.ingestion.list_responses(organization_id, query)

    def get_recent_responses(self, organization_id: str, limit: int = 10) -> List[ResponseRecord]:
        return self.ingestion.recent_responses(organization_id, limit)

    # ── Aggregates ──────────────────────────────────────────────────

    def get_survey_aggregate(self, survey_id: str, organization_id: str) -> SurveyAggregate:
        return self.surveys.get(survey_id, organization_id)

    def get_customer_aggregate(self, customer_id: str, organization_id: str) -> CustomerAggregate:
        return self.customers.get(customer_id, organization_id)

    def get_trend(self, organization_id: str, timeframe: Optional[str] = None) -> List[TrendPoint]:
        return self.trends.trend(organization_id, timeframe or self.default_timeframe)

    def get_segment_distribution(self, organization_id: str) -> SegmentDistribution:
        return self.trends.segment_distribution(organization_id)

    # ── Dashboard ───────────────────────────────────────────────────

    def get_dashboard_metrics(self, organization_id: str) -> DashboardMetrics:
        return self.dashboard.dashboard_metrics(organization_id)

    def get_survey_performance(self, organization_id: str) -> List[SurveyPerformance]:
        return self.dashboard.survey_performance(organization_id)

    def get_customer_segment_analysis(self, organization_id: str) -> List[SegmentAnalysis]:
        return self.dashboard.customer_segment_analysis(organization_id)

    def get_responses_by_hour(self, organization_id: str) -> List[HourlyCount]:
        return self.dashboard.responses_by_hour(organization_id)

    def get_response_stats(self, organization_id: str, survey_id: Optional[str] = None) -> ResponseStats:
        return self.dashboard.response_stats(organization_id, survey_id)

    # ── Campaigns ───────────────────────────────────────────────────

    def record_campaign_event(self, campaign_id: str, organization_id: str, field, delta: int = 1) -> CampaignStats:
        self.campaigns.increment(campaign_id, field, delta, organization_id=organization_id)
        return self.campaigns.stats(campaign_id, organization_id)

    def get_campaign_stats(self, campaign_id: str, organization_id: str) -> CampaignStats:
        return self.campaigns.stats(campaign_id, organization_id)

    # ── Maintenance ─────────────────────────────────────────────────

    def repair_aggregates(self, organization_id: str) -> RepairSummary:
        """Re-derive every survey and customer aggregate of an organization from its responses."""
        with self.store() as uow:
            survey_ids = uow.surveys.list_ids(organization_id)
            customer_ids = uow.customers.list_ids(organization_id)

        summary = RepairSummary(organization_id=organization_id)
        for survey_id in survey_ids:
            try:
                self.surveys.recompute(survey_id)
            except NotFound:
                # Deleted since the id list was read
                continue
            summary.surveys_recomputed += 1
        for customer_id in customer_ids:
            try:
                self.customers.recompute(customer_id)
            except NotFound:
                continue
            summary.customers_recomputed += 1

        logger.info(
            f"Aggregates repaired for organization_id={organization_id}: "
            f"{summary.surveys_recomputed} surveys, {summary.customers_recomputed} customers"
        )
        return summary


def build_core(settings: Optional[Settings] = None, clock: Callable[[], datetime] = utcnow) -> NpsCore:
    """Build a core backed by the configured SQL database. The engine is kept on ``core.engine``."""
    settings = settings or get_settings()
    engine = create_engine_from_settings(settings)
    core = NpsCore(
        SqlAlchemyStore(create_session_factory(engine)),
        clock=clock,
        default_timeframe=settings.DEFAULT_TREND_TIMEFRAME,
    )
    core.engine = engine
    return core
