"""
Organization dashboard reporting. Read path only.

Everything here is derived from stored aggregates and response counts with the
classifier's NPS and percentage arithmetic. Reported NPS values are 0, not
null, when nothing is classified.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from npscore.core.errors import NotFound
from npscore.models.customer import CustomerSegment
from npscore.models.survey import SurveyStatus
from npscore.repositories.store import StoreFactory
from npscore.schemas.aggregate import (
    DashboardMetrics,
    HourlyCount,
    ResponseStats,
    SegmentAnalysis,
    SurveyPerformance,
)
from npscore.services.classifier import calculate_nps, percentage, round_half_up

logger = logging.getLogger(__name__)

SURVEY_PERFORMANCE_LIMIT = 20

SEGMENT_NAMES = {
    CustomerSegment.PROMOTER: "Promoters",
    CustomerSegment.PASSIVE: "Passives",
    CustomerSegment.DETRACTOR: "Detractors",
}


def _nps_or_zero(promoters: int, passives: int, detractors: int) -> int:
    nps = calculate_nps(promoters, passives, detractors)
    return nps if nps is not None else 0


class DashboardReporter:
    def __init__(self, store: StoreFactory):
        self.store = store

    def dashboard_metrics(self, organization_id: str) -> DashboardMetrics:
        """Headline numbers: NPS, volume, response rate against survey targets and the segment mix."""
        with self.store() as uow:
            surveys = uow.surveys.list_for_organization(organization_id)
            counts = uow.responses.organization_segment_counts(organization_id)
            total_customers = uow.customers.count(organization_id)

        target_total = sum(s.target_responses for s in surveys)
        collected_total = sum(s.response_count for s in surveys)

        return DashboardMetrics(
            nps_score=_nps_or_zero(counts.promoters, counts.passives, counts.detractors),
            total_responses=counts.total,
            response_rate=percentage(collected_total, target_total),
            active_surveys=sum(1 for s in surveys if s.status == SurveyStatus.ACTIVE.value),
            total_customers=total_customers,
            promoters_percentage=percentage(counts.promoters, counts.total),
            passives_percentage=percentage(counts.passives, counts.total),
            detractors_percentage=percentage(counts.detractors, counts.total),
        )

    def survey_performance(self, organization_id: str,
                           limit: int = SURVEY_PERFORMANCE_LIMIT) -> List[SurveyPerformance]:
        """The newest surveys with their stored NPS and progress toward the response target."""
        with self.store() as uow:
            surveys = uow.surveys.list_for_organization(organization_id, limit=limit)

        return [
            SurveyPerformance(
                survey_id=s.id,
                title=s.title,
                status=s.status,
                nps_score=s.nps_score if s.nps_score is not None else 0,
                response_count=s.response_count,
                target_responses=s.target_responses,
                response_rate=percentage(s.response_count, s.target_responses),
            )
            for s in surveys
        ]

    def customer_segment_analysis(self, organization_id: str) -> List[SegmentAnalysis]:
        with self.store() as uow:
            total_customers = uow.customers.count(organization_id)
            totals = {t.segment: t for t in uow.customers.segment_totals(organization_id)}

        analysis = []
        for segment, name in SEGMENT_NAMES.items():
            row = totals.get(segment.value)
            count = row.customers if row else 0
            avg_nps = 0.0
            if count:
                avg_nps = float(round_half_up(Decimal(row.score_total) / Decimal(count), 1))
            analysis.append(SegmentAnalysis(
                segment=segment.value,
                name=name,
                count=count,
                percentage=percentage(count, total_customers),
                avg_nps=avg_nps,
            ))
        return analysis

    def responses_by_hour(self, organization_id: str) -> List[HourlyCount]:
        """Completed responses per hour of day (UTC), ascending; hours without responses are omitted."""
        with self.store() as uow:
            counts = uow.responses.hourly_counts(organization_id)
        return [HourlyCount(hour=hour, count=counts[hour]) for hour in sorted(counts)]

    def response_stats(self, organization_id: str, survey_id: Optional[str] = None) -> ResponseStats:
        with self.store() as uow:
            if survey_id is None:
                counts = uow.responses.organization_segment_counts(organization_id)
            else:
                if uow.surveys.get(survey_id, organization_id) is None:
                    raise NotFound("Survey not found")
                counts = uow.responses.segment_counts(survey_id)

        return ResponseStats(
            survey_id=survey_id,
            total=counts.total,
            promoters=counts.promoters,
            passives=counts.passives,
            detractors=counts.detractors,
            nps_score=_nps_or_zero(counts.promoters, counts.passives, counts.detractors),
        )
