import logging
from typing import Optional

from npscore.core.errors import NotFound
from npscore.repositories.store import StoreFactory
from npscore.schemas.aggregate import SurveyAggregate
from npscore.schemas.records import SegmentCounts, SurveyRecord
from npscore.services.classifier import calculate_nps

logger = logging.getLogger(__name__)


def build_survey_aggregate(survey_id: str, counts: SegmentCounts) -> SurveyAggregate:
    return SurveyAggregate(
        survey_id=survey_id,
        response_count=counts.total,
        promoters=counts.promoters,
        passives=counts.passives,
        detractors=counts.detractors,
        unclassified=counts.unclassified,
        nps_score=calculate_nps(counts.promoters, counts.passives, counts.detractors),
    )


def aggregate_from_record(survey: SurveyRecord) -> SurveyAggregate:
    classified = survey.promoters_count + survey.passives_count + survey.detractors_count
    return SurveyAggregate(
        survey_id=survey.id,
        response_count=survey.response_count,
        promoters=survey.promoters_count,
        passives=survey.passives_count,
        detractors=survey.detractors_count,
        unclassified=survey.response_count - classified,
        nps_score=survey.nps_score,
    )


class SurveyAggregator:
    """
    Keeps survey counters consistent with the survey's COMPLETED responses.

    Every recompute is a full re-derivation from the current response set,
    so it is idempotent, safe to retry and correct after deletions. The
    survey row stays locked from the count query until the single UPDATE
    commits; two recomputes of the same survey cannot interleave.
    """

    def __init__(self, store: StoreFactory):
        self.store = store

    def recompute(self, survey_id: str) -> SurveyAggregate:
        with self.store() as uow:
            survey = uow.surveys.get(survey_id, for_update=True)
            if survey is None:
                raise NotFound("Survey not found")
            counts = uow.responses.segment_counts(survey_id)
            aggregate = build_survey_aggregate(survey_id, counts)
            uow.surveys.save_aggregate(aggregate)

        logger.info(
            f"Survey aggregate recomputed: survey_id={survey_id}, responses={aggregate.response_count}, "
            f"nps={aggregate.nps_score}"
        )
        return aggregate

    def get(self, survey_id: str, organization_id: Optional[str] = None) -> SurveyAggregate:
        with self.store() as uow:
            survey = uow.surveys.get(survey_id, organization_id)
        if survey is None:
            raise NotFound("Survey not found")
        return aggregate_from_record(survey)
