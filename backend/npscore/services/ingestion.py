"""
Response ingestion.

Flow for one submission:
1. Resolve the survey inside the organization scope (public path: must be ACTIVE)
2. Validate answers against the survey's questions and derive the score
3. Resolve the customer by id unless the survey is anonymous
4. Persist the response and its answers in one transaction, finding or creating
   the customer by email in that same transaction
5. Re-derive the survey aggregate, then the customer aggregate, then bump the campaign counter

Steps 4 and 5 run in separate transactions. If the caller goes away between
them the aggregates are stale until the next recompute, which re-derives
from the response set and heals them.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import BaseModel

from npscore.core.clock import utcnow
from npscore.core.errors import (
    DuplicateCustomerError,
    NotFound,
    PersistenceError,
    SurveyNotAcceptingResponses,
    ValidationError,
)
from npscore.models.campaign import CampaignCounter
from npscore.models.response import ResponseStatus
from npscore.models.survey import QuestionType, SurveyStatus
from npscore.repositories.store import StoreFactory
from npscore.schemas.records import NewResponse, QuestionRecord, ResponsePage, ResponseRecord
from npscore.schemas.response import (
    PublicResponseSubmit,
    ResponseCreate,
    ResponseQuery,
    SubmissionContext,
    validate_public_submission,
    validate_response_create,
    validate_response_query,
)
from npscore.services.campaign_stats import CampaignStatsTracker
from npscore.services.classifier import segment_value
from npscore.services.customer_aggregator import CustomerAggregator
from npscore.services.survey_aggregator import SurveyAggregator

logger = logging.getLogger(__name__)

FLAG_REASON_MAX_LENGTH = 500


def _coerce_payload(payload, model, validator):
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_unset=True)
    result = validator(payload)
    if not result.ok:
        raise ValidationError(result.error_dicts())
    return result.value


def normalize_email(email: str) -> str:
    return email.strip().lower()


def extract_score(questions: List[QuestionRecord], payload) -> Optional[int]:
    """
    Validate answers against the survey's questions and return the canonical score.

    A top-level score wins. Otherwise the numeric answer to the first NPS
    question in question order is used.
    """
    question_ids = {q.id for q in questions}
    nps_ids = [q.id for q in questions if q.type == QuestionType.NPS.value]
    errors = []
    seen = set()

    for i, answer in enumerate(payload.answers):
        if answer.question_id not in question_ids:
            errors.append({"field": f"answers.{i}.question_id", "message": "Question does not belong to this survey"})
            continue
        if answer.question_id in seen:
            errors.append({"field": f"answers.{i}.question_id", "message": "Question answered more than once"})
        seen.add(answer.question_id)

        if answer.question_id in nps_ids and answer.numeric_value is not None:
            value = answer.numeric_value
            if not float(value).is_integer() or not 0 <= value <= 10:
                errors.append({
                    "field": f"answers.{i}.numeric_value",
                    "message": "NPS answers must be a whole number between 0 and 10",
                })

    if errors:
        raise ValidationError(errors)

    score = getattr(payload, "score", None)
    if score is not None or not nps_ids:
        return score

    for answer in payload.answers:
        if answer.question_id == nps_ids[0] and answer.numeric_value is not None:
            return int(answer.numeric_value)
    return None


class IngestionCoordinator:
    def __init__(
        self,
        store: StoreFactory,
        survey_aggregator: SurveyAggregator,
        customer_aggregator: CustomerAggregator,
        campaign_tracker: CampaignStatsTracker,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.survey_aggregator = survey_aggregator
        self.customer_aggregator = customer_aggregator
        self.campaign_tracker = campaign_tracker
        self.clock = clock

    # ── Entry points ────────────────────────────────────────────────

    def ingest(self, survey_id: str, organization_id: str, payload) -> ResponseRecord:
        """Authenticated/admin submission. Accepted whatever the survey status, for backfills."""
        payload = _coerce_payload(payload, ResponseCreate, validate_response_create)
        return self._submit(survey_id, organization_id, payload, public=False)

    def submit_public(self, survey_id: str, organization_id: str, payload, context=None) -> ResponseRecord:
        payload = _coerce_payload(payload, PublicResponseSubmit, validate_public_submission)
        if context is not None and not isinstance(context, SubmissionContext):
            context = SubmissionContext.model_validate(context)
        return self._submit(survey_id, organization_id, payload, public=True, context=context)

    def submit_public_by_share_code(self, share_code: str, payload, context=None) -> ResponseRecord:
        with self.store() as uow:
            survey = uow.surveys.get_by_share_code(share_code)
        if survey is None:
            raise NotFound("Survey not found")
        return self.submit_public(survey.id, survey.organization_id, payload, context)

    # ── Core ────────────────────────────────────────────────────────

    def _submit(self, survey_id, organization_id, payload, public, context=None) -> ResponseRecord:
        with self.store() as uow:
            survey = uow.surveys.get(survey_id, organization_id)
            if survey is None:
                raise NotFound("Survey not found")
            if public and survey.status != SurveyStatus.ACTIVE.value:
                raise SurveyNotAcceptingResponses(survey_id, survey.status)

            questions = uow.surveys.list_questions(survey_id)

            customer_id = None
            requested_customer = getattr(payload, "customer_id", None)
            if requested_customer and not survey.anonymous_responses:
                customer = uow.customers.get(requested_customer, organization_id)
                if customer is None:
                    raise NotFound("Customer not found")
                customer_id = customer.id

            campaign_id = None
            if payload.campaign_id:
                campaign = uow.campaigns.get(payload.campaign_id, organization_id)
                if campaign is None or campaign.survey_id != survey_id:
                    raise NotFound("Campaign not found")
                campaign_id = campaign.id

        if sum(1 for q in questions if q.type == QuestionType.NPS.value) > 1:
            logger.warning(f"Survey {survey_id} has more than one NPS question; using the first in question order")

        score = extract_score(questions, payload)

        anonymous = survey.anonymous_responses
        match_email = None
        if customer_id is None and payload.respondent_email and not anonymous:
            match_email = normalize_email(payload.respondent_email)

        now = self.clock()
        new_response = NewResponse(
            survey_id=survey_id,
            customer_id=customer_id,
            campaign_id=campaign_id,
            nps_score=score,
            segment=segment_value(score),
            status=ResponseStatus.COMPLETED.value,
            feedback=payload.feedback,
            respondent_email=None if anonymous else payload.respondent_email,
            respondent_name=None if anonymous else payload.respondent_name,
            ip_address=context.ip_address if context else None,
            user_agent=context.user_agent if context else None,
            metadata=getattr(payload, "metadata", None),
            created_at=now,
            completed_at=now,
        )

        record = self._persist(new_response, payload.answers, organization_id, match_email, payload.respondent_name)
        customer_id = record.customer_id

        logger.info(
            f"Response ingested: response_id={record.id}, survey_id={survey_id}, score={score}, "
            f"customer_id={customer_id}, campaign_id={campaign_id}, public={public}"
        )

        self.survey_aggregator.recompute(survey_id)
        if customer_id:
            self.customer_aggregator.apply_response(customer_id, score, now)
        if campaign_id:
            self.campaign_tracker.increment(campaign_id, CampaignCounter.RESPONDED, 1)

        return record

    def _persist(self, new_response: NewResponse, answers, organization_id: str,
                 email: Optional[str], name: Optional[str]) -> ResponseRecord:
        """
        Insert the response and its answers in one transaction.

        When ``email`` is given the customer is found or created inside the same
        transaction, so a failed insert never leaves a new customer behind. A
        concurrent create of the same customer rolls the transaction back and the
        retry picks up the other submission's row.
        """
        for _ in range(2):
            try:
                with self.store() as uow:
                    if email:
                        customer = uow.customers.find_by_email(organization_id, email)
                        if customer is None:
                            customer = uow.customers.create(organization_id, email, name or email.split("@")[0])
                        new_response = new_response.model_copy(update={"customer_id": customer.id})
                    return uow.responses.add(new_response, answers)
            except DuplicateCustomerError:
                logger.info(f"Customer find-or-create conflict resolved: organization_id={organization_id}, email={email}")

        raise PersistenceError("Customer could not be created or re-read")

    # ── Response maintenance ────────────────────────────────────────

    def get_response(self, response_id: str, organization_id: str) -> ResponseRecord:
        with self.store() as uow:
            response = uow.responses.get(response_id, organization_id)
        if response is None:
            raise NotFound("Response not found")
        return response

    def list_responses(self, organization_id: str, query=None) -> ResponsePage:
        """Filtered, sorted page of an organization's responses. ``query`` is a ``ResponseQuery`` or a dict."""
        query = _coerce_payload(query or {}, ResponseQuery, validate_response_query)
        with self.store() as uow:
            records, total = uow.responses.search(organization_id, query)
        return ResponsePage(responses=records, total=total, page=query.page, limit=query.limit)

    def recent_responses(self, organization_id: str, limit: int = 10) -> List[ResponseRecord]:
        return self.list_responses(organization_id, {"limit": limit}).responses

    def flag_response(self, response_id: str, organization_id: str, flagged: bool,
                      reason: Optional[str] = None) -> ResponseRecord:
        if reason is not None and len(reason) > FLAG_REASON_MAX_LENGTH:
            raise ValidationError.single("reason", f"Flag reason must be at most {FLAG_REASON_MAX_LENGTH} characters")

        with self.store() as uow:
            if uow.responses.get(response_id, organization_id) is None:
                raise NotFound("Response not found")
            uow.responses.set_flag(response_id, flagged, reason if flagged else None)

        logger.info(f"Response flag updated: response_id={response_id}, flagged={flagged}")
        return self.get_response(response_id, organization_id)

    def delete_response(self, response_id: str, organization_id: str) -> None:
        """Delete a response and re-derive everything aggregated from it.

        Campaign counters are monotonic and are not decremented.
        """
        with self.store() as uow:
            response = uow.responses.get(response_id, organization_id)
            if response is None:
                raise NotFound("Response not found")
            uow.responses.delete(response_id)

        logger.info(f"Response deleted: response_id={response_id}, survey_id={response.survey_id}")

        self.survey_aggregator.recompute(response.survey_id)
        if response.customer_id:
            self.customer_aggregator.recompute(response.customer_id)
