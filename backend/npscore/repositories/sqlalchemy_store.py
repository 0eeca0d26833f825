"""SQLAlchemy implementation of the persistence abstraction."""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import case, extract, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from npscore.core.errors import DuplicateCustomerError, PersistenceError
from npscore.models.campaign import CampaignCounter, DistributionCampaign
from npscore.models.customer import Customer, CustomerSegment
from npscore.models.response import Answer, ResponseStatus, SurveyResponse
from npscore.models.survey import Question, Survey
from npscore.repositories.store import (
    CampaignRepository,
    CustomerRepository,
    ResponseRepository,
    SurveyRepository,
    UnitOfWork,
)
from npscore.schemas.aggregate import CustomerAggregate, SurveyAggregate
from npscore.schemas.records import (
    AnswerRecord,
    CampaignRecord,
    CustomerRecord,
    CustomerSegmentTotals,
    NewResponse,
    QuestionRecord,
    ResponseRecord,
    ScoredResponse,
    SegmentCounts,
    SurveyRecord,
)

logger = logging.getLogger(__name__)

COMPLETED = ResponseStatus.COMPLETED.value

RESPONSE_SORT_COLUMNS = {
    "created_at": SurveyResponse.created_at,
    "completed_at": SurveyResponse.completed_at,
    "nps_score": SurveyResponse.nps_score,
}


def _segment_sum(segment: CustomerSegment):
    return func.coalesce(func.sum(case((SurveyResponse.segment == segment.value, 1), else_=0)), 0)


def _segment_count_columns():
    return (
        func.count(SurveyResponse.id),
        _segment_sum(CustomerSegment.PROMOTER),
        _segment_sum(CustomerSegment.PASSIVE),
        _segment_sum(CustomerSegment.DETRACTOR),
    )


def _to_counts(row) -> SegmentCounts:
    total, promoters, passives, detractors = row
    return SegmentCounts(
        total=int(total or 0),
        promoters=int(promoters or 0),
        passives=int(passives or 0),
        detractors=int(detractors or 0),
    )


class SqlSurveyRepository(SurveyRepository):
    def __init__(self, db: Session):
        self.db = db

    def get(self, survey_id, organization_id=None, for_update=False):
        query = self.db.query(Survey).filter(Survey.id == survey_id)
        if organization_id is not None:
            query = query.filter(Survey.organization_id == organization_id)
        if for_update:
            query = query.with_for_update()
        survey = query.first()
        return SurveyRecord.model_validate(survey) if survey else None

    def get_by_share_code(self, share_code):
        survey = self.db.query(Survey).filter(Survey.share_code == share_code).first()
        return SurveyRecord.model_validate(survey) if survey else None

    def list_questions(self, survey_id):
        questions = (
            self.db.query(Question)
            .filter(Question.survey_id == survey_id)
            .order_by(Question.order, Question.created_at)
            .all()
        )
        return [QuestionRecord.model_validate(q) for q in questions]

    def list_for_organization(self, organization_id, limit=None):
        query = (
            self.db.query(Survey)
            .filter(Survey.organization_id == organization_id)
            .order_by(Survey.created_at.desc(), Survey.id)
        )
        if limit is not None:
            query = query.limit(limit)
        return [SurveyRecord.model_validate(s) for s in query.all()]

    def list_ids(self, organization_id):
        rows = self.db.query(Survey.id).filter(Survey.organization_id == organization_id).all()
        return [r.id for r in rows]

    def save_aggregate(self, aggregate: SurveyAggregate):
        self.db.query(Survey).filter(Survey.id == aggregate.survey_id).update(
            {
                Survey.response_count: aggregate.response_count,
                Survey.promoters_count: aggregate.promoters,
                Survey.passives_count: aggregate.passives,
                Survey.detractors_count: aggregate.detractors,
                Survey.nps_score: aggregate.nps_score,
            },
            synchronize_session=False,
        )


class SqlResponseRepository(ResponseRepository):
    def __init__(self, db: Session):
        self.db = db

    def _scoped(self, organization_id: Optional[str]):
        query = self.db.query(SurveyResponse)
        if organization_id is not None:
            query = query.join(Survey, Survey.id == SurveyResponse.survey_id).filter(
                Survey.organization_id == organization_id
            )
        return query

    def _to_record(self, response: SurveyResponse, answers: List[Answer]) -> ResponseRecord:
        record = ResponseRecord.model_validate(response)
        return record.model_copy(update={"answers": [AnswerRecord.model_validate(a) for a in answers]})

    def add(self, response: NewResponse, answers):
        row = SurveyResponse(
            survey_id=response.survey_id,
            customer_id=response.customer_id,
            campaign_id=response.campaign_id,
            nps_score=response.nps_score,
            segment=response.segment,
            status=response.status,
            feedback=response.feedback,
            respondent_email=response.respondent_email,
            respondent_name=response.respondent_name,
            ip_address=response.ip_address,
            user_agent=response.user_agent,
            extra=response.metadata,
            created_at=response.created_at,
            completed_at=response.completed_at,
        )
        self.db.add(row)
        self.db.flush()

        answer_rows = [
            Answer(
                response_id=row.id,
                question_id=a.question_id,
                value=a.value,
                numeric_value=a.numeric_value,
                selected_options=a.selected_options,
                other_value=a.other_value,
            )
            for a in answers
        ]
        self.db.add_all(answer_rows)
        self.db.flush()
        return self._to_record(row, answer_rows)

    def get(self, response_id, organization_id=None):
        response = self._scoped(organization_id).filter(SurveyResponse.id == response_id).first()
        if not response:
            return None
        answers = self.db.query(Answer).filter(Answer.response_id == response.id).all()
        return self._to_record(response, answers)

    def delete(self, response_id):
        # Explicit cascade; do not rely on the database enforcing ON DELETE
        self.db.query(Answer).filter(Answer.response_id == response_id).delete(synchronize_session=False)
        self.db.query(SurveyResponse).filter(SurveyResponse.id == response_id).delete(synchronize_session=False)

    def set_flag(self, response_id, flagged, reason):
        self.db.query(SurveyResponse).filter(SurveyResponse.id == response_id).update(
            {SurveyResponse.flagged: flagged, SurveyResponse.flag_reason: reason},
            synchronize_session=False,
        )

    def segment_counts(self, survey_id):
        row = (
            self.db.query(*_segment_count_columns())
            .filter(
                SurveyResponse.survey_id == survey_id,
                SurveyResponse.status == COMPLETED,
            )
            .one()
        )
        return _to_counts(row)

    def organization_segment_counts(self, organization_id):
        row = (
            self.db.query(*_segment_count_columns())
            .join(Survey, Survey.id == SurveyResponse.survey_id)
            .filter(
                Survey.organization_id == organization_id,
                SurveyResponse.status == COMPLETED,
            )
            .one()
        )
        return _to_counts(row)

    def count_completed_for_customer(self, customer_id):
        return (
            self.db.query(func.count(SurveyResponse.id))
            .filter(
                SurveyResponse.customer_id == customer_id,
                SurveyResponse.status == COMPLETED,
            )
            .scalar()
            or 0
        )

    def latest_completed_for_customer(self, customer_id, scored_only=False):
        query = self.db.query(SurveyResponse).filter(
            SurveyResponse.customer_id == customer_id,
            SurveyResponse.status == COMPLETED,
        )
        if scored_only:
            query = query.filter(SurveyResponse.nps_score.isnot(None))
        latest = query.order_by(SurveyResponse.completed_at.desc(), SurveyResponse.created_at.desc()).first()
        return ScoredResponse.model_validate(latest) if latest else None

    def list_completed_since(self, organization_id, since: datetime):
        rows = (
            self.db.query(
                SurveyResponse.created_at,
                SurveyResponse.completed_at,
                SurveyResponse.nps_score,
                SurveyResponse.segment,
            )
            .join(Survey, Survey.id == SurveyResponse.survey_id)
            .filter(
                Survey.organization_id == organization_id,
                SurveyResponse.status == COMPLETED,
                SurveyResponse.created_at >= since,
            )
            .order_by(SurveyResponse.created_at)
            .all()
        )
        return [ScoredResponse.model_validate(r) for r in rows]

    def search(self, organization_id, query):
        q = self._scoped(organization_id)
        if query.survey_id:
            q = q.filter(SurveyResponse.survey_id == query.survey_id)
        if query.segment:
            q = q.filter(SurveyResponse.segment == query.segment.value)
        if query.flagged is not None:
            q = q.filter(SurveyResponse.flagged == query.flagged)
        if query.start_date:
            q = q.filter(SurveyResponse.created_at >= query.start_date)
        if query.end_date:
            q = q.filter(SurveyResponse.created_at <= query.end_date)
        if query.search and query.search.strip():
            term = f"%{query.search.strip()}%"
            q = q.outerjoin(Customer, Customer.id == SurveyResponse.customer_id).filter(
                or_(
                    SurveyResponse.feedback.ilike(term),
                    SurveyResponse.respondent_email.ilike(term),
                    SurveyResponse.respondent_name.ilike(term),
                    Customer.name.ilike(term),
                    Customer.email.ilike(term),
                )
            )

        total = q.count()

        sort_col = RESPONSE_SORT_COLUMNS[query.sort_by]
        if query.sort_order == "asc":
            q = q.order_by(sort_col.asc(), SurveyResponse.id)
        else:
            q = q.order_by(sort_col.desc(), SurveyResponse.id)
        responses = q.offset((query.page - 1) * query.limit).limit(query.limit).all()

        answers_by_response = {}
        if responses:
            answers = self.db.query(Answer).filter(Answer.response_id.in_([r.id for r in responses])).all()
            for answer in answers:
                answers_by_response.setdefault(answer.response_id, []).append(answer)

        records = [self._to_record(r, answers_by_response.get(r.id, [])) for r in responses]
        return records, total

    def hourly_counts(self, organization_id):
        hour = extract("hour", SurveyResponse.created_at)
        rows = (
            self.db.query(hour, func.count(SurveyResponse.id))
            .join(Survey, Survey.id == SurveyResponse.survey_id)
            .filter(
                Survey.organization_id == organization_id,
                SurveyResponse.status == COMPLETED,
            )
            .group_by(hour)
            .all()
        )
        return {int(h): int(count) for h, count in rows}


class SqlCustomerRepository(CustomerRepository):
    def __init__(self, db: Session):
        self.db = db

    def get(self, customer_id, organization_id=None, for_update=False):
        query = self.db.query(Customer).filter(Customer.id == customer_id)
        if organization_id is not None:
            query = query.filter(Customer.organization_id == organization_id)
        if for_update:
            query = query.with_for_update()
        customer = query.first()
        return CustomerRecord.model_validate(customer) if customer else None

    def find_by_email(self, organization_id, email):
        customer = (
            self.db.query(Customer)
            .filter(Customer.organization_id == organization_id, Customer.email == email)
            .first()
        )
        return CustomerRecord.model_validate(customer) if customer else None

    def create(self, organization_id, email, name):
        customer = Customer(organization_id=organization_id, email=email, name=name)
        self.db.add(customer)
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateCustomerError(organization_id, email) from exc
        return CustomerRecord.model_validate(customer)

    def count(self, organization_id):
        return (
            self.db.query(func.count(Customer.id))
            .filter(Customer.organization_id == organization_id)
            .scalar()
            or 0
        )

    def segment_totals(self, organization_id):
        rows = (
            self.db.query(
                Customer.segment,
                func.count(Customer.id),
                func.coalesce(func.sum(Customer.nps_score), 0),
            )
            .filter(
                Customer.organization_id == organization_id,
                Customer.segment.isnot(None),
            )
            .group_by(Customer.segment)
            .all()
        )
        return [
            CustomerSegmentTotals(segment=segment, customers=int(count), score_total=int(total))
            for segment, count, total in rows
        ]

    def list_ids(self, organization_id):
        rows = self.db.query(Customer.id).filter(Customer.organization_id == organization_id).all()
        return [r.id for r in rows]

    def save_aggregate(self, aggregate: CustomerAggregate):
        self.db.query(Customer).filter(Customer.id == aggregate.customer_id).update(
            {
                Customer.nps_score: aggregate.nps_score,
                Customer.segment: aggregate.segment,
                Customer.last_survey_at: aggregate.last_survey_at,
                Customer.total_responses: aggregate.total_responses,
            },
            synchronize_session=False,
        )


class SqlCampaignRepository(CampaignRepository):
    def __init__(self, db: Session):
        self.db = db

    def get(self, campaign_id, organization_id=None):
        query = self.db.query(DistributionCampaign).filter(DistributionCampaign.id == campaign_id)
        if organization_id is not None:
            query = query.filter(DistributionCampaign.organization_id == organization_id)
        campaign = query.first()
        return CampaignRecord.model_validate(campaign) if campaign else None

    def increment(self, campaign_id, counter: CampaignCounter, delta):
        column = getattr(DistributionCampaign, counter.column)
        updated = (
            self.db.query(DistributionCampaign)
            .filter(DistributionCampaign.id == campaign_id)
            .update({column: column + delta}, synchronize_session=False)
        )
        return updated > 0


class SqlAlchemyUnitOfWork(UnitOfWork):
    def __init__(self, db: Session):
        self.db = db
        self.surveys = SqlSurveyRepository(db)
        self.responses = SqlResponseRepository(db)
        self.customers = SqlCustomerRepository(db)
        self.campaigns = SqlCampaignRepository(db)

    def commit(self):
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Commit failed: {exc}")
            raise PersistenceError("Storage failure while committing") from exc

    def rollback(self):
        self.db.rollback()

    def close(self):
        self.db.close()

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None and issubclass(exc_type, SQLAlchemyError):
            try:
                self.db.rollback()
            finally:
                self.db.close()
            logger.error(f"Storage operation failed: {exc}")
            raise PersistenceError("Storage failure") from exc
        return super().__exit__(exc_type, exc, tb)


class SqlAlchemyStore:
    """Store factory: each call opens a new session wrapped in a unit of work."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def __call__(self) -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork(self.session_factory())
