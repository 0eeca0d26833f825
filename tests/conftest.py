"""Pytest configuration and fixtures."""
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

import npscore.models  # noqa: F401  register tables
from npscore.core.config import Settings
from npscore.core.database import Base, create_db_engine, create_session_factory
from npscore.models import (
    Customer,
    DistributionCampaign,
    Question,
    QuestionType,
    Survey,
    SurveyResponse,
    SurveyStatus,
)
from npscore.models.response import ResponseStatus
from npscore.repositories.sqlalchemy_store import SqlAlchemyStore
from npscore.services.classifier import segment_value
from npscore.services.core import NpsCore

ORG_ID = "org-1"
OTHER_ORG_ID = "org-2"
NOW = datetime(2026, 3, 20, 12, 0, 0)


class FrozenClock:
    """Naive-UTC clock the tests move by hand."""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


class Seeder:
    """Inserts rows straight through the ORM, bypassing the core."""

    def __init__(self, session_factory):
        self.session_factory = session_factory
        self._surveys = 0

    def survey(self, organization_id=ORG_ID, status=SurveyStatus.ACTIVE.value, anonymous=False,
               nps_questions=1, extra_questions=(QuestionType.TEXT.value,), target_responses=100, created_at=None):
        self._surveys += 1
        db = self.session_factory()
        try:
            survey = Survey(
                organization_id=organization_id,
                title=f"Survey {self._surveys}",
                status=status,
                anonymous_responses=anonymous,
                share_code=f"share-{self._surveys}-{organization_id}",
                target_responses=target_responses,
                created_at=created_at or NOW - timedelta(days=self._surveys),
            )
            db.add(survey)
            db.flush()

            types = [QuestionType.NPS.value] * nps_questions + list(extra_questions)
            questions = [
                Question(survey_id=survey.id, type=qtype, title=f"Question {i}", order=i)
                for i, qtype in enumerate(types)
            ]
            db.add_all(questions)
            db.commit()
            return SimpleNamespace(
                id=survey.id,
                organization_id=organization_id,
                share_code=survey.share_code,
                question_ids=[q.id for q in questions],
                nps_question_ids=[q.id for q in questions if q.type == QuestionType.NPS.value],
            )
        finally:
            db.close()

    def customer(self, email, organization_id=ORG_ID, name="Seeded Customer"):
        db = self.session_factory()
        try:
            customer = Customer(organization_id=organization_id, email=email, name=name)
            db.add(customer)
            db.commit()
            return customer.id
        finally:
            db.close()

    def campaign(self, survey_id, organization_id=ORG_ID, **counts):
        db = self.session_factory()
        try:
            campaign = DistributionCampaign(
                organization_id=organization_id,
                survey_id=survey_id,
                name="Campaign",
                **{f"{name}_count": value for name, value in counts.items()},
            )
            db.add(campaign)
            db.commit()
            return campaign.id
        finally:
            db.close()

    def response(self, survey_id, score, created_at, status=ResponseStatus.COMPLETED.value, customer_id=None):
        db = self.session_factory()
        try:
            response = SurveyResponse(
                survey_id=survey_id,
                customer_id=customer_id,
                nps_score=score,
                segment=segment_value(score),
                status=status,
                created_at=created_at,
                completed_at=created_at if status == ResponseStatus.COMPLETED.value else None,
            )
            db.add(response)
            db.commit()
            return response.id
        finally:
            db.close()

    def count(self, model, **filters):
        db = self.session_factory()
        try:
            return db.query(model).filter_by(**filters).count()
        finally:
            db.close()

    def get(self, model, row_id):
        db = self.session_factory()
        try:
            return db.get(model, row_id)
        finally:
            db.close()


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite for tests that use real threads."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'threads.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return SqlAlchemyStore(session_factory)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def core(store, clock):
    return NpsCore(store, clock=clock)


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
def seed_file(file_engine):
    return Seeder(create_session_factory(file_engine))


@pytest.fixture
def client(core):
    from npscore.main import create_app

    settings = Settings(DATABASE_URL="sqlite://", ENVIRONMENT="test", LOG_LEVEL="WARNING")
    app = create_app(settings=settings, core=core)
    return TestClient(app)
