"""
Tests for the ingestion coordinator: paths, validation, customer resolution and transactions.
"""
import logging
import threading

import pytest
from sqlalchemy.exc import OperationalError

from conftest import ORG_ID, OTHER_ORG_ID
from npscore.core.errors import (
    InvalidState,
    NotFound,
    PersistenceError,
    SurveyNotAcceptingResponses,
    ValidationError,
)
from npscore.models import Answer, Customer, DistributionCampaign, SurveyResponse, SurveyStatus
from npscore.repositories.sqlalchemy_store import SqlAlchemyStore
from npscore.core.database import create_session_factory
from npscore.services.core import NpsCore


def nps_answer(survey, value):
    return {"question_id": survey.nps_question_ids[0], "numeric_value": value}


# ── Paths ───────────────────────────────────────────────────────────


def test_authenticated_ingest_persists_response_and_answers(core, seed, clock):
    survey = seed.survey()
    record = core.ingest_response(survey.id, ORG_ID, {
        "score": 9,
        "feedback": "Great support",
        "answers": [{"question_id": survey.question_ids[1], "value": "Fast replies"}],
    })

    assert record.nps_score == 9
    assert record.segment == "promoter"
    assert record.status == "completed"
    assert record.created_at == clock.now
    assert record.completed_at == clock.now
    assert len(record.answers) == 1
    assert seed.count(Answer, response_id=record.id) == 1

    aggregate = core.get_survey_aggregate(survey.id, ORG_ID)
    assert aggregate.response_count == 1
    assert aggregate.promoters == 1
    assert aggregate.nps_score == 100


def test_public_submission_takes_score_from_nps_question(core, seed):
    survey = seed.survey()
    record = core.submit_public_response(survey.id, ORG_ID, {"answers": [nps_answer(survey, 7)]})

    assert record.nps_score == 7
    assert record.segment == "passive"


def test_public_submission_records_context(core, seed):
    survey = seed.survey()
    record = core.submit_public_response(
        survey.id, ORG_ID,
        {"answers": [nps_answer(survey, 3)], "metadata": {"source": "qr"}},
        {"ip_address": "203.0.113.9", "user_agent": "pytest"},
    )

    row = seed.get(SurveyResponse, record.id)
    assert row.ip_address == "203.0.113.9"
    assert row.user_agent == "pytest"
    assert row.extra == {"source": "qr"}


def test_public_submission_by_share_code(core, seed):
    survey = seed.survey()
    record = core.submit_public_response_by_share_code(survey.share_code, {"answers": [nps_answer(survey, 10)]})
    assert record.survey_id == survey.id


def test_unknown_share_code_is_not_found(core):
    with pytest.raises(NotFound):
        core.submit_public_response_by_share_code("nope", {"answers": []})


@pytest.mark.parametrize("status", [SurveyStatus.DRAFT.value, SurveyStatus.PAUSED.value, SurveyStatus.CLOSED.value])
def test_public_submission_rejected_unless_active(core, seed, status):
    survey = seed.survey(status=status)

    with pytest.raises(SurveyNotAcceptingResponses) as exc_info:
        core.submit_public_response(survey.id, ORG_ID, {"answers": [nps_answer(survey, 9)]})

    assert isinstance(exc_info.value, InvalidState)
    assert exc_info.value.status == status
    assert seed.count(SurveyResponse) == 0


def test_authenticated_ingest_accepts_closed_survey(core, seed):
    survey = seed.survey(status=SurveyStatus.CLOSED.value)
    record = core.ingest_response(survey.id, ORG_ID, {"score": 8})
    assert record.nps_score == 8


def test_response_without_score_is_unclassified(core, seed):
    survey = seed.survey(nps_questions=0)
    record = core.ingest_response(survey.id, ORG_ID, {"feedback": "No rating given"})

    assert record.nps_score is None
    assert record.segment is None
    aggregate = core.get_survey_aggregate(survey.id, ORG_ID)
    assert aggregate.response_count == 1
    assert aggregate.unclassified == 1
    assert aggregate.nps_score is None


def test_explicit_score_wins_over_answer(core, seed):
    survey = seed.survey()
    record = core.ingest_response(survey.id, ORG_ID, {"score": 2, "answers": [nps_answer(survey, 10)]})
    assert record.nps_score == 2


def test_first_nps_question_wins(core, seed, caplog):
    survey = seed.survey(nps_questions=2)
    first, second = survey.nps_question_ids

    with caplog.at_level(logging.WARNING):
        record = core.submit_public_response(survey.id, ORG_ID, {"answers": [
            {"question_id": second, "numeric_value": 0},
            {"question_id": first, "numeric_value": 10},
        ]})

    assert record.nps_score == 10
    assert "more than one NPS question" in caplog.text


# ── Validation ──────────────────────────────────────────────────────


@pytest.mark.parametrize("value", [11, -1, 7.5])
def test_invalid_nps_answer_rejected(core, seed, value):
    survey = seed.survey()

    with pytest.raises(ValidationError) as exc_info:
        core.submit_public_response(survey.id, ORG_ID, {"answers": [nps_answer(survey, value)]})

    assert exc_info.value.errors[0]["field"] == "answers.0.numeric_value"
    assert seed.count(SurveyResponse) == 0


def test_integral_float_answer_accepted(core, seed):
    survey = seed.survey()
    record = core.submit_public_response(survey.id, ORG_ID, {"answers": [nps_answer(survey, 8.0)]})
    assert record.nps_score == 8


def test_out_of_range_top_level_score_rejected(core, seed):
    survey = seed.survey()
    with pytest.raises(ValidationError) as exc_info:
        core.ingest_response(survey.id, ORG_ID, {"score": 11})
    assert exc_info.value.errors[0]["field"] == "score"



@pytest.mark.parametrize("score", [True, False, "9", 9.0])
def test_non_integer_top_level_score_rejected(core, seed, score):
    survey = seed.survey()

    with pytest.raises(ValidationError) as exc_info:
        core.ingest_response(survey.id, ORG_ID, {"score": score})

    assert exc_info.value.errors[0]["field"] == "score"
    assert seed.count(SurveyResponse) == 0


@pytest.mark.parametrize("value", [True, False])
def test_boolean_nps_answer_rejected(core, seed, value):
    survey = seed.survey()

    with pytest.raises(ValidationError) as exc_info:
        core.submit_public_response(survey.id, ORG_ID, {"answers": [nps_answer(survey, value)]})

    assert exc_info.value.errors[0]["field"] == "answers.0.numeric_value"
    assert seed.count(SurveyResponse) == 0


def test_answer_to_foreign_question_rejected(core, seed):
    survey = seed.survey()
    other = seed.survey()

    with pytest.raises(ValidationError) as exc_info:
        core.ingest_response(survey.id, ORG_ID, {"answers": [{"question_id": other.question_ids[0], "value": "x"}]})

    assert exc_info.value.errors[0]["field"] == "answers.0.question_id"


def test_duplicate_answer_rejected(core, seed):
    survey = seed.survey()
    with pytest.raises(ValidationError):
        core.submit_public_response(survey.id, ORG_ID, {"answers": [nps_answer(survey, 9), nps_answer(survey, 9)]})


def test_public_payload_cannot_carry_score_or_customer(core, seed):
    survey = seed.survey()
    customer_id = seed.customer("known@example.com")

    with pytest.raises(ValidationError):
        core.submit_public_response(survey.id, ORG_ID, {"score": 10})
    with pytest.raises(ValidationError):
        core.submit_public_response(survey.id, ORG_ID, {"customer_id": customer_id})


def test_invalid_email_rejected(core, seed):
    survey = seed.survey()
    with pytest.raises(ValidationError) as exc_info:
        core.ingest_response(survey.id, ORG_ID, {"respondent_email": "not-an-email"})
    assert exc_info.value.errors[0]["field"] == "respondent_email"


def test_validation_happens_before_customer_is_created(core, seed):
    survey = seed.survey()

    with pytest.raises(ValidationError):
        core.submit_public_response(survey.id, ORG_ID, {
            "respondent_email": "new@example.com",
            "answers": [nps_answer(survey, 42)],
        })

    assert seed.count(Customer) == 0


# ── Scope ───────────────────────────────────────────────────────────


def test_survey_from_other_organization_is_not_found(core, seed):
    survey = seed.survey(organization_id=OTHER_ORG_ID)
    with pytest.raises(NotFound):
        core.ingest_response(survey.id, ORG_ID, {"score": 9})


def test_unknown_survey_is_not_found(core):
    with pytest.raises(NotFound):
        core.ingest_response("missing", ORG_ID, {"score": 9})


def test_customer_from_other_organization_is_not_found(core, seed):
    survey = seed.survey()
    customer_id = seed.customer("someone@example.com", organization_id=OTHER_ORG_ID)

    with pytest.raises(NotFound):
        core.ingest_response(survey.id, ORG_ID, {"score": 9, "customer_id": customer_id})


def test_campaign_of_another_survey_is_not_found(core, seed):
    survey = seed.survey()
    other = seed.survey()
    campaign_id = seed.campaign(other.id)

    with pytest.raises(NotFound):
        core.ingest_response(survey.id, ORG_ID, {"score": 9, "campaign_id": campaign_id})


def test_campaign_attribution_increments_responded(core, seed):
    survey = seed.survey()
    campaign_id = seed.campaign(survey.id, sent=4)

    record = core.submit_public_response(survey.id, ORG_ID, {
        "campaign_id": campaign_id,
        "answers": [nps_answer(survey, 9)],
    })

    assert record.campaign_id == campaign_id
    stats = core.get_campaign_stats(campaign_id, ORG_ID)
    assert stats.responded == 1
    assert stats.response_rate == 25.0


# ── Customers ───────────────────────────────────────────────────────


def test_known_customer_by_id(core, seed):
    survey = seed.survey()
    customer_id = seed.customer("known@example.com")

    record = core.ingest_response(survey.id, ORG_ID, {"score": 6, "customer_id": customer_id})

    assert record.customer_id == customer_id
    aggregate = core.get_customer_aggregate(customer_id, ORG_ID)
    assert aggregate.nps_score == 6
    assert aggregate.segment == "detractor"
    assert aggregate.total_responses == 1


def test_customer_created_from_email(core, seed):
    survey = seed.survey()
    record = core.submit_public_response(survey.id, ORG_ID, {
        "respondent_email": "pat@example.com",
        "respondent_name": "Pat",
        "answers": [nps_answer(survey, 9)],
    })

    customer = seed.get(Customer, record.customer_id)
    assert customer.email == "pat@example.com"
    assert customer.name == "Pat"
    assert customer.organization_id == ORG_ID


def test_customer_name_defaults_to_email_local_part(core, seed):
    survey = seed.survey()
    record = core.ingest_response(survey.id, ORG_ID, {"respondent_email": "sam@example.com", "score": 5})
    assert seed.get(Customer, record.customer_id).name == "sam"


def test_email_match_is_case_insensitive(core, seed):
    survey = seed.survey()
    first = core.ingest_response(survey.id, ORG_ID, {"respondent_email": "Alice@Example.com", "score": 9})
    second = core.ingest_response(survey.id, ORG_ID, {"respondent_email": "alice@example.com", "score": 4})

    assert first.customer_id == second.customer_id
    assert seed.count(Customer) == 1
    assert seed.get(Customer, first.customer_id).email == "alice@example.com"


def test_same_email_in_two_organizations_gives_two_customers(core, seed):
    mine = seed.survey()
    theirs = seed.survey(organization_id=OTHER_ORG_ID)

    a = core.ingest_response(mine.id, ORG_ID, {"respondent_email": "x@example.com", "score": 9})
    b = core.ingest_response(theirs.id, OTHER_ORG_ID, {"respondent_email": "x@example.com", "score": 9})

    assert a.customer_id != b.customer_id


def test_anonymous_survey_drops_customer_link(core, seed):
    survey = seed.survey(anonymous=True)
    customer_id = seed.customer("known@example.com")

    record = core.ingest_response(survey.id, ORG_ID, {
        "score": 9,
        "customer_id": customer_id,
        "respondent_email": "someone@example.com",
        "respondent_name": "Someone",
    })

    assert record.customer_id is None
    assert record.respondent_email is None
    assert record.respondent_name is None
    assert seed.count(Customer) == 1
    assert core.get_customer_aggregate(customer_id, ORG_ID).total_responses == 0


class StaleReadStore:
    """Store whose first customer lookup misses, as if another writer had not committed yet."""

    def __init__(self, inner):
        self.inner = inner
        self.misses = 1

    def __call__(self):
        uow = self.inner()
        find_by_email = uow.customers.find_by_email

        def stale_find_by_email(organization_id, email):
            if self.misses:
                self.misses -= 1
                return None
            return find_by_email(organization_id, email)

        uow.customers.find_by_email = stale_find_by_email
        return uow


def test_find_or_create_conflict_reuses_existing_customer(store, seed, clock, caplog):
    survey = seed.survey()
    existing_id = seed.customer("race@example.com")
    core = NpsCore(StaleReadStore(store), clock=clock)

    with caplog.at_level(logging.INFO):
        record = core.submit_public_response(survey.id, ORG_ID, {
            "respondent_email": "race@example.com",
            "answers": [nps_answer(survey, 9)],
        })

    assert record.customer_id == existing_id
    assert seed.count(Customer) == 1
    assert "conflict resolved" in caplog.text


def test_concurrent_submissions_create_one_customer(file_engine, seed_file, clock):
    survey = seed_file.survey()
    core = NpsCore(SqlAlchemyStore(create_session_factory(file_engine)), clock=clock)
    barrier = threading.Barrier(4)
    records, errors = [], []

    def submit(score):
        barrier.wait()
        try:
            records.append(core.submit_public_response(survey.id, ORG_ID, {
                "respondent_email": "burst@example.com",
                "answers": [nps_answer(survey, score)],
            }))
        except Exception as exc:  # surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=submit, args=(score,)) for score in (6, 7, 8, 9)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len({r.customer_id for r in records}) == 1
    assert seed_file.count(Customer) == 1

    customer = core.get_customer_aggregate(records[0].customer_id, ORG_ID)
    assert customer.total_responses == 4
    survey_aggregate = core.get_survey_aggregate(survey.id, ORG_ID)
    assert survey_aggregate.response_count == 4


# ── Transactions ────────────────────────────────────────────────────


class FailingInsertStore:
    """Store whose response insert fails after the rows were written."""

    def __init__(self, inner):
        self.inner = inner

    def __call__(self):
        uow = self.inner()
        add = uow.responses.add

        def failing_add(response, answers):
            add(response, answers)
            raise OperationalError("INSERT INTO answers", {}, Exception("disk I/O error"))

        uow.responses.add = failing_add
        return uow


def test_failed_persist_rolls_back_everything(store, seed, clock):
    survey = seed.survey()
    core = NpsCore(FailingInsertStore(store), clock=clock)

    with pytest.raises(PersistenceError) as exc_info:
        core.submit_public_response(survey.id, ORG_ID, {"answers": [
            nps_answer(survey, 9),
            {"question_id": survey.question_ids[1], "value": "lost"},
        ]})

    assert exc_info.value.retryable
    assert seed.count(SurveyResponse) == 0
    assert seed.count(Answer) == 0
    assert NpsCore(store).get_survey_aggregate(survey.id, ORG_ID).response_count == 0



def test_failed_persist_does_not_leave_new_customer(store, seed, clock):
    survey = seed.survey()
    core = NpsCore(FailingInsertStore(store), clock=clock)

    with pytest.raises(PersistenceError):
        core.submit_public_response(survey.id, ORG_ID, {
            "respondent_email": "lost.com",
            "answers": [nps_answer(survey, 9)],
        })

    assert seed.count(SurveyResponse) == 0
    assert seed.count(Customer) == 0



def test_deleting_customer_or_campaign_keeps_response(core, seed, session_factory):
    survey = seed.survey()
    customer_id = seed.customer("gone@example.com")
    campaign_id = seed.campaign(survey.id)
    record = core.ingest_response(survey.id, ORG_ID, {
        "score": 9,
        "customer_id": customer_id,
        "campaign_id": campaign_id,
    })

    db = session_factory()
    try:
        db.query(Customer).filter(Customer.id == customer_id).delete(synchronize_session=False)
        db.query(DistributionCampaign).filter(DistributionCampaign.id == campaign_id).delete(
            synchronize_session=False
        )
        db.commit()
    finally:
        db.close()

    row = seed.get(SurveyResponse, record.id)
    assert row is not None
    assert row.customer_id is None
    assert row.campaign_id is None
    assert core.get_survey_aggregate(survey.id, ORG_ID).response_count == 1

# ── Maintenance ─────────────────────────────────────────────────────


def test_get_response_is_scoped(core, seed):
    survey = seed.survey()
    record = core.ingest_response(survey.id, ORG_ID, {"score": 9})

    assert core.get_response(record.id, ORG_ID).id == record.id
    with pytest.raises(NotFound):
        core.get_response(record.id, OTHER_ORG_ID)


def test_flag_and_unflag_response(core, seed):
    survey = seed.survey()
    record = core.ingest_response(survey.id, ORG_ID, {"score": 1})

    flagged = core.flag_response(record.id, ORG_ID, True, "spam")
    assert flagged.flagged is True
    assert flagged.flag_reason == "spam"

    cleared = core.flag_response(record.id, ORG_ID, False)
    assert cleared.flagged is False
    assert cleared.flag_reason is None


def test_flag_reason_too_long(core, seed):
    survey = seed.survey()
    record = core.ingest_response(survey.id, ORG_ID, {"score": 1})
    with pytest.raises(ValidationError):
        core.flag_response(record.id, ORG_ID, True, "x" * 501)
