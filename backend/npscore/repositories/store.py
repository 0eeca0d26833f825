"""Persistence abstraction the core runs against.

The host supplies a ``StoreFactory``: a zero-argument callable returning a
fresh ``UnitOfWork``. A unit of work is one transaction. Used as a context
manager it commits on a clean exit and rolls back when the block raises.
Implementations translate storage failures into ``PersistenceError``.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from npscore.models.campaign import CampaignCounter
from npscore.schemas.aggregate import CustomerAggregate, SurveyAggregate
from npscore.schemas.records import (
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
from npscore.schemas.response import AnswerIn, ResponseQuery


class SurveyRepository(ABC):
    @abstractmethod
    def get(self, survey_id: str, organization_id: Optional[str] = None,
            for_update: bool = False) -> Optional[SurveyRecord]:
        """Fetch a survey; ``for_update`` locks the row until the unit of work ends."""

    @abstractmethod
    def get_by_share_code(self, share_code: str) -> Optional[SurveyRecord]:
        ...

    @abstractmethod
    def list_questions(self, survey_id: str) -> List[QuestionRecord]:
        """Questions in display order."""

    @abstractmethod
    def list_for_organization(self, organization_id: str, limit: Optional[int] = None) -> List[SurveyRecord]:
        """Surveys of an organization, newest first."""

    @abstractmethod
    def list_ids(self, organization_id: str) -> List[str]:
        ...

    @abstractmethod
    def save_aggregate(self, aggregate: SurveyAggregate) -> None:
        """Write all aggregate fields in a single update."""


class ResponseRepository(ABC):
    @abstractmethod
    def add(self, response: NewResponse, answers: List[AnswerIn]) -> ResponseRecord:
        ...

    @abstractmethod
    def get(self, response_id: str, organization_id: Optional[str] = None) -> Optional[ResponseRecord]:
        ...

    @abstractmethod
    def delete(self, response_id: str) -> None:
        """Delete a response together with its answers."""

    @abstractmethod
    def set_flag(self, response_id: str, flagged: bool, reason: Optional[str]) -> None:
        ...

    @abstractmethod
    def segment_counts(self, survey_id: str) -> SegmentCounts:
        """Counts over COMPLETED responses of one survey."""

    @abstractmethod
    def organization_segment_counts(self, organization_id: str) -> SegmentCounts:
        ...

    @abstractmethod
    def count_completed_for_customer(self, customer_id: str) -> int:
        ...

    @abstractmethod
    def latest_completed_for_customer(self, customer_id: str,
                                      scored_only: bool = False) -> Optional[ScoredResponse]:
        """Most recent COMPLETED response by submission time."""

    @abstractmethod
    def list_completed_since(self, organization_id: str, since: datetime) -> List[ScoredResponse]:
        ...

    @abstractmethod
    def search(self, organization_id: str, query: ResponseQuery) -> Tuple[List[ResponseRecord], int]:
        """One page of matching responses and the total number of matches."""

    @abstractmethod
    def hourly_counts(self, organization_id: str) -> Dict[int, int]:
        """COMPLETED responses per hour of day (0-23) of ``created_at``; empty hours are absent."""


class CustomerRepository(ABC):
    @abstractmethod
    def get(self, customer_id: str, organization_id: Optional[str] = None,
            for_update: bool = False) -> Optional[CustomerRecord]:
        ...

    @abstractmethod
    def find_by_email(self, organization_id: str, email: str) -> Optional[CustomerRecord]:
        ...

    @abstractmethod
    def create(self, organization_id: str, email: str, name: str) -> CustomerRecord:
        """Insert a customer; raise ``DuplicateCustomerError`` if (organization_id, email) exists."""

    @abstractmethod
    def count(self, organization_id: str) -> int:
        ...

    @abstractmethod
    def segment_totals(self, organization_id: str) -> List[CustomerSegmentTotals]:
        """Per-segment customer counts and score sums; unsegmented customers are left out."""

    @abstractmethod
    def list_ids(self, organization_id: str) -> List[str]:
        ...

    @abstractmethod
    def save_aggregate(self, aggregate: CustomerAggregate) -> None:
        ...


class CampaignRepository(ABC):
    @abstractmethod
    def get(self, campaign_id: str, organization_id: Optional[str] = None) -> Optional[CampaignRecord]:
        ...

    @abstractmethod
    def increment(self, campaign_id: str, counter: CampaignCounter, delta: int) -> bool:
        """Atomically add ``delta`` to a counter; False when the campaign does not exist."""


class UnitOfWork(ABC):
    surveys: SurveyRepository
    responses: ResponseRepository
    customers: CustomerRepository
    campaigns: CampaignRepository

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            self.close()
        return False


StoreFactory = Callable[[], UnitOfWork]
