import logging
from datetime import datetime
from typing import Optional

from npscore.core.errors import NotFound
from npscore.repositories.store import StoreFactory
from npscore.schemas.aggregate import CustomerAggregate
from npscore.schemas.records import CustomerRecord
from npscore.services.classifier import segment_value

logger = logging.getLogger(__name__)


def aggregate_from_record(customer: CustomerRecord) -> CustomerAggregate:
    return CustomerAggregate(
        customer_id=customer.id,
        nps_score=customer.nps_score,
        segment=customer.segment,
        last_survey_at=customer.last_survey_at,
        total_responses=customer.total_responses,
    )


class CustomerAggregator:
    """
    Maintains a customer's latest score, segment, last survey time and response count.

    The customer row is locked for the whole update. The latest score is
    decided by submission time: a response submitted before the one already
    recorded never overwrites it, whatever order the calls arrive in.
    """

    def __init__(self, store: StoreFactory):
        self.store = store

    def apply_response(self, customer_id: str, score: Optional[int], submitted_at: datetime) -> CustomerAggregate:
        with self.store() as uow:
            customer = uow.customers.get(customer_id, for_update=True)
            if customer is None:
                raise NotFound("Customer not found")

            aggregate = aggregate_from_record(customer)
            aggregate.total_responses = uow.responses.count_completed_for_customer(customer_id)

            is_latest = customer.last_survey_at is None or submitted_at >= customer.last_survey_at
            if is_latest:
                aggregate.last_survey_at = submitted_at
                # A response without a score carries no classification
                if score is not None:
                    aggregate.nps_score = score
                    aggregate.segment = segment_value(score)
            else:
                logger.info(
                    f"Out-of-order response for customer_id={customer_id}: submitted {submitted_at}, "
                    f"latest recorded {customer.last_survey_at}; keeping latest score"
                )

            uow.customers.save_aggregate(aggregate)

        return aggregate

    def recompute(self, customer_id: str) -> CustomerAggregate:
        """Re-derive every aggregate field from the customer's COMPLETED responses."""
        with self.store() as uow:
            customer = uow.customers.get(customer_id, for_update=True)
            if customer is None:
                raise NotFound("Customer not found")

            latest = uow.responses.latest_completed_for_customer(customer_id)
            latest_scored = uow.responses.latest_completed_for_customer(customer_id, scored_only=True)
            aggregate = CustomerAggregate(
                customer_id=customer_id,
                nps_score=latest_scored.nps_score if latest_scored else None,
                segment=segment_value(latest_scored.nps_score) if latest_scored else None,
                last_survey_at=(latest.completed_at or latest.created_at) if latest else None,
                total_responses=uow.responses.count_completed_for_customer(customer_id),
            )
            uow.customers.save_aggregate(aggregate)

        logger.info(f"Customer aggregate recomputed: customer_id={customer_id}, total={aggregate.total_responses}")
        return aggregate

    def get(self, customer_id: str, organization_id: Optional[str] = None) -> CustomerAggregate:
        with self.store() as uow:
            customer = uow.customers.get(customer_id, organization_id)
        if customer is None:
            raise NotFound("Customer not found")
        return aggregate_from_record(customer)
