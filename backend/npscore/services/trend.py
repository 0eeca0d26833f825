"""Trend and distribution reporting. Read path only."""
import enum
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List

from npscore.core.clock import utcnow
from npscore.core.errors import ValidationError
from npscore.models.customer import CustomerSegment
from npscore.repositories.store import StoreFactory
from npscore.schemas.aggregate import SegmentDistribution, TrendPoint
from npscore.services.classifier import calculate_nps, percentage

logger = logging.getLogger(__name__)


class Timeframe(str, enum.Enum):
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


def day_bucket(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%d")


def iso_week_bucket(ts: datetime) -> str:
    year, week, _ = ts.isocalendar()
    return f"{year}-W{week:02d}"


def month_bucket(ts: datetime) -> str:
    return ts.strftime("%Y-%m")


# timeframe -> (lookback days, bucket key function)
TIMEFRAMES: Dict[Timeframe, tuple] = {
    Timeframe.WEEK: (7, day_bucket),
    Timeframe.MONTH: (30, day_bucket),
    Timeframe.QUARTER: (90, iso_week_bucket),
    Timeframe.YEAR: (365, month_bucket),
}


def parse_timeframe(value) -> Timeframe:
    if isinstance(value, Timeframe):
        return value
    try:
        return Timeframe(str(value).lower())
    except ValueError:
        allowed = ", ".join(t.value for t in Timeframe)
        raise ValidationError.single("timeframe", f"Unknown timeframe '{value}' (expected one of: {allowed})") from None


class TrendAggregator:
    def __init__(self, store: StoreFactory, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    def trend(self, organization_id: str, timeframe="month") -> List[TrendPoint]:
        """
        NPS and segment counts per time bucket over the timeframe's lookback window.

        Buckets without responses are omitted. Keys sort lexicographically in
        time order for every granularity, so the output is ascending by key.
        """
        timeframe = parse_timeframe(timeframe)
        lookback_days, key_of = TIMEFRAMES[timeframe]
        since = self.clock() - timedelta(days=lookback_days)

        with self.store() as uow:
            rows = uow.responses.list_completed_since(organization_id, since)

        buckets: Dict[str, Dict[str, int]] = {}
        for row in rows:
            counts = buckets.setdefault(
                key_of(row.created_at),
                {"responses": 0, "promoters": 0, "passives": 0, "detractors": 0},
            )
            counts["responses"] += 1
            if row.segment == CustomerSegment.PROMOTER.value:
                counts["promoters"] += 1
            elif row.segment == CustomerSegment.PASSIVE.value:
                counts["passives"] += 1
            elif row.segment == CustomerSegment.DETRACTOR.value:
                counts["detractors"] += 1

        logger.debug(f"Trend for organization_id={organization_id}: {len(rows)} responses in {len(buckets)} buckets")

        points = []
        for key in sorted(buckets):
            counts = buckets[key]
            nps = calculate_nps(counts["promoters"], counts["passives"], counts["detractors"])
            points.append(TrendPoint(bucket_key=key, nps=nps if nps is not None else 0, **counts))
        return points

    def segment_distribution(self, organization_id: str) -> SegmentDistribution:
        with self.store() as uow:
            counts = uow.responses.organization_segment_counts(organization_id)

        return SegmentDistribution(
            promoters=counts.promoters,
            passives=counts.passives,
            detractors=counts.detractors,
            promoters_percentage=percentage(counts.promoters, counts.total),
            passives_percentage=percentage(counts.passives, counts.total),
            detractors_percentage=percentage(counts.detractors, counts.total),
        )
