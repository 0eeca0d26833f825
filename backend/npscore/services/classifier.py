"""Score → segment classification and the NPS arithmetic shared by every aggregator."""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from npscore.models.customer import CustomerSegment

PROMOTER_MIN = 9
PASSIVE_MIN = 7


def classify(score: Optional[int]) -> Optional[CustomerSegment]:
    """Map a pre-validated 0-10 score to its segment; None stays None."""
    if score is None:
        return None
    if score >= PROMOTER_MIN:
        return CustomerSegment.PROMOTER
    if score >= PASSIVE_MIN:
        return CustomerSegment.PASSIVE
    return CustomerSegment.DETRACTOR


def segment_value(score: Optional[int]) -> Optional[str]:
    segment = classify(score)
    return segment.value if segment else None


def round_half_up(value: Decimal, places: int = 0) -> Decimal:
    """Round to nearest, ties away from zero (not Python's banker's rounding)."""
    exponent = Decimal(1).scaleb(-places)
    return value.quantize(exponent, rounding=ROUND_HALF_UP)


def calculate_nps(promoters: int, passives: int, detractors: int) -> Optional[int]:
    """round(((promoters - detractors) / classified) * 100), None when nothing is classified."""
    classified = promoters + passives + detractors
    if classified <= 0:
        return None
    raw = Decimal(promoters - detractors) * 100 / Decimal(classified)
    return int(round_half_up(raw))


def percentage(part: int, whole: int) -> float:
    """part / whole as a percentage with one decimal; 0.0 for an empty whole."""
    if whole <= 0:
        return 0.0
    return float(round_half_up(Decimal(part) * 100 / Decimal(whole), 1))
