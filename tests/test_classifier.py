"""
Tests for score classification and the NPS / percentage arithmetic.
"""
from decimal import Decimal

import pytest

from npscore.models.customer import CustomerSegment
from npscore.services.classifier import calculate_nps, classify, percentage, round_half_up, segment_value


@pytest.mark.parametrize("score,expected", [
    (0, CustomerSegment.DETRACTOR),
    (6, CustomerSegment.DETRACTOR),
    (7, CustomerSegment.PASSIVE),
    (8, CustomerSegment.PASSIVE),
    (9, CustomerSegment.PROMOTER),
    (10, CustomerSegment.PROMOTER),
])
def test_classify_boundaries(score, expected):
    assert classify(score) == expected
    assert segment_value(score) == expected.value


def test_classify_none_stays_none():
    assert classify(None) is None
    assert segment_value(None) is None


def test_nps_example():
    # 5 promoters, 3 passives, 2 detractors
    assert calculate_nps(5, 3, 2) == 30


def test_nps_is_none_when_nothing_classified():
    assert calculate_nps(0, 0, 0) is None


def test_nps_extremes():
    assert calculate_nps(4, 0, 0) == 100
    assert calculate_nps(0, 0, 4) == -100
    assert calculate_nps(0, 3, 0) == 0


def test_nps_rounds_half_away_from_zero():
    # 1/8 = 12.5%
    assert calculate_nps(1, 7, 0) == 13
    assert calculate_nps(0, 7, 1) == -13
    # 2.5 would round to 2 with round()
    assert round_half_up(Decimal("2.5")) == Decimal("3")
    assert round_half_up(Decimal("-2.5")) == Decimal("-3")


def test_nps_non_tie_rounding():
    # 1/3 = 33.33%, 2/3 = 66.67%
    assert calculate_nps(1, 2, 0) == 33
    assert calculate_nps(2, 1, 0) == 67


def test_percentage_one_decimal():
    assert percentage(1, 3) == 33.3
    assert percentage(2, 3) == 66.7
    assert percentage(1, 16) == 6.3
    assert percentage(5, 10) == 50.0


def test_percentage_of_empty_whole_is_zero():
    assert percentage(0, 0) == 0.0
    assert percentage(3, 0) == 0.0
