from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from hypothesis import given, strategies as st

from bloodhub.models.blood_request import BloodGroup, Urgency
from bloodhub.services.priority import (
    MAX_PRIORITY_SCORE,
    NEUTRAL_AVAILABILITY_POINTS,
    PriorityCategory,
    PriorityRequestHandler,
    PriorityWeights,
    category_for_score,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeStockStore:
    def __init__(self, rows):
        self.rows = rows

    def units_by_bank(self, blood_group):
        return self.rows.get(blood_group, [])


def _request(urgency=Urgency.MEDIUM, blood_group=BloodGroup.A_POS, units=2, hours_ago=0):
    return {
        "urgency": urgency,
        "blood_group": blood_group,
        "units_required": units,
        "created_at": NOW - timedelta(hours=hours_ago),
    }


def test_critical_rare_request_without_availability():
    handler = PriorityRequestHandler(time_points_per_hour=2.0)
    priority = handler.calculate_priority(
        _request(Urgency.CRITICAL, BloodGroup.AB_NEG), None, now=NOW
    )
    assert priority["breakdown"] == {
        "urgency_score": 130,
        "rarity_score": 40,
        "time_score": 0,
        "availability_score": NEUTRAL_AVAILABILITY_POINTS,
    }
    assert priority["score"] == 192
    assert priority["category"] == "CRITICAL"
    assert "action_required" in priority


def test_low_common_request_with_plenty_of_stock():
    handler = PriorityRequestHandler(time_points_per_hour=2.0)
    priority = handler.calculate_priority(
        _request(Urgency.LOW, BloodGroup.O_POS, units=1), {"total_units": 100}, now=NOW
    )
    assert priority["score"] == 25 + 8 + 0 + 0
    assert priority["category"] == "LOW"
    assert "action_required" not in priority


def test_time_score_grows_and_caps():
    handler = PriorityRequestHandler(time_points_per_hour=2.0)
    assert handler.time_score(NOW, NOW) == 0
    assert handler.time_score(NOW - timedelta(hours=10), NOW) == 20
    assert handler.time_score(NOW - timedelta(hours=100), NOW) == 40
    # Clock skew never yields negative points.
    assert handler.time_score(NOW + timedelta(hours=1), NOW) == 0


def test_time_score_accepts_naive_timestamps():
    handler = PriorityRequestHandler(time_points_per_hour=2.0)
    naive = (NOW - timedelta(hours=5)).replace(tzinfo=None)
    assert handler.time_score(naive, NOW) == 10


@pytest.mark.parametrize(
    "units, availability, expected",
    [
        (3, {"total_units": 0}, 45),
        (1, {"total_units": 44}, 1),
        (2, {"total_units": 2}, 22),
        (2, None, NEUTRAL_AVAILABILITY_POINTS),
        (2, {}, NEUTRAL_AVAILABILITY_POINTS),
        (2, {"total_units": "lots"}, NEUTRAL_AVAILABILITY_POINTS),
        (2, {"total_units": -4}, NEUTRAL_AVAILABILITY_POINTS),
        (2, {"total_units": float("nan")}, NEUTRAL_AVAILABILITY_POINTS),
        (2, ["not", "a", "mapping"], NEUTRAL_AVAILABILITY_POINTS),
    ],
)
def test_availability_score(units, availability, expected):
    handler = PriorityRequestHandler(time_points_per_hour=2.0)
    assert handler.availability_score(units, availability) == expected


def test_lower_stock_raises_availability_score():
    handler = PriorityRequestHandler(time_points_per_hour=2.0)
    scarce = handler.availability_score(4, {"total_units": 2})
    plenty = handler.availability_score(4, {"total_units": 200})
    assert scarce > plenty


def test_unknown_values_fall_back_to_defaults():
    handler = PriorityRequestHandler(time_points_per_hour=2.0)
    assert handler.urgency_score("SOMETIMES") == 60
    assert handler.rarity_score("Z+") == 20
    assert handler.rarity_score("O-") == 32


def test_maximum_request_hits_ceiling():
    handler = PriorityRequestHandler(time_points_per_hour=2.0)
    priority = handler.calculate_priority(
        _request(Urgency.CRITICAL, BloodGroup.AB_NEG, units=5, hours_ago=500),
        {"total_units": 0},
        now=NOW,
    )
    assert priority["score"] == MAX_PRIORITY_SCORE


@pytest.mark.parametrize("units", [-5, 0, 10**12, float("inf"), "many", None])
def test_extreme_units_stay_in_range(units):
    handler = PriorityRequestHandler(time_points_per_hour=2.0)
    priority = handler.calculate_priority(
        _request(Urgency.CRITICAL, BloodGroup.AB_NEG, units=units, hours_ago=500),
        {"total_units": 3},
        now=NOW,
    )
    assert 0 <= priority["score"] <= MAX_PRIORITY_SCORE
    assert 0 <= priority["breakdown"]["availability_score"] <= 45


@given(
    urgency=st.sampled_from(list(Urgency)),
    blood_group=st.sampled_from(list(BloodGroup)),
    units=st.integers(min_value=1, max_value=100),
    hours_ago=st.integers(min_value=0, max_value=1000),
    available=st.one_of(st.none(), st.integers(min_value=0, max_value=10_000)),
    weight=st.floats(min_value=0, max_value=5, allow_nan=False),
)
def test_score_always_clipped(urgency, blood_group, units, hours_ago, available, weight):
    handler = PriorityRequestHandler(
        weights=PriorityWeights(urgency=weight, rarity=weight, time=weight, availability=weight),
        time_points_per_hour=2.0,
    )
    availability = None if available is None else {"total_units": available}
    priority = handler.calculate_priority(
        _request(urgency, blood_group, units, hours_ago), availability, now=NOW
    )
    assert 0 <= priority["score"] <= MAX_PRIORITY_SCORE
    assert priority["category"] == category_for_score(priority["score"]).value
    assert ("action_required" in priority) == (priority["category"] in ("CRITICAL", "HIGH"))


@pytest.mark.parametrize(
    "score, category",
    [
        (255, PriorityCategory.CRITICAL),
        (170, PriorityCategory.CRITICAL),
        (169, PriorityCategory.HIGH),
        (125, PriorityCategory.HIGH),
        (124, PriorityCategory.MEDIUM),
        (75, PriorityCategory.MEDIUM),
        (74, PriorityCategory.LOW),
        (0, PriorityCategory.LOW),
    ],
)
def test_category_thresholds(score, category):
    assert category_for_score(score) == category


def test_blood_availability_snapshot():
    bank_a, bank_b = uuid4(), uuid4()
    store = FakeStockStore({BloodGroup.B_NEG: [(bank_a, 7), (bank_b, 2)]})
    handler = PriorityRequestHandler(time_points_per_hour=2.0)

    snapshot = handler.get_blood_availability(store, BloodGroup.B_NEG)
    assert snapshot["blood_group"] == "B-"
    assert snapshot["total_units"] == 9
    assert snapshot["bank_count"] == 2
    assert snapshot["banks"][0] == {"blood_bank_id": str(bank_a), "units": 7}

    empty = handler.get_blood_availability(store, BloodGroup.A_POS)
    assert empty["total_units"] == 0 and empty["bank_count"] == 0


def test_enrich_returns_copy_with_priority():
    handler = PriorityRequestHandler(time_points_per_hour=2.0)
    request_data = _request(Urgency.HIGH, BloodGroup.B_POS)
    enriched = handler.enrich_request_with_priority(request_data, {"total_units": 10}, now=NOW)
    assert "priority" not in request_data
    assert enriched["priority"]["breakdown"]["urgency_score"] == 95
    assert enriched["blood_group"] == BloodGroup.B_POS


def test_format_priority_for_response():
    assert PriorityRequestHandler.format_priority_for_response({"priority": None}) is None
    formatted = PriorityRequestHandler.format_priority_for_response(
        {"priority": {"score": 130, "category": "HIGH", "breakdown": {}, "calculated_at": "x"}}
    )
    assert formatted["max_score"] == 255
    assert formatted["category"] == "HIGH"
    assert formatted["action_required"] is None
