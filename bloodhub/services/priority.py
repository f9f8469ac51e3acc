from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from ..config import get_settings
from ..models.base import as_utc, utcnow
from ..models.blood_request import BloodGroup, Urgency

logger = logging.getLogger(__name__)

MAX_PRIORITY_SCORE = 255


class PriorityCategory(str, enum.Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


# Lower bounds of each band, checked top-down; anything below MEDIUM is LOW.
PRIORITY_THRESHOLDS: tuple[tuple[PriorityCategory, int], ...] = (
    (PriorityCategory.CRITICAL, 170),
    (PriorityCategory.HIGH, 125),
    (PriorityCategory.MEDIUM, 75),
)

URGENCY_POINTS = {
    Urgency.CRITICAL: 130,
    Urgency.HIGH: 95,
    Urgency.MEDIUM: 60,
    Urgency.LOW: 25,
}

RARITY_POINTS = {
    BloodGroup.AB_NEG: 40,
    BloodGroup.B_NEG: 34,
    BloodGroup.O_NEG: 32,
    BloodGroup.A_NEG: 28,
    BloodGroup.AB_POS: 22,
    BloodGroup.B_POS: 16,
    BloodGroup.A_POS: 10,
    BloodGroup.O_POS: 8,
}
DEFAULT_RARITY_POINTS = 20

MAX_TIME_POINTS = 40
MAX_AVAILABILITY_POINTS = 45
NEUTRAL_AVAILABILITY_POINTS = MAX_AVAILABILITY_POINTS // 2

ACTION_REQUIRED = {
    PriorityCategory.CRITICAL: "Immediate action required: dispatch within 15 minutes",
    PriorityCategory.HIGH: "Urgent attention needed: respond within 15-45 minutes",
}


@dataclass(frozen=True)
class PriorityWeights:
    urgency: float = 1.0
    rarity: float = 1.0
    time: float = 1.0
    availability: float = 1.0


def category_for_score(score: int) -> PriorityCategory:
    for category, lower_bound in PRIORITY_THRESHOLDS:
        if score >= lower_bound:
            return category
    return PriorityCategory.LOW


def _coerce_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


class PriorityRequestHandler:
    """Scores blood requests on a 0-255 scale.

    The handler holds configuration only; every method is a pure function of
    its arguments except :meth:`get_blood_availability`, which reads the stock
    store it is handed.
    """

    def __init__(self, weights: PriorityWeights | None = None, time_points_per_hour: float | None = None):
        self.weights = weights or PriorityWeights()
        if time_points_per_hour is None:
            time_points_per_hour = get_settings().PRIORITY_TIME_POINTS_PER_HOUR
        self.time_points_per_hour = time_points_per_hour

    def get_blood_availability(self, stock_store, blood_group: BloodGroup) -> dict[str, Any]:
        banks = stock_store.units_by_bank(blood_group)
        return {
            "blood_group": blood_group.value,
            "total_units": sum(units for _, units in banks),
            "bank_count": len(banks),
            "banks": [{"blood_bank_id": str(bank_id), "units": units} for bank_id, units in banks],
        }

    def urgency_score(self, urgency: Any) -> int:
        tier = _coerce_enum(Urgency, urgency) or Urgency.MEDIUM
        return URGENCY_POINTS[tier]

    def rarity_score(self, blood_group: Any) -> int:
        group = _coerce_enum(BloodGroup, blood_group)
        if group is None:
            return DEFAULT_RARITY_POINTS
        return RARITY_POINTS[group]

    def time_score(self, created_at: datetime | None, now: datetime | None = None) -> int:
        if created_at is None:
            return 0
        now = as_utc(now) or utcnow()
        hours_waiting = (now - as_utc(created_at)).total_seconds() / 3600
        if hours_waiting <= 0:
            return 0
        return min(MAX_TIME_POINTS, int(hours_waiting * self.time_points_per_hour))

    def availability_score(self, units_required: Any, availability: Mapping[str, Any] | None) -> int:
        try:
            available = availability["total_units"]  # type: ignore[index]
        except (KeyError, TypeError):
            return NEUTRAL_AVAILABILITY_POINTS
        if isinstance(available, bool) or not isinstance(available, (int, float)):
            return NEUTRAL_AVAILABILITY_POINTS
        if math.isnan(available) or available < 0:
            return NEUTRAL_AVAILABILITY_POINTS
        try:
            required = max(1, int(units_required))
        except (TypeError, ValueError, OverflowError):
            required = 1
        return round(MAX_AVAILABILITY_POINTS * required / (required + available))

    def calculate_priority(
        self,
        request_data: Mapping[str, Any],
        availability: Mapping[str, Any] | None,
        *,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        now = as_utc(now) or utcnow()
        breakdown = {
            "urgency_score": self.urgency_score(request_data.get("urgency")),
            "rarity_score": self.rarity_score(request_data.get("blood_group")),
            "time_score": self.time_score(request_data.get("created_at"), now),
            "availability_score": self.availability_score(
                request_data.get("units_required"), availability
            ),
        }
        raw = (
            breakdown["urgency_score"] * self.weights.urgency
            + breakdown["rarity_score"] * self.weights.rarity
            + breakdown["time_score"] * self.weights.time
            + breakdown["availability_score"] * self.weights.availability
        )
        score = max(0, min(MAX_PRIORITY_SCORE, int(round(raw))))
        category = category_for_score(score)

        priority: dict[str, Any] = {
            "score": score,
            "category": category.value,
            "breakdown": breakdown,
            "calculated_at": now.isoformat(),
        }
        if category in ACTION_REQUIRED:
            priority["action_required"] = ACTION_REQUIRED[category]
        return priority

    def enrich_request_with_priority(
        self,
        request_data: Mapping[str, Any],
        availability: Mapping[str, Any] | None,
        *,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        if availability is None:
            logger.warning("Blood availability unavailable; using neutral availability score")
        enriched = dict(request_data)
        enriched["priority"] = self.calculate_priority(request_data, availability, now=now)
        return enriched

    @staticmethod
    def format_priority_for_response(request: Any) -> dict[str, Any] | None:
        priority = request.get("priority") if isinstance(request, Mapping) else getattr(request, "priority", None)
        if not priority:
            return None
        return {
            "score": priority.get("score"),
            "max_score": MAX_PRIORITY_SCORE,
            "category": priority.get("category"),
            "breakdown": priority.get("breakdown", {}),
            "calculated_at": priority.get("calculated_at"),
            "action_required": priority.get("action_required"),
        }

    @staticmethod
    def thresholds() -> dict[str, int]:
        return {category.value: lower_bound for category, lower_bound in PRIORITY_THRESHOLDS}
