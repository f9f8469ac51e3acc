"""Clinical urgency tiers derived from the patient details on a blood request.

Rules are checked in a fixed order and the first one that produces a signal
decides the tier:

1. condition keywords (most severe table first)
2. department criticality
3. age extremes
4. units required
5. fallback: LOW for explicitly stable/routine cases, MEDIUM otherwise
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass

from ..models.blood_request import Urgency

URGENCY_RANK = {
    Urgency.CRITICAL: 1,
    Urgency.HIGH: 2,
    Urgency.MEDIUM: 3,
    Urgency.LOW: 4,
}

CONDITION_KEYWORDS: tuple[tuple[Urgency, tuple[str, ...]], ...] = (
    (
        Urgency.CRITICAL,
        (
            "massive bleeding",
            "severe bleeding",
            "hemorrhage",
            "haemorrhage",
            "trauma",
            "accident",
            "cardiac arrest",
            "shock",
            "life-threatening",
            "life threatening",
            "critical",
        ),
    ),
    (
        Urgency.HIGH,
        (
            "bleeding",
            "postpartum",
            "sepsis",
            "dengue",
            "severe anemia",
            "severe anaemia",
            "leukemia",
            "leukaemia",
            "emergency surgery",
            "burns",
        ),
    ),
    (
        Urgency.MEDIUM,
        (
            "anemia",
            "anaemia",
            "thalassemia",
            "thalassaemia",
            "sickle cell",
            "chemotherapy",
            "dialysis",
            "surgery",
            "transfusion",
        ),
    ),
)

STABLE_KEYWORDS = ("stable", "routine", "elective", "planned", "scheduled")

DEPARTMENT_KEYWORDS: tuple[tuple[Urgency, tuple[str, ...]], ...] = (
    (Urgency.HIGH, ("icu", "nicu", "picu", "ccu", "emergency", "trauma", "casualty", "intensive care")),
    (Urgency.MEDIUM, ("surgery", "surgical", "operation theatre", "maternity", "obstetric", "labour", "oncology")),
)

INFANT_MAX_AGE = 1
ELDERLY_MIN_AGE = 80
CHILD_MAX_AGE = 12
SENIOR_MIN_AGE = 65

HIGH_UNITS_THRESHOLD = 6
MEDIUM_UNITS_THRESHOLD = 4


@dataclass(frozen=True)
class UrgencyResult:
    urgency: Urgency
    priority: int
    reason: str
    requires_admin_approval: bool

    def to_dict(self) -> dict:
        data = asdict(self)
        data["urgency"] = self.urgency.value
        return data


def _normalize(text: str | None) -> str:
    return " ".join((text or "").lower().replace("_", " ").split())


def _contains_keyword(text: str, keyword: str) -> bool:
    # Whole words only: "stable" must not match "unstable", "icu" not "picu".
    return re.search(rf"\b{re.escape(keyword)}\b", text) is not None


class UrgencyCalculator:
    def calculate_urgency(
        self,
        patient_age: int | None,
        patient_condition: str | None,
        department: str | None,
        units_required: int | None,
    ) -> UrgencyResult:
        condition = _normalize(patient_condition)
        ward = _normalize(department)

        for urgency, keywords in CONDITION_KEYWORDS:
            for keyword in keywords:
                if _contains_keyword(condition, keyword):
                    return self._result(urgency, f"condition:{keyword}")

        for urgency, keywords in DEPARTMENT_KEYWORDS:
            for keyword in keywords:
                if _contains_keyword(ward, keyword):
                    return self._result(urgency, f"department:{keyword}")

        if patient_age is not None:
            if patient_age < INFANT_MAX_AGE or patient_age >= ELDERLY_MIN_AGE:
                return self._result(Urgency.HIGH, f"age:{patient_age}")
            if patient_age < CHILD_MAX_AGE or patient_age >= SENIOR_MIN_AGE:
                return self._result(Urgency.MEDIUM, f"age:{patient_age}")

        if units_required is not None:
            if units_required >= HIGH_UNITS_THRESHOLD:
                return self._result(Urgency.HIGH, f"units:{units_required}")
            if units_required >= MEDIUM_UNITS_THRESHOLD:
                return self._result(Urgency.MEDIUM, f"units:{units_required}")

        if any(_contains_keyword(condition, keyword) for keyword in STABLE_KEYWORDS):
            return self._result(Urgency.LOW, "default:stable")
        return self._result(Urgency.MEDIUM, "default")

    @staticmethod
    def _result(urgency: Urgency, reason: str) -> UrgencyResult:
        return UrgencyResult(
            urgency=urgency,
            priority=URGENCY_RANK[urgency],
            reason=reason,
            requires_admin_approval=urgency == Urgency.CRITICAL,
        )
