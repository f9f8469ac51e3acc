import pytest
from hypothesis import given, strategies as st

from bloodhub.models.blood_request import Urgency
from bloodhub.services.urgency import URGENCY_RANK, UrgencyCalculator


@pytest.mark.parametrize(
    "condition, department, age, units, expected, reason",
    [
        ("Trauma with hemorrhage", "General Ward", 30, 1, Urgency.CRITICAL, "condition:hemorrhage"),
        ("Critical", "General Ward", 30, 1, Urgency.CRITICAL, "condition:critical"),
        ("Postpartum haemorrhage", "Maternity", 28, 2, Urgency.CRITICAL, "condition:haemorrhage"),
        ("Dengue with low platelets", "General Ward", 30, 1, Urgency.HIGH, "condition:dengue"),
        ("Thalassemia", "General Ward", 30, 1, Urgency.MEDIUM, "condition:thalassemia"),
        ("Stable", "ICU", 30, 1, Urgency.HIGH, "department:icu"),
        ("Stable", "PICU", 30, 1, Urgency.HIGH, "department:picu"),
        ("Stable", "Oncology", 30, 1, Urgency.MEDIUM, "department:oncology"),
        ("Stable", "General Ward", 0, 1, Urgency.HIGH, "age:0"),
        ("Stable", "General Ward", 85, 1, Urgency.HIGH, "age:85"),
        ("Stable", "General Ward", 8, 1, Urgency.MEDIUM, "age:8"),
        ("Stable", "General Ward", 70, 1, Urgency.MEDIUM, "age:70"),
        ("Stable", "General Ward", 30, 6, Urgency.HIGH, "units:6"),
        ("Stable", "General Ward", 30, 4, Urgency.MEDIUM, "units:4"),
        ("Stable", "General Ward", 30, 2, Urgency.LOW, "default:stable"),
        ("Elective procedure", "General Ward", 30, 1, Urgency.LOW, "default:stable"),
        ("Unstable", "General Ward", 30, 1, Urgency.MEDIUM, "default"),
        (None, None, None, None, Urgency.MEDIUM, "default"),
    ],
)
def test_urgency_rules(condition, department, age, units, expected, reason):
    result = UrgencyCalculator().calculate_urgency(age, condition, department, units)
    assert result.urgency == expected
    assert result.reason == reason
    assert result.priority == URGENCY_RANK[expected]


def test_condition_outranks_department_and_age():
    result = UrgencyCalculator().calculate_urgency(90, "Severe bleeding", "ICU", 10)
    assert result.urgency == Urgency.CRITICAL
    assert result.reason == "condition:severe bleeding"


def test_department_checked_before_age():
    result = UrgencyCalculator().calculate_urgency(90, "Stable", "Surgical Ward", 1)
    assert result.urgency == Urgency.MEDIUM
    assert result.reason == "department:surgical"


def test_result_to_dict_uses_plain_values():
    data = UrgencyCalculator().calculate_urgency(30, "Cardiac arrest", "Emergency", 2).to_dict()
    assert data == {
        "urgency": "CRITICAL",
        "priority": 1,
        "reason": "condition:cardiac arrest",
        "requires_admin_approval": True,
    }


@given(
    age=st.one_of(st.none(), st.integers(min_value=0, max_value=120)),
    condition=st.one_of(st.none(), st.text(max_size=40)),
    department=st.one_of(st.none(), st.text(max_size=40)),
    units=st.one_of(st.none(), st.integers(min_value=1, max_value=50)),
)
def test_only_critical_requires_approval(age, condition, department, units):
    result = UrgencyCalculator().calculate_urgency(age, condition, department, units)
    assert result.requires_admin_approval == (result.urgency == Urgency.CRITICAL)
    assert result.priority == URGENCY_RANK[result.urgency]
