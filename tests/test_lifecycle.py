import pytest

from bloodhub.models.blood_request import RequestStatus
from bloodhub.services.errors import PreconditionFailed
from bloodhub.services.lifecycle import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    RequestAction,
    allowed_actions,
    next_status,
)


@pytest.mark.parametrize(
    "status, action, expected",
    [
        (RequestStatus.PENDING, RequestAction.ACCEPT, RequestStatus.ACCEPTED),
        (RequestStatus.PENDING, RequestAction.REJECT, RequestStatus.REJECTED),
        (RequestStatus.PENDING, RequestAction.CANCEL, RequestStatus.CANCELLED),
        (RequestStatus.PENDING, RequestAction.ASSIGN_BLOOD_BANK, RequestStatus.PENDING),
        (RequestStatus.ACCEPTED, RequestAction.START_PROCESSING, RequestStatus.PROCESSING),
        (RequestStatus.ACCEPTED, RequestAction.COMPLETE, RequestStatus.COMPLETED),
        (RequestStatus.PROCESSING, RequestAction.FULFILL, RequestStatus.FULFILLED),
        (RequestStatus.PROCESSING, RequestAction.CANCEL, RequestStatus.CANCELLED),
    ],
)
def test_legal_transitions(status, action, expected):
    assert next_status(status, action) == expected


@pytest.mark.parametrize(
    "status, action",
    [
        (RequestStatus.ACCEPTED, RequestAction.ACCEPT),
        (RequestStatus.ACCEPTED, RequestAction.REJECT),
        (RequestStatus.ACCEPTED, RequestAction.FULFILL),
        (RequestStatus.PENDING, RequestAction.FULFILL),
        (RequestStatus.PENDING, RequestAction.START_PROCESSING),
        (RequestStatus.PROCESSING, RequestAction.COMPLETE),
        (RequestStatus.ACCEPTED, RequestAction.ASSIGN_BLOOD_BANK),
        (RequestStatus.PROCESSING, RequestAction.APPROVE),
    ],
)
def test_illegal_transitions_raise(status, action):
    with pytest.raises(PreconditionFailed) as excinfo:
        next_status(status, action)
    assert excinfo.value.details == {"current_status": status.value, "action": action.value}


@pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
def test_terminal_statuses_allow_nothing(status):
    assert allowed_actions(status) == []
    for action in RequestAction:
        with pytest.raises(PreconditionFailed):
            next_status(status, action)


def test_no_transition_leads_back_to_pending_from_later_states():
    for (source, _action), target in TRANSITIONS.items():
        if source != RequestStatus.PENDING:
            assert target != RequestStatus.PENDING


def test_error_message_names_allowed_sources():
    with pytest.raises(PreconditionFailed) as excinfo:
        next_status(RequestStatus.PENDING, RequestAction.FULFILL)
    assert "PROCESSING" in excinfo.value.message
