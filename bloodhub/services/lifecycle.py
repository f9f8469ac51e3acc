from __future__ import annotations

import enum

from ..models.blood_request import RequestStatus
from .errors import PreconditionFailed


class RequestAction(str, enum.Enum):
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"
    ASSIGN_BLOOD_BANK = "ASSIGN_BLOOD_BANK"
    APPROVE = "APPROVE"
    START_PROCESSING = "START_PROCESSING"
    FULFILL = "FULFILL"
    COMPLETE = "COMPLETE"
    CANCEL = "CANCEL"


TRANSITIONS: dict[tuple[RequestStatus, RequestAction], RequestStatus] = {
    (RequestStatus.PENDING, RequestAction.ACCEPT): RequestStatus.ACCEPTED,
    (RequestStatus.PENDING, RequestAction.REJECT): RequestStatus.REJECTED,
    (RequestStatus.PENDING, RequestAction.ASSIGN_BLOOD_BANK): RequestStatus.PENDING,
    (RequestStatus.PENDING, RequestAction.APPROVE): RequestStatus.PENDING,
    (RequestStatus.PENDING, RequestAction.CANCEL): RequestStatus.CANCELLED,
    (RequestStatus.ACCEPTED, RequestAction.APPROVE): RequestStatus.ACCEPTED,
    (RequestStatus.ACCEPTED, RequestAction.START_PROCESSING): RequestStatus.PROCESSING,
    (RequestStatus.ACCEPTED, RequestAction.COMPLETE): RequestStatus.COMPLETED,
    (RequestStatus.ACCEPTED, RequestAction.CANCEL): RequestStatus.CANCELLED,
    (RequestStatus.PROCESSING, RequestAction.FULFILL): RequestStatus.FULFILLED,
    (RequestStatus.PROCESSING, RequestAction.CANCEL): RequestStatus.CANCELLED,
}

TERMINAL_STATUSES = frozenset(
    {
        RequestStatus.REJECTED,
        RequestStatus.CANCELLED,
        RequestStatus.FULFILLED,
        RequestStatus.COMPLETED,
    }
)


def allowed_actions(status: RequestStatus) -> list[RequestAction]:
    return [action for (source, action) in TRANSITIONS if source == status]


def source_statuses(action: RequestAction) -> list[RequestStatus]:
    return [source for (source, candidate) in TRANSITIONS if candidate == action]


def next_status(status: RequestStatus, action: RequestAction) -> RequestStatus:
    try:
        return TRANSITIONS[(status, action)]
    except KeyError:
        allowed = ", ".join(s.value for s in source_statuses(action))
        raise PreconditionFailed(
            f"Cannot {action.value.lower().replace('_', ' ')} request with status: {status.value}. "
            f"Allowed from: {allowed}.",
            current_status=status.value,
            action=action.value,
        ) from None
