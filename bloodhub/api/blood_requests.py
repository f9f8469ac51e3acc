from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..auth import require_role
from ..database import get_db
from ..models.blood_request import BloodGroup, RequestStatus, Urgency
from ..services.blood_requests import BloodRequestService, serialize_request
from ..services.priority import PriorityRequestHandler
from .schemas import (
    AcceptBloodRequest,
    ApproveBloodRequest,
    AssignBloodBankRequest,
    CancelBloodRequest,
    CommunicationLogRequest,
    CompleteBloodRequest,
    CreateBloodRequest,
    FulfillBloodRequest,
    RejectBloodRequest,
    UpdateBloodRequest,
)

router = APIRouter(prefix="/blood-requests", tags=["blood-requests"])

ANY_STAFF = ("hospital_staff", "blood_bank_staff")


def _ok(message: str, data=None) -> dict:
    return {"success": True, "message": message, "data": data}


def _actor(user) -> str:
    return getattr(user, "username", "SYSTEM")


@router.post("", status_code=201)
def create_blood_request(
    payload: CreateBloodRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("hospital_staff")),
):
    result = BloodRequestService(db).create_request(
        payload.hospital_id,
        payload.blood_bank_id,
        payload.blood_group,
        payload.units_required,
        patient_age=payload.patient_age,
        patient_condition=payload.patient_condition,
        department=payload.department,
        medical_reason=payload.medical_reason,
        actor=_actor(current_user),
        request=request,
    )
    return _ok(
        "Blood request created successfully",
        {
            "request": serialize_request(result["request"]),
            "urgency_calculation": result["urgency_calculation"],
            "priority": result["priority"],
        },
    )


@router.get("")
def list_blood_requests(
    hospital_id: UUID | None = None,
    blood_bank_id: UUID | None = None,
    status: RequestStatus | None = None,
    urgency: Urgency | None = None,
    blood_group: BloodGroup | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(require_role(*ANY_STAFF)),
):
    result = BloodRequestService(db).list_requests(
        hospital_id=hospital_id,
        blood_bank_id=blood_bank_id,
        status=status,
        urgency=urgency,
        blood_group=blood_group,
        page=page,
        limit=limit,
    )
    return _ok("Blood requests retrieved", result)


@router.get("/pending")
def list_pending_requests(
    blood_bank_id: UUID | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(require_role("blood_bank_staff")),
):
    result = BloodRequestService(db).list_requests(
        blood_bank_id=blood_bank_id, status=RequestStatus.PENDING, page=page, limit=limit
    )
    return _ok("Pending blood requests retrieved", result)


@router.get("/critical")
def list_critical_requests(
    hospital_id: UUID | None = None,
    blood_bank_id: UUID | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(require_role(*ANY_STAFF)),
):
    result = BloodRequestService(db).list_critical_requests(
        hospital_id=hospital_id, blood_bank_id=blood_bank_id, page=page, limit=limit
    )
    return _ok("Critical blood requests retrieved", result)


@router.get("/queue")
def priority_queue(
    blood_bank_id: UUID | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user=Depends(require_role("blood_bank_staff")),
):
    queue = BloodRequestService(db).get_priority_queue(blood_bank_id=blood_bank_id, limit=limit)
    return _ok("Priority queue retrieved", {"queue": queue, "thresholds": PriorityRequestHandler.thresholds()})


@router.get("/statistics")
def request_statistics(
    hospital_id: UUID | None = None,
    blood_bank_id: UUID | None = None,
    db: Session = Depends(get_db),
    current_user=Depends(require_role(*ANY_STAFF)),
):
    return _ok("Statistics retrieved", BloodRequestService(db).get_statistics(hospital_id, blood_bank_id))


@router.get("/average-response-time")
def average_response_time(
    blood_bank_id: UUID | None = None,
    db: Session = Depends(get_db),
    current_user=Depends(require_role(*ANY_STAFF)),
):
    return _ok("Average response time retrieved", BloodRequestService(db).get_average_response_time(blood_bank_id))


@router.get("/{request_id}")
def get_blood_request(
    request_id: UUID,
    db: Session = Depends(get_db),
    current_user=Depends(require_role(*ANY_STAFF)),
):
    return _ok("Blood request retrieved", BloodRequestService(db).get_request_with_details(request_id))


@router.put("/{request_id}")
def update_blood_request(
    request_id: UUID,
    payload: UpdateBloodRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("hospital_staff")),
):
    blood_request = BloodRequestService(db).update_request(
        request_id,
        medical_reason=payload.medical_reason,
        hospital_notes=payload.hospital_notes,
        actor=_actor(current_user),
        request=request,
    )
    return _ok("Blood request updated", serialize_request(blood_request))


@router.delete("/{request_id}")
def delete_blood_request(
    request_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("admin")),
):
    BloodRequestService(db).delete_request(request_id, actor=_actor(current_user), request=request)
    return _ok("Blood request deleted")


@router.post("/{request_id}/accept")
def accept_blood_request(
    request_id: UUID,
    payload: AcceptBloodRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("blood_bank_staff")),
):
    result = BloodRequestService(db).accept_request(
        request_id, payload.response, actor=_actor(current_user), request=request
    )
    return _ok(
        "Blood request accepted",
        {
            "request": serialize_request(result["request"]),
            "distance_info": result["distance_info"],
            "distance_error": result["distance_error"],
            "hospital_details": result["hospital_details"],
            "blood_bank_details": result["blood_bank_details"],
        },
    )


@router.post("/{request_id}/reject")
def reject_blood_request(
    request_id: UUID,
    payload: RejectBloodRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("blood_bank_staff")),
):
    blood_request = BloodRequestService(db).reject_request(
        request_id,
        payload.rejection_reason,
        rejected_by=_actor(current_user),
        actor=_actor(current_user),
        request=request,
    )
    return _ok("Blood request rejected", serialize_request(blood_request))


@router.post("/{request_id}/assign")
def assign_blood_bank(
    request_id: UUID,
    payload: AssignBloodBankRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("admin")),
):
    blood_request = BloodRequestService(db).assign_blood_bank(
        request_id, payload.blood_bank_id, actor=_actor(current_user), request=request
    )
    return _ok("Blood bank assigned", serialize_request(blood_request))


@router.post("/{request_id}/approve")
def approve_blood_request(
    request_id: UUID,
    payload: ApproveBloodRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("admin")),
):
    blood_request = BloodRequestService(db).approve_by_admin(
        request_id, _actor(current_user), payload.remarks, request=request
    )
    return _ok("Blood request approved", serialize_request(blood_request))


@router.post("/{request_id}/start-processing")
def start_processing(
    request_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("blood_bank_staff")),
):
    blood_request = BloodRequestService(db).start_processing(
        request_id, str(current_user.id), actor=_actor(current_user), request=request
    )
    return _ok("Processing started", serialize_request(blood_request))


@router.post("/{request_id}/fulfill")
def fulfill_blood_request(
    request_id: UUID,
    payload: FulfillBloodRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("blood_bank_staff")),
):
    blood_request = BloodRequestService(db).fulfill_request(
        request_id,
        payload.units_fulfilled,
        batch_numbers=payload.batch_numbers,
        expiry_dates=payload.expiry_dates,
        collection_method=payload.collection_method,
        actor=_actor(current_user),
        request=request,
    )
    return _ok("Blood request fulfilled", serialize_request(blood_request))


@router.post("/{request_id}/complete")
def complete_blood_request(
    request_id: UUID,
    payload: CompleteBloodRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("blood_bank_staff")),
):
    blood_request = BloodRequestService(db).complete_request(
        request_id, payload.units_fulfilled, actor=_actor(current_user), request=request
    )
    return _ok("Blood request completed", serialize_request(blood_request))


@router.post("/{request_id}/cancel")
def cancel_blood_request(
    request_id: UUID,
    payload: CancelBloodRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("hospital_staff")),
):
    blood_request = BloodRequestService(db).cancel_request(
        request_id, payload.cancellation_reason, actor=_actor(current_user), request=request
    )
    return _ok("Blood request cancelled", serialize_request(blood_request))


@router.post("/{request_id}/communication-log", status_code=201)
def add_communication_log(
    request_id: UUID,
    payload: CommunicationLogRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_role(*ANY_STAFF)),
):
    entry = BloodRequestService(db).add_communication_log(
        request_id, payload.message, payload.author or _actor(current_user), request=request
    )
    return _ok(
        "Communication log added",
        {"message": entry.message, "author": entry.author, "timestamp": entry.timestamp.isoformat()},
    )


@router.post("/{request_id}/priority/recalculate")
def recalculate_priority(
    request_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_role(*ANY_STAFF)),
):
    priority = BloodRequestService(db).recalculate_priority(
        request_id, actor=_actor(current_user), request=request
    )
    return _ok("Priority recalculated", priority)
