from __future__ import annotations

import logging
from datetime import date
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..models.audit import AuditAction
from ..models.base import as_utc, utcnow
from ..models.blood_request import (
    BloodGroup,
    BloodRequest,
    CollectionMethod,
    RequestCommunicationLog,
    RequestStatus,
    Urgency,
)
from ..models.organization import Organization, OrganizationType
from .audit_logger import audit_blood_request
from .distance import calculate_distance, format_distance, get_distance_category
from .errors import (
    InsufficientStockError,
    InvalidCoordinateError,
    NotFoundError,
    PreconditionFailed,
    ValidationError,
)
from .lifecycle import TERMINAL_STATUSES, RequestAction, next_status
from .priority import PriorityRequestHandler
from .stores import BloodRequestStore, BloodStockStore, OrganizationLookup, SqlOrganizationLookup
from .urgency import UrgencyCalculator

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = [RequestStatus.PENDING, RequestStatus.ACCEPTED, RequestStatus.PROCESSING]


def parse_blood_group(value: Any) -> BloodGroup:
    if isinstance(value, BloodGroup):
        return value
    try:
        return BloodGroup(str(value).strip().upper())
    except ValueError:
        raise ValidationError("Invalid blood group", blood_group=value) from None


def parse_uuid(value: Any, field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    if not value:
        raise ValidationError(f"{field} is required")
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(f"{field} is not a valid identifier") from None


def _positive_int(value: Any, field: str) -> int:
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a positive integer") from None
    if number <= 0 or (not isinstance(value, str) and number != value):
        raise ValidationError(f"{field} must be a positive integer")
    return number


def _require_approval(blood_request: BloodRequest, step: str) -> None:
    if blood_request.requires_admin_approval and blood_request.admin_approved_at is None:
        raise PreconditionFailed(
            f"Cannot {step}. Critical requests need admin approval first.",
            requires_admin_approval=True,
        )


class BloodRequestService:
    """Hospital blood request lifecycle: admission, scoring, routing and fulfilment."""

    def __init__(
        self,
        db: Session,
        *,
        urgency_calculator: UrgencyCalculator | None = None,
        priority_handler: PriorityRequestHandler | None = None,
        organizations: OrganizationLookup | None = None,
    ):
        self.db = db
        self.settings = get_settings()
        self.urgency_calculator = urgency_calculator or UrgencyCalculator()
        self.priority_handler = priority_handler or PriorityRequestHandler()
        self.organizations = organizations or SqlOrganizationLookup(db)
        self.stocks = BloodStockStore(db)
        self.requests = BloodRequestStore(db)

    # ============= CREATE =============

    def create_request(
        self,
        hospital_id: Any,
        blood_bank_id: Any,
        blood_group: Any,
        units_required: Any,
        patient_age: int | None = None,
        patient_condition: str | None = None,
        department: str | None = None,
        medical_reason: str | None = None,
        *,
        actor: str = "SYSTEM",
        request: Request | None = None,
    ) -> dict[str, Any]:
        hospital_id = parse_uuid(hospital_id, "hospital_id")
        blood_bank_id = parse_uuid(blood_bank_id, "blood_bank_id")
        if not blood_group:
            raise ValidationError("Blood group is required")
        group = parse_blood_group(blood_group)
        units = _positive_int(units_required, "units_required")

        self._require_organization(hospital_id, OrganizationType.HOSPITAL)
        self._require_organization(blood_bank_id, OrganizationType.BLOOD_BANK)

        self._check_admission(blood_bank_id, group, units)

        age = patient_age if patient_age is not None else self.settings.DEFAULT_PATIENT_AGE
        condition = patient_condition or self.settings.DEFAULT_PATIENT_CONDITION
        ward = department or self.settings.DEFAULT_DEPARTMENT
        urgency = self.urgency_calculator.calculate_urgency(age, condition, ward, units)

        request_data = {
            "hospital_id": hospital_id,
            "blood_bank_id": blood_bank_id,
            "blood_group": group,
            "units_required": units,
            "urgency": urgency.urgency,
            "patient_age": age,
            "patient_condition": condition,
            "department": ward,
            "medical_reason": medical_reason or "",
            "hospital_notes": f"{medical_reason or ''} [Auto-calculated urgency: {urgency.urgency.value}]".strip(),
            "requires_admin_approval": urgency.requires_admin_approval,
            "status": RequestStatus.PENDING,
        }
        enriched = self.priority_handler.enrich_request_with_priority(
            request_data, self._availability_or_none(group)
        )

        try:
            blood_request = self.requests.create(enriched)
            audit_blood_request(
                self.db,
                blood_request,
                AuditAction.CREATE,
                actor,
                request,
                {
                    "urgency": urgency.urgency.value,
                    "priority_score": enriched["priority"]["score"],
                    "units_required": units,
                },
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Blood request %s created: %s x%d urgency=%s priority=%s",
            blood_request.id,
            group.value,
            units,
            urgency.urgency.value,
            enriched["priority"]["score"],
        )
        return {
            "request": blood_request,
            "urgency_calculation": urgency.to_dict(),
            "priority": self.priority_handler.format_priority_for_response(blood_request),
        }

    def _check_admission(self, blood_bank_id: UUID, group: BloodGroup, units: int) -> None:
        available = self.stocks.available_units(blood_bank_id, group)
        if units > available:
            logger.info(
                "Admission refused at bank %s: %s requested=%d available=%d",
                blood_bank_id,
                group.value,
                units,
                available,
            )
            raise InsufficientStockError(requested_units=units, available_units=available)

    def _availability_or_none(self, group: BloodGroup) -> dict[str, Any] | None:
        try:
            return self.priority_handler.get_blood_availability(self.stocks, group)
        except SQLAlchemyError:
            logger.exception("Could not read blood availability for %s", group.value)
            self.db.rollback()
            return None

    # ============= READ =============

    def get_request(self, request_id: Any) -> BloodRequest:
        request_id = parse_uuid(request_id, "request_id")
        blood_request = self.requests.find_by_id(request_id)
        if not blood_request:
            raise NotFoundError("Blood request not found", request_id=str(request_id))
        return blood_request

    def get_request_with_details(self, request_id: Any) -> dict[str, Any]:
        blood_request = self.get_request(request_id)
        data = serialize_request(blood_request, include_log=True)
        data["hospital"] = blood_request.hospital.summary() if blood_request.hospital else None
        data["blood_bank"] = blood_request.blood_bank.summary() if blood_request.blood_bank else None
        return data

    def _page_bounds(self, page: int, limit: int | None) -> tuple[int, int]:
        limit = min(max(1, limit or self.settings.DEFAULT_PAGE_SIZE), self.settings.MAX_PAGE_SIZE)
        return max(1, page), limit

    @staticmethod
    def _paginated(items: list[BloodRequest], total: int, page: int, limit: int) -> dict[str, Any]:
        return {
            "items": [serialize_request(item) for item in items],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit,
            },
        }

    def list_requests(
        self,
        *,
        hospital_id: Any = None,
        blood_bank_id: Any = None,
        status: RequestStatus | None = None,
        urgency: Urgency | None = None,
        blood_group: Any = None,
        page: int = 1,
        limit: int | None = None,
    ) -> dict[str, Any]:
        page, limit = self._page_bounds(page, limit)
        items, total = self.requests.search(
            hospital_id=parse_uuid(hospital_id, "hospital_id") if hospital_id else None,
            blood_bank_id=parse_uuid(blood_bank_id, "blood_bank_id") if blood_bank_id else None,
            statuses=[status] if status else None,
            urgency=urgency,
            blood_group=parse_blood_group(blood_group) if blood_group else None,
            page=page,
            limit=limit,
        )
        return self._paginated(items, total, page, limit)

    def list_critical_requests(
        self,
        *,
        hospital_id: Any = None,
        blood_bank_id: Any = None,
        page: int = 1,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Open CRITICAL requests, newest first."""
        page, limit = self._page_bounds(page, limit)
        items, total = self.requests.search(
            hospital_id=parse_uuid(hospital_id, "hospital_id") if hospital_id else None,
            blood_bank_id=parse_uuid(blood_bank_id, "blood_bank_id") if blood_bank_id else None,
            statuses=ACTIVE_STATUSES,
            urgency=Urgency.CRITICAL,
            page=page,
            limit=limit,
        )
        return self._paginated(items, total, page, limit)

    def get_priority_queue(self, *, blood_bank_id: Any = None, limit: int = 50) -> list[dict[str, Any]]:
        """Active requests ordered by a freshly computed priority, highest first."""
        query = self.db.query(BloodRequest).filter(BloodRequest.status.in_(ACTIVE_STATUSES))
        if blood_bank_id:
            query = query.filter(BloodRequest.blood_bank_id == parse_uuid(blood_bank_id, "blood_bank_id"))

        now = utcnow()
        availability: dict[BloodGroup, dict[str, Any] | None] = {}
        ranked = []
        for blood_request in query.all():
            if blood_request.blood_group not in availability:
                availability[blood_request.blood_group] = self._availability_or_none(blood_request.blood_group)
            priority = self.priority_handler.calculate_priority(
                _scoring_fields(blood_request), availability[blood_request.blood_group], now=now
            )
            ranked.append((priority, blood_request))

        ranked.sort(key=lambda pair: (-pair[0]["score"], as_utc(pair[1].created_at)))
        return [
            {**serialize_request(blood_request), "priority": priority}
            for priority, blood_request in ranked[:limit]
        ]

    # ============= TRANSITIONS =============

    def accept_request(
        self,
        request_id: Any,
        response_text: str | None = None,
        *,
        actor: str = "SYSTEM",
        request: Request | None = None,
    ) -> dict[str, Any]:
        blood_request = self.get_request(request_id)
        target = next_status(blood_request.status, RequestAction.ACCEPT)

        hospital = self._require_organization(blood_request.hospital_id, OrganizationType.HOSPITAL)
        blood_bank = self._require_organization(blood_request.blood_bank_id, OrganizationType.BLOOD_BANK)
        distance_info, distance_error = self._distance_between(hospital, blood_bank)

        self._transition(
            blood_request,
            target,
            {
                "blood_bank_response": response_text or "",
                "responded_at": utcnow(),
            },
            AuditAction.ACCEPT,
            actor,
            request,
            {"distance_km": distance_info["distance"]["kilometers"] if distance_info else None},
        )
        return {
            "request": blood_request,
            "distance_info": distance_info,
            "distance_error": distance_error,
            "hospital_details": hospital.summary(),
            "blood_bank_details": blood_bank.summary(),
        }

    def _distance_between(
        self, hospital: Organization, blood_bank: Organization
    ) -> tuple[dict[str, Any] | None, str | None]:
        if not hospital.location or not blood_bank.location:
            return None, "Location coordinates not available for one or both organizations"
        try:
            distance = calculate_distance(hospital.location, blood_bank.location)
        except InvalidCoordinateError as exc:
            logger.warning("Distance calculation failed for %s -> %s: %s", hospital.id, blood_bank.id, exc)
            return None, exc.message
        return (
            {
                "distance": distance.to_dict(),
                "formatted": format_distance(distance),
                "category": get_distance_category(distance.kilometers),
                "hospital_location": {
                    "name": hospital.name,
                    "address": hospital.address,
                    "coordinates": hospital.location["coordinates"],
                },
                "blood_bank_location": {
                    "name": blood_bank.name,
                    "address": blood_bank.address,
                    "coordinates": blood_bank.location["coordinates"],
                },
            },
            None,
        )

    def reject_request(
        self,
        request_id: Any,
        rejection_reason: Any,
        rejected_by: str | None = None,
        *,
        actor: str = "SYSTEM",
        request: Request | None = None,
    ) -> BloodRequest:
        reason = self._validate_rejection_reason(rejection_reason)
        blood_request = self.get_request(request_id)
        target = next_status(blood_request.status, RequestAction.REJECT)
        self._transition(
            blood_request,
            target,
            {
                "rejection_reason": reason,
                "rejected_by": rejected_by or actor,
                "responded_at": utcnow(),
            },
            AuditAction.REJECT,
            actor,
            request,
            {"reason": reason},
        )
        return blood_request

    def _validate_rejection_reason(self, rejection_reason: Any) -> str:
        if not isinstance(rejection_reason, str) or not rejection_reason.strip():
            raise ValidationError("Rejection reason is required and cannot be empty")
        reason = rejection_reason.strip()
        min_length = self.settings.REJECTION_REASON_MIN_LENGTH
        max_length = self.settings.REJECTION_REASON_MAX_LENGTH
        if len(reason) < min_length:
            raise ValidationError(f"Rejection reason must be at least {min_length} characters long")
        if len(reason) > max_length:
            raise ValidationError(f"Rejection reason cannot exceed {max_length} characters")
        return reason

    def assign_blood_bank(
        self,
        request_id: Any,
        blood_bank_id: Any,
        *,
        actor: str = "SYSTEM",
        request: Request | None = None,
    ) -> BloodRequest:
        blood_bank_id = parse_uuid(blood_bank_id, "blood_bank_id")
        blood_request = self.get_request(request_id)
        target = next_status(blood_request.status, RequestAction.ASSIGN_BLOOD_BANK)
        self._require_organization(blood_bank_id, OrganizationType.BLOOD_BANK)
        self._check_admission(blood_bank_id, blood_request.blood_group, blood_request.units_required)
        previous = str(blood_request.blood_bank_id)
        self._transition(
            blood_request,
            target,
            {"blood_bank_id": blood_bank_id},
            AuditAction.UPDATE,
            actor,
            request,
            {"blood_bank_id": str(blood_bank_id), "previous_blood_bank_id": previous},
        )
        return blood_request

    def approve_by_admin(
        self,
        request_id: Any,
        admin_id: str,
        remarks: str | None = None,
        *,
        request: Request | None = None,
    ) -> BloodRequest:
        blood_request = self.get_request(request_id)
        if not blood_request.requires_admin_approval or blood_request.admin_approved_at is not None:
            raise PreconditionFailed(
                "Approval failed. Request must require admin approval.",
                requires_admin_approval=blood_request.requires_admin_approval,
                already_approved=blood_request.admin_approved_at is not None,
            )
        target = next_status(blood_request.status, RequestAction.APPROVE)
        self._transition(
            blood_request,
            target,
            {
                "admin_approved_by": admin_id,
                "admin_approved_at": utcnow(),
                "admin_remarks": remarks or "",
            },
            AuditAction.APPROVE,
            admin_id,
            request,
            {"remarks": remarks or ""},
        )
        return blood_request

    def start_processing(
        self,
        request_id: Any,
        staff_id: str | None = None,
        *,
        actor: str = "SYSTEM",
        request: Request | None = None,
    ) -> BloodRequest:
        blood_request = self.get_request(request_id)
        target = next_status(blood_request.status, RequestAction.START_PROCESSING)
        _require_approval(blood_request, "start processing")
        self._transition(
            blood_request,
            target,
            {"processing_started_at": utcnow(), "processing_staff_id": staff_id or actor},
            AuditAction.UPDATE,
            actor,
            request,
            {"status": target.value},
        )
        return blood_request

    def fulfill_request(
        self,
        request_id: Any,
        units_fulfilled: Any,
        batch_numbers: list[str] | None = None,
        expiry_dates: list[date | str] | None = None,
        collection_method: CollectionMethod | str | None = None,
        *,
        actor: str = "SYSTEM",
        request: Request | None = None,
    ) -> BloodRequest:
        if units_fulfilled in (None, "", 0):
            raise ValidationError("Units fulfilled is required")
        units = _positive_int(units_fulfilled, "units_fulfilled")
        try:
            method = CollectionMethod(collection_method or CollectionMethod.PICKUP)
        except ValueError:
            raise ValidationError("Invalid collection method", collection_method=collection_method) from None
        details = {
            "batch_numbers": list(batch_numbers or []),
            "expiry_dates": [d.isoformat() if isinstance(d, date) else str(d) for d in (expiry_dates or [])],
            "collection_method": method.value,
            "actual_delivery_time": utcnow().isoformat(),
        }
        return self._release_units(request_id, units, RequestAction.FULFILL, details, actor, request)

    def complete_request(
        self,
        request_id: Any,
        units_fulfilled: Any = None,
        *,
        actor: str = "SYSTEM",
        request: Request | None = None,
    ) -> BloodRequest:
        """Simplified flow: close an ACCEPTED request without a processing stage."""
        blood_request = self.get_request(request_id)
        if units_fulfilled in (None, ""):
            units = blood_request.units_required
        else:
            units = _positive_int(units_fulfilled, "units_fulfilled")
        details = {"collection_method": CollectionMethod.PICKUP.value, "actual_delivery_time": utcnow().isoformat()}
        return self._release_units(blood_request.id, units, RequestAction.COMPLETE, details, actor, request)

    def _release_units(
        self,
        request_id: Any,
        units: int,
        action: RequestAction,
        details: dict[str, Any],
        actor: str,
        request: Request | None,
    ) -> BloodRequest:
        blood_request = self.get_request(request_id)
        current = blood_request.status
        target = next_status(current, action)
        _require_approval(blood_request, "release blood units")
        bank_id = blood_request.blood_bank_id
        group = blood_request.blood_group

        try:
            remaining = self.stocks.update_stock(bank_id, group, -units)
            self.stocks.increment_statistic(bank_id, "total_hospital_requests_fulfilled", 1)
            self.stocks.increment_statistic(bank_id, "total_units_distributed", units)
            moved = self.requests.update_status(
                blood_request.id,
                current,
                target,
                {
                    "units_fulfilled": units,
                    "fulfillment_details": details,
                    "fulfilled_at": utcnow(),
                },
            )
            if not moved:
                raise PreconditionFailed(
                    f"Request {blood_request.id} changed state concurrently; reload and retry.",
                    current_status=current.value,
                )
            audit_blood_request(
                self.db,
                blood_request,
                AuditAction.FULFILL,
                actor,
                request,
                {"units_fulfilled": units, "status": target.value, "remaining_units": remaining},
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Blood request %s %s: %d units of %s released, %d left at bank %s",
            blood_request.id,
            target.value,
            units,
            group.value,
            remaining,
            bank_id,
        )
        self.db.refresh(blood_request)
        return blood_request

    def cancel_request(
        self,
        request_id: Any,
        cancellation_reason: Any,
        *,
        actor: str = "SYSTEM",
        request: Request | None = None,
    ) -> BloodRequest:
        if not isinstance(cancellation_reason, str) or not cancellation_reason.strip():
            raise ValidationError("Cancellation reason is required")
        blood_request = self.get_request(request_id)
        target = next_status(blood_request.status, RequestAction.CANCEL)
        reason = cancellation_reason.strip()
        self._transition(
            blood_request,
            target,
            {"cancellation_reason": reason, "cancelled_at": utcnow()},
            AuditAction.CANCEL,
            actor,
            request,
            {"reason": reason},
        )
        return blood_request

    def _transition(
        self,
        blood_request: BloodRequest,
        target: RequestStatus,
        fields: dict[str, Any],
        audit_action: AuditAction,
        actor: str,
        request: Request | None,
        audit_details: dict[str, Any],
    ) -> None:
        current = blood_request.status
        try:
            if not self.requests.update_status(blood_request.id, current, target, fields):
                raise PreconditionFailed(
                    f"Request {blood_request.id} changed state concurrently; reload and retry.",
                    current_status=current.value,
                )
            audit_blood_request(
                self.db, blood_request, audit_action, actor, request, {**audit_details, "status": target.value}
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(blood_request)
        logger.info("Blood request %s moved %s -> %s by %s", blood_request.id, current.value, target.value, actor)

    # ============= OTHER MUTATIONS =============

    def add_communication_log(
        self,
        request_id: Any,
        message: Any,
        author: str | None = None,
        *,
        request: Request | None = None,
    ) -> RequestCommunicationLog:
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("Message is required")
        blood_request = self.get_request(request_id)
        entry = RequestCommunicationLog(
            request_id=blood_request.id,
            message=message.strip(),
            author=author or "SYSTEM",
            timestamp=utcnow(),
        )
        try:
            self.db.add(entry)
            audit_blood_request(
                self.db, blood_request, AuditAction.UPDATE, entry.author, request, {"communication_log": True}
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return entry

    def update_request(
        self,
        request_id: Any,
        *,
        medical_reason: str | None = None,
        hospital_notes: str | None = None,
        actor: str = "SYSTEM",
        request: Request | None = None,
    ) -> BloodRequest:
        blood_request = self.get_request(request_id)
        if blood_request.status in TERMINAL_STATUSES:
            raise PreconditionFailed(
                f"Cannot update request with status: {blood_request.status.value}",
                current_status=blood_request.status.value,
            )
        changed = {}
        if medical_reason is not None:
            blood_request.medical_reason = medical_reason
            changed["medical_reason"] = True
        if hospital_notes is not None:
            blood_request.hospital_notes = hospital_notes
            changed["hospital_notes"] = True
        try:
            audit_blood_request(self.db, blood_request, AuditAction.UPDATE, actor, request, changed)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return blood_request

    def recalculate_priority(
        self,
        request_id: Any,
        *,
        actor: str = "SYSTEM",
        request: Request | None = None,
    ) -> dict[str, Any]:
        blood_request = self.get_request(request_id)
        priority = self.priority_handler.calculate_priority(
            _scoring_fields(blood_request), self._availability_or_none(blood_request.blood_group)
        )
        try:
            blood_request.priority = priority
            audit_blood_request(
                self.db, blood_request, AuditAction.UPDATE, actor, request, {"priority_score": priority["score"]}
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return self.priority_handler.format_priority_for_response(blood_request)

    def delete_request(
        self,
        request_id: Any,
        *,
        actor: str = "SYSTEM",
        request: Request | None = None,
    ) -> None:
        blood_request = self.get_request(request_id)
        try:
            audit_blood_request(
                self.db, blood_request, AuditAction.DELETE, actor, request, {"status": blood_request.status.value}
            )
            self.db.delete(blood_request)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Blood request %s deleted by %s", request_id, actor)

    # ============= STATISTICS =============

    def get_statistics(self, hospital_id: Any = None, blood_bank_id: Any = None) -> dict[str, Any]:
        filters = []
        if hospital_id:
            filters.append(BloodRequest.hospital_id == parse_uuid(hospital_id, "hospital_id"))
        if blood_bank_id:
            bank_uuid = parse_uuid(blood_bank_id, "blood_bank_id")
            filters.append(BloodRequest.blood_bank_id == bank_uuid)

        by_status = {status.value: 0 for status in RequestStatus}
        for status, count in (
            self.db.query(BloodRequest.status, func.count(BloodRequest.id))
            .filter(*filters)
            .group_by(BloodRequest.status)
            .all()
        ):
            by_status[status.value] = count

        by_urgency = {urgency.value: 0 for urgency in Urgency}
        for urgency, count in (
            self.db.query(BloodRequest.urgency, func.count(BloodRequest.id))
            .filter(*filters)
            .group_by(BloodRequest.urgency)
            .all()
        ):
            by_urgency[urgency.value] = count

        units_requested, units_fulfilled = (
            self.db.query(
                func.coalesce(func.sum(BloodRequest.units_required), 0),
                func.coalesce(func.sum(BloodRequest.units_fulfilled), 0),
            )
            .filter(*filters)
            .one()
        )

        total = sum(by_status.values())
        closed = by_status[RequestStatus.FULFILLED.value] + by_status[RequestStatus.COMPLETED.value]
        stats: dict[str, Any] = {
            "total_requests": total,
            "by_status": by_status,
            "by_urgency": by_urgency,
            "total_units_requested": int(units_requested),
            "total_units_fulfilled": int(units_fulfilled),
            "fulfillment_rate": round(closed / total * 100, 2) if total else 0.0,
        }
        if blood_bank_id:
            bank_stats = self.stocks.statistics_for(bank_uuid)
            stats["blood_bank_statistics"] = {
                "total_hospital_requests_fulfilled": bank_stats.total_hospital_requests_fulfilled if bank_stats else 0,
                "total_units_distributed": bank_stats.total_units_distributed if bank_stats else 0,
            }
        return stats

    def get_average_response_time(self, blood_bank_id: Any = None) -> dict[str, Any]:
        query = self.db.query(BloodRequest.created_at, BloodRequest.responded_at).filter(
            BloodRequest.responded_at.isnot(None)
        )
        if blood_bank_id:
            query = query.filter(BloodRequest.blood_bank_id == parse_uuid(blood_bank_id, "blood_bank_id"))

        durations = [
            (as_utc(responded) - as_utc(created)).total_seconds() / 60
            for created, responded in query.all()
        ]
        if not durations:
            return {"average_response_time_minutes": 0.0, "average_response_time_hours": 0.0, "total_responded": 0}
        average = sum(durations) / len(durations)
        return {
            "average_response_time_minutes": round(average, 2),
            "average_response_time_hours": round(average / 60, 2),
            "total_responded": len(durations),
        }

    # ============= HELPERS =============

    def _require_organization(self, org_id: UUID, org_type: OrganizationType) -> Organization:
        organization = self.organizations.find_by_id_and_type(org_id, org_type)
        if not organization:
            label = "Hospital" if org_type == OrganizationType.HOSPITAL else "Blood bank"
            raise NotFoundError(f"{label} not found", organization_id=str(org_id), organization_type=org_type.value)
        return organization


def _scoring_fields(blood_request: BloodRequest) -> dict[str, Any]:
    return {
        "urgency": blood_request.urgency,
        "blood_group": blood_request.blood_group,
        "units_required": blood_request.units_required,
        "created_at": blood_request.created_at,
    }


def _iso(value) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


def serialize_request(blood_request: BloodRequest, include_log: bool = False) -> dict[str, Any]:
    data = {
        "id": str(blood_request.id),
        "hospital_id": str(blood_request.hospital_id),
        "blood_bank_id": str(blood_request.blood_bank_id),
        "blood_group": blood_request.blood_group.value,
        "units_required": blood_request.units_required,
        "urgency": blood_request.urgency.value,
        "priority": PriorityRequestHandler.format_priority_for_response(blood_request),
        "patient_info": {
            "age": blood_request.patient_age,
            "condition": blood_request.patient_condition,
            "department": blood_request.department,
        },
        "medical_reason": blood_request.medical_reason,
        "hospital_notes": blood_request.hospital_notes,
        "status": blood_request.status.value,
        "requires_admin_approval": blood_request.requires_admin_approval,
        "admin_approved_by": blood_request.admin_approved_by,
        "admin_approved_at": _iso(blood_request.admin_approved_at),
        "blood_bank_response": blood_request.blood_bank_response,
        "units_fulfilled": blood_request.units_fulfilled,
        "fulfillment_details": blood_request.fulfillment_details,
        "rejection_reason": blood_request.rejection_reason,
        "cancellation_reason": blood_request.cancellation_reason,
        "created_at": _iso(blood_request.created_at),
        "responded_at": _iso(blood_request.responded_at),
        "processing_started_at": _iso(blood_request.processing_started_at),
        "fulfilled_at": _iso(blood_request.fulfilled_at),
        "cancelled_at": _iso(blood_request.cancelled_at),
    }
    if include_log:
        data["communication_log"] = [
            {"message": entry.message, "author": entry.author, "timestamp": _iso(entry.timestamp)}
            for entry in blood_request.communication_log
        ]
    return data
