import json
from pathlib import Path
from typing import Any

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.orm import Session

from ..config import get_settings
from ..models.audit import AuditAction, AuditEvent
from ..models.base import utcnow

PENDING_EXPORTS_KEY = "pending_audit_exports"


def _origin(request: Request | None, request_id: str | None, ip_address: str | None) -> tuple[str, str]:
    if request is None:
        return request_id or "", ip_address or ""
    forwarded = request.headers.get("x-forwarded-for", "")
    client_ip = forwarded.split(",")[0].strip() or (request.client.host if request.client else "")
    return getattr(request.state, "request_id", ""), client_ip


def create_audit_event(
    db: Session,
    actor: str,
    action: AuditAction,
    entity_type: str,
    entity_id: str,
    details: dict[str, Any] | None,
    request: Request | None,
    *,
    request_id: str | None = None,
    ip_address: str | None = None,
    commit: bool = True,
) -> AuditEvent:
    """Record who did what to which entity.

    Services pass ``commit=False`` so the event lands in the same transaction
    as the change it describes. The JSONL export line is only written once
    that transaction commits.
    """
    origin_request_id, origin_ip = _origin(request, request_id, ip_address)
    audit_event = AuditEvent(
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        request_id=origin_request_id,
        ip_address=origin_ip,
        details=details or {},
        timestamp=utcnow(),
    )
    db.add(audit_event)

    export_path = get_settings().AUDIT_EXPORT_PATH
    if export_path:
        db.info.setdefault(PENDING_EXPORTS_KEY, []).append((Path(export_path), _export_line(audit_event)))
    if commit:
        db.commit()
    return audit_event


def audit_blood_request(
    db: Session,
    blood_request,
    action: AuditAction,
    actor: str,
    request: Request | None,
    details: dict[str, Any],
) -> AuditEvent:
    return create_audit_event(
        db,
        actor=actor,
        action=action,
        entity_type="BloodRequest",
        entity_id=str(blood_request.id),
        details={"blood_group": blood_request.blood_group.value, **details},
        request=request,
        commit=False,
    )


def _export_line(audit_event: AuditEvent) -> str:
    return json.dumps(
        {
            "timestamp": audit_event.timestamp.isoformat(),
            "actor": audit_event.actor,
            "action": audit_event.action.value,
            "entity": f"{audit_event.entity_type}:{audit_event.entity_id}",
            "request_id": audit_event.request_id,
            "ip_address": audit_event.ip_address,
            "details": audit_event.details,
        },
        default=str,
    )


def append_audit_export(path: Path, line: str) -> None:
    """Append one JSON line per event for downstream log shippers."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(line + "\n")


@event.listens_for(Session, "after_commit")
def _flush_audit_exports(session: Session) -> None:
    for path, line in session.info.pop(PENDING_EXPORTS_KEY, []):
        append_audit_export(path, line)


@event.listens_for(Session, "after_transaction_end")
def _discard_audit_exports(session: Session, transaction) -> None:
    # Anything still pending when the outermost transaction ends was rolled back.
    if transaction.parent is None:
        session.info.pop(PENDING_EXPORTS_KEY, None)
