from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import require_role
from ..database import get_db
from ..models.audit import AuditAction, AuditEvent

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("")
def get_audit(
    entity_id: str | None = None,
    entity_type: str | None = None,
    action: AuditAction | None = None,
    from_ts: datetime | None = None,
    to_ts: datetime | None = None,
    limit: int = Query(default=1000, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user=Depends(require_role("audit_viewer")),
):
    query = db.query(AuditEvent)
    if entity_id:
        query = query.filter(AuditEvent.entity_id == entity_id)
    if entity_type:
        query = query.filter(AuditEvent.entity_type == entity_type)
    if action:
        query = query.filter(AuditEvent.action == action)
    if from_ts:
        query = query.filter(AuditEvent.timestamp >= from_ts)
    if to_ts:
        query = query.filter(AuditEvent.timestamp <= to_ts)

    events = query.order_by(AuditEvent.timestamp.desc()).limit(limit).all()

    return {
        "count": len(events),
        "events": [
            {
                "actor": e.actor,
                "action": e.action.value,
                "entity_type": e.entity_type,
                "entity_id": e.entity_id,
                "request_id": e.request_id,
                "ip_address": e.ip_address,
                "details": e.details,
                "timestamp": e.timestamp.isoformat(),
            }
            for e in events
        ],
    }
