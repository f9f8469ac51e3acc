import logging
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from ..models.audit import AuditAction
from ..models.base import as_utc
from ..models.blood_request import BloodGroup
from ..models.organization import OrganizationType
from .audit_logger import create_audit_event
from .blood_requests import parse_blood_group, parse_uuid
from .errors import NotFoundError, ValidationError
from .stores import BloodStockStore, SqlOrganizationLookup

logger = logging.getLogger(__name__)


class BloodStockService:
    def __init__(self, db: Session):
        self.db = db
        self.stocks = BloodStockStore(db)
        self.organizations = SqlOrganizationLookup(db)

    def _require_bank(self, blood_bank_id: Any) -> UUID:
        bank_id = parse_uuid(blood_bank_id, "blood_bank_id")
        if not self.organizations.find_by_id_and_type(bank_id, OrganizationType.BLOOD_BANK):
            raise NotFoundError("Blood bank not found", blood_bank_id=str(bank_id))
        return bank_id

    def get_blood_stock_availability(self, blood_bank_id: Any) -> dict[str, Any]:
        """Per-group units at one bank; groups without a row report zero."""
        bank_id = self._require_bank(blood_bank_id)
        rows = self.stocks.find_by_bank(bank_id)
        availability = {}
        last_updated = None
        for group in BloodGroup:
            row = rows.get(group)
            availability[group.value] = row.units if row else 0
            if row and (last_updated is None or as_utc(row.last_updated) > last_updated):
                last_updated = as_utc(row.last_updated)
        return {
            "blood_bank_id": str(bank_id),
            "availability": availability,
            "total_units": sum(availability.values()),
            "last_updated": last_updated.isoformat() if last_updated else None,
        }

    def adjust_stock(
        self,
        blood_bank_id: Any,
        blood_group: Any,
        delta: Any,
        *,
        actor: str = "SYSTEM",
        request: Request | None = None,
    ) -> dict[str, Any]:
        bank_id = self._require_bank(blood_bank_id)
        group = parse_blood_group(blood_group)
        if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
            raise ValidationError("Stock adjustment must be a non-zero integer")

        try:
            units = self.stocks.update_stock(bank_id, group, delta)
            create_audit_event(
                self.db,
                actor=actor,
                action=AuditAction.STOCK_ADJUST,
                entity_type="BloodStock",
                entity_id=str(bank_id),
                details={"blood_group": group.value, "delta": delta, "units": units},
                request=request,
                commit=False,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Stock at bank %s for %s adjusted by %+d to %d", bank_id, group.value, delta, units)
        return {"blood_bank_id": str(bank_id), "blood_group": group.value, "units": units}
