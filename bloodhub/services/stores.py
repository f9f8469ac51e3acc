"""SQLAlchemy-backed stores used by the blood request services.

None of the stores commit; the calling service owns the transaction so that
stock, statistics and request status change together or not at all.
"""

from __future__ import annotations

from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from ..models.base import utcnow
from ..models.blood_request import BloodGroup, BloodRequest, RequestStatus
from ..models.blood_stock import STATISTIC_FIELDS, BloodBankStatistics, BloodStock
from ..models.organization import Organization, OrganizationType
from .errors import InsufficientStockError, ValidationError


_UPSERT_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


def _insert_for(db: Session, model):
    dialect = db.get_bind().dialect.name
    try:
        return _UPSERT_INSERTS[dialect](model)
    except KeyError:
        raise RuntimeError(f"Unsupported database dialect for stock upserts: {dialect}") from None


class OrganizationLookup(Protocol):
    def find_by_id_and_type(self, org_id: UUID, org_type: OrganizationType) -> Organization | None:
        ...


class SqlOrganizationLookup:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id_and_type(self, org_id: UUID, org_type: OrganizationType) -> Organization | None:
        return (
            self.db.query(Organization)
            .filter(Organization.id == org_id, Organization.org_type == org_type)
            .first()
        )


class BloodStockStore:
    def __init__(self, db: Session):
        self.db = db

    def find_by_bank(self, blood_bank_id: UUID) -> dict[BloodGroup, BloodStock]:
        rows = self.db.query(BloodStock).filter(BloodStock.blood_bank_id == blood_bank_id).all()
        return {row.blood_group: row for row in rows}

    def available_units(self, blood_bank_id: UUID, blood_group: BloodGroup) -> int:
        units = self.db.execute(
            select(BloodStock.units).where(
                BloodStock.blood_bank_id == blood_bank_id,
                BloodStock.blood_group == blood_group,
            )
        ).scalar_one_or_none()
        return units or 0

    def units_by_bank(self, blood_group: BloodGroup) -> list[tuple[UUID, int]]:
        rows = self.db.execute(
            select(BloodStock.blood_bank_id, BloodStock.units)
            .where(BloodStock.blood_group == blood_group)
            .order_by(BloodStock.units.desc())
        ).all()
        return [(bank_id, units) for bank_id, units in rows]

    def update_stock(self, blood_bank_id: UUID, blood_group: BloodGroup, delta: int) -> int:
        """Apply ``delta`` to the stock row and return the new unit count.

        Decrements only match rows holding at least ``-delta`` units, so two
        concurrent fulfilments can never drive stock below zero.
        """
        stmt = (
            update(BloodStock)
            .where(
                BloodStock.blood_bank_id == blood_bank_id,
                BloodStock.blood_group == blood_group,
            )
            .values(units=BloodStock.units + delta, last_updated=utcnow())
            .execution_options(synchronize_session=False)
        )
        if delta < 0:
            stmt = stmt.where(BloodStock.units >= -delta)
        result = self.db.execute(stmt)

        if result.rowcount == 0:
            if delta < 0:
                raise InsufficientStockError(
                    requested_units=-delta,
                    available_units=self.available_units(blood_bank_id, blood_group),
                )
            # First stock of this group at the bank; a concurrent insert turns into an add.
            now = utcnow()
            self.db.execute(
                _insert_for(self.db, BloodStock)
                .values(blood_bank_id=blood_bank_id, blood_group=blood_group, units=delta, last_updated=now)
                .on_conflict_do_update(
                    index_elements=["blood_bank_id", "blood_group"],
                    set_={"units": BloodStock.units + delta, "last_updated": now},
                )
            )
        return self.available_units(blood_bank_id, blood_group)

    def increment_statistic(self, blood_bank_id: UUID, name: str, delta: int) -> None:
        column = STATISTIC_FIELDS.get(name)
        if column is None:
            raise ValidationError(f"Unknown blood bank statistic: {name}")
        now = utcnow()
        counters = {field: 0 for field in STATISTIC_FIELDS}
        counters[name] = delta
        self.db.execute(
            _insert_for(self.db, BloodBankStatistics)
            .values(blood_bank_id=blood_bank_id, created_at=now, updated_at=now, **counters)
            .on_conflict_do_update(
                index_elements=["blood_bank_id"],
                set_={name: column + delta, "updated_at": now},
            )
        )

    def statistics_for(self, blood_bank_id: UUID) -> BloodBankStatistics | None:
        return (
            self.db.query(BloodBankStatistics)
            .filter(BloodBankStatistics.blood_bank_id == blood_bank_id)
            .first()
        )


class BloodRequestStore:
    def __init__(self, db: Session):
        self.db = db

    def create(self, fields: dict[str, Any]) -> BloodRequest:
        request = BloodRequest(**fields)
        self.db.add(request)
        self.db.flush()
        return request

    def find_by_id(self, request_id: UUID) -> BloodRequest | None:
        return self.db.get(BloodRequest, request_id)

    def update_status(
        self,
        request_id: UUID,
        expected: RequestStatus,
        next_status: RequestStatus,
        fields: dict[str, Any] | None = None,
    ) -> bool:
        """Move ``expected`` -> ``next_status``; False if the row was no longer ``expected``."""
        values = dict(fields or {})
        values["status"] = next_status
        values["updated_at"] = utcnow()
        result = self.db.execute(
            update(BloodRequest)
            .where(BloodRequest.id == request_id, BloodRequest.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def search(
        self,
        *,
        hospital_id: UUID | None = None,
        blood_bank_id: UUID | None = None,
        statuses: list[RequestStatus] | None = None,
        urgency=None,
        blood_group: BloodGroup | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[BloodRequest], int]:
        query = self.db.query(BloodRequest)
        if hospital_id:
            query = query.filter(BloodRequest.hospital_id == hospital_id)
        if blood_bank_id:
            query = query.filter(BloodRequest.blood_bank_id == blood_bank_id)
        if statuses:
            query = query.filter(BloodRequest.status.in_(statuses))
        if urgency:
            query = query.filter(BloodRequest.urgency == urgency)
        if blood_group:
            query = query.filter(BloodRequest.blood_group == blood_group)

        total = query.with_entities(func.count(BloodRequest.id)).scalar() or 0
        items = (
            query.order_by(BloodRequest.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total
