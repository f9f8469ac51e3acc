from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import mapped_column
from .base import Base, UUIDMixin, TimestampMixin, utcnow
from .blood_request import BloodGroup


class BloodStock(Base, UUIDMixin):
    __tablename__ = "blood_stock"
    __table_args__ = (
        UniqueConstraint("blood_bank_id", "blood_group", name="uq_blood_stock_bank_group"),
        CheckConstraint("units >= 0", name="ck_blood_stock_units_non_negative"),
    )

    blood_bank_id = mapped_column(ForeignKey("organizations.id"), nullable=False)
    blood_group = mapped_column(Enum(BloodGroup, name="bloodgroup"), nullable=False)
    units = mapped_column(Integer, default=0, nullable=False)
    last_updated = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class BloodBankStatistics(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "blood_bank_statistics"

    blood_bank_id = mapped_column(ForeignKey("organizations.id"), nullable=False, unique=True)
    total_hospital_requests_fulfilled = mapped_column(Integer, default=0, nullable=False)
    total_units_distributed = mapped_column(Integer, default=0, nullable=False)


STATISTIC_FIELDS = {
    "total_hospital_requests_fulfilled": BloodBankStatistics.total_hospital_requests_fulfilled,
    "total_units_distributed": BloodBankStatistics.total_units_distributed,
}
