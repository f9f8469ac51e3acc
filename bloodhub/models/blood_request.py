import enum
from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import mapped_column, relationship
from .base import Base, UUIDMixin, TimestampMixin, utcnow
from .types import EncryptedText


class BloodGroup(str, enum.Enum):
    A_POS = "A+"
    A_NEG = "A-"
    B_POS = "B+"
    B_NEG = "B-"
    AB_POS = "AB+"
    AB_NEG = "AB-"
    O_POS = "O+"
    O_NEG = "O-"


class Urgency(str, enum.Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class RequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    PROCESSING = "PROCESSING"
    FULFILLED = "FULFILLED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class CollectionMethod(str, enum.Enum):
    PICKUP = "PICKUP"
    DELIVERY = "DELIVERY"


class BloodRequest(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "blood_requests"

    hospital_id = mapped_column(ForeignKey("organizations.id"), nullable=False)
    blood_bank_id = mapped_column(ForeignKey("organizations.id"), nullable=False)
    blood_group = mapped_column(Enum(BloodGroup, name="bloodgroup"), nullable=False)
    units_required = mapped_column(Integer, nullable=False)
    urgency = mapped_column(Enum(Urgency, name="urgency"), nullable=False)
    priority = mapped_column(JSON, nullable=True)

    patient_age = mapped_column(Integer, nullable=True)
    patient_condition = mapped_column(EncryptedText, nullable=True)
    department = mapped_column(String(64), nullable=True)
    medical_reason = mapped_column(Text, nullable=True)
    hospital_notes = mapped_column(Text, nullable=True)

    status = mapped_column(
        Enum(RequestStatus, name="requeststatus"), default=RequestStatus.PENDING, nullable=False
    )
    requires_admin_approval = mapped_column(Boolean, default=False, nullable=False)
    admin_approved_by = mapped_column(String(64), nullable=True)
    admin_approved_at = mapped_column(DateTime(timezone=True), nullable=True)
    admin_remarks = mapped_column(Text, nullable=True)

    blood_bank_response = mapped_column(Text, nullable=True)
    responded_at = mapped_column(DateTime(timezone=True), nullable=True)
    processing_started_at = mapped_column(DateTime(timezone=True), nullable=True)
    processing_staff_id = mapped_column(String(64), nullable=True)

    units_fulfilled = mapped_column(Integer, nullable=True)
    fulfillment_details = mapped_column(JSON, nullable=True)
    fulfilled_at = mapped_column(DateTime(timezone=True), nullable=True)

    rejection_reason = mapped_column(Text, nullable=True)
    rejected_by = mapped_column(String(64), nullable=True)
    cancellation_reason = mapped_column(Text, nullable=True)
    cancelled_at = mapped_column(DateTime(timezone=True), nullable=True)

    hospital = relationship("Organization", foreign_keys=[hospital_id])
    blood_bank = relationship("Organization", foreign_keys=[blood_bank_id])
    communication_log = relationship(
        "RequestCommunicationLog",
        back_populates="request",
        order_by="RequestCommunicationLog.timestamp",
        cascade="all, delete-orphan",
    )


class RequestCommunicationLog(Base, UUIDMixin):
    """Append-only notes exchanged between hospital and blood bank."""

    __tablename__ = "request_communication_logs"

    request_id = mapped_column(ForeignKey("blood_requests.id", ondelete="CASCADE"), nullable=False)
    message = mapped_column(Text, nullable=False)
    author = mapped_column(String(64), nullable=False, default="SYSTEM")
    timestamp = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    request = relationship("BloodRequest", back_populates="communication_log")
