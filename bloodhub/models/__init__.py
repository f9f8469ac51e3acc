from .base import Base
from .organization import Organization, OrganizationType
from .blood_request import (
    BloodGroup,
    BloodRequest,
    CollectionMethod,
    RequestCommunicationLog,
    RequestStatus,
    Urgency,
)
from .blood_stock import BloodStock, BloodBankStatistics
from .audit import AuditEvent, AuditAction
from .user import User

__all__ = [
    "Base",
    "Organization",
    "OrganizationType",
    "BloodGroup",
    "BloodRequest",
    "CollectionMethod",
    "RequestCommunicationLog",
    "RequestStatus",
    "Urgency",
    "BloodStock",
    "BloodBankStatistics",
    "AuditEvent",
    "AuditAction",
    "User",
]
