import enum
from sqlalchemy import Boolean, Enum, Float, String
from sqlalchemy.orm import mapped_column
from .base import Base, UUIDMixin, TimestampMixin


class OrganizationType(str, enum.Enum):
    HOSPITAL = "HOSPITAL"
    BLOOD_BANK = "BLOOD_BANK"
    NGO = "NGO"


class Organization(Base, UUIDMixin, TimestampMixin):
    """Hospitals, blood banks and NGOs share one table keyed by ``org_type``."""

    __tablename__ = "organizations"

    org_type = mapped_column(Enum(OrganizationType, name="organizationtype"), nullable=False)
    name = mapped_column(String(128), nullable=False)
    code = mapped_column(String(32), nullable=True, unique=True)
    address = mapped_column(String(256), nullable=True)
    city = mapped_column(String(64), nullable=True)
    phone = mapped_column(String(32), nullable=True)
    email = mapped_column(String(128), nullable=True)
    latitude = mapped_column(Float, nullable=True)
    longitude = mapped_column(Float, nullable=True)
    is_verified = mapped_column(Boolean, default=False, nullable=False)

    @property
    def location(self) -> dict | None:
        if self.latitude is None or self.longitude is None:
            return None
        return {"type": "Point", "coordinates": [self.longitude, self.latitude]}

    def summary(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "code": self.code,
            "type": self.org_type.value,
            "address": self.address,
            "phone": self.phone,
            "location": self.location,
        }
