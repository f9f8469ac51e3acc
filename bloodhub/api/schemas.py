from datetime import date
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models.blood_request import BloodGroup, CollectionMethod


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class CreateBloodRequest(StrictModel):
    hospital_id: UUID
    blood_bank_id: UUID
    blood_group: BloodGroup
    units_required: int = Field(gt=0)
    patient_age: Optional[int] = Field(default=None, ge=0, le=130)
    patient_condition: Optional[str] = Field(default=None, max_length=256)
    department: Optional[str] = Field(default=None, max_length=64)
    medical_reason: Optional[str] = Field(default=None, max_length=1000)


class AcceptBloodRequest(StrictModel):
    response: Optional[str] = Field(default=None, max_length=1000)


class RejectBloodRequest(StrictModel):
    # Length rules live in the service so the trimmed value is what counts.
    rejection_reason: Optional[str] = None


class AssignBloodBankRequest(StrictModel):
    blood_bank_id: UUID


class ApproveBloodRequest(StrictModel):
    remarks: Optional[str] = Field(default=None, max_length=1000)


class FulfillBloodRequest(StrictModel):
    units_fulfilled: int = Field(gt=0)
    batch_numbers: list[str] = Field(default_factory=list)
    expiry_dates: list[date] = Field(default_factory=list)
    collection_method: CollectionMethod = CollectionMethod.PICKUP


class CompleteBloodRequest(StrictModel):
    units_fulfilled: Optional[int] = Field(default=None, gt=0)


class CancelBloodRequest(StrictModel):
    cancellation_reason: Optional[str] = None


class CommunicationLogRequest(StrictModel):
    message: Optional[str] = None
    author: Optional[str] = Field(default=None, max_length=64)


class UpdateBloodRequest(StrictModel):
    medical_reason: Optional[str] = Field(default=None, max_length=1000)
    hospital_notes: Optional[str] = Field(default=None, max_length=2000)


class StockAdjustmentRequest(StrictModel):
    delta: int
