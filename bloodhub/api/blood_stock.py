from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..auth import require_role
from ..database import get_db
from ..models.blood_request import BloodGroup
from ..services.blood_stock import BloodStockService
from .schemas import StockAdjustmentRequest

router = APIRouter(prefix="/blood-stock", tags=["blood-stock"])


@router.get("/{blood_bank_id}")
def get_blood_stock(
    blood_bank_id: UUID,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("hospital_staff", "blood_bank_staff")),
):
    availability = BloodStockService(db).get_blood_stock_availability(blood_bank_id)
    return {"success": True, "message": "Blood stock retrieved", "data": availability}


@router.patch("/{blood_bank_id}/{blood_group}")
def adjust_blood_stock(
    blood_bank_id: UUID,
    blood_group: BloodGroup,
    payload: StockAdjustmentRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("blood_bank_staff")),
):
    result = BloodStockService(db).adjust_stock(
        blood_bank_id,
        blood_group,
        payload.delta,
        actor=getattr(current_user, "username", "SYSTEM"),
        request=request,
    )
    return {"success": True, "message": "Blood stock updated", "data": result}
