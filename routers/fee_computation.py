from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from database import get_db
from routers.auth import require_admin, CurrentUser
from schemas.fees import ComputeMonthSchema
from services.fee_calculations import parse_month
from services.fee_computation import compute_for_month

router = APIRouter(prefix="/api/v1/fees", tags=["Fee Computation"])


@router.post("/compute")
def compute_monthly_fees(
    data: ComputeMonthSchema,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin)
):
    """
    Compute monthly payable for every active student (or one class).
    Unchanged students are skipped unless include_existing is set.
    """
    try:
        period_month = parse_month(data.month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    result = compute_for_month(
        db, period_month,
        class_id=data.class_id,
        include_existing=data.include_existing,
        actor=user.subject,
    )
    db.commit()
    return result
