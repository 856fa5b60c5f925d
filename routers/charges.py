"""
Charge Management Router
Extra charges (fines, equipment, transport...) applied to a student for a month
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload
from database import get_db
from models.students import Student
from models.charges import ChargeDefinition, ChargeAssignment
from routers.auth import require_admin
from routers.students import get_student_or_404
from services.fee_calculations import parse_month, month_start, month_end, money, value_amount
from services.fee_computation import charges_for_month, latest_student_fee
from schemas.fees import ValueType
from pydantic import BaseModel, Field
from typing import List, Optional, Literal
import datetime
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/fees/charges", tags=["Charges"], dependencies=[Depends(require_admin)])

ChargeType = Literal["FINE", "EQUIPMENT", "TRANSPORT", "OTHER"]

# =====================
# PYDANTIC SCHEMAS
# =====================

class ChargeCreate(BaseModel):
    name: str
    type: ChargeType = "OTHER"
    category: Optional[str] = None
    description: Optional[str] = None
    value_type: ValueType = "FIXED"
    value: float = Field(ge=0)
    is_recurring: bool = False

class ChargeUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[ChargeType] = None
    category: Optional[str] = None
    description: Optional[str] = None
    value_type: Optional[ValueType] = None
    value: Optional[float] = Field(default=None, ge=0)
    is_recurring: Optional[bool] = None

class ApplyRequest(BaseModel):
    charge_id: int
    student_id: int
    applied_month: datetime.date
    amount: Optional[float] = Field(default=None, ge=0)  # Override
    reason: Optional[str] = None

class BulkApplyRequest(BaseModel):
    charge_id: int
    student_ids: List[int]
    applied_month: datetime.date
    reason: Optional[str] = None

class CalculateRequest(BaseModel):
    student_id: int
    month: str  # "YYYY-MM"

# =====================
# HELPER FUNCTIONS
# =====================

def charge_row(c: ChargeDefinition, with_assignments=True):
    row = {
        "id": c.id,
        "name": c.name,
        "type": c.type,
        "category": c.category,
        "description": c.description,
        "value_type": c.value_type,
        "value": c.value,
        "is_recurring": c.is_recurring,
        "is_active": c.is_active,
        "created_at": c.created_at,
    }
    if with_assignments:
        row["assignments"] = [assignment_row(a) for a in c.assignments if a.deleted_at is None]
    return row


def assignment_row(a: ChargeAssignment):
    return {
        "id": a.id,
        "charge_id": a.charge_id,
        "student_id": a.student_id,
        "student_name": a.student.student_name if a.student else None,
        "applied_month": a.applied_month,
        "amount": a.amount,
        "reason": a.reason,
        "created_at": a.created_at,
    }


def get_charge_or_404(db: Session, charge_id: int) -> ChargeDefinition:
    charge = db.query(ChargeDefinition).filter(
        ChargeDefinition.id == charge_id,
        ChargeDefinition.deleted_at.is_(None)
    ).first()
    if not charge:
        raise HTTPException(status_code=404, detail=f"Charge with ID {charge_id} not found")
    return charge


def resolve_amount(db: Session, charge: ChargeDefinition, student_id, applied_month, override=None):
    """Override wins; a PERCENTAGE charge is taken on the month's computed base"""
    if override is not None:
        return money(override)
    if charge.value_type == "PERCENTAGE":
        last = latest_student_fee(db, student_id, applied_month)
        if last:
            return value_amount(last.base_amount, "PERCENTAGE", charge.value)
    return money(charge.value)


def apply_charge(db: Session, charge_id, student_id, applied_month, amount=None, reason=None):
    charge = db.query(ChargeDefinition).filter(
        ChargeDefinition.id == charge_id,
        ChargeDefinition.is_active == True,
        ChargeDefinition.deleted_at.is_(None)
    ).first()
    if not charge:
        raise HTTPException(status_code=404, detail="Charge not found or inactive")

    get_student_or_404(db, student_id)
    applied_month = month_start(applied_month)

    existing = db.query(ChargeAssignment).filter(
        ChargeAssignment.charge_id == charge_id,
        ChargeAssignment.student_id == student_id,
        ChargeAssignment.applied_month == applied_month,
        ChargeAssignment.deleted_at.is_(None)
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="Charge already applied to student for this month")

    assignment = ChargeAssignment(
        charge_id=charge_id,
        student_id=student_id,
        applied_month=applied_month,
        amount=resolve_amount(db, charge, student_id, applied_month, amount),
        reason=reason,
    )
    db.add(assignment)
    db.commit()
    logger.info("Charge %s applied to student %s for %s (%.2f)", charge_id, student_id, applied_month, assignment.amount)
    return assignment


# =====================
# DEFINITION APIs
# =====================

@router.post("")
def create_charge(data: ChargeCreate, db: Session = Depends(get_db)):
    charge = ChargeDefinition(**data.model_dump(), is_active=True)
    db.add(charge)
    db.commit()
    return charge_row(charge, with_assignments=False)


@router.get("")
def list_charges(include_inactive: bool = False, db: Session = Depends(get_db)):
    query = db.query(ChargeDefinition).options(
        joinedload(ChargeDefinition.assignments).joinedload(ChargeAssignment.student)
    )
    if not include_inactive:
        query = query.filter(ChargeDefinition.is_active == True, ChargeDefinition.deleted_at.is_(None))
    return [charge_row(c) for c in query.order_by(ChargeDefinition.created_at.desc(), ChargeDefinition.id.desc()).all()]


@router.get("/{charge_id}")
def get_charge(charge_id: int, db: Session = Depends(get_db)):
    return charge_row(get_charge_or_404(db, charge_id))


@router.put("/{charge_id}")
def update_charge(charge_id: int, data: ChargeUpdate, db: Session = Depends(get_db)):
    charge = get_charge_or_404(db, charge_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None or field in ("description", "category"):
            setattr(charge, field, value)
    db.commit()
    return charge_row(charge, with_assignments=False)


@router.put("/{charge_id}/deactivate")
def deactivate_charge(charge_id: int, db: Session = Depends(get_db)):
    charge = get_charge_or_404(db, charge_id)
    charge.is_active = False
    db.commit()
    return charge_row(charge, with_assignments=False)


@router.put("/{charge_id}/reactivate")
def reactivate_charge(charge_id: int, db: Session = Depends(get_db)):
    charge = get_charge_or_404(db, charge_id)
    charge.is_active = True
    db.commit()
    return charge_row(charge, with_assignments=False)


# =====================
# ASSIGNMENT APIs
# =====================

@router.post("/apply")
def apply_to_student(data: ApplyRequest, db: Session = Depends(get_db)):
    assignment = apply_charge(db, data.charge_id, data.student_id, data.applied_month, data.amount, data.reason)
    return assignment_row(assignment)


@router.post("/bulk-apply")
def bulk_apply(data: BulkApplyRequest, db: Session = Depends(get_db)):
    charge = db.query(ChargeDefinition).filter(
        ChargeDefinition.id == data.charge_id,
        ChargeDefinition.is_active == True,
        ChargeDefinition.deleted_at.is_(None)
    ).first()
    if not charge:
        raise HTTPException(status_code=404, detail="Charge not found or inactive")

    successful, errors = [], []
    for student_id in data.student_ids:
        try:
            assignment = apply_charge(db, data.charge_id, student_id, data.applied_month, reason=data.reason)
            successful.append(assignment_row(assignment))
        except HTTPException as e:
            db.rollback()
            errors.append({"student_id": student_id, "error": e.detail})

    return {
        "successful": successful,
        "errors": errors,
        "success_count": len(successful),
        "error_count": len(errors),
    }


@router.get("/students/{student_id}")
def get_student_charges(
    student_id: int,
    from_month: Optional[str] = None,
    to_month: Optional[str] = None,
    db: Session = Depends(get_db)
):
    get_student_or_404(db, student_id)

    query = db.query(ChargeAssignment).options(
        joinedload(ChargeAssignment.charge)
    ).filter(
        ChargeAssignment.student_id == student_id,
        ChargeAssignment.deleted_at.is_(None)
    )
    try:
        if from_month:
            query = query.filter(ChargeAssignment.applied_month >= parse_month(from_month))
        if to_month:
            query = query.filter(ChargeAssignment.applied_month <= month_end(parse_month(to_month)))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    result = []
    for a in query.order_by(ChargeAssignment.applied_month.desc()).all():
        row = assignment_row(a)
        row["charge"] = charge_row(a.charge, with_assignments=False)
        result.append(row)
    return result


@router.delete("/assignments/{assignment_id}")
def remove_assignment(assignment_id: int, db: Session = Depends(get_db)):
    assignment = db.query(ChargeAssignment).filter(
        ChargeAssignment.id == assignment_id,
        ChargeAssignment.deleted_at.is_(None)
    ).first()
    if not assignment:
        raise HTTPException(status_code=404, detail="Charge assignment not found")
    assignment.deleted_at = datetime.datetime.utcnow()
    db.commit()
    return {"message": "Removed", "id": assignment_id}


@router.post("/calculate")
def calculate_charges(data: CalculateRequest, db: Session = Depends(get_db)):
    try:
        period_month = parse_month(data.month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    assignments = charges_for_month(db, data.student_id, period_month)
    return {
        "total_charges": money(sum(a.amount or 0 for a in assignments)),
        "applied_charges": [
            {
                "id": a.charge.id,
                "name": a.charge.name,
                "type": a.charge.type,
                "amount": a.amount,
                "reason": a.reason,
                "applied_month": a.applied_month,
            }
            for a in assignments
        ],
    }


@router.get("/class/{class_id}/month/{month}")
def class_charges_summary(class_id: int, month: str, db: Session = Depends(get_db)):
    """All charges of a class in a month, grouped by charge type"""
    try:
        period_month = parse_month(month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    charges = db.query(ChargeAssignment).join(Student).options(
        joinedload(ChargeAssignment.charge),
        joinedload(ChargeAssignment.student)
    ).filter(
        ChargeAssignment.deleted_at.is_(None),
        ChargeAssignment.applied_month >= period_month,
        ChargeAssignment.applied_month <= month_end(period_month),
        Student.class_id == class_id,
        Student.deleted_at.is_(None)
    ).order_by(ChargeAssignment.id).all()

    by_type = {}
    for c in charges:
        bucket = by_type.setdefault(c.charge.type, {"count": 0, "amount": 0.0})
        bucket["count"] += 1
        bucket["amount"] = money(bucket["amount"] + (c.amount or 0))

    return {
        "month": month,
        "class_id": class_id,
        "total_charges": len(charges),
        "total_amount": money(sum(c.amount or 0 for c in charges)),
        "charges_by_type": by_type,
        "charges": [
            {
                "id": c.id,
                "student_name": c.student.student_name,
                "charge_name": c.charge.name,
                "charge_type": c.charge.type,
                "amount": c.amount,
                "reason": c.reason,
                "applied_month": c.applied_month,
            }
            for c in charges
        ],
    }
