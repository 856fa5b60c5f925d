"""
Scholarship Management Router
Definitions (percentage / fixed), student assignments over a date range,
and deduction preview for a month
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import or_
from database import get_db
from models.scholarships import ScholarshipDefinition, ScholarshipAssignment
from routers.auth import require_admin
from routers.students import get_student_or_404
from services.fee_calculations import parse_month, scholarship_deduction
from services.fee_computation import scholarships_for_month, scholarship_rows
from schemas.fees import ValueType
from pydantic import BaseModel, Field
from typing import List, Optional, Literal
import datetime
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/fees/scholarships", tags=["Scholarships"], dependencies=[Depends(require_admin)])

ScholarshipType = Literal["MERIT", "NEED_BASED", "SPORTS", "OTHER"]

# =====================
# PYDANTIC SCHEMAS
# =====================

class ScholarshipCreate(BaseModel):
    name: str
    type: ScholarshipType = "OTHER"
    description: Optional[str] = None
    value_type: ValueType
    value: float = Field(ge=0)

class ScholarshipUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[ScholarshipType] = None
    description: Optional[str] = None
    value_type: Optional[ValueType] = None
    value: Optional[float] = Field(default=None, ge=0)

class AssignRequest(BaseModel):
    scholarship_id: int
    student_id: int
    effective_from: datetime.date
    expires_at: Optional[datetime.date] = None

class BulkAssignRequest(BaseModel):
    scholarship_id: int
    student_ids: List[int]
    effective_from: datetime.date
    expires_at: Optional[datetime.date] = None

class CalculateRequest(BaseModel):
    student_id: int
    month: str  # "YYYY-MM"
    base_amount: float = Field(ge=0)

# =====================
# HELPER FUNCTIONS
# =====================

def assignment_row(a: ScholarshipAssignment, with_student=True):
    row = {
        "id": a.id,
        "scholarship_id": a.scholarship_id,
        "student_id": a.student_id,
        "effective_from": a.effective_from,
        "expires_at": a.expires_at,
        "created_at": a.created_at,
    }
    if with_student and a.student:
        row["student_name"] = a.student.student_name
        row["class_id"] = a.student.class_id
    return row


def definition_row(s: ScholarshipDefinition, with_assignments=True):
    row = {
        "id": s.id,
        "name": s.name,
        "type": s.type,
        "description": s.description,
        "value_type": s.value_type,
        "value": s.value,
        "is_active": s.is_active,
        "created_at": s.created_at,
    }
    if with_assignments:
        row["assignments"] = [assignment_row(a) for a in s.assignments if a.deleted_at is None]
    return row


def get_definition_or_404(db: Session, scholarship_id: int) -> ScholarshipDefinition:
    scholarship = db.query(ScholarshipDefinition).filter(
        ScholarshipDefinition.id == scholarship_id,
        ScholarshipDefinition.deleted_at.is_(None)
    ).first()
    if not scholarship:
        raise HTTPException(status_code=404, detail=f"Scholarship with ID {scholarship_id} not found")
    return scholarship


def assign_scholarship(db: Session, scholarship_id, student_id, effective_from, expires_at=None):
    scholarship = db.query(ScholarshipDefinition).filter(
        ScholarshipDefinition.id == scholarship_id,
        ScholarshipDefinition.is_active == True,
        ScholarshipDefinition.deleted_at.is_(None)
    ).first()
    if not scholarship:
        raise HTTPException(status_code=404, detail="Scholarship not found or inactive")

    get_student_or_404(db, student_id)

    today = datetime.date.today()
    existing = db.query(ScholarshipAssignment).filter(
        ScholarshipAssignment.scholarship_id == scholarship_id,
        ScholarshipAssignment.student_id == student_id,
        ScholarshipAssignment.deleted_at.is_(None),
        or_(ScholarshipAssignment.expires_at.is_(None), ScholarshipAssignment.expires_at >= today)
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="Student already has this scholarship assigned")

    if expires_at and expires_at <= effective_from:
        raise HTTPException(status_code=400, detail="Expiry date must be after effective date")

    assignment = ScholarshipAssignment(
        scholarship_id=scholarship_id,
        student_id=student_id,
        effective_from=effective_from,
        expires_at=expires_at,
    )
    db.add(assignment)
    db.commit()
    logger.info("Scholarship %s assigned to student %s from %s", scholarship_id, student_id, effective_from)
    return assignment


# =====================
# DEFINITION APIs
# =====================

@router.post("")
def create_scholarship(data: ScholarshipCreate, db: Session = Depends(get_db)):
    scholarship = ScholarshipDefinition(**data.model_dump(), is_active=True)
    db.add(scholarship)
    db.commit()
    return definition_row(scholarship, with_assignments=False)


@router.get("")
def list_scholarships(include_inactive: bool = False, db: Session = Depends(get_db)):
    query = db.query(ScholarshipDefinition).options(
        joinedload(ScholarshipDefinition.assignments).joinedload(ScholarshipAssignment.student)
    )
    if not include_inactive:
        query = query.filter(ScholarshipDefinition.is_active == True, ScholarshipDefinition.deleted_at.is_(None))
    return [definition_row(s) for s in query.order_by(ScholarshipDefinition.created_at.desc(), ScholarshipDefinition.id.desc()).all()]


@router.get("/{scholarship_id}")
def get_scholarship(scholarship_id: int, db: Session = Depends(get_db)):
    return definition_row(get_definition_or_404(db, scholarship_id))


@router.put("/{scholarship_id}")
def update_scholarship(scholarship_id: int, data: ScholarshipUpdate, db: Session = Depends(get_db)):
    scholarship = get_definition_or_404(db, scholarship_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None or field == "description":
            setattr(scholarship, field, value)
    db.commit()
    return definition_row(scholarship, with_assignments=False)


@router.put("/{scholarship_id}/deactivate")
def deactivate_scholarship(scholarship_id: int, db: Session = Depends(get_db)):
    scholarship = get_definition_or_404(db, scholarship_id)
    scholarship.is_active = False
    db.commit()
    return definition_row(scholarship, with_assignments=False)


@router.put("/{scholarship_id}/reactivate")
def reactivate_scholarship(scholarship_id: int, db: Session = Depends(get_db)):
    scholarship = get_definition_or_404(db, scholarship_id)
    scholarship.is_active = True
    db.commit()
    return definition_row(scholarship, with_assignments=False)


@router.delete("/{scholarship_id}")
def delete_scholarship(scholarship_id: int, db: Session = Depends(get_db)):
    """Soft delete"""
    scholarship = get_definition_or_404(db, scholarship_id)
    scholarship.deleted_at = datetime.datetime.utcnow()
    scholarship.is_active = False
    db.commit()
    return {"message": "Deleted"}


# =====================
# ASSIGNMENT APIs
# =====================

@router.post("/assign")
def assign_to_student(data: AssignRequest, db: Session = Depends(get_db)):
    assignment = assign_scholarship(db, data.scholarship_id, data.student_id, data.effective_from, data.expires_at)
    return assignment_row(assignment)


@router.post("/bulk-assign")
def bulk_assign(data: BulkAssignRequest, db: Session = Depends(get_db)):
    scholarship = db.query(ScholarshipDefinition).filter(
        ScholarshipDefinition.id == data.scholarship_id,
        ScholarshipDefinition.is_active == True,
        ScholarshipDefinition.deleted_at.is_(None)
    ).first()
    if not scholarship:
        raise HTTPException(status_code=404, detail="Scholarship not found or inactive")

    successful, errors = [], []
    for student_id in data.student_ids:
        try:
            assignment = assign_scholarship(db, data.scholarship_id, student_id, data.effective_from, data.expires_at)
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
def get_student_scholarships(student_id: int, active_only: bool = True, db: Session = Depends(get_db)):
    get_student_or_404(db, student_id)

    query = db.query(ScholarshipAssignment).options(
        joinedload(ScholarshipAssignment.scholarship)
    ).filter(
        ScholarshipAssignment.student_id == student_id,
        ScholarshipAssignment.deleted_at.is_(None)
    )
    if active_only:
        today = datetime.date.today()
        query = query.filter(
            ScholarshipAssignment.effective_from <= today,
            or_(ScholarshipAssignment.expires_at.is_(None), ScholarshipAssignment.expires_at >= today)
        )

    result = []
    for a in query.order_by(ScholarshipAssignment.effective_from.desc()).all():
        row = assignment_row(a, with_student=False)
        row["scholarship"] = definition_row(a.scholarship, with_assignments=False)
        result.append(row)
    return result


@router.delete("/assignments/{assignment_id}")
def remove_assignment(assignment_id: int, db: Session = Depends(get_db)):
    assignment = db.query(ScholarshipAssignment).filter(
        ScholarshipAssignment.id == assignment_id,
        ScholarshipAssignment.deleted_at.is_(None)
    ).first()
    if not assignment:
        raise HTTPException(status_code=404, detail="Scholarship assignment not found")
    assignment.deleted_at = datetime.datetime.utcnow()
    db.commit()
    return {"message": "Removed", "id": assignment_id}


@router.post("/calculate")
def calculate_deduction(data: CalculateRequest, db: Session = Depends(get_db)):
    """Preview the deduction a student would get on base_amount for a month"""
    try:
        period_month = parse_month(data.month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    rows = scholarship_rows(scholarships_for_month(db, data.student_id, period_month))
    total, applied = scholarship_deduction(data.base_amount, rows)
    return {"total_deduction": total, "applied_scholarships": applied}
