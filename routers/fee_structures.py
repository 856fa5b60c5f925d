"""
Fee Structure Router - Versioned class-wise fee structures
Create (one or many classes), revise into a new version, list, status changes
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func
from database import get_db
from config import settings
from models.masters import ClassMaster
from models.students import Student
from models.fee_models import FeeStructure, FeeStructureItem, FeeStructureHistory
from routers.auth import require_admin, CurrentUser
from schemas.fees import FeeStructureCreateSchema, FeeStructureReviseSchema, StatusUpdateSchema
from services.fee_calculations import compute_annual, total_pages
from services.fee_computation import seed_structure_month
from typing import Optional
import datetime
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/fees/structures", tags=["Fee Structures"])

# =====================
# HELPER FUNCTIONS
# =====================

def get_structure_or_404(db: Session, structure_id: int) -> FeeStructure:
    structure = db.query(FeeStructure).filter(
        FeeStructure.id == structure_id,
        FeeStructure.deleted_at.is_(None)
    ).first()
    if not structure:
        raise HTTPException(status_code=404, detail=f"Fee structure with ID {structure_id} not found")
    return structure


def make_items(structure_id, items):
    return [
        FeeStructureItem(
            fee_structure_id=structure_id,
            category=i.category or "General",
            label=i.label,
            amount=i.amount,
            frequency=i.frequency or "MONTHLY",
            is_optional=i.is_optional,
        )
        for i in items
    ]


def add_history(db: Session, structure, version, effective_from, items, change_reason=None, actor=None):
    snapshot_items = [i.to_snapshot() for i in items]
    history = FeeStructureHistory(
        fee_structure_id=structure.id,
        version=version,
        effective_from=effective_from,
        total_annual=compute_annual(snapshot_items),
        snapshot={"items": snapshot_items},
        change_reason=change_reason,
        created_by=actor,
    )
    db.add(history)
    db.flush()
    return history


def next_version(db: Session, structure_id) -> int:
    current = db.query(func.max(FeeStructureHistory.version)).filter(
        FeeStructureHistory.fee_structure_id == structure_id
    ).scalar()
    return (current or 0) + 1


def revise(db: Session, structure: FeeStructure, items, effective_from, change_reason=None, actor=None):
    """Soft delete live items, insert new ones, write the next history version"""
    version = next_version(db, structure.id)
    now = datetime.datetime.utcnow()
    for old in structure.live_items:
        old.deleted_at = now

    new_items = make_items(structure.id, items)
    db.add_all(new_items)
    db.flush()

    history = add_history(db, structure, version, effective_from, new_items, change_reason, actor)
    structure.updated_at = now
    logger.info("Fee structure %s revised to v%d (annual=%.2f)", structure.id, version, history.total_annual)
    return history


def structure_detail(structure: FeeStructure):
    latest = structure.histories[-1] if structure.histories else None
    return {
        "id": structure.id,
        "name": structure.name,
        "class_id": structure.class_id,
        "class_name": structure.class_val.class_name if structure.class_val else None,
        "academic_year": structure.academic_year,
        "effective_from": structure.effective_from,
        "status": structure.status,
        "items": [i.to_snapshot() for i in structure.live_items],
        "total_annual": latest.total_annual if latest else 0.0,
        "latest_version": latest.version if latest else 1,
        "created_at": structure.created_at,
        "updated_at": structure.updated_at,
    }


# =====================
# FEE STRUCTURE APIs
# =====================

@router.post("")
def create_fee_structure(
    data: FeeStructureCreateSchema,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin)
):
    """
    Create one independent structure per target class.
    - Rejected as a whole if any class already has one for the academic year
    - Writes version 1 history and seeds the effective month for the class
    """
    class_ids = data.target_class_ids()
    if not class_ids:
        raise HTTPException(status_code=400, detail="At least one class_id required")

    found = {c.id for c in db.query(ClassMaster.id).filter(ClassMaster.id.in_(class_ids)).all()}
    missing = [c for c in class_ids if c not in found]
    if missing:
        raise HTTPException(status_code=404, detail=f"Class not found: {missing}")

    existing = db.query(FeeStructure.class_id).filter(
        FeeStructure.academic_year == data.academic_year,
        FeeStructure.deleted_at.is_(None),
        FeeStructure.class_id.in_(class_ids)
    ).all()
    if existing:
        conflicting = sorted({e.class_id for e in existing})
        logger.warning("Fee structure conflict for %s classes %s", data.academic_year, conflicting)
        raise HTTPException(status_code=409, detail={
            "message": "Fee structure already exists for one or more selected classes for this academic year",
            "conflicting_class_ids": conflicting,
        })

    created = []
    for class_id in class_ids:
        structure = FeeStructure(
            class_id=class_id,
            academic_year=data.academic_year,
            name=data.name,
            effective_from=data.effective_from,
            status="ACTIVE",
        )
        db.add(structure)
        db.flush()

        items = make_items(structure.id, data.items)
        db.add_all(items)
        db.flush()

        history = add_history(db, structure, 1, data.effective_from, items, actor=user.subject)
        seeded = seed_structure_month(db, structure, history, actor=user.subject)
        logger.info("Fee structure %s created for class %s (%d students seeded)", structure.id, class_id, seeded)
        created.append(structure)

    db.commit()
    for s in created:
        db.refresh(s)

    # Single class keeps the single object response shape
    if len(created) == 1:
        return structure_detail(created[0])
    return [structure_detail(s) for s in created]


@router.get("")
def list_fee_structures(
    class_id: Optional[int] = None,
    academic_year: Optional[str] = None,
    page: int = 1,
    page_size: int = settings.DEFAULT_PAGE_SIZE,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin)
):
    """Paginated list with student counts and latest version totals"""
    page = page if page > 0 else 1
    if page_size <= 0 or page_size > settings.MAX_PAGE_SIZE:
        page_size = settings.DEFAULT_PAGE_SIZE

    query = db.query(FeeStructure).filter(FeeStructure.deleted_at.is_(None))
    if class_id:
        query = query.filter(FeeStructure.class_id == class_id)
    if academic_year:
        query = query.filter(FeeStructure.academic_year == academic_year)

    total = query.count()
    structures = query.options(
        joinedload(FeeStructure.class_val),
    ).order_by(
        FeeStructure.effective_from.desc(), FeeStructure.id.desc()
    ).offset((page - 1) * page_size).limit(page_size).all()

    class_ids = list({s.class_id for s in structures})
    counts = dict(
        db.query(Student.class_id, func.count(Student.id)).filter(
            Student.class_id.in_(class_ids),
            Student.deleted_at.is_(None),
            Student.status == True
        ).group_by(Student.class_id).all()
    ) if class_ids else {}

    data = []
    for s in structures:
        row = structure_detail(s)
        row["grade"] = s.class_val.grade if s.class_val else None
        row["section"] = s.class_val.section if s.class_val else None
        row["student_count"] = counts.get(s.class_id, 0)
        data.append(row)

    return {
        "data": data,
        "page": page,
        "page_size": page_size,
        "total": total,
        "total_pages": total_pages(total, page_size),
    }


@router.get("/{structure_id}")
def get_fee_structure(structure_id: int, db: Session = Depends(get_db), user: CurrentUser = Depends(require_admin)):
    return structure_detail(get_structure_or_404(db, structure_id))


@router.post("/{structure_id}/revise")
def revise_fee_structure(
    structure_id: int,
    data: FeeStructureReviseSchema,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin)
):
    """Replace the line items and record a new version"""
    structure = get_structure_or_404(db, structure_id)
    history = revise(db, structure, data.items, data.effective_from, data.change_reason, user.subject)
    db.commit()
    return {"version": history.version, "total_annual": history.total_annual}


@router.get("/{structure_id}/history")
def get_structure_history(structure_id: int, db: Session = Depends(get_db), user: CurrentUser = Depends(require_admin)):
    get_structure_or_404(db, structure_id)
    histories = db.query(FeeStructureHistory).filter(
        FeeStructureHistory.fee_structure_id == structure_id
    ).order_by(FeeStructureHistory.version.asc()).all()

    return [
        {
            "id": h.id,
            "version": h.version,
            "effective_from": h.effective_from,
            "total_annual": h.total_annual,
            "snapshot": h.snapshot,
            "change_reason": h.change_reason,
            "created_by": h.created_by,
            "created_at": h.created_at,
        }
        for h in histories
    ]


@router.patch("/{structure_id}/status")
def update_structure_status(
    structure_id: int,
    data: StatusUpdateSchema,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin)
):
    structure = get_structure_or_404(db, structure_id)
    structure.status = data.status
    db.commit()
    logger.info("Fee structure %s status -> %s", structure.id, data.status)
    return {"id": structure.id, "status": structure.status}
