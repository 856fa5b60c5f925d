"""
Fee Structure Timeline Router - History viewer, version diffs, impact analysis
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func
from database import get_db
from models.fee_models import FeeStructure, FeeStructureHistory, StudentFeeHistory
from routers.auth import require_admin, CurrentUser
from routers.fee_structures import get_structure_or_404, revise
from schemas.fees import RollbackSchema, FeeItemSchema
from services.fee_calculations import (
    compute_annual, annual_amount, compare_items, change_between,
    item_frequency, money, parse_month, month_key, MONTHS_PER_YEAR,
)
from typing import Optional
import datetime

router = APIRouter(
    prefix="/api/v1/fees/structures/{structure_id}",
    tags=["Fee Structure Timeline"],
    dependencies=[Depends(require_admin)],
)

# =====================
# HELPER FUNCTIONS
# =====================

def structure_summary(structure: FeeStructure):
    return {
        "name": structure.name,
        "class": {
            "id": structure.class_id,
            "name": structure.class_val.class_name if structure.class_val else None,
        },
        "academic_year": structure.academic_year,
        "status": structure.status,
    }


def versions_of(db: Session, structure_id, *order_by):
    return db.query(FeeStructureHistory).filter(
        FeeStructureHistory.fee_structure_id == structure_id
    ).order_by(*order_by).all()


def students_on_version(db: Session, structure_id, version) -> int:
    return db.query(func.count(StudentFeeHistory.id)).filter(
        StudentFeeHistory.fee_structure_id == structure_id,
        StudentFeeHistory.structure_version == version
    ).scalar() or 0


def display_items(items):
    return [
        {
            "label": i.get("label"),
            "amount": i.get("amount"),
            "frequency": item_frequency(i),
            "category": i.get("category") or "General",
        }
        for i in items
    ]


def impact_analysis(db: Session, structure_id: int, from_version: Optional[int], to_version: Optional[int]):
    structure = get_structure_or_404(db, structure_id)
    versions = versions_of(db, structure_id, FeeStructureHistory.version.asc())
    if not versions:
        raise HTTPException(status_code=404, detail="No version history found for this fee structure")

    start = from_version if from_version is not None else versions[0].version
    end = to_version if to_version is not None else versions[-1].version
    by_version = {v.version: v for v in versions}
    if start not in by_version or end not in by_version:
        raise HTTPException(status_code=400, detail="Invalid version numbers specified")

    from_data, to_data = by_version[start], by_version[end]
    from_total = compute_annual(from_data.items)
    to_total = compute_annual(to_data.items)
    change = change_between(from_total, to_total)

    affected = students_on_version(db, structure_id, end)
    annual_revenue = money(change["annual_change"] * affected)

    return {
        "fee_structure_id": structure_id,
        "fee_structure": {"name": structure.name, "academic_year": structure.academic_year},
        "comparison": {
            "from_version": {
                "version": start,
                "effective_from": from_data.effective_from,
                "annual_total": from_total,
                "monthly_total": money(from_total / MONTHS_PER_YEAR),
            },
            "to_version": {
                "version": end,
                "effective_from": to_data.effective_from,
                "annual_total": to_total,
                "monthly_total": money(to_total / MONTHS_PER_YEAR),
            },
        },
        "impact": {
            "amount_change": {
                "annual": change["annual_change"],
                "monthly": change["monthly_change"],
                "percentage": change["percentage_change"],
                "is_increase": change["is_increase"],
            },
            "revenue_impact": {
                "students_affected": affected,
                "annual_revenue": annual_revenue,
                "monthly_revenue": money(annual_revenue / MONTHS_PER_YEAR),
            },
        },
        "item_comparison": [
            c for c in compare_items(from_data.items, to_data.items) if c["change_type"] != "unchanged"
        ],
    }


# =====================
# TIMELINE APIs
# =====================

@router.get("/timeline")
def get_timeline(structure_id: int, db: Session = Depends(get_db)):
    """Every version with totals, items, affected students and delta to previous"""
    structure = get_structure_or_404(db, structure_id)
    versions = versions_of(
        db, structure_id, FeeStructureHistory.effective_from.asc(), FeeStructureHistory.version.asc()
    )

    if not versions:
        return {
            "fee_structure_id": structure_id,
            "fee_structure": structure_summary(structure),
            "versions": [],
            "total_versions": 0,
            "message": "No version history found",
        }

    timeline = []
    prev_annual = None
    for v in versions:
        annual = compute_annual(v.items)
        timeline.append({
            "version": v.version,
            "effective_from": v.effective_from,
            "change_reason": v.change_reason,
            "created_by": v.created_by or "System",
            "created_at": v.created_at,
            "amounts": {
                "annual_total": annual,
                "monthly_total": money(annual / MONTHS_PER_YEAR),
            },
            "items": display_items(v.items),
            "impact": {
                "students_affected": students_on_version(db, structure_id, v.version),
                "change_from_previous": change_between(prev_annual, annual) if prev_annual is not None else None,
            },
        })
        prev_annual = annual

    summary = structure_summary(structure)
    summary["created_at"] = structure.created_at
    summary["updated_at"] = structure.updated_at
    return {
        "fee_structure_id": structure_id,
        "fee_structure": summary,
        "total_versions": len(versions),
        "current_version": max(v.version for v in versions),
        "versions": timeline,
    }


@router.get("/affected-students")
def get_affected_students(
    structure_id: int,
    version: Optional[int] = None,
    month: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """Latest fee record per student computed from this structure"""
    structure = get_structure_or_404(db, structure_id)

    query = db.query(StudentFeeHistory).options(
        joinedload(StudentFeeHistory.student)
    ).filter(StudentFeeHistory.fee_structure_id == structure_id)

    if version is not None:
        query = query.filter(StudentFeeHistory.structure_version == version)
    if month:
        try:
            period_month = parse_month(month)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        query = query.filter(StudentFeeHistory.period_month == period_month)

    records = query.order_by(
        StudentFeeHistory.period_month.desc(), StudentFeeHistory.version.desc()
    ).all()

    # Ordered newest first, so the first row per student is its latest
    latest = {}
    for r in records:
        latest.setdefault(r.student_id, r)

    students = []
    for r in latest.values():
        s = r.student
        students.append({
            "student_id": r.student_id,
            "roll_no": s.roll_no if s else None,
            "student_name": s.student_name if s else None,
            "email": s.email if s else None,
            "class_id": s.class_id if s else None,
            "fee_details": {
                "month": month_key(r.period_month),
                "version": r.version,
                "amounts": r.amounts(),
                "breakdown": r.breakdown,
            },
            "last_updated": r.created_at,
        })

    total = money(sum(st["fee_details"]["amounts"]["final_payable"] for st in students))
    return {
        "fee_structure_id": structure_id,
        "fee_structure": structure_summary(structure),
        "filters": {"version": version, "month": month},
        "summary": {
            "total_students_affected": len(students),
            "total_fee_amount": total,
            "average_fee_per_student": money(total / len(students)) if students else 0,
        },
        "students": students,
    }


@router.get("/impact")
def get_impact_analysis(
    structure_id: int,
    from_version: Optional[int] = None,
    to_version: Optional[int] = None,
    db: Session = Depends(get_db)
):
    return impact_analysis(db, structure_id, from_version, to_version)


@router.get("/versions/{version}")
def get_version_details(structure_id: int, version: int, db: Session = Depends(get_db)):
    structure = get_structure_or_404(db, structure_id)
    data = db.query(FeeStructureHistory).filter(
        FeeStructureHistory.fee_structure_id == structure_id,
        FeeStructureHistory.version == version
    ).first()
    if not data:
        raise HTTPException(status_code=404, detail=f"Version {version} not found for fee structure {structure_id}")

    annual = compute_annual(data.items)
    affected = students_on_version(db, structure_id, version)
    items = display_items(data.items)
    for item in items:
        item["annual_amount"] = money(annual_amount(item["amount"], item["frequency"]))

    return {
        "fee_structure_id": structure_id,
        "fee_structure": {"name": structure.name, "academic_year": structure.academic_year},
        "version": {
            "number": version,
            "effective_from": data.effective_from,
            "change_reason": data.change_reason,
            "created_by": data.created_by or "System",
            "created_at": data.created_at,
        },
        "amounts": {
            "annual_total": annual,
            "monthly_total": money(annual / MONTHS_PER_YEAR),
        },
        "items": items,
        "impact": {
            "students_affected": affected,
            "estimated_annual_revenue": money(annual * affected),
        },
    }


@router.get("/rollback-preview")
def get_rollback_preview(structure_id: int, target_version: int, db: Session = Depends(get_db)):
    """What changes if the structure goes back to target_version (latest -> target)"""
    latest = db.query(func.max(FeeStructureHistory.version)).filter(
        FeeStructureHistory.fee_structure_id == structure_id
    ).scalar()
    analysis = impact_analysis(db, structure_id, latest, target_version)

    annual = analysis["impact"]["amount_change"]["annual"]
    if annual < 0:
        warning = "Rolling back to this version will reduce fees. Existing payments may need adjustment."
    elif annual > 0:
        warning = "Rolling back to this version will increase fees from current levels."
    else:
        warning = "Rolling back to this version will result in no fee changes."

    analysis["rollback_details"] = {"target_version": target_version, "warning": warning}
    return analysis


@router.post("/rollback")
def rollback_structure(
    structure_id: int,
    data: RollbackSchema,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin)
):
    """Write a new version whose items copy an older snapshot"""
    structure = get_structure_or_404(db, structure_id)
    target = db.query(FeeStructureHistory).filter(
        FeeStructureHistory.fee_structure_id == structure_id,
        FeeStructureHistory.version == data.target_version
    ).first()
    if not target:
        raise HTTPException(status_code=404, detail=f"Version {data.target_version} not found for fee structure {structure_id}")

    items = [
        FeeItemSchema(
            label=i.get("label"),
            amount=i.get("amount") or 0,
            category=i.get("category") or "General",
            frequency=item_frequency(i),
            is_optional=bool(i.get("is_optional")),
        )
        for i in target.items
    ]
    history = revise(
        db, structure, items,
        data.effective_from or datetime.date.today(),
        data.change_reason or f"Rollback to version {data.target_version}",
        user.subject,
    )
    db.commit()
    return {"version": history.version, "total_annual": history.total_annual, "rolled_back_to": data.target_version}
