"""
Monthly Fee Computation
Turns the effective fee structure snapshot + scholarships + charges into a
versioned StudentFeeHistory row per student per month.
"""
import logging
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from models.students import Student
from models.fee_models import FeeStructure, FeeStructureHistory, StudentFeeHistory
from models.scholarships import ScholarshipAssignment, ScholarshipDefinition
from models.charges import ChargeAssignment, ChargeDefinition
from services.fee_calculations import (
    money, monthly_portion, scholarship_deduction, month_start, month_end,
)

logger = logging.getLogger(__name__)


def active_students(db: Session, class_id=None):
    query = db.query(Student).filter(Student.deleted_at.is_(None), Student.status == True)
    if class_id:
        query = query.filter(Student.class_id == class_id)
    return query.order_by(Student.id).all()


def effective_histories_by_class(db: Session, period_month):
    """Latest structure version per class that is in force during the month"""
    histories = db.query(FeeStructureHistory).join(FeeStructure).filter(
        FeeStructure.deleted_at.is_(None),
        FeeStructure.status == "ACTIVE",
        FeeStructureHistory.effective_from <= month_end(period_month),
    ).order_by(
        FeeStructureHistory.effective_from.asc(),
        FeeStructureHistory.version.asc(),
    ).options(joinedload(FeeStructureHistory.structure)).all()

    by_class = {}
    for h in histories:
        # Ordered ascending, so the last one wins
        by_class[h.structure.class_id] = h
    return by_class


def scholarships_for_month(db: Session, student_id, period_month):
    """Live assignments of active scholarships overlapping the month"""
    start, end = month_start(period_month), month_end(period_month)
    return db.query(ScholarshipAssignment).join(ScholarshipDefinition).options(
        joinedload(ScholarshipAssignment.scholarship)
    ).filter(
        ScholarshipAssignment.student_id == student_id,
        ScholarshipAssignment.deleted_at.is_(None),
        ScholarshipDefinition.is_active == True,
        ScholarshipDefinition.deleted_at.is_(None),
        ScholarshipAssignment.effective_from <= end,
        or_(ScholarshipAssignment.expires_at.is_(None), ScholarshipAssignment.expires_at >= start),
    ).order_by(ScholarshipAssignment.id).all()


def charges_for_month(db: Session, student_id, period_month):
    """Live assignments of active charges applied within the month"""
    start, end = month_start(period_month), month_end(period_month)
    return db.query(ChargeAssignment).join(ChargeDefinition).options(
        joinedload(ChargeAssignment.charge)
    ).filter(
        ChargeAssignment.student_id == student_id,
        ChargeAssignment.deleted_at.is_(None),
        ChargeDefinition.is_active == True,
        ChargeDefinition.deleted_at.is_(None),
        ChargeAssignment.applied_month >= start,
        ChargeAssignment.applied_month <= end,
    ).order_by(ChargeAssignment.id).all()


def scholarship_rows(assignments):
    return [
        {
            "scholarship_id": a.scholarship_id,
            "name": a.scholarship.name,
            "type": a.scholarship.type,
            "value_type": a.scholarship.value_type,
            "value": a.scholarship.value,
        }
        for a in assignments
    ]


def build_student_fee(db: Session, student_id, history: FeeStructureHistory, period_month):
    """Compute amounts + breakdown for one student from one structure version"""
    base, item_breakdown = monthly_portion(history.items, period_month, history.effective_from)

    scholarships = scholarship_rows(scholarships_for_month(db, student_id, period_month))
    deduction, applied = scholarship_deduction(base, scholarships)

    charge_assignments = charges_for_month(db, student_id, period_month)
    charges = money(sum(c.amount or 0 for c in charge_assignments))

    payable = money(base - deduction + charges)

    return {
        "base_amount": base,
        "scholarship_amount": deduction,
        "extra_charges_amount": charges,
        "final_payable": payable,
        "breakdown": {
            "fee_structure_id": history.fee_structure_id,
            "fee_structure_history_version": history.version,
            "items": item_breakdown,
            "scholarships": applied,
            "charges": [
                {
                    "charge_id": c.charge_id,
                    "name": c.charge.name,
                    "amount": c.amount,
                    "reason": c.reason,
                }
                for c in charge_assignments
            ],
            "totals": {
                "base": base,
                "scholarship_deduction": deduction,
                "charges": charges,
                "final": payable,
            },
        },
    }


def latest_student_fee(db: Session, student_id, period_month):
    return db.query(StudentFeeHistory).filter(
        StudentFeeHistory.student_id == student_id,
        StudentFeeHistory.period_month == period_month,
    ).order_by(StudentFeeHistory.version.desc()).first()


def has_changed(last: StudentFeeHistory, computed) -> bool:
    if last is None:
        return True
    return any(
        money(getattr(last, field)) != computed[field]
        for field in ("base_amount", "scholarship_amount", "extra_charges_amount", "final_payable")
    )


def write_student_fee(db: Session, student_id, history, period_month, computed, version, actor=None):
    row = StudentFeeHistory(
        student_id=student_id,
        fee_structure_id=history.fee_structure_id,
        structure_version=history.version,
        period_month=period_month,
        version=version,
        base_amount=computed["base_amount"],
        scholarship_amount=computed["scholarship_amount"],
        extra_charges_amount=computed["extra_charges_amount"],
        final_payable=computed["final_payable"],
        breakdown=computed["breakdown"],
        created_by=actor,
    )
    db.add(row)
    return row


def seed_structure_month(db: Session, structure: FeeStructure, history: FeeStructureHistory, actor=None):
    """
    Give every active student of the class a version 1 fee row for the
    structure's effective month. Students that already have one are left alone.
    """
    period_month = month_start(history.effective_from)
    seeded = 0
    for student in active_students(db, structure.class_id):
        exists = db.query(StudentFeeHistory.id).filter(
            StudentFeeHistory.student_id == student.id,
            StudentFeeHistory.period_month == period_month,
            StudentFeeHistory.version == 1,
        ).first()
        if exists:
            continue
        computed = build_student_fee(db, student.id, history, period_month)
        write_student_fee(db, student.id, history, period_month, computed, 1, actor)
        seeded += 1
    return seeded


def compute_for_month(db: Session, period_month, class_id=None, include_existing=False, actor=None):
    """
    Compute fee rows for every active student (optionally one class).
    A new version is written only when the amounts moved, unless
    include_existing forces it. Caller commits.
    """
    period_month = month_start(period_month)
    histories = effective_histories_by_class(db, period_month)

    created = 0
    for student in active_students(db, class_id):
        history = histories.get(student.class_id)
        if history is None:
            continue

        computed = build_student_fee(db, student.id, history, period_month)
        last = latest_student_fee(db, student.id, period_month)
        if not has_changed(last, computed) and not include_existing:
            continue

        version = (last.version if last else 0) + 1
        write_student_fee(db, student.id, history, period_month, computed, version, actor)
        created += 1

    db.flush()
    logger.info("Computed fees for %s (class=%s): %d rows written", period_month, class_id, created)
    return {"count": created}
