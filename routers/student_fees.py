"""
Student Fee Router - Read side of computed monthly fees
Students (JWT role=student) can only read their own records; admins read all
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload
from database import get_db
from config import settings
from models.students import Student
from models.fee_models import StudentFeeHistory
from routers.auth import get_current_user, require_admin, ensure_student_access, CurrentUser
from services.fee_calculations import parse_month, month_end, month_key, current_month, money, total_pages
from typing import Optional

router = APIRouter(prefix="/api/v1/fees/students", tags=["Student Fees"])

# =====================
# HELPER FUNCTIONS
# =====================

def load_student(db: Session, student_id: int) -> Student:
    student = db.query(Student).options(joinedload(Student.class_val)).filter(Student.id == student_id).first()
    if not student:
        raise HTTPException(status_code=404, detail=f"Student with ID {student_id} not found")
    return student


def student_info(student: Student):
    return {
        "student_name": student.student_name,
        "roll_no": student.roll_no,
        "class": {
            "id": student.class_id,
            "name": student.class_val.class_name if student.class_val else None,
        },
    }


def month_or_400(value: str):
    try:
        return parse_month(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def pagination(page, page_size, total):
    pages = total_pages(total, page_size)
    return {
        "page": page,
        "page_size": page_size,
        "total_count": total,
        "total_pages": pages,
        "has_next": page < pages,
        "has_prev": page > 1,
    }


# =====================
# ADMIN APIs
# =====================

@router.get("/bulk")
def get_bulk_student_fees(
    month: str,
    class_id: Optional[int] = None,
    page: int = 1,
    page_size: int = 50,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin)
):
    """Latest version per student for one month, with collection summary"""
    period_month = month_or_400(month)
    page = page if page > 0 else 1
    if page_size <= 0 or page_size > settings.MAX_PAGE_SIZE:
        page_size = 50

    query = db.query(StudentFeeHistory).join(Student).options(
        joinedload(StudentFeeHistory.student).joinedload(Student.class_val)
    ).filter(StudentFeeHistory.period_month == period_month)
    if class_id:
        query = query.filter(Student.class_id == class_id)

    latest = {}
    for r in query.order_by(StudentFeeHistory.student_id.asc(), StudentFeeHistory.version.desc()).all():
        latest.setdefault(r.student_id, r)
    records = list(latest.values())

    total_collection = money(sum(r.final_payable for r in records))
    page_rows = records[(page - 1) * page_size: page * page_size]

    return {
        "month": month_key(period_month),
        "class_id": class_id,
        "pagination": pagination(page, page_size, len(records)),
        "summary": {
            "total_students": len(records),
            "total_base_amount": money(sum(r.base_amount for r in records)),
            "total_scholarships": money(sum(r.scholarship_amount for r in records)),
            "total_charges": money(sum(r.extra_charges_amount for r in records)),
            "total_collection": total_collection,
            "average_fee_per_student": money(total_collection / len(records)) if records else 0,
        },
        "students": [
            {
                "student_id": r.student_id,
                **student_info(r.student),
                "email": r.student.email,
                "amounts": r.amounts(),
                "version": r.version,
                "breakdown": r.breakdown,
                "created_at": r.created_at,
            }
            for r in page_rows
        ],
    }


# =====================
# STUDENT APIs
# =====================

@router.get("/{student_id}/current")
def get_current_fees(student_id: int, db: Session = Depends(get_db), user: CurrentUser = Depends(get_current_user)):
    ensure_student_access(user, student_id)
    student = load_student(db, student_id)
    month = current_month()

    history = db.query(StudentFeeHistory).filter(
        StudentFeeHistory.student_id == student_id,
        StudentFeeHistory.period_month == month
    ).order_by(StudentFeeHistory.version.desc()).first()

    result = {
        "student_id": student_id,
        "student": student_info(student),
        "current_month": month_key(month),
    }
    if not history:
        result["message"] = "No fee structure applied for current month"
        return result

    result["computed_fee"] = {
        "version": history.version,
        **history.amounts(),
        "breakdown": history.breakdown,
    }
    result["created_at"] = history.created_at
    return result


@router.get("/{student_id}/history")
def get_fee_history(
    student_id: int,
    from_month: Optional[str] = None,
    to_month: Optional[str] = None,
    page: int = 1,
    page_size: int = settings.DEFAULT_PAGE_SIZE,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user)
):
    ensure_student_access(user, student_id)
    student = load_student(db, student_id)
    page = page if page > 0 else 1
    if page_size <= 0 or page_size > settings.MAX_PAGE_SIZE:
        page_size = settings.DEFAULT_PAGE_SIZE

    query = db.query(StudentFeeHistory).filter(StudentFeeHistory.student_id == student_id)
    if from_month:
        query = query.filter(StudentFeeHistory.period_month >= month_or_400(from_month))
    if to_month:
        query = query.filter(StudentFeeHistory.period_month <= month_end(month_or_400(to_month)))

    total = query.count()
    records = query.order_by(
        StudentFeeHistory.period_month.desc(), StudentFeeHistory.version.desc()
    ).offset((page - 1) * page_size).limit(page_size).all()

    return {
        "student_id": student_id,
        "student": student_info(student),
        "pagination": pagination(page, page_size, total),
        "history": [
            {
                "id": r.id,
                "month": month_key(r.period_month),
                "version": r.version,
                "amounts": r.amounts(),
                "breakdown": r.breakdown,
                "created_at": r.created_at,
            }
            for r in records
        ],
    }


@router.get("/{student_id}/month/{month}")
def get_month_fees(student_id: int, month: str, db: Session = Depends(get_db), user: CurrentUser = Depends(get_current_user)):
    """Latest version for the month plus every earlier version"""
    ensure_student_access(user, student_id)
    student = load_student(db, student_id)
    period_month = month_or_400(month)

    histories = db.query(StudentFeeHistory).filter(
        StudentFeeHistory.student_id == student_id,
        StudentFeeHistory.period_month == period_month
    ).order_by(StudentFeeHistory.version.desc()).all()

    result = {
        "student_id": student_id,
        "student": student_info(student),
        "month": month_key(period_month),
    }
    if not histories:
        result["message"] = f"No fee data found for {month_key(period_month)}"
        return result

    latest = histories[0]
    result["fee_history"] = {
        "current": {
            "version": latest.version,
            "amounts": latest.amounts(),
            "breakdown": latest.breakdown,
            "created_at": latest.created_at,
        },
        "all_versions": [
            {"version": h.version, "amounts": h.amounts(), "created_at": h.created_at}
            for h in histories
        ],
    }
    return result
