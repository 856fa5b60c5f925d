from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import or_
from database import get_db
from models.students import Student
from models.masters import ClassMaster
from routers.auth import require_admin
from pydantic import BaseModel
from typing import Optional
import datetime

router = APIRouter(prefix="/api/v1/students", tags=["Students"], dependencies=[Depends(require_admin)])

# ===============================
#   1. SCHEMAS
# ===============================

class StudentCreate(BaseModel):
    admission_no: str
    student_name: str
    class_id: Optional[int] = None
    roll_no: Optional[int] = None
    mobile_number: str
    email: Optional[str] = None


def student_row(s: Student):
    return {
        "id": s.id,
        "admission_no": s.admission_no,
        "student_name": s.student_name,
        "roll_no": s.roll_no,
        "mobile_number": s.mobile_number,
        "email": s.email,
        "class_id": s.class_id,
        "class_name": s.class_val.class_name if s.class_val else "N/A",
        "status": s.status,
    }


def get_student_or_404(db: Session, student_id: int) -> Student:
    student = db.query(Student).filter(Student.id == student_id, Student.deleted_at.is_(None)).first()
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return student

# ===============================
#   2. STUDENT CRUD OPERATIONS
# ===============================

@router.get("")
def list_students(class_id: Optional[int] = None, search: str = "", db: Session = Depends(get_db)):
    query = db.query(Student).filter(Student.deleted_at.is_(None)).options(joinedload(Student.class_val))

    if class_id:
        query = query.filter(Student.class_id == class_id)

    if search:
        search_fmt = f"%{search}%"
        query = query.filter(
            or_(
                Student.student_name.ilike(search_fmt),
                Student.admission_no.ilike(search_fmt),
                Student.mobile_number.ilike(search_fmt)
            )
        )

    return [student_row(s) for s in query.order_by(Student.id).all()]


@router.post("")
def add_student(data: StudentCreate, db: Session = Depends(get_db)):
    if db.query(Student).filter(Student.admission_no == data.admission_no).first():
        raise HTTPException(status_code=400, detail="Admission No already exists")

    if data.class_id and not db.query(ClassMaster).filter(ClassMaster.id == data.class_id).first():
        raise HTTPException(status_code=404, detail="Class ID not found")

    student = Student(**data.model_dump())
    db.add(student)
    db.commit()
    return {"message": "Student Added", "id": student.id}


@router.get("/{student_id}")
def get_student(student_id: int, db: Session = Depends(get_db)):
    return student_row(get_student_or_404(db, student_id))


@router.delete("/{student_id}")
def delete_student(student_id: int, db: Session = Depends(get_db)):
    """Soft delete - fee history stays for audit"""
    student = get_student_or_404(db, student_id)
    student.deleted_at = datetime.datetime.utcnow()
    student.status = False
    db.commit()
    return {"message": "Deleted"}
