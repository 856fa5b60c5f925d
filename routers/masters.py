from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from database import get_db
from models.masters import ClassMaster
from routers.auth import require_admin
from pydantic import BaseModel
from typing import Optional

router = APIRouter(prefix="/api/v1/masters", tags=["Master Records"], dependencies=[Depends(require_admin)])

# =======================
# 1. PYDANTIC SCHEMAS
# =======================
class ClassCreate(BaseModel):
    class_name: str
    grade: Optional[int] = None
    section: Optional[str] = None

# =======================
# 2. CLASS APIs
# =======================
@router.get("/classes")
def list_classes(db: Session = Depends(get_db)):
    return db.query(ClassMaster).order_by(ClassMaster.id).all()

@router.post("/classes")
def create_class(item: ClassCreate, db: Session = Depends(get_db)):
    existing = db.query(ClassMaster).filter(ClassMaster.class_name == item.class_name).first()
    if existing:
        raise HTTPException(status_code=400, detail="Class already exists")

    new_class = ClassMaster(class_name=item.class_name, grade=item.grade, section=item.section)
    db.add(new_class)
    db.commit()
    return {"message": "Class Created", "id": new_class.id}

@router.get("/classes/{class_id}")
def get_class(class_id: int, db: Session = Depends(get_db)):
    cls = db.query(ClassMaster).filter(ClassMaster.id == class_id).first()
    if not cls:
        raise HTTPException(status_code=404, detail="Class ID not found")
    return cls
