from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from database import Base

class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    admission_no = Column(String(50), unique=True, index=True)
    student_name = Column(String(100))

    # --- ACADEMIC INFO ---
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=True, index=True)
    roll_no = Column(Integer, nullable=True)

    # --- CONTACT ---
    mobile_number = Column(String(15))
    email = Column(String(120), nullable=True)

    status = Column(Boolean, default=True)
    deleted_at = Column(DateTime, nullable=True)  # Soft delete

    # --- RELATIONSHIPS ---
    class_val = relationship("models.masters.ClassMaster")
