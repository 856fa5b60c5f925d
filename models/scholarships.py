from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
import datetime

# 1. SCHOLARSHIP DEFINITION
class ScholarshipDefinition(Base):
    __tablename__ = "scholarship_definitions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    type = Column(String(20), default="OTHER")
    description = Column(String(500), nullable=True)
    value_type = Column(String(20), default="FIXED")  # PERCENTAGE or FIXED
    value = Column(Float, default=0.0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    assignments = relationship("ScholarshipAssignment", back_populates="scholarship")

# 2. SCHOLARSHIP ASSIGNMENT - Student <-> Scholarship for a date range
class ScholarshipAssignment(Base):
    __tablename__ = "scholarship_assignments"

    id = Column(Integer, primary_key=True, index=True)
    scholarship_id = Column(Integer, ForeignKey("scholarship_definitions.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    effective_from = Column(Date, nullable=False)
    expires_at = Column(Date, nullable=True)  # None = never expires
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    scholarship = relationship("ScholarshipDefinition", back_populates="assignments")
    student = relationship("Student")
