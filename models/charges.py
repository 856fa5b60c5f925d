from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
import datetime

# 1. CHARGE DEFINITION - Extra charges on top of the fee structure
class ChargeDefinition(Base):
    __tablename__ = "charge_definitions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    type = Column(String(20), default="OTHER")
    category = Column(String(50), nullable=True)
    description = Column(String(500), nullable=True)
    value_type = Column(String(20), default="FIXED")  # FIXED or PERCENTAGE
    value = Column(Float, default=0.0)
    is_recurring = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    assignments = relationship("ChargeAssignment", back_populates="charge")

# 2. CHARGE ASSIGNMENT - Charge applied to a student for one month
class ChargeAssignment(Base):
    __tablename__ = "charge_assignments"

    id = Column(Integer, primary_key=True, index=True)
    charge_id = Column(Integer, ForeignKey("charge_definitions.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    applied_month = Column(Date, nullable=False)  # 1st of month
    amount = Column(Float, default=0.0)
    reason = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    charge = relationship("ChargeDefinition", back_populates="assignments")
    student = relationship("Student")
