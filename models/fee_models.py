"""
Fee Structure Models - Versioned structures with audit history
Every revision writes a new FeeStructureHistory snapshot; monthly per-student
amounts are versioned the same way in StudentFeeHistory.
"""
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Boolean, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
import datetime

# 1. FEE STRUCTURE - One per class per academic year
class FeeStructure(Base):
    __tablename__ = "fee_structures"

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False, index=True)
    academic_year = Column(String(20), nullable=False)  # e.g. "2025-2026"
    name = Column(String(150), nullable=False)
    effective_from = Column(Date, nullable=False)
    status = Column(String(20), default="ACTIVE")  # ACTIVE, ARCHIVED, DRAFT

    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    class_val = relationship("ClassMaster")
    items = relationship("FeeStructureItem", back_populates="structure", order_by="FeeStructureItem.id")
    histories = relationship("FeeStructureHistory", back_populates="structure", order_by="FeeStructureHistory.version")

    @property
    def live_items(self):
        return [i for i in self.items if i.deleted_at is None]

# 2. FEE STRUCTURE ITEM - Line items (Tuition, Lab, Transport...)
class FeeStructureItem(Base):
    __tablename__ = "fee_structure_items"

    id = Column(Integer, primary_key=True, index=True)
    fee_structure_id = Column(Integer, ForeignKey("fee_structures.id"), nullable=False, index=True)
    category = Column(String(50), default="General")
    label = Column(String(100), nullable=False)
    amount = Column(Float, default=0.0)
    frequency = Column(String(20), default="MONTHLY")  # MONTHLY, TERM, ANNUAL, ONE_TIME
    is_optional = Column(Boolean, default=False)
    deleted_at = Column(DateTime, nullable=True)  # Set when a revision replaces the item

    structure = relationship("FeeStructure", back_populates="items")

    def to_snapshot(self):
        return {
            "id": self.id,
            "category": self.category,
            "label": self.label,
            "amount": self.amount,
            "frequency": self.frequency,
            "is_optional": self.is_optional,
        }

# 3. FEE STRUCTURE HISTORY - Immutable version snapshots (audit trail)
class FeeStructureHistory(Base):
    __tablename__ = "fee_structure_histories"

    id = Column(Integer, primary_key=True, index=True)
    fee_structure_id = Column(Integer, ForeignKey("fee_structures.id"), nullable=False, index=True)
    version = Column(Integer, nullable=False)
    effective_from = Column(Date, nullable=False)
    total_annual = Column(Float, default=0.0)
    snapshot = Column(JSON, default=dict)  # {"items": [...]}
    change_reason = Column(String(500), nullable=True)
    created_by = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('fee_structure_id', 'version', name='uq_structure_version'),
    )

    structure = relationship("FeeStructure", back_populates="histories")

    @property
    def items(self):
        return (self.snapshot or {}).get("items", [])

# 4. STUDENT FEE HISTORY - Computed monthly payable, versioned per month
class StudentFeeHistory(Base):
    __tablename__ = "student_fee_histories"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    fee_structure_id = Column(Integer, ForeignKey("fee_structures.id"), nullable=True, index=True)
    structure_version = Column(Integer, nullable=True)  # FeeStructureHistory.version used
    period_month = Column(Date, nullable=False, index=True)  # Always 1st of month
    version = Column(Integer, nullable=False, default=1)

    base_amount = Column(Float, default=0.0)
    scholarship_amount = Column(Float, default=0.0)
    extra_charges_amount = Column(Float, default=0.0)
    final_payable = Column(Float, default=0.0)
    breakdown = Column(JSON, default=dict)

    created_by = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('student_id', 'period_month', 'version', name='uq_student_month_version'),
    )

    student = relationship("Student")
    structure = relationship("FeeStructure")

    def amounts(self):
        return {
            "base_amount": self.base_amount,
            "scholarship_deduction": self.scholarship_amount,
            "extra_charges": self.extra_charges_amount,
            "final_payable": self.final_payable,
        }
