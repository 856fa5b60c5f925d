from pydantic import BaseModel, Field
from datetime import date
from typing import List, Optional, Literal

Frequency = Literal["MONTHLY", "TERM", "ANNUAL", "ONE_TIME"]
StructureStatus = Literal["ACTIVE", "ARCHIVED", "DRAFT"]
ValueType = Literal["PERCENTAGE", "FIXED"]


# 1. Fee line item (used by create + revise)
class FeeItemSchema(BaseModel):
    label: str
    amount: float = Field(ge=0)
    category: Optional[str] = "General"
    frequency: Optional[Frequency] = "MONTHLY"
    is_optional: bool = False


# 2. New fee structure (one class or many)
class FeeStructureCreateSchema(BaseModel):
    name: str
    academic_year: str  # e.g. "2025-2026"
    effective_from: date
    class_id: Optional[int] = None
    class_ids: List[int] = []
    items: List[FeeItemSchema]

    def target_class_ids(self):
        raw = self.class_ids if self.class_ids else ([self.class_id] if self.class_id else [])
        # Keep order, drop duplicates
        return list(dict.fromkeys(raw))


# 3. Revision (creates next version)
class FeeStructureReviseSchema(BaseModel):
    items: List[FeeItemSchema]
    effective_from: date
    change_reason: Optional[str] = None


class StatusUpdateSchema(BaseModel):
    status: StructureStatus


class RollbackSchema(BaseModel):
    target_version: int
    effective_from: Optional[date] = None
    change_reason: Optional[str] = None


# 4. Monthly computation
class ComputeMonthSchema(BaseModel):
    month: str  # "YYYY-MM"
    class_id: Optional[int] = None
    include_existing: bool = False
