from sqlalchemy import Column, Integer, String, Boolean
from database import Base

# 1. CLASS TABLE
class ClassMaster(Base):
    __tablename__ = "classes"
    id = Column(Integer, primary_key=True, index=True)
    class_name = Column(String(50), unique=True, index=True)  # e.g. "Grade 5 - A"
    grade = Column(Integer, nullable=True)
    section = Column(String(10), nullable=True)
    status = Column(Boolean, default=True)
