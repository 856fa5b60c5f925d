from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from pydantic import BaseModel
import logging

from config import settings
from database import get_db
from models.students import Student

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])
security = HTTPBearer(auto_error=False)


# ===========================
#          SCHEMAS
# ===========================

class LoginSchema(BaseModel):
    role: str = "admin"  # "admin" or "student"
    username: Optional[str] = None
    password: Optional[str] = None
    admission_no: Optional[str] = None
    mobile_no: Optional[str] = None

class RefreshSchema(BaseModel):
    refresh_token: str

class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str


class CurrentUser(BaseModel):
    role: str
    subject: str
    student_id: Optional[int] = None

    @property
    def is_admin(self):
        return self.role == "admin"


# ===========================
#     HELPER FUNCTIONS
# ===========================

def create_token(data: dict, minutes: int, token_type: str):
    to_encode = data.copy()
    expire = datetime.utcnow() + timedelta(minutes=minutes)
    to_encode.update({"exp": expire, "type": token_type})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def issue_tokens(subject: str, role: str):
    claims = {"sub": subject, "role": role}
    return {
        "access_token": create_token(claims, settings.ACCESS_TOKEN_EXPIRE_MINUTES, "access"),
        "refresh_token": create_token(claims, settings.REFRESH_TOKEN_EXPIRE_MINUTES, "refresh"),
        "token_type": "bearer",
    }


def decode_token(token: str, expected_type: str):
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Session expired, please login again")

    if payload.get("type") != expected_type or not payload.get("sub") or not payload.get("role"):
        raise HTTPException(status_code=401, detail="Invalid token")
    return payload


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> CurrentUser:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    payload = decode_token(credentials.credentials, "access")
    role = payload["role"]
    student_id = int(payload["sub"]) if role == "student" else None
    return CurrentUser(role=role, subject=payload["sub"], student_id=student_id)


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def ensure_student_access(user: CurrentUser, student_id: int):
    """Admins see everyone; a student only sees their own fees"""
    if user.is_admin:
        return
    if user.role == "student" and user.student_id == student_id:
        return
    logger.warning("Blocked fee access: %s %s -> student %s", user.role, user.subject, student_id)
    raise HTTPException(status_code=403, detail="Access denied for this student")


# ===========================
#        API ENDPOINTS
# ===========================

# 1. LOGIN (Admin + Student)
@router.post("/login", response_model=Token)
def login(data: LoginSchema, db: Session = Depends(get_db)):
    # --- ADMIN LOGIN LOGIC ---
    if data.role == "admin":
        if data.username == settings.ADMIN_USERNAME and data.password == settings.ADMIN_PASSWORD:
            return issue_tokens(data.username, "admin")
        logger.warning("Failed admin login for %r", data.username)
        raise HTTPException(status_code=401, detail="Invalid username or password")

    # --- STUDENT LOGIN LOGIC ---
    if data.role == "student":
        student = db.query(Student).filter(
            Student.admission_no == (data.admission_no or "").strip(),
            Student.mobile_number == (data.mobile_no or "").strip(),
            Student.deleted_at.is_(None),
        ).first()
        if not student:
            raise HTTPException(status_code=401, detail="Invalid Admission No or Mobile Number")
        return issue_tokens(str(student.id), "student")

    raise HTTPException(status_code=400, detail="Unknown role")


# 2. REFRESH TOKEN
@router.post("/refresh", response_model=Token)
def refresh(data: RefreshSchema, db: Session = Depends(get_db)):
    payload = decode_token(data.refresh_token, "refresh")

    # Student may have been removed since the token was issued
    if payload["role"] == "student":
        student = db.query(Student.id).filter(
            Student.id == int(payload["sub"]),
            Student.deleted_at.is_(None),
        ).first()
        if not student:
            logger.warning("Refresh refused for removed student %s", payload["sub"])
            raise HTTPException(status_code=401, detail="Account no longer active")

    return issue_tokens(payload["sub"], payload["role"])
