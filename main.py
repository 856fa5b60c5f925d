import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError
from config import settings, configure_logging
from database import engine, Base

# --- IMPORT ROUTERS (APIs) ---
from routers import auth, masters, students
from routers import fee_structures, fee_timeline, fee_computation
from routers import scholarships, charges, student_fees

# --- IMPORT MODELS (registers tables on Base) ---
from models.masters import ClassMaster
from models.students import Student
from models.fee_models import FeeStructure, FeeStructureItem, FeeStructureHistory, StudentFeeHistory
from models.scholarships import ScholarshipDefinition, ScholarshipAssignment
from models.charges import ChargeDefinition, ChargeAssignment

configure_logging()
logger = logging.getLogger(__name__)


# --- CREATE DATABASE TABLES ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready (%s)", engine.url.get_backend_name())
    yield


app = FastAPI(title="School Management System - Fees", debug=settings.DEBUG, lifespan=lifespan)

# ==========================================
# CORS MIDDLEWARE (Frontend Apps)
# ==========================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==========================================
# ERROR HANDLERS
# ==========================================
@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    # get_db closes the request session, which rolls the failed transaction back
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, str(exc.orig)[:200])
    return JSONResponse(status_code=409, content={"detail": "Database integrity error"})


# --- REGISTER ROUTERS ---
app.include_router(auth.router)
app.include_router(masters.router)
app.include_router(students.router)
app.include_router(fee_structures.router)
app.include_router(fee_timeline.router)
app.include_router(fee_computation.router)
app.include_router(scholarships.router)
app.include_router(charges.router)
app.include_router(student_fees.router)


@app.get("/health")
def health():
    return {"status": "ok"}
