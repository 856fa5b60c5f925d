import os

os.environ.setdefault("APP_ENV", "testing")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import settings
from database import Base, get_db
from main import app
from models.masters import ClassMaster
from models.students import Student


TUITION_AND_LAB = [
    {"label": "Tuition Fee", "amount": 1000, "frequency": "MONTHLY", "category": "Academic"},
    {"label": "Lab Fee", "amount": 1200, "frequency": "ANNUAL", "category": "Academic"},
]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(client):
    resp = client.post("/api/v1/auth/login", json={
        "username": settings.ADMIN_USERNAME,
        "password": settings.ADMIN_PASSWORD,
    })
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def make_class(db):
    def _make(class_name="Grade 5 - A", grade=5, section="A"):
        cls = ClassMaster(class_name=class_name, grade=grade, section=section)
        db.add(cls)
        db.commit()
        return cls.id
    return _make


@pytest.fixture
def make_student(db):
    counter = {"n": 0}

    def _make(class_id, name=None, mobile="9000000000", **extra):
        counter["n"] += 1
        student = Student(
            admission_no=extra.pop("admission_no", f"ADM-{counter['n']:04d}"),
            student_name=name or f"Student {counter['n']}",
            class_id=class_id,
            roll_no=counter["n"],
            mobile_number=mobile,
            email=f"student{counter['n']}@school.test",
            **extra,
        )
        db.add(student)
        db.commit()
        return student.id
    return _make


@pytest.fixture
def create_structure(client, admin_headers):
    def _create(class_id=None, class_ids=None, items=None, effective_from="2025-04-01",
                academic_year="2025-2026", name="Standard Fees", expect=200):
        payload = {
            "name": name,
            "academic_year": academic_year,
            "effective_from": effective_from,
            "items": items if items is not None else TUITION_AND_LAB,
        }
        if class_id is not None:
            payload["class_id"] = class_id
        if class_ids is not None:
            payload["class_ids"] = class_ids
        resp = client.post("/api/v1/fees/structures", json=payload, headers=admin_headers)
        assert resp.status_code == expect, resp.text
        return resp.json()
    return _create
