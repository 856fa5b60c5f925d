import datetime

from models.fee_models import FeeStructure, StudentFeeHistory


def test_create_for_single_class(client, admin_headers, make_class, create_structure):
    class_id = make_class()
    body = create_structure(class_id=class_id)

    assert body["class_id"] == class_id
    assert body["class_name"] == "Grade 5 - A"
    assert body["status"] == "ACTIVE"
    assert body["latest_version"] == 1
    assert body["total_annual"] == 13200
    assert [i["label"] for i in body["items"]] == ["Tuition Fee", "Lab Fee"]


def test_create_seeds_effective_month_for_students(db, make_class, make_student, create_structure):
    class_id = make_class()
    students = [make_student(class_id), make_student(class_id)]
    create_structure(class_id=class_id)

    rows = db.query(StudentFeeHistory).order_by(StudentFeeHistory.student_id).all()
    assert [r.student_id for r in rows] == students
    for r in rows:
        assert r.period_month == datetime.date(2025, 4, 1)
        assert r.version == 1
        assert r.structure_version == 1
        assert r.base_amount == 1100
        assert r.final_payable == 1100
        assert r.created_by == "admin"


def test_create_for_many_classes(client, make_class, create_structure):
    first, second = make_class("Grade 1"), make_class("Grade 2")
    body = create_structure(class_ids=[first, second, first])

    assert isinstance(body, list)
    assert sorted(s["class_id"] for s in body) == [first, second]
    assert body[0]["id"] != body[1]["id"]


def test_create_conflict_rejects_whole_request(db, make_class, create_structure):
    first, second = make_class("Grade 1"), make_class("Grade 2")
    create_structure(class_id=first)

    body = create_structure(class_ids=[first, second], expect=409)
    assert body["detail"]["conflicting_class_ids"] == [first]
    assert db.query(FeeStructure).count() == 1


def test_same_class_new_academic_year_is_allowed(make_class, create_structure):
    class_id = make_class()
    create_structure(class_id=class_id)
    body = create_structure(class_id=class_id, academic_year="2026-2027", effective_from="2026-04-01")
    assert body["academic_year"] == "2026-2027"


def test_create_needs_existing_class(create_structure):
    create_structure(expect=400)
    create_structure(class_id=999, expect=404)


def test_create_validates_items(make_class, create_structure):
    class_id = make_class()
    create_structure(class_id=class_id, items=[{"label": "Bad", "amount": -5}], expect=422)
    create_structure(class_id=class_id, items=[{"label": "Bad", "amount": 5, "frequency": "DAILY"}], expect=422)


def test_revise_creates_next_version(client, admin_headers, make_class, create_structure):
    structure = create_structure(class_id=make_class())

    resp = client.post(f"/api/v1/fees/structures/{structure['id']}/revise", json={
        "items": [{"label": "Tuition Fee", "amount": 1200, "frequency": "MONTHLY"}],
        "effective_from": "2025-06-01",
        "change_reason": "Annual hike",
    }, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json() == {"version": 2, "total_annual": 14400}

    detail = client.get(f"/api/v1/fees/structures/{structure['id']}", headers=admin_headers).json()
    assert detail["latest_version"] == 2
    assert [i["label"] for i in detail["items"]] == ["Tuition Fee"]

    history = client.get(f"/api/v1/fees/structures/{structure['id']}/history", headers=admin_headers).json()
    assert [h["version"] for h in history] == [1, 2]
    assert history[1]["change_reason"] == "Annual hike"
    assert history[1]["created_by"] == "admin"
    assert len(history[0]["snapshot"]["items"]) == 2


def test_revise_unknown_structure(client, admin_headers):
    resp = client.post("/api/v1/fees/structures/77/revise", json={
        "items": [], "effective_from": "2025-06-01",
    }, headers=admin_headers)
    assert resp.status_code == 404


def test_list_is_paginated(client, admin_headers, make_class, make_student, create_structure):
    first, second = make_class("Grade 1", grade=1), make_class("Grade 2", grade=2)
    make_student(first)
    make_student(first)
    create_structure(class_ids=[first, second])

    page = client.get("/api/v1/fees/structures", params={"page_size": 1}, headers=admin_headers).json()
    assert page["total"] == 2
    assert page["total_pages"] == 2
    assert len(page["data"]) == 1

    oversized = client.get("/api/v1/fees/structures", params={"page_size": 500}, headers=admin_headers).json()
    assert oversized["page_size"] == 20

    filtered = client.get("/api/v1/fees/structures", params={"class_id": first}, headers=admin_headers).json()
    assert filtered["total"] == 1
    assert filtered["data"][0]["student_count"] == 2
    assert filtered["data"][0]["grade"] == 1


def test_status_update(client, admin_headers, make_class, create_structure):
    structure = create_structure(class_id=make_class())
    url = f"/api/v1/fees/structures/{structure['id']}/status"

    resp = client.patch(url, json={"status": "ARCHIVED"}, headers=admin_headers)
    assert resp.json() == {"id": structure["id"], "status": "ARCHIVED"}

    assert client.patch(url, json={"status": "BOGUS"}, headers=admin_headers).status_code == 422


def test_student_count_skips_inactive_students(client, admin_headers, make_class, make_student, create_structure):
    class_id = make_class()
    make_student(class_id)
    make_student(class_id, status=False)
    create_structure(class_id=class_id)

    listed = client.get("/api/v1/fees/structures", headers=admin_headers).json()
    assert listed["data"][0]["student_count"] == 1
