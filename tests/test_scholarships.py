import datetime

import pytest

BASE = "/api/v1/fees/scholarships"


@pytest.fixture
def merit(client, admin_headers):
    resp = client.post(BASE, json={
        "name": "Merit Award", "type": "MERIT", "value_type": "PERCENTAGE", "value": 10,
    }, headers=admin_headers)
    assert resp.status_code == 200
    return resp.json()


@pytest.fixture
def student_id(make_class, make_student):
    return make_student(make_class())


def assign(client, headers, scholarship_id, student_id, effective_from="2025-04-01", **extra):
    return client.post(f"{BASE}/assign", json={
        "scholarship_id": scholarship_id,
        "student_id": student_id,
        "effective_from": effective_from,
        **extra,
    }, headers=headers)


def test_definition_lifecycle(client, admin_headers, merit):
    assert merit["is_active"] is True

    updated = client.put(f"{BASE}/{merit['id']}", json={"value": 15, "description": "Top 5"},
                         headers=admin_headers).json()
    assert updated["value"] == 15
    assert updated["value_type"] == "PERCENTAGE"
    assert updated["description"] == "Top 5"

    client.put(f"{BASE}/{merit['id']}/deactivate", headers=admin_headers)
    assert client.get(BASE, headers=admin_headers).json() == []
    listed = client.get(BASE, params={"include_inactive": True}, headers=admin_headers).json()
    assert [s["is_active"] for s in listed] == [False]

    client.put(f"{BASE}/{merit['id']}/reactivate", headers=admin_headers)
    assert len(client.get(BASE, headers=admin_headers).json()) == 1

    assert client.delete(f"{BASE}/{merit['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"{BASE}/{merit['id']}", headers=admin_headers).status_code == 404


def test_create_validates_value(client, admin_headers):
    resp = client.post(BASE, json={"name": "Bad", "value_type": "PERCENTAGE", "value": -1}, headers=admin_headers)
    assert resp.status_code == 422


def test_assign_and_duplicate(client, admin_headers, merit, student_id):
    resp = assign(client, admin_headers, merit["id"], student_id)
    assert resp.status_code == 200
    assert resp.json()["student_id"] == student_id

    dup = assign(client, admin_headers, merit["id"], student_id)
    assert dup.status_code == 400
    assert dup.json()["detail"] == "Student already has this scholarship assigned"

    detail = client.get(f"{BASE}/{merit['id']}", headers=admin_headers).json()
    assert [a["student_id"] for a in detail["assignments"]] == [student_id]


def test_assign_rejects_bad_dates(client, admin_headers, merit, student_id):
    resp = assign(client, admin_headers, merit["id"], student_id,
                  effective_from="2025-06-01", expires_at="2025-06-01")
    assert resp.status_code == 400


def test_assign_inactive_or_missing(client, admin_headers, merit, student_id):
    client.put(f"{BASE}/{merit['id']}/deactivate", headers=admin_headers)
    resp = assign(client, admin_headers, merit["id"], student_id)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Scholarship not found or inactive"

    client.put(f"{BASE}/{merit['id']}/reactivate", headers=admin_headers)
    assert assign(client, admin_headers, merit["id"], 999).status_code == 404


def test_bulk_assign_collects_errors(client, admin_headers, merit, make_class, make_student):
    class_id = make_class()
    first, second = make_student(class_id), make_student(class_id)
    assign(client, admin_headers, merit["id"], first)

    body = client.post(f"{BASE}/bulk-assign", json={
        "scholarship_id": merit["id"],
        "student_ids": [first, second, 999],
        "effective_from": "2025-04-01",
    }, headers=admin_headers).json()

    assert body["success_count"] == 1
    assert body["successful"][0]["student_id"] == second
    assert body["error_count"] == 2
    assert [e["student_id"] for e in body["errors"]] == [first, 999]


def test_student_scholarships_active_only(client, admin_headers, merit, student_id):
    future = (datetime.date.today() + datetime.timedelta(days=30)).isoformat()
    assign(client, admin_headers, merit["id"], student_id, effective_from=future)

    url = f"{BASE}/students/{student_id}"
    assert client.get(url, headers=admin_headers).json() == []
    everything = client.get(url, params={"active_only": False}, headers=admin_headers).json()
    assert everything[0]["scholarship"]["name"] == "Merit Award"


def test_remove_assignment(client, admin_headers, merit, student_id):
    assignment = assign(client, admin_headers, merit["id"], student_id).json()

    assert client.delete(f"{BASE}/assignments/{assignment['id']}", headers=admin_headers).status_code == 200
    assert client.delete(f"{BASE}/assignments/{assignment['id']}", headers=admin_headers).status_code == 404

    # Removed assignment no longer blocks a new one
    assert assign(client, admin_headers, merit["id"], student_id).status_code == 200


def test_calculate_deduction(client, admin_headers, merit, student_id):
    fixed = client.post(BASE, json={"name": "Sports", "type": "SPORTS", "value_type": "FIXED", "value": 50},
                        headers=admin_headers).json()
    assign(client, admin_headers, merit["id"], student_id)
    assign(client, admin_headers, fixed["id"], student_id, effective_from="2025-05-01", expires_at="2025-05-31")

    body = client.post(f"{BASE}/calculate", json={
        "student_id": student_id, "month": "2025-05", "base_amount": 1000,
    }, headers=admin_headers).json()
    assert body["total_deduction"] == 150
    assert sorted(s["name"] for s in body["applied_scholarships"]) == ["Merit Award", "Sports"]

    # Fixed one expired by June
    june = client.post(f"{BASE}/calculate", json={
        "student_id": student_id, "month": "2025-06", "base_amount": 1000,
    }, headers=admin_headers).json()
    assert june["total_deduction"] == 100
