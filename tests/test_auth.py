def student_login(client, admission_no, mobile="9000000000"):
    return client.post("/api/v1/auth/login", json={
        "role": "student",
        "admission_no": admission_no,
        "mobile_no": mobile,
    })


def test_admin_login_returns_token_pair(client):
    resp = client.post("/api/v1/auth/login", json={"username": "admin", "password": "admin"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"] and body["refresh_token"]


def test_admin_login_wrong_password(client):
    resp = client.post("/api/v1/auth/login", json={"username": "admin", "password": "nope"})
    assert resp.status_code == 401


def test_unknown_role_is_rejected(client):
    resp = client.post("/api/v1/auth/login", json={"role": "parent"})
    assert resp.status_code == 400


def test_student_login(client, make_class, make_student):
    make_student(make_class(), admission_no="ADM-100")

    assert student_login(client, "ADM-100").status_code == 200
    assert student_login(client, "ADM-100", mobile="1111111111").status_code == 401


def test_refresh_issues_new_tokens(client):
    tokens = client.post("/api/v1/auth/login", json={"username": "admin", "password": "admin"}).json()

    resp = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 200
    assert resp.json()["access_token"]


def test_access_token_cannot_refresh(client):
    tokens = client.post("/api/v1/auth/login", json={"username": "admin", "password": "admin"}).json()

    resp = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert resp.status_code == 401


def test_refresh_token_is_not_an_access_token(client):
    tokens = client.post("/api/v1/auth/login", json={"username": "admin", "password": "admin"}).json()

    resp = client.get("/api/v1/masters/classes", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert resp.status_code == 401


def test_missing_or_garbage_token(client):
    assert client.get("/api/v1/masters/classes").status_code == 401
    resp = client.get("/api/v1/masters/classes", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_student_cannot_use_admin_routes(client, make_class, make_student):
    make_student(make_class(), admission_no="ADM-200")
    token = student_login(client, "ADM-200").json()["access_token"]

    resp = client.get("/api/v1/fees/structures", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 403


def test_removed_student_cannot_refresh(client, admin_headers, make_class, make_student):
    student_id = make_student(make_class(), admission_no="ADM-300")
    tokens = student_login(client, "ADM-300").json()

    client.delete(f"/api/v1/students/{student_id}", headers=admin_headers)

    resp = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 401


def test_active_student_can_refresh(client, make_class, make_student):
    make_student(make_class(), admission_no="ADM-400")
    tokens = student_login(client, "ADM-400").json()

    resp = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 200
