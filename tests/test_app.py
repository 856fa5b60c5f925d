from config import settings, TestConfig
from main import app


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_testing_config_is_selected():
    assert settings is TestConfig
    assert app.debug is False


def test_duplicate_history_version_answers_409(client, admin_headers, make_class, create_structure, monkeypatch):
    structure = create_structure(class_id=make_class())

    # Two revisions racing for the same version number
    monkeypatch.setattr("routers.fee_structures.next_version", lambda db, structure_id: 1)
    resp = client.post(f"/api/v1/fees/structures/{structure['id']}/revise", json={
        "items": [{"label": "Tuition Fee", "amount": 1200, "frequency": "MONTHLY"}],
        "effective_from": "2025-06-01",
    }, headers=admin_headers)

    assert resp.status_code == 409
    assert resp.json() == {"detail": "Database integrity error"}

    history = client.get(f"/api/v1/fees/structures/{structure['id']}/history", headers=admin_headers).json()
    assert [h["version"] for h in history] == [1]
