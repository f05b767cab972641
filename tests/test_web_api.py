from pathlib import Path
from starlette.testclient import TestClient
from forgepilot.memory.db import MemoryDB
from forgepilot.web.app import create_app

def _db(tmp_path: Path) -> Path:
    db_path = tmp_path / "ui.db"
    db = MemoryDB(db_path)
    try:
        db.add_event("step_started", "info", "Starting step [1] A: B", {"step_id": 1})
        db.add_event("not_validated", "warning", "Step 1 not validated after 5 attempts.")
        db.add_action("shell", "done", {"command": "ls"}, {"exit_code": 0})
    finally:
        db.close()
    return db_path

def test_api_health_and_stats(tmp_path: Path):
    app = create_app(str(_db(tmp_path)), profile="balanced")
    client = TestClient(app)

    r = client.get("/api/health")
    assert r.status_code == 200 and r.json()["status"] == "ok"
    assert r.json()["profile"] == "balanced"

    r = client.get("/api/stats")
    assert r.status_code == 200
    js = r.json()
    assert js["events"] == 2 and js["actions"] == 1
    assert js["terminal_always_allowed"] is False

def test_api_events_and_actions(tmp_path: Path):
    client = TestClient(create_app(str(_db(tmp_path))))
    events = client.get("/api/events", params={"limit": 10}).json()
    assert [e["kind"] for e in events] == ["not_validated", "step_started"]
    only = client.get("/api/events", params={"kind": "step_started"}).json()
    assert len(only) == 1 and only[0]["data"] == {"step_id": 1}
    actions = client.get("/api/actions").json()
    assert actions[0]["name"] == "shell"

def test_home_page(tmp_path: Path):
    client = TestClient(create_app(str(_db(tmp_path))))
    r = client.get("/")
    assert r.status_code == 200
    assert "forgepilot dashboard" in r.text
    assert "not validated after 5 attempts" in r.text
