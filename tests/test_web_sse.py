from pathlib import Path
from starlette.testclient import TestClient
from forgepilot.memory.db import MemoryDB
from forgepilot.web.app import create_app

def test_sse_once_snapshot(tmp_path: Path):
    db_path = tmp_path / "ui.db"
    db = MemoryDB(db_path)
    try:
        for i in range(3):
            db.add_event("unit", "info", f"msg{i}")
    finally:
        db.close()

    app = create_app(str(db_path))
    client = TestClient(app)

    with client.stream("GET", "/api/events/stream", params={"once": "true"}) as s:
        text = "".join(s.iter_text())
    assert text.count("data:") == 3
    assert "msg2" in text

def test_sse_resumes_after_last_id(tmp_path: Path):
    db_path = tmp_path / "ui.db"
    with MemoryDB(db_path) as db:
        first = db.add_event("unit", "info", "old")
        db.add_event("unit", "info", "new")
    client = TestClient(create_app(str(db_path)))
    with client.stream("GET", "/api/events/stream", params={"once": "true", "last_id": first}) as s:
        text = "".join(s.iter_text())
    assert "new" in text and "old" not in text
