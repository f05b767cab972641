from __future__ import annotations
import sqlite3, json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, List

ISO = lambda: datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")

SCHEMA = [
    """CREATE TABLE IF NOT EXISTS events (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        ts TEXT NOT NULL,
        kind TEXT NOT NULL,
        level TEXT NOT NULL,
        message TEXT NOT NULL,
        data TEXT
    );""",
    """CREATE TABLE IF NOT EXISTS actions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        ts TEXT NOT NULL,
        name TEXT NOT NULL,
        status TEXT NOT NULL,
        input TEXT,
        output TEXT
    );""",
    """CREATE TABLE IF NOT EXISTS kv (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        ts TEXT NOT NULL
    );""",
]

def _row_to_event(r) -> dict:
    d = {"id": r[0], "ts": r[1], "kind": r[2], "level": r[3], "message": r[4]}
    try:
        d["data"] = json.loads(r[5]) if r[5] else None
    except ValueError:
        d["data"] = None
    return d

class MemoryDB:
    """Stockage SQLite local : événements de progression, actions exécutées, clés/valeurs persistées."""

    def __init__(self, path: str | Path):
        self.path = str(path)
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        # check_same_thread=False : le dashboard lit depuis le threadpool de FastAPI
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.execute("PRAGMA journal_mode=WAL;")
        self._init_schema()

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        for stmt in SCHEMA:
            cur.execute(stmt)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "MemoryDB":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---------------- Events ----------------
    def add_event(self, kind: str, level: str, message: str, data: Optional[dict] = None) -> int:
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO events(ts, kind, level, message, data) VALUES (?, ?, ?, ?, ?)",
            (ISO(), kind, level, message, json.dumps(data or {}, ensure_ascii=False, default=str)),
        )
        self.conn.commit()
        return int(cur.lastrowid)

    def list_events(self, kind: Optional[str] = None, limit: int = 100) -> List[dict]:
        cur = self.conn.cursor()
        if kind:
            cur.execute("SELECT id, ts, kind, level, message, data FROM events WHERE kind=? ORDER BY id DESC LIMIT ?", (kind, limit))
        else:
            cur.execute("SELECT id, ts, kind, level, message, data FROM events ORDER BY id DESC LIMIT ?", (limit,))
        return [_row_to_event(r) for r in cur.fetchall()]

    def events_since(self, last_id: int, limit: int = 100) -> List[dict]:
        cur = self.conn.cursor()
        cur.execute("SELECT id, ts, kind, level, message, data FROM events WHERE id>? ORDER BY id ASC LIMIT ?", (last_id, limit))
        return [_row_to_event(r) for r in cur.fetchall()]

    # ---------------- Actions ----------------
    def add_action(self, name: str, status: str, input: Optional[dict] = None, output: Optional[dict] = None) -> int:
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO actions(ts, name, status, input, output) VALUES (?, ?, ?, ?, ?)",
            (ISO(), name, status, json.dumps(input or {}, ensure_ascii=False, default=str), json.dumps(output or {}, ensure_ascii=False, default=str)),
        )
        self.conn.commit()
        return int(cur.lastrowid)

    def list_actions(self, limit: int = 50) -> List[dict]:
        cur = self.conn.cursor()
        cur.execute("SELECT id, ts, name, status, input, output FROM actions ORDER BY id DESC LIMIT ?", (limit,))
        out = []
        for r in cur.fetchall():
            out.append({
                "id": r[0], "ts": r[1], "name": r[2], "status": r[3],
                "input": json.loads(r[4]) if r[4] else {},
                "output": json.loads(r[5]) if r[5] else {},
            })
        return out

    # ---------------- Key / value ----------------
    def get_value(self, key: str, default: Optional[str] = None) -> Optional[str]:
        cur = self.conn.cursor()
        cur.execute("SELECT value FROM kv WHERE key=?", (key,))
        row = cur.fetchone()
        return row[0] if row else default

    def set_value(self, key: str, value: str) -> None:
        self.conn.execute(
            "INSERT INTO kv(key, value, ts) VALUES (?, ?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value, ts=excluded.ts",
            (key, value, ISO()),
        )
        self.conn.commit()

    def stats(self) -> dict:
        cur = self.conn.cursor()
        cur.execute("SELECT COUNT(*) FROM events")
        ev = cur.fetchone()[0]
        cur.execute("SELECT COUNT(*) FROM actions")
        ac = cur.fetchone()[0]
        return {"events": ev, "actions": ac}
