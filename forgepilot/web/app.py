from __future__ import annotations
import json, asyncio
from pathlib import Path
from fastapi import FastAPI, Request, Query, HTTPException
from fastapi.responses import HTMLResponse, StreamingResponse
from fastapi.templating import Jinja2Templates
from ..memory.db import MemoryDB
from ..security.kill import engage_kill, kill_engaged
from ..tools.permissions import ALLOW_TERMINAL_KEY, DBPermissionStore

def create_app(db_path: str, *, profile: str = "safe", kill_switch_path: str | None = None,
               poll_interval: float = 1.0) -> FastAPI:
    app = FastAPI(title="forgepilot dashboard", docs_url=None, redoc_url=None)

    tmpl_dir = Path(__file__).parent / "templates"
    templates = Jinja2Templates(directory=str(tmpl_dir))

    app.state.db_path = db_path
    app.state.profile = profile
    app.state.kill_switch_path = kill_switch_path

    def _with_db() -> MemoryDB:
        return MemoryDB(app.state.db_path)

    @app.get("/api/health")
    def health() -> dict:
        return {
            "status": "ok",
            "profile": app.state.profile,
            "killed": kill_engaged(app.state.kill_switch_path),
        }

    @app.post("/api/kill")
    def kill() -> dict:
        if not app.state.kill_switch_path:
            raise HTTPException(status_code=400, detail="Kill-switch file path non configuré")
        p = engage_kill(app.state.kill_switch_path)
        return {"status": "engaged", "path": str(p)}

    @app.get("/api/stats")
    def stats() -> dict:
        with _with_db() as db:
            out = db.stats()
            out["terminal_always_allowed"] = DBPermissionStore(db).get_flag(ALLOW_TERMINAL_KEY)
            return out

    @app.get("/api/events")
    def list_events(limit: int = 50, kind: str | None = None) -> list[dict]:
        with _with_db() as db:
            return db.list_events(kind=kind, limit=max(1, min(500, limit)))

    @app.get("/api/actions")
    def list_actions(limit: int = 50) -> list[dict]:
        with _with_db() as db:
            return db.list_actions(limit=max(1, min(500, limit)))

    async def _sse_generator(last_id: int | None, once: bool = False):
        _last = last_id or 0
        while True:
            with _with_db() as db:
                rows = db.events_since(_last, limit=100)
            if rows:
                for row in rows:
                    _last = int(row["id"])
                    yield f"id: {_last}\ndata: {json.dumps(row, ensure_ascii=False)}\n\n".encode("utf-8")
                if once:
                    break
            else:
                if once:
                    break
                await asyncio.sleep(poll_interval)

    @app.get("/api/events/stream")
    async def events_stream(last_id: int | None = Query(default=None), once: bool = Query(default=False)) -> StreamingResponse:
        gen = _sse_generator(last_id=last_id, once=once)
        return StreamingResponse(gen, media_type="text/event-stream", headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"})

    @app.get("/", response_class=HTMLResponse)
    def home(request: Request):
        with _with_db() as db:
            st = db.stats()
            latest = db.list_events(limit=20)
            actions = db.list_actions(limit=10)
        return templates.TemplateResponse(
            request,
            "index.html",
            {
                "stats": st,
                "latest": latest,
                "actions": actions,
                "title": "forgepilot dashboard",
                "profile": app.state.profile,
                "killed": kill_engaged(app.state.kill_switch_path),
            },
        )

    return app
