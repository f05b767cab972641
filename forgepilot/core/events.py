from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Callable, Deque, List, Optional

from ..config import Settings
from ..memory.db import MemoryDB
from ..tools.logs import log_event

# Types d'événement
PLAN_PREVIEW = "plan_preview"
STEP_STARTED = "step_started"
STEP_RESULT = "step_result"
ACTIONS = "actions"
VALIDATION = "validation"
FIX_ATTEMPT = "fix_attempt"
MERGED = "merged"
NOT_VALIDATED = "not_validated"
SUMMARY = "summary"
INFO = "info"

_LEVELS = {NOT_VALIDATED: "warning", MERGED: "warning"}

@dataclass
class ProgressEvent:
    kind: str
    message: str
    step_id: object = None
    data: dict = field(default_factory=dict)
    ts: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="seconds"))

    @property
    def level(self) -> str:
        return _LEVELS.get(self.kind, "info")

    def to_dict(self) -> dict:
        return asdict(self)

Sink = Callable[[ProgressEvent], None]

class EventChannel:
    """
    Canal d'événements de progression. Chaque émission est gardée en mémoire
    (``history``) et poussée vers les abonnés (CLI, SQLite, log texte).
    """

    def __init__(self, maxlen: int = 1000):
        self.history: Deque[ProgressEvent] = deque(maxlen=maxlen)
        self._sinks: List[Sink] = []

    def subscribe(self, sink: Sink) -> None:
        self._sinks.append(sink)

    def emit(self, kind: str, message: str, step_id=None, **data) -> ProgressEvent:
        ev = ProgressEvent(kind=kind, message=message, step_id=step_id, data=data)
        self.history.append(ev)
        for sink in self._sinks:
            sink(ev)
        return ev

    def of_kind(self, kind: str) -> List[ProgressEvent]:
        return [e for e in self.history if e.kind == kind]

def db_sink(db: MemoryDB) -> Sink:
    def _sink(ev: ProgressEvent) -> None:
        db.add_event(ev.kind, ev.level, ev.message, {"step_id": ev.step_id, **ev.data})
    return _sink

def log_sink(settings: Settings) -> Sink:
    def _sink(ev: ProgressEvent) -> None:
        log_event(settings, f"[{ev.kind}] {ev.message}")
    return _sink

def print_sink(printer: Optional[Callable[[str], None]] = None) -> Sink:
    out = printer or print
    def _sink(ev: ProgressEvent) -> None:
        prefix = "!" if ev.level == "warning" else "-"
        out(f"{prefix} {ev.message}")
    return _sink
