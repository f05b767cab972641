from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import List, Optional, Union

StepId = Union[int, str]

# Statuts d'une commande
EXEC_DONE = "done"
EXEC_ERROR = "error"
EXEC_SKIPPED = "skipped"

# Statuts d'une étape (machine à états de l'orchestrateur)
STEP_PENDING = "pending"
STEP_RUNNING = "running"
STEP_VALIDATING = "validating"
STEP_RETRYING = "retrying"
STEP_COMPLETED = "completed"
STEP_BACKTRACKED = "backtracked"
STEP_FAILED = "failed"

@dataclass
class Step:
    id: StepId
    title: str
    objective: str
    input_needed: List[str] = field(default_factory=list)

@dataclass
class Plan:
    summary: str = ""
    steps: List[Step] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

@dataclass
class ExecResult:
    command: str
    stdout: str = ""
    stderr: str = ""
    exit_code: Optional[int] = None
    status: str = EXEC_DONE  # "done" | "error" | "skipped"
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == EXEC_DONE and self.exit_code == 0

    def to_dict(self) -> dict:
        return asdict(self)

@dataclass
class FileEditResult:
    file_path: str
    success: bool
    message: str
    action: str = ""  # "created" | "updated" | "patched"
    applied_edits: list = field(default_factory=list)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["applied_edits"] = [e.to_dict() if hasattr(e, "to_dict") else e for e in self.applied_edits]
        return d

@dataclass(frozen=True)
class ValidationVerdict:
    step_id: StepId
    completed: bool
    fix_commands: tuple = ()
    notes: str = ""

    def to_dict(self) -> dict:
        return {
            "stepId": self.step_id,
            "completed": self.completed,
            "fixCommands": list(self.fix_commands),
            "notes": self.notes,
        }

@dataclass
class StepOutput:
    step_id: StepId
    title: str
    content: str = ""
    file_edits: List[FileEditResult] = field(default_factory=list)
    terminal: List[ExecResult] = field(default_factory=list)
    fix_execution: List[ExecResult] = field(default_factory=list)
    search_context: str = ""
    status: str = STEP_PENDING
    attempts: int = 0
    verdict: Optional[ValidationVerdict] = None

    def to_dict(self) -> dict:
        return {
            "stepId": self.step_id,
            "title": self.title,
            "content": self.content,
            "fileEdits": [f.to_dict() for f in self.file_edits],
            "terminal": [r.to_dict() for r in self.terminal],
            "fixExecution": [r.to_dict() for r in self.fix_execution],
            "status": self.status,
            "attempts": self.attempts,
            "verdict": self.verdict.to_dict() if self.verdict else None,
        }

@dataclass
class RunResult:
    status: str  # "ok" | "partial" | "no_action"
    plan: Optional[Plan] = None
    step_outputs: List[StepOutput] = field(default_factory=list)
    summary: str = ""
    events: List[dict] = field(default_factory=list)

    @property
    def unresolved(self) -> List[StepOutput]:
        return [o for o in self.step_outputs if o.status in (STEP_FAILED, STEP_BACKTRACKED)]
