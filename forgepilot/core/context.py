from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from ..config import Settings
from ..llm.base import LLM
from ..memory.db import MemoryDB
from ..tools.permissions import MemoryPermissionStore, PermissionStore, Prompter
from ..tools.shell import CommandRunner
from .events import EventChannel

@dataclass
class RunContext:
    """Tout ce dont un run a besoin, passé explicitement (pas d'état global)."""
    settings: Settings
    responder: LLM
    permissions: PermissionStore = field(default_factory=MemoryPermissionStore)
    prompter: Optional[Prompter] = None
    events: EventChannel = field(default_factory=EventChannel)
    echo: Optional[Callable[[str], None]] = None
    target_file: Optional[str] = None
    db: Optional[MemoryDB] = None

    @property
    def workspace_root(self) -> Path:
        return Path(self.settings.general.workspace_root).resolve()

    def command_runner(self) -> CommandRunner:
        return CommandRunner(
            self.settings,
            self.permissions,
            cwd=str(self.workspace_root),
            prompter=self.prompter,
            echo=self.echo,
        )

    def record_action(self, name: str, status: str, input: dict, output: dict) -> None:
        if self.db is not None:
            self.db.add_action(name, status, input, output)
