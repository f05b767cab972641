from pathlib import Path
import pytest

from forgepilot.config import default_settings
from forgepilot.core.context import RunContext
from forgepilot.llm.dummy import ScriptedLLM
from forgepilot.tools.permissions import MemoryPermissionStore, fixed_prompter

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"

@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    ws = tmp_path / "ws"
    ws.mkdir()
    return ws

@pytest.fixture
def settings(tmp_path: Path, workspace: Path):
    return default_settings(
        workspace_root=str(workspace),
        log_dir=str(tmp_path / "logs"),
        kill_switch_path=str(tmp_path / "kill.switch"),
    )

@pytest.fixture
def make_ctx(settings):
    """Contexte de run avec un répondeur scripté ; les commandes passent en arrière-plan par défaut."""
    def _make(replies=(), *, fallback=None, mode="background", **kw) -> RunContext:
        return RunContext(
            settings=settings,
            responder=ScriptedLLM(list(replies), fallback=fallback),
            permissions=kw.pop("permissions", MemoryPermissionStore()),
            prompter=fixed_prompter(mode) if mode else None,
            **kw,
        )
    return _make
