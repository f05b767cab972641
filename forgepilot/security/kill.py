from __future__ import annotations
from pathlib import Path

class KillSwitchEngaged(Exception):
    """Levée quand le fichier kill-switch est présent : plus aucune action ne démarre."""

def kill_engaged(kill_switch_path: str | None) -> bool:
    return bool(kill_switch_path) and Path(kill_switch_path).exists()

def check_kill(kill_switch_path: str | None) -> None:
    """Raise if the kill-switch file exists."""
    if kill_engaged(kill_switch_path):
        raise KillSwitchEngaged(f"Kill-switch engaged: {kill_switch_path}")

def engage_kill(kill_switch_path: str) -> Path:
    p = Path(kill_switch_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text("KILLED", encoding="utf-8")
    return p
