from __future__ import annotations
import threading
from typing import Callable, Dict, Optional, Protocol, Sequence

from ..memory.db import MemoryDB

ALLOW_TERMINAL_KEY = "allow_terminal_execution"

# Modes d'exécution d'un lot de commandes
MODE_TERMINAL = "terminal"
MODE_BACKGROUND = "background"
MODE_ALWAYS = "always"
MODE_CANCEL = "cancel"
MODES = (MODE_TERMINAL, MODE_BACKGROUND, MODE_ALWAYS, MODE_CANCEL)

# Reçoit le lot complet, renvoie l'un des MODES
Prompter = Callable[[Sequence[str]], str]

class PermissionStore(Protocol):
    def get_flag(self, key: str, default: bool = False) -> bool: ...
    def set_flag(self, key: str, value: bool) -> None: ...

class MemoryPermissionStore:
    """Store en mémoire (tests, une seule session)."""

    def __init__(self, initial: Optional[Dict[str, bool]] = None) -> None:
        self._flags: Dict[str, bool] = dict(initial or {})
        self._lock = threading.Lock()

    def get_flag(self, key: str, default: bool = False) -> bool:
        with self._lock:
            return self._flags.get(key, default)

    def set_flag(self, key: str, value: bool) -> None:
        with self._lock:
            self._flags[key] = bool(value)

class DBPermissionStore:
    """Flag persisté dans la table kv de MemoryDB (survit entre les runs)."""

    def __init__(self, db: MemoryDB) -> None:
        self.db = db
        self._lock = threading.Lock()

    def get_flag(self, key: str, default: bool = False) -> bool:
        with self._lock:
            raw = self.db.get_value(key)
        if raw is None:
            return default
        return raw == "1"

    def set_flag(self, key: str, value: bool) -> None:
        with self._lock:
            self.db.set_value(key, "1" if value else "0")

def resolve_mode(store: PermissionStore, prompter: Optional[Prompter], commands: Sequence[str]) -> str:
    """
    Décide du mode pour un lot de commandes.
    - flag "always allow" persisté -> terminal, sans demander
    - sinon on demande au prompter ; "always" persiste le flag et vaut terminal
    - pas de prompter ou réponse inconnue -> cancel
    """
    if store.get_flag(ALLOW_TERMINAL_KEY, False):
        return MODE_TERMINAL
    if prompter is None:
        return MODE_CANCEL
    pick = (prompter(list(commands)) or "").strip().lower()
    if pick == MODE_ALWAYS:
        store.set_flag(ALLOW_TERMINAL_KEY, True)
        return MODE_TERMINAL
    if pick in (MODE_TERMINAL, MODE_BACKGROUND):
        return pick
    return MODE_CANCEL

def fixed_prompter(mode: str) -> Prompter:
    """Prompter non interactif (--no-confirm, tests)."""
    def _prompt(commands: Sequence[str]) -> str:
        return mode
    return _prompt

_CONSOLE_CHOICES = {
    "1": MODE_TERMINAL, "t": MODE_TERMINAL,
    "2": MODE_BACKGROUND, "b": MODE_BACKGROUND,
    "3": MODE_ALWAYS, "a": MODE_ALWAYS,
}

def console_prompter(commands: Sequence[str]) -> str:
    preview = "\n".join(f"  • {c}" for c in commands)
    print(f"forgepilot propose d'exécuter {len(commands)} commande(s):\n{preview}")
    print("  [1/t] Terminal   [2/b] Arrière-plan   [3/a] Toujours autoriser (terminal)   [autre] Annuler")
    try:
        answer = input("> ").strip().lower()
    except EOFError:
        return MODE_CANCEL
    return _CONSOLE_CHOICES.get(answer, MODE_CANCEL)
