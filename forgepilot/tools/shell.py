from __future__ import annotations
import shlex, subprocess
from typing import Callable, List, Optional, Sequence
from ..config import Settings
from ..core.types import ExecResult, EXEC_DONE, EXEC_ERROR, EXEC_SKIPPED
from .errors import ShellSecurityError
from .permissions import PermissionStore, Prompter, resolve_mode, MODE_CANCEL, MODE_TERMINAL
from ..security.kill import kill_engaged

__all__ = ["run_command", "CommandRunner", "ShellSecurityError"]

def _first_token(command: str) -> str:
    try:
        parts = shlex.split(command)
    except ValueError:
        parts = command.split()
    return parts[0].lower() if parts else ""

def check_allowed(settings: Settings, command: str) -> None:
    # allowlist vide = tout est permis
    allowed = {c.lower() for c in settings.security.shell_allowlist}
    if allowed and _first_token(command) not in allowed:
        raise ShellSecurityError(f"Commande non autorisée: {_first_token(command) or command}")

def run_command(command: str, cwd: str, *, timeout: float | None = None) -> ExecResult:
    """Exécute une commande shell et capture sa sortie. Ne lève jamais : l'échec est une donnée."""
    try:
        p = subprocess.run(
            command,
            shell=True,
            cwd=cwd,
            text=True,
            encoding="utf-8",
            errors="replace",
            capture_output=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        out = e.stdout.decode("utf-8", "replace") if isinstance(e.stdout, bytes) else (e.stdout or "")
        err = e.stderr.decode("utf-8", "replace") if isinstance(e.stderr, bytes) else (e.stderr or "")
        return ExecResult(command, out, err, None, EXEC_ERROR, f"Timeout après {timeout}s")
    except (OSError, ValueError) as e:
        return ExecResult(command, "", "", None, EXEC_ERROR, str(e))
    error = None if p.returncode == 0 else f"Command failed with exit code {p.returncode}"
    return ExecResult(command, p.stdout, p.stderr, p.returncode, EXEC_DONE, error)

class CommandRunner:
    """
    Exécute un lot de commandes sous la politique de permission.
    La permission est résolue une fois par lot, pas par commande.
    """

    def __init__(
        self,
        settings: Settings,
        store: PermissionStore,
        *,
        cwd: str,
        prompter: Optional[Prompter] = None,
        echo: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.cwd = cwd
        self.prompter = prompter
        self.echo = echo

    def run_batch(self, commands: Sequence[str]) -> List[ExecResult]:
        commands = [c.strip() for c in commands if c and c.strip()]
        if not commands:
            return []
        mode = resolve_mode(self.store, self.prompter, commands)
        if mode == MODE_CANCEL:
            return [ExecResult(c, status=EXEC_SKIPPED, error="User declined execution") for c in commands]

        results: List[ExecResult] = []
        for i, cmd in enumerate(commands):
            # kill-switch : seules les commandes pas encore démarrées sont sautées
            if kill_engaged(self.settings.general.kill_switch_path):
                for rest in commands[i:]:
                    results.append(ExecResult(rest, status=EXEC_SKIPPED, error="Kill-switch engaged"))
                break
            try:
                check_allowed(self.settings, cmd)
            except ShellSecurityError as e:
                results.append(ExecResult(cmd, status=EXEC_SKIPPED, error=str(e)))
                continue
            res = run_command(cmd, self.cwd, timeout=self.settings.security.command_timeout_sec)
            if mode == MODE_TERMINAL and self.echo is not None:
                self.echo(cmd)
            results.append(res)
        return results
