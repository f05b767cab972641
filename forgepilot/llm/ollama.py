from __future__ import annotations
import shutil, subprocess
from .base import LLM, LLMRequest, LLMResponse
from ..security.kill import kill_engaged

def has_ollama() -> bool:
    return bool(shutil.which("ollama"))

class OllamaCLI(LLM):
    """
    Appelle 'ollama run <model>' en local (pas d'HTTP).
    Nécessite que le binaire 'ollama' soit sur le PATH (Windows: winget install Ollama.Ollama).
    Les échecs reviennent en LLMResponse(finish_reason="error"), jamais en exception.
    """
    name = "ollama"

    def __init__(self, model: str, *, extra: list[str] | None = None, timeout: float | None = 600.0,
                 kill_switch_path: str = "data/kill.switch"):
        self.model = model
        self.extra = list(extra or [])
        self.timeout = timeout
        self.kill_switch_path = kill_switch_path

    def generate(self, req: LLMRequest) -> LLMResponse:
        if kill_engaged(self.kill_switch_path):
            return LLMResponse("Kill-switch engaged", finish_reason="error")
        if not has_ollama():
            return LLMResponse("Ollama non disponible (binaire 'ollama' introuvable sur PATH).", finish_reason="error")
        cmd = ["ollama", "run", self.model, *self.extra, req.prompt]
        try:
            p = subprocess.run(
                cmd,
                text=True,
                encoding="utf-8",   # ← forcer le décodage UTF-8
                errors="replace",   # ← jamais d'exception si caractère illégal
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            return LLMResponse(f"ollama run a échoué: {e}", finish_reason="error")
        if p.returncode != 0:
            return LLMResponse(f"ollama run a échoué: {p.stderr.strip() or p.stdout.strip()}", finish_reason="error")
        out = p.stdout.strip()
        return LLMResponse(out, usage={"prompt_chars": len(req.prompt), "completion_chars": len(out)})
