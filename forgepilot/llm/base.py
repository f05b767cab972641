from __future__ import annotations
from dataclasses import dataclass, field

@dataclass
class LLMRequest:
    prompt: str
    max_tokens: int = 2000
    temperature: float = 0.2

@dataclass
class LLMResponse:
    content: str
    usage: dict = field(default_factory=dict)
    finish_reason: str = "stop"  # "stop" | "error"

class LLM:
    """Répondeur : un prompt texte -> une réponse texte. Le transport ne concerne que l'implémentation."""
    name = "llm"

    def generate(self, req: LLMRequest) -> LLMResponse:  # pragma: no cover - interface
        raise NotImplementedError
