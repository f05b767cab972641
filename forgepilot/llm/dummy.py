from __future__ import annotations
from collections import deque
from typing import Callable, Iterable, List, Optional, Union
from .base import LLM, LLMRequest, LLMResponse

Reply = Union[str, Callable[[LLMRequest], str]]

class ScriptedLLM(LLM):
    """
    Répondeur déterministe pour tests/démo.
    - une file de réponses consommées dans l'ordre (str ou callable(req) -> str)
    - ``fallback`` quand la file est vide (par défaut: réponse vide)
    Tous les prompts reçus sont conservés dans ``prompts``.
    """
    name = "scripted"

    def __init__(self, replies: Optional[Iterable[Reply]] = None, *, fallback: Optional[Reply] = None):
        self.queue = deque(replies or [])
        self.fallback = fallback
        self.prompts: List[str] = []

    def generate(self, req: LLMRequest) -> LLMResponse:
        self.prompts.append(req.prompt)
        reply = self.queue.popleft() if self.queue else self.fallback
        if callable(reply):
            reply = reply(req)
        text = reply or ""
        return LLMResponse(content=text, usage={"prompt_chars": len(req.prompt), "completion_chars": len(text)})

def demo_llm() -> ScriptedLLM:
    """Réponses de démonstration (``--model dummy``) : un plan d'une étape sans effet de bord."""
    plan = (
        "Here is the plan.\n"
        "```json\n"
        '{"plan": {"summary": "Demo run", "steps": ['
        '{"id": 1, "title": "Inspect", "objective": "Print the working directory"}]}}\n'
        "```\n"
    )
    step = "RUN_TERMINAL: pwd\n"
    verdict = '{"stepId": 1, "completed": true, "fixCommands": [], "notes": "demo"}'
    return ScriptedLLM([plan, step, verdict], fallback=verdict)
