from .base import LLM, LLMRequest, LLMResponse
from .dummy import ScriptedLLM, demo_llm
from .ollama import OllamaCLI, has_ollama

def select_llm(model: str, *, kill_switch_path: str = "data/kill.switch") -> LLM:
    """'dummy' -> réponses scriptées de démo ; tout autre nom -> modèle Ollama."""
    if model.lower() == "dummy":
        return demo_llm()
    return OllamaCLI(model, kill_switch_path=kill_switch_path)

__all__ = ["LLM", "LLMRequest", "LLMResponse", "ScriptedLLM", "demo_llm", "OllamaCLI", "has_ollama", "select_llm"]
