import pytest
from forgepilot.llm import LLMRequest, OllamaCLI, ScriptedLLM, demo_llm, has_ollama, select_llm

def test_scripted_llm_queue_and_fallback():
    llm = ScriptedLLM(["one", lambda req: req.prompt.upper()], fallback="done")
    assert llm.generate(LLMRequest(prompt="a")).content == "one"
    assert llm.generate(LLMRequest(prompt="abc")).content == "ABC"
    assert llm.generate(LLMRequest(prompt="x")).content == "done"
    assert llm.prompts == ["a", "abc", "x"]

def test_scripted_llm_empty():
    resp = ScriptedLLM().generate(LLMRequest(prompt="p"))
    assert resp.content == "" and resp.finish_reason == "stop"

def test_select_llm():
    assert isinstance(select_llm("dummy"), ScriptedLLM)
    assert isinstance(select_llm("llama3.1:8b"), OllamaCLI)

def test_demo_llm_starts_with_plan():
    from forgepilot.core.plan import extract_plan
    llm = demo_llm()
    plan = extract_plan(llm.generate(LLMRequest(prompt="x")).content)
    assert plan is not None and len(plan.steps) == 1

def test_has_ollama_returns_bool():
    assert isinstance(has_ollama(), bool)

@pytest.mark.skipif(has_ollama(), reason="ollama installé")
def test_ollama_missing_is_error_response():
    resp = OllamaCLI("llama3.1:8b").generate(LLMRequest(prompt="hi"))
    assert resp.finish_reason == "error"

def test_ollama_respects_kill_switch(tmp_path):
    kill = tmp_path / "kill.switch"
    kill.write_text("KILLED", encoding="utf-8")
    resp = OllamaCLI("m", kill_switch_path=str(kill)).generate(LLMRequest(prompt="hi"))
    assert resp.finish_reason == "error" and "Kill-switch" in resp.content
