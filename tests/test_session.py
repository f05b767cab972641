import json
from pathlib import Path
from forgepilot.core.session import handle_request, run_plan_text
from forgepilot.llm.base import LLM, LLMResponse

PLAN = '```json\n{"plan": {"summary": "s", "steps": [{"id": 1, "title": "Write", "objective": "create a file"}]}}\n```'
OK = json.dumps({"stepId": 1, "completed": True, "fixCommands": [], "notes": ""})

def test_plan_reply_runs_orchestrator(make_ctx, workspace: Path):
    ctx = make_ctx([PLAN, "```\n// filepath: out.txt\nhello\n```", OK])
    res = handle_request(ctx, "make out.txt")
    assert res.status == "ok"
    assert res.plan is not None and len(res.step_outputs) == 1
    assert (workspace / "out.txt").read_text(encoding="utf-8") == "hello\n"
    assert "RUN_TERMINAL" in ctx.responder.prompts[0] and "make out.txt" in ctx.responder.prompts[0]

def test_single_shot_reply(make_ctx, workspace: Path):
    ctx = make_ctx(["RUN_TERMINAL: echo single"])
    res = handle_request(ctx, "say something")
    assert res.plan is None and res.status == "ok"
    assert "cmd `echo single`: done" in res.summary

def test_nothing_to_do(make_ctx):
    res = handle_request(make_ctx(["Just an explanation."]), "explain")
    assert res.status == "no_action"
    assert "no actions found" in res.summary

def test_responder_error(make_ctx):
    class _Down(LLM):
        def generate(self, req):
            return LLMResponse("Ollama non disponible", finish_reason="error")
    ctx = make_ctx()
    ctx.responder = _Down()
    res = handle_request(ctx, "x")
    assert res.status == "error" and "Ollama" in res.summary

def test_run_plan_text(make_ctx):
    ctx = make_ctx(["nothing", OK])
    res = run_plan_text(ctx, 'PLAN_JSON: {"steps": [{"title": "t", "objective": "o"}]}')
    assert res.status == "ok"
    assert ctx.responder.prompts[0].startswith("EXECUTE_STEP:")
