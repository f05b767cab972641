from __future__ import annotations
from typing import List

from ..llm.base import LLMRequest
from . import events as ev
from .actions import ActionExtractor
from .context import RunContext
from .orchestrator import StepOrchestrator
from .plan import extract_plan
from .types import Plan, RunResult

PLANNING_REMINDER = """You can act on the user's project directly:
- To create or edit a file, answer with a fenced code block whose first line is a comment
  `// filepath: <path>` followed by the full new content. Use `// ...existing code...`
  to keep the current content of an existing file.
- To run a shell command, write a line `RUN_TERMINAL: <command>` or a fenced ```bash block.
- To look at files, write a line `SEARCH_FILE: <pattern>`.
- For multi-step work, first answer with a plan as a fenced ```json block:
  {"plan": {"summary": "...", "steps": [{"id": 1, "title": "...", "objective": "..."}]}}
  (or inline after `PLAN_JSON:`)."""

def build_request_prompt(request: str) -> str:
    return f"{PLANNING_REMINDER}\n\nUser request:\n{request.strip()}"

def _single_shot_summary(edits, execs, searches) -> str:
    lines: List[str] = ["Single response processed:"]
    for f in edits:
        lines.append(f"  file {f.file_path}: {'ok' if f.success else 'failed'} - {f.message}")
    for r in execs:
        lines.append(f"  cmd `{r.command}`: {r.status} (exit {r.exit_code})")
    for s in searches:
        lines.append(f"  search {s['pattern']!r}: {len(s['files'])} match(es)")
    if not (edits or execs or searches):
        lines.append("  no actions found")
    return "\n".join(lines)

def handle_request(ctx: RunContext, request: str) -> RunResult:
    """
    Une requête utilisateur -> un run.
    Si la réponse contient un plan, il est exécuté ; sinon la réponse est
    traitée en un seul passage par l'extracteur d'actions.
    """
    cfg = ctx.settings.llm
    resp = ctx.responder.generate(
        LLMRequest(prompt=build_request_prompt(request), max_tokens=cfg.max_tokens, temperature=cfg.temperature)
    )
    content = resp.content or ""
    if resp.finish_reason == "error":
        ctx.events.emit(ev.INFO, f"Responder error: {content}")
        return RunResult(status="error", summary=f"Responder error: {content}",
                         events=[e.to_dict() for e in ctx.events.history])

    plan = extract_plan(content)
    if plan is not None and plan.steps:
        return StepOrchestrator(ctx).run(plan)

    acted = ActionExtractor(ctx).process(content)
    summary = _single_shot_summary(acted.file_edit_results, acted.exec_results, acted.search_results)
    ctx.events.emit(ev.SUMMARY, summary)
    failed = any(not f.success for f in acted.file_edit_results)
    status = "no_action" if acted.empty else ("partial" if failed else "ok")
    return RunResult(status=status, plan=None, step_outputs=[], summary=summary,
                     events=[e.to_dict() for e in ctx.events.history])

def run_plan_text(ctx: RunContext, text: str) -> RunResult:
    """Plan fourni directement (fichier ``--plan-file``), sans passer par le répondeur pour le planifier."""
    plan = extract_plan(text) or Plan()
    return StepOrchestrator(ctx).run(plan)
