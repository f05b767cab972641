from __future__ import annotations
from typing import Any, List, Optional

from .types import Plan, Step
from .jsonextract import first_match, from_fenced, from_marker

PLAN_MARKER = "PLAN_JSON:"

def _steps_of(obj: Any) -> Optional[list]:
    if not isinstance(obj, dict):
        return None
    plan = obj.get("plan") if isinstance(obj.get("plan"), dict) else None
    steps = (plan or obj).get("steps")
    return steps if isinstance(steps, list) else None

def _as_list(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(v) for v in value]
    if isinstance(value, str) and value.strip():
        return [value]
    return []

def _normalize_step(raw: Any, pos: int) -> Step:
    if isinstance(raw, str):
        return Step(id=pos, title=f"Step {pos}", objective=raw.strip())
    if not isinstance(raw, dict):
        raw = {}
    sid = raw.get("id")
    if isinstance(sid, bool) or not isinstance(sid, (int, str)) or not sid:
        sid = pos
    title = raw.get("title") or f"Step {pos}"
    objective = raw.get("objective") or raw.get("description") or ""
    needed = raw.get("inputNeeded") or raw.get("input_needed") or raw.get("inputs") or []
    return Step(id=sid, title=str(title), objective=str(objective), input_needed=_as_list(needed))

def _dedupe_ids(steps: List[Step]) -> None:
    """Les ids restent uniques : un doublon prend sa position, sinon ``id.position``."""
    seen = set()
    for pos, step in enumerate(steps, start=1):
        if step.id in seen:
            step.id = pos if pos not in seen else f"{step.id}.{pos}"
        seen.add(step.id)

def plan_from_obj(obj: Any) -> Optional[Plan]:
    steps_raw = _steps_of(obj)
    if steps_raw is None:
        return None
    plan_obj = obj.get("plan") if isinstance(obj.get("plan"), dict) else obj
    steps = [_normalize_step(s, i) for i, s in enumerate(steps_raw, start=1)]
    _dedupe_ids(steps)
    summary = plan_obj.get("summary") or ""
    return Plan(summary=str(summary), steps=steps)

def extract_plan(text: str) -> Optional[Plan]:
    """
    Cherche un plan dans une réponse libre :
      1) bloc ```json contenant "plan" ou "steps"
      2) marqueur en ligne ``PLAN_JSON: {...}``
    Renvoie None si rien d'exploitable (jamais d'exception).
    """
    if not text or not isinstance(text, str):
        return None
    obj = first_match(
        text,
        [from_fenced, lambda t: from_marker(t, PLAN_MARKER)],
        lambda o: _steps_of(o) is not None,
    )
    return plan_from_obj(obj) if obj is not None else None

def format_plan(plan: Plan) -> str:
    lines = [f"Planned {len(plan.steps)} step(s):", plan.summary or "", ""]
    for s in plan.steps:
        lines.append(f"- [{s.id}] {s.title}: {s.objective}")
    return "\n".join(lines)
