from __future__ import annotations
from typing import Any, Optional, Sequence

from ..llm.base import LLM, LLMRequest
from .types import ExecResult, FileEditResult, Step, ValidationVerdict
from .jsonextract import first_match, from_balanced_scan, from_fenced

def _describe_commands(results: Sequence[ExecResult]) -> str:
    if not results:
        return "(no terminal commands were executed)"
    chunks = []
    for r in results:
        code = r.exit_code if r.exit_code is not None else "n/a"
        chunks.append(
            f"Command: {r.command}\n"
            f"Status: {r.status}\n"
            f"Exit code: {code}\n"
            f"Stdout:\n{r.stdout or '(none)'}\n"
            f"Stderr:\n{r.stderr or r.error or '(none)'}\n"
        )
    return "\n---\n".join(chunks)

def _describe_edits(edits: Sequence[FileEditResult]) -> str:
    if not edits:
        return "(no file edits)"
    return "\n---\n".join(
        f"File: {f.file_path}\nResult: {'updated/created' if f.success else 'failed'}\nMessage: {f.message or ''}"
        for f in edits
    )

def build_validation_prompt(step: Step, exec_results: Sequence[ExecResult], file_edits: Sequence[FileEditResult]) -> str:
    return f"""Validate whether the step below achieved its objective given the executed commands and file edits.
Respond ONLY with a JSON object (no extra text). Format:
{{
  "stepId": <number>,
  "completed": <true|false>,
  "fixCommands": [ "command1", "command2" ],
  "notes": "short explanation"
}}
fixCommands is optional, use an empty array if none.

Step:
ID: {step.id}
Title: {step.title}
Objective: {step.objective}

Executed terminal commands and outputs:
{_describe_commands(exec_results)}

File edits performed:
{_describe_edits(file_edits)}

Answer now in JSON only."""

def _looks_like_verdict(obj: Any) -> bool:
    return isinstance(obj, dict) and isinstance(obj.get("completed"), bool)

def parse_verdict(text: str, step_id) -> ValidationVerdict:
    """
    Bloc ```json d'abord, sinon premier objet équilibré.
    Sans booléen ``completed`` exploitable : non validé, aucun correctif.
    """
    obj = first_match(text or "", [from_fenced, from_balanced_scan], _looks_like_verdict)
    if obj is None:
        return ValidationVerdict(step_id, False, (), "Could not parse validation response")
    raw_fixes = obj.get("fixCommands") or obj.get("fix_commands") or []
    if not isinstance(raw_fixes, list):
        raw_fixes = []
    fixes = tuple(c.strip() for c in raw_fixes if isinstance(c, str) and c.strip())
    notes = obj.get("notes")
    return ValidationVerdict(
        step_id=step_id,
        completed=obj["completed"],
        fix_commands=fixes,
        notes=str(notes) if notes is not None else "",
    )

def validate_step(
    llm: LLM,
    step: Step,
    exec_results: Sequence[ExecResult],
    file_edits: Sequence[FileEditResult],
    *,
    max_tokens: int = 800,
    temperature: float = 0.2,
) -> ValidationVerdict:
    """Demande un verdict au répondeur. Une erreur du répondeur donne un verdict négatif."""
    prompt = build_validation_prompt(step, exec_results, file_edits)
    try:
        resp = llm.generate(LLMRequest(prompt=prompt, max_tokens=max_tokens, temperature=temperature))
    except Exception as e:
        return ValidationVerdict(step.id, False, (), f"Validation error: {e}")
    if getattr(resp, "finish_reason", None) == "error":
        return ValidationVerdict(step.id, False, (), f"Validation error: {resp.content}")
    return parse_verdict(resp.content, step.id)
