from __future__ import annotations
from typing import List, Optional

from ..llm.base import LLMRequest
from ..patching import format_edits_for_display
from . import events as ev
from .actions import ActionExtractor, ActionResult
from .context import RunContext
from .plan import format_plan
from .types import (
    Plan, RunResult, Step, StepOutput, ValidationVerdict, ExecResult,
    STEP_RUNNING, STEP_VALIDATING, STEP_RETRYING, STEP_COMPLETED, STEP_BACKTRACKED, STEP_FAILED,
)
from .validation import validate_step

def _truncate(s: str, n: int = 400) -> str:
    return s[:n] + "...[truncated]" if s and len(s) > n else (s or "")

def build_step_prompt(step: Step, previous: List[StepOutput]) -> str:
    summary = "\n\n".join(
        f"Step {i} result:\n{o.content}" + (f"\n\n{o.search_context}" if o.search_context else "")
        for i, o in enumerate(previous, start=1)
    )
    return (
        "EXECUTE_STEP:\n"
        f"Step ID: {step.id}\n"
        f"Title: {step.title}\n"
        f"Objective: {step.objective}\n"
        "Previous step outputs (if any):\n"
        f"{summary or '(none)'}\n"
        "Provide any suggested file edits (use Copilot-style filepath blocks) or terminal commands "
        "(RUN_TERMINAL: or fenced bash). Keep answer concise."
    )

def backtrack_note(step: Step, fixes) -> str:
    return (
        f"\n\n[Backtrack from step {step.id}]: Please also run or consider these remediation "
        f"commands before/while performing the next step: {' ; '.join(fixes)}"
    )

def _actions_message(step: Step, acted: ActionResult) -> str:
    head = (f"Step [{step.id}]: {len(acted.exec_results)} command(s), {len(acted.file_edit_results)} file edit(s), "
            f"{len(acted.search_results)} search(es)")
    # détail ligne à ligne des fichiers patchés (ancien / nouveau contenu)
    patches = [
        format_edits_for_display(f.applied_edits, f.file_path)
        for f in acted.file_edit_results
        if f.action == "patched" and f.applied_edits
    ]
    return "\n\n".join([head, *patches]).rstrip()

def _verdict_message(step: Step, v: ValidationVerdict) -> str:
    msg = f"Validation for step [{step.id}]: completed={'true' if v.completed else 'false'}"
    if v.notes:
        msg += f"\nNotes: {v.notes}"
    if v.fix_commands:
        msg += f"\nSuggested fixes: {' && '.join(v.fix_commands)}"
    return msg

class StepOrchestrator:
    """
    Exécute un plan étape par étape :
    réponse du modèle -> actions -> validation -> correctifs/retries -> backtrack ou échec.
    Une étape en échec n'interrompt jamais le plan.
    """

    def __init__(self, ctx: RunContext):
        self.ctx = ctx
        self.cfg = ctx.settings.orchestrator
        self.actions = ActionExtractor(ctx)

    def _validate(self, step: Step, execs: List[ExecResult], output: StepOutput) -> ValidationVerdict:
        return validate_step(
            self.ctx.responder, step, execs, output.file_edits,
            max_tokens=self.cfg.validation_max_tokens, temperature=self.cfg.temperature,
        )

    def run(self, plan: Plan) -> RunResult:
        events = self.ctx.events
        if not plan or not plan.steps:
            return RunResult(status="no_action", plan=plan, summary="No steps to execute.")

        events.emit(ev.PLAN_PREVIEW, format_plan(plan), plan=plan.to_dict())

        outputs: List[StepOutput] = []
        for idx, step in enumerate(plan.steps):
            nxt: Optional[Step] = plan.steps[idx + 1] if idx + 1 < len(plan.steps) else None
            outputs.append(self.run_step(step, outputs, nxt))

        summary = summarize(outputs)
        status = "partial" if any(o.status in (STEP_FAILED, STEP_BACKTRACKED) for o in outputs) else "ok"
        events.emit(ev.SUMMARY, summary, status=status)
        return RunResult(status=status, plan=plan, step_outputs=outputs, summary=summary,
                         events=[e.to_dict() for e in events.history])

    def run_step(self, step: Step, previous: List[StepOutput], nxt: Optional[Step]) -> StepOutput:
        events = self.ctx.events
        output = StepOutput(step_id=step.id, title=step.title, status=STEP_RUNNING)
        events.emit(ev.STEP_STARTED, f"Starting step [{step.id}] {step.title}: {step.objective}", step.id)

        prompt = build_step_prompt(step, previous)
        resp = self.ctx.responder.generate(
            LLMRequest(prompt=prompt, max_tokens=self.cfg.step_max_tokens, temperature=self.cfg.temperature)
        )
        output.content = resp.content or ""
        events.emit(ev.STEP_RESULT, f"Step [{step.id}] result:\n\n{output.content}", step.id)

        acted = self.actions.process(output.content)
        output.file_edits = acted.file_edit_results
        output.terminal = acted.exec_results
        output.search_context = acted.search_context
        if not acted.empty:
            events.emit(
                ev.ACTIONS,
                _actions_message(step, acted),
                step.id,
                terminal=[r.to_dict() for r in acted.exec_results],
                file_edits=[f.to_dict() for f in acted.file_edit_results],
            )

        output.status = STEP_VALIDATING
        verdict = self._validate(step, output.terminal, output)
        events.emit(ev.VALIDATION, _verdict_message(step, verdict), step.id, verdict=verdict.to_dict())

        max_retries = self.cfg.max_retries
        attempt = 0
        while not verdict.completed and attempt < max_retries:
            attempt += 1
            output.status = STEP_RETRYING
            fixes = list(verdict.fix_commands)
            if fixes:
                fix_results = self.ctx.command_runner().run_batch(fixes)
                output.fix_execution.extend(fix_results)
                for r in fix_results:
                    self.ctx.record_action("fix", r.status, {"command": r.command, "step": step.id}, r.to_dict())
                lines = "\n\n".join(
                    f"Ran: `{r.command}` -> {r.status}" + (f"\n```\n{_truncate(r.stdout)}\n```" if r.stdout else "")
                    for r in fix_results
                )
                events.emit(ev.FIX_ATTEMPT, f"Attempt {attempt}/{max_retries}: Executed suggested fixes:\n\n{lines}",
                            step.id, attempt=attempt)
                verdict = self._validate(step, output.terminal + output.fix_execution, output)
                events.emit(ev.VALIDATION, f"Re-validation after attempt {attempt}: "
                            f"completed={'true' if verdict.completed else 'false'}"
                            + (f"\nNotes: {verdict.notes}" if verdict.notes else ""),
                            step.id, attempt=attempt, verdict=verdict.to_dict())
            else:
                if self.cfg.short_circuit_no_evidence:
                    # même preuve, même question : on ne redemande pas
                    events.emit(ev.INFO, f"Attempt {attempt}/{max_retries}: no fix commands and no new evidence, "
                                f"skipping re-validation", step.id, attempt=attempt)
                    break
                verdict = self._validate(step, output.terminal, output)
                events.emit(ev.VALIDATION, f"Attempt {attempt}/{max_retries}: validation re-check returned "
                            f"completed={'true' if verdict.completed else 'false'}"
                            + (f"\nNotes: {verdict.notes}" if verdict.notes else ""),
                            step.id, attempt=attempt, verdict=verdict.to_dict())
            if verdict.completed:
                break

        output.attempts = attempt
        output.verdict = verdict
        if verdict.completed:
            output.status = STEP_COMPLETED
            return output

        final_fixes = list(verdict.fix_commands)
        if nxt is not None and final_fixes:
            nxt.objective = f"{nxt.objective}{backtrack_note(step, final_fixes)}"
            output.status = STEP_BACKTRACKED
            events.emit(ev.MERGED, f"After {attempt} attempts, merged remediation for step {step.id} "
                        f"into next step [{nxt.id}] objective.", step.id, to_step=nxt.id, attempts=attempt)
        else:
            output.status = STEP_FAILED
            events.emit(ev.NOT_VALIDATED, f"Step {step.id} not validated after {attempt} attempts. "
                        f"Stopping further remediation for this step.", step.id, attempts=attempt)
        return output

def summarize(outputs: List[StepOutput]) -> str:
    """Résumé final : par étape, fichiers, commandes, correctifs ; étapes non résolues signalées."""
    lines: List[str] = ["Run summary:"]
    for o in outputs:
        flag = "" if o.status == STEP_COMPLETED else "  [UNRESOLVED]"
        lines.append(f"Step [{o.step_id}] {o.title}: {o.status} (attempts: {o.attempts}){flag}")
        for f in o.file_edits:
            lines.append(f"  file {f.file_path}: {'ok' if f.success else 'failed'} - {f.message}")
        for r in o.terminal:
            lines.append(f"  cmd `{r.command}`: {r.status} (exit {r.exit_code})")
        for r in o.fix_execution:
            lines.append(f"  fix `{r.command}`: {r.status} (exit {r.exit_code})")
        if o.status == STEP_FAILED:
            lines.append(f"  Step {o.step_id} not validated after {o.attempts} attempts.")
        elif o.status == STEP_BACKTRACKED:
            lines.append("  remediation merged into the next step")
    unresolved = [str(o.step_id) for o in outputs if o.status != STEP_COMPLETED]
    if unresolved:
        lines.append(f"Unresolved steps: {', '.join(unresolved)}")
    else:
        lines.append("All steps validated.")
    return "\n".join(lines)

def run_plan(ctx: RunContext, plan: Plan) -> RunResult:
    return StepOrchestrator(ctx).run(plan)
