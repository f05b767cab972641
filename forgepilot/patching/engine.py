from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .grammar import (
    EditInstruction, REPLACE, REPLACE_RANGE, INSERT, DELETE, APPEND,
)

@dataclass
class PatchResult:
    success: bool
    message: str
    applied_edits: List[EditInstruction] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    text: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "applied_edits": [e.to_dict() for e in self.applied_edits],
            "warnings": list(self.warnings),
        }

def split_lines(text: str) -> Tuple[List[str], str, bool]:
    """-> (lignes, fin de ligne, newline final présent)."""
    eol = "\r\n" if "\r\n" in text else "\n"
    if not text:
        return [], eol, False
    trailing = text.endswith(eol)
    body = text[: -len(eol)] if trailing else text
    return body.split(eol), eol, trailing

def capture_original_content(lines: Sequence[str], instr: EditInstruction) -> None:
    """Mémorise le texte d'origine visé par l'instruction (document non modifié)."""
    count = len(lines)
    if instr.type == REPLACE:
        if instr.line_number <= count:
            instr.original_content = lines[instr.line_number - 1]
    elif instr.type == REPLACE_RANGE:
        if instr.line_number <= count and instr.end_line <= count:
            instr.original_content = "\n".join(lines[instr.line_number - 1: instr.end_line])
    elif instr.type == DELETE:
        if count:
            start = min(instr.line_number, count)
            stop = min(instr.end_line or instr.line_number, count)
            instr.original_content = "\n".join(lines[start - 1: stop])
        else:
            instr.original_content = ""
    else:
        instr.original_content = ""

def _check_range(instr: EditInstruction, count: int) -> Optional[str]:
    """Renvoie un avertissement si l'instruction est hors document."""
    n = instr.line_number
    if instr.type == REPLACE and not (1 <= n <= count):
        return f"Line {n} exceeds document length ({count} lines)"
    if instr.type == REPLACE_RANGE and not (1 <= n <= instr.end_line <= count):
        return f"Line range {n}-{instr.end_line} exceeds document length ({count} lines)"
    if instr.type == DELETE and not (1 <= n <= count):
        return f"Line {n} exceeds document length ({count} lines)"
    if instr.type == INSERT and not (1 <= n <= count + 1):
        return f"Insert position {n} exceeds document length ({count} lines)"
    return None

def apply_instructions(text: str, instructions: Sequence[EditInstruction], target: str = "document") -> PatchResult:
    """
    Applique un lot d'instructions à un texte complet et renvoie le nouveau texte.

    - suppressions/remplacements en ordre décroissant, un chevauchement
      fait tomber la plage rencontrée en second (avertissement)
    - insertions en ordre croissant, positions lues dans la numérotation
      d'origine ; une insertion dans une plage remplacée s'ancre à son début
    - append toujours en fin de document
    """
    if not instructions:
        return PatchResult(False, "No edit instructions found", text=text)

    lines, eol, trailing = split_lines(text)
    count = len(lines)
    warnings: List[str] = []

    for instr in instructions:
        if instr.original_content is None:
            capture_original_content(lines, instr)

    destructive: List[EditInstruction] = []
    inserts: List[EditInstruction] = []
    appends: List[EditInstruction] = []
    for instr in instructions:
        problem = _check_range(instr, count) if instr.type != APPEND else None
        if problem:
            warnings.append(problem)
            continue
        if instr.type in (REPLACE, REPLACE_RANGE, DELETE):
            destructive.append(instr)
        elif instr.type == INSERT:
            inserts.append(instr)
        elif instr.type == APPEND:
            appends.append(instr)
        else:
            warnings.append(f"Unknown instruction type: {instr.type}")

    # plages destructives : (début, fin incluse) -> instruction
    ranges: Dict[int, Tuple[int, EditInstruction]] = {}
    kept: List[EditInstruction] = []
    lowest_start = count + 1
    for instr in sorted(destructive, key=lambda i: i.line_number, reverse=True):
        start = instr.line_number
        stop = min(instr.end_line or start, count)
        if stop >= lowest_start:
            warnings.append(f"Overlapping edit at line {start} dropped ({instr.source or instr.type})")
            continue
        ranges[start] = (stop, instr)
        kept.append(instr)
        lowest_start = start

    # une insertion qui tombe dans une plage remplacée s'ancre à son début
    anchors: Dict[int, List[EditInstruction]] = {}
    for instr in sorted(inserts, key=lambda i: i.line_number):
        pos = instr.line_number
        for start, (stop, _) in ranges.items():
            if start < pos <= stop:
                pos = start
                break
        anchors.setdefault(pos, []).append(instr)

    out: List[str] = []
    i = 1
    while i <= count:
        for ins in anchors.get(i, []):
            out.extend(ins.content.split("\n"))
        if i in ranges:
            stop, instr = ranges[i]
            if instr.type != DELETE:
                out.extend(instr.content.split("\n"))
            i = stop + 1
            continue
        out.append(lines[i - 1])
        i += 1
    for ins in anchors.get(count + 1, []):
        out.extend(ins.content.split("\n"))
    for app in appends:
        out.extend(app.content.split("\n"))

    applied = kept + sorted(inserts, key=lambda i: i.line_number) + appends
    if not applied:
        return PatchResult(False, "No applicable edits (all instructions out of range)", [], warnings, text)

    new_text = eol.join(out)
    if out and (trailing or count == 0):
        new_text += eol
    return PatchResult(True, f"Applied {len(applied)} edits to {target}", applied, warnings, new_text)

def apply_edits_to_file(path: str | Path, instructions: Sequence[EditInstruction], *, write=None) -> PatchResult:
    """
    Lit le fichier, applique toutes les instructions, écrit UNE fois.
    ``write(path, text)`` permet d'injecter l'écriture gardée (kill-switch, confinement).
    """
    p = Path(path)
    if not instructions:
        return PatchResult(False, "No edit instructions found")
    if not p.is_file():
        return PatchResult(False, f"File not found: {p}")
    try:
        with p.open("r", encoding="utf-8", errors="replace", newline="") as f:
            original = f.read()
    except OSError as e:
        return PatchResult(False, f"Error applying edits: {e}")

    result = apply_instructions(original, instructions, target=p.name)
    if not result.success or result.text == original:
        return result
    try:
        if write is not None:
            write(p, result.text)
        else:
            with p.open("w", encoding="utf-8", newline="") as f:
                f.write(result.text)
    except Exception as e:
        return PatchResult(False, f"Error applying edits: {e}", [], result.warnings, original)
    return result

def format_edits_for_display(edits: Sequence[EditInstruction], target: str) -> str:
    if not edits:
        return "No file edits detected."
    parts = [f"File edits applied to {target}:", ""]
    for e in edits:
        if e.type == REPLACE:
            parts.append(f"• Line {e.line_number}: modified")
            if e.original_content:
                parts.append(f"  - {e.original_content}")
            parts.append(f"  + {e.content}")
        elif e.type == REPLACE_RANGE:
            parts.append(f"• Lines {e.line_number}-{e.end_line}: modified")
            for old in (e.original_content or "").split("\n"):
                if old:
                    parts.append(f"  - {old}")
            parts.append(f"  + {e.content}")
        elif e.type == INSERT:
            parts.append(f"• Line {e.line_number}: added")
            parts.append(f"  + {e.content}")
        elif e.type == DELETE:
            span = f"Lines {e.line_number}-{e.end_line}" if (e.end_line or 0) > e.line_number else f"Line {e.line_number}"
            parts.append(f"• {span}: deleted")
            for old in (e.original_content or "").split("\n"):
                if old:
                    parts.append(f"  - {old}")
        elif e.type == APPEND:
            parts.append("• End of file: added")
            parts.append(f"  + {e.content}")
        parts.append("")
    return "\n".join(parts).rstrip() + "\n"
