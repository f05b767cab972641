from __future__ import annotations
import json
from typing import Any, Callable, Iterator, List, Optional

from .fences import fenced_blocks

def read_balanced(text: str, start: int) -> Optional[str]:
    """
    Lit un objet {...} à partir de text[start] == '{' en équilibrant les
    accolades (les chaînes JSON et leurs échappements sont respectés).
    """
    if start >= len(text) or text[start] != "{":
        return None
    depth = 0
    in_str = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None

def _loads(raw: str) -> Any:
    try:
        return json.loads(raw)
    except (ValueError, TypeError):
        return None

def from_fenced(text: str) -> Iterator[Any]:
    """Candidats issus des blocs ```json."""
    for block in fenced_blocks(text, "json"):
        obj = _loads(block.body.strip())
        if obj is not None:
            yield obj

def from_marker(text: str, marker: str) -> Iterator[Any]:
    """Candidat lu juste après un marqueur en ligne, ex: ``PLAN_JSON: {...}``."""
    idx = (text or "").find(marker)
    while idx != -1:
        brace = text.find("{", idx + len(marker))
        # seuls des espaces sont tolérés entre le marqueur et l'accolade
        if brace != -1 and not text[idx + len(marker):brace].strip():
            raw = read_balanced(text, brace)
            obj = _loads(raw) if raw else None
            if obj is not None:
                yield obj
        idx = text.find(marker, idx + len(marker))

def from_balanced_scan(text: str) -> Iterator[Any]:
    """Premier(s) objet(s) {...} équilibré(s) trouvés dans le texte brut."""
    text = text or ""
    i = text.find("{")
    while i != -1:
        raw = read_balanced(text, i)
        obj = _loads(raw) if raw else None
        if isinstance(obj, dict):
            yield obj
            i = text.find("{", i + len(raw))
        else:
            i = text.find("{", i + 1)

Stage = Callable[[str], Iterator[Any]]

def first_match(text: str, stages: List[Stage], accept: Callable[[Any], bool]) -> Optional[Any]:
    """
    Pipeline d'extraction : chaque étage est essayé dans l'ordre,
    le premier candidat accepté gagne.
    """
    for stage in stages:
        for obj in stage(text or ""):
            if accept(obj):
                return obj
    return None
