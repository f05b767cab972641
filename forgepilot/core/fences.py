from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator, List

FENCE = "```"

@dataclass
class FencedBlock:
    lang: str
    body: str
    start_line: int  # 1-based, ligne d'ouverture

    @property
    def lines(self) -> List[str]:
        return self.body.split("\n") if self.body else []

def iter_fenced_blocks(text: str) -> Iterator[FencedBlock]:
    """
    Parcourt les blocs ```lang ... ``` ligne par ligne.
    Un bloc non refermé court jusqu'à la fin du texte.
    """
    lines = (text or "").splitlines()
    i = 0
    while i < len(lines):
        stripped = lines[i].strip()
        if not stripped.startswith(FENCE):
            i += 1
            continue
        lang = stripped[len(FENCE):].strip().split(" ")[0].lower() if len(stripped) > 3 else ""
        start = i + 1
        body: List[str] = []
        i += 1
        while i < len(lines) and lines[i].strip() != FENCE:
            body.append(lines[i])
            i += 1
        i += 1  # saute la clôture
        yield FencedBlock(lang, "\n".join(body), start)

def fenced_blocks(text: str, *langs: str) -> List[FencedBlock]:
    wanted = {l.lower() for l in langs}
    return [b for b in iter_fenced_blocks(text) if not wanted or b.lang in wanted]

def strip_fenced_blocks(text: str) -> str:
    """Texte hors blocs (pour les instructions libres)."""
    out: List[str] = []
    inside = False
    for line in (text or "").splitlines():
        stripped = line.strip()
        if not inside and stripped.startswith(FENCE):
            inside = True
        elif inside and stripped == FENCE:
            inside = False
        elif not inside:
            out.append(line)
    return "\n".join(out)
