from __future__ import annotations
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..patching import apply_edits_to_file, contains_edit_instructions, only_edit_instructions, parse_edit_instructions
from ..security.kill import KillSwitchEngaged
from ..tools.errors import ToolSecurityError
from ..tools.files import read_text, render_search_results, resolve_path, search_files, write_text
from .context import RunContext
from .fences import FencedBlock, iter_fenced_blocks, strip_fenced_blocks
from .types import ExecResult, FileEditResult

RUN_MARKER = "RUN_TERMINAL:"
SEARCH_MARKER = "SEARCH_FILE:"
SHELL_LANGS = ("bash", "sh", "zsh", "terminal")

# préfixes/suffixes de commentaire acceptés sur la ligne "filepath:"
_COMMENT_OPEN = ("<!--", "/*", "//", "--", "#", ";")
_COMMENT_CLOSE = ("-->", "*/")

_ELLIPSIS = r"(?:\.{3}|…)"
_EXISTING = rf"{_ELLIPSIS}\s*existing code\s*{_ELLIPSIS}"
# une seule passe : forme bloc, forme ligne, forme nue
PLACEHOLDER_RE = re.compile(
    rf"/\*\s*{_EXISTING}\s*\*/|(?://|#)\s*{_EXISTING}|{_EXISTING}",
    re.IGNORECASE,
)

@dataclass
class FileBlock:
    path: str
    body: str

@dataclass
class ActionResult:
    file_edit_results: List[FileEditResult] = field(default_factory=list)
    exec_results: List[ExecResult] = field(default_factory=list)
    search_results: List[dict] = field(default_factory=list)
    search_context: str = ""

    @property
    def empty(self) -> bool:
        return not (self.file_edit_results or self.exec_results or self.search_results)

# ---------------- Extraction (fonctions pures) ----------------

def _marker_values(text: str, marker: str) -> List[str]:
    out: List[str] = []
    for line in (text or "").splitlines():
        idx = line.find(marker)
        if idx != -1:
            value = line[idx + len(marker):].strip()
            if value:
                out.append(value)
    return out

def extract_terminal_commands(text: str) -> List[str]:
    """Lignes ``RUN_TERMINAL:`` puis contenu des blocs bash/sh/zsh/terminal (hors commentaires)."""
    commands = _marker_values(text, RUN_MARKER)
    for block in iter_fenced_blocks(text):
        if block.lang not in SHELL_LANGS:
            continue
        for line in block.lines:
            line = line.strip()
            if line and not line.startswith(("//", "#")):
                commands.append(line)
    return commands

def extract_search_patterns(text: str) -> List[str]:
    return _marker_values(text, SEARCH_MARKER)

def _filepath_of(first_line: str) -> Optional[str]:
    s = first_line.strip()
    for opener in _COMMENT_OPEN:
        if s.startswith(opener):
            s = s[len(opener):]
            break
    else:
        return None
    for closer in _COMMENT_CLOSE:
        if s.rstrip().endswith(closer):
            s = s.rstrip()[: -len(closer)]
    s = s.strip()
    if not s.lower().startswith("filepath:"):
        return None
    path = s[len("filepath:"):].strip()
    return path or None

def _file_block(block: FencedBlock) -> Optional[FileBlock]:
    lines = block.lines
    if not lines:
        return None
    path = _filepath_of(lines[0])
    if path is None:
        return None
    return FileBlock(path, "\n".join(lines[1:]))

def extract_file_blocks(text: str) -> List[FileBlock]:
    out: List[FileBlock] = []
    for block in iter_fenced_blocks(text):
        fb = _file_block(block)
        if fb is not None:
            out.append(fb)
    return out

def expand_placeholders(content: str, original: str) -> str:
    return PLACEHOLDER_RE.sub(lambda _m: original, content)

def strip_placeholders(content: str) -> str:
    return PLACEHOLDER_RE.sub("", content)

# ---------------- Application ----------------

class ActionExtractor:
    """
    Transforme le texte d'une réponse en effets : commandes, fichiers, recherches.
    Ordre : commandes d'abord, puis fichiers, puis recherches.
    Chaque fichier est traité indépendamment, un échec n'arrête pas les autres.
    """

    def __init__(self, ctx: RunContext):
        self.ctx = ctx

    def process(self, text: str) -> ActionResult:
        result = ActionResult()
        commands = extract_terminal_commands(text)
        if commands:
            result.exec_results = self.ctx.command_runner().run_batch(commands)
            for r in result.exec_results:
                self.ctx.record_action("shell", r.status, {"command": r.command}, r.to_dict())

        for fb in extract_file_blocks(text):
            res = self.apply_file_block(fb)
            result.file_edit_results.append(res)
            self.ctx.record_action("file_edit", "ok" if res.success else "error", {"path": fb.path}, res.to_dict())

        target = self.ctx.target_file
        if target:
            free = strip_fenced_blocks(text)
            if contains_edit_instructions(free):
                res = self.apply_instructions_to(target, free)
                result.file_edit_results.append(res)
                self.ctx.record_action("file_patch", "ok" if res.success else "error", {"path": target}, res.to_dict())

        chunks: List[str] = []
        for pattern in extract_search_patterns(text):
            files = search_files(self.ctx.settings, self.ctx.workspace_root, pattern)
            rels = [str(f) for f in files]
            result.search_results.append({"pattern": pattern, "files": rels})
            if files:
                chunks.append(render_search_results(self.ctx.settings, self.ctx.workspace_root, files))
        result.search_context = "\n\n".join(chunks)
        return result

    def _write(self, dest: Path, content: str) -> None:
        write_text(self.ctx.settings, self.ctx.workspace_root, dest, content)

    def apply_instructions_to(self, file_path: str, text: str) -> FileEditResult:
        dest = resolve_path(self.ctx.workspace_root, file_path)
        if not dest.is_file():
            return FileEditResult(str(dest), False, f"File not found: {dest}")
        try:
            original = read_text(dest)
            instructions = parse_edit_instructions(text, original)
            patched = apply_edits_to_file(dest, instructions, write=self._write)
        except (ToolSecurityError, KillSwitchEngaged, OSError, ValueError) as e:
            return FileEditResult(str(dest), False, str(e))
        message = patched.message
        if patched.warnings:
            message += " (" + "; ".join(patched.warnings) + ")"
        return FileEditResult(str(dest), patched.success, message, "patched", list(patched.applied_edits))

    def apply_file_block(self, fb: FileBlock) -> FileEditResult:
        dest = resolve_path(self.ctx.workspace_root, fb.path)
        try:
            if dest.is_file():
                if only_edit_instructions(fb.body):
                    return self.apply_instructions_to(str(dest), fb.body)
                original = read_text(dest)
                content = fb.body if fb.body.endswith("\n") or not fb.body else fb.body + "\n"
                if PLACEHOLDER_RE.search(content):
                    content = expand_placeholders(content, original)
                self._write(dest, content)
                return FileEditResult(str(dest), True, "Updated", "updated")
            content = strip_placeholders(fb.body).strip()
            if content:
                content += "\n"
            self._write(dest, content)
            return FileEditResult(str(dest), True, "Created", "created")
        except (ToolSecurityError, KillSwitchEngaged, OSError, ValueError) as e:
            return FileEditResult(str(dest), False, str(e))
