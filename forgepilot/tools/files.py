from __future__ import annotations
import fnmatch, os
from pathlib import Path
from typing import Iterable, List
from ..config import Settings
from .errors import FileSecurityError
from ..security.kill import check_kill

def resolve_path(root: str | Path, file_path: str) -> Path:
    """Chemin absolu utilisé tel quel, chemin relatif résolu depuis la racine du workspace."""
    p = Path(file_path.strip())
    if p.is_absolute():
        return Path(os.path.normpath(p))
    return Path(os.path.normpath(Path(root) / p))

def _is_under(target: Path, root: Path) -> bool:
    try:
        target.resolve().relative_to(root.resolve())
        return True
    except ValueError:
        return False

def _guard(settings: Settings, root: str | Path, dest: Path) -> None:
    if settings.security.confine_writes and not _is_under(dest, Path(root)):
        raise FileSecurityError(f"Chemin hors workspace: {dest}")

def read_text(path: Path, *, encoding: str = "utf-8") -> str:
    # newline="" : on garde les fins de ligne telles quelles
    with path.open("r", encoding=encoding, errors="replace", newline="") as f:
        return f.read()

def write_text(settings: Settings, root: str | Path, dest: Path, content: str, *, encoding: str = "utf-8") -> Path:
    """Écrit le contenu complet en une fois (kill-switch et confinement vérifiés avant)."""
    check_kill(settings.general.kill_switch_path)
    _guard(settings, root, dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    with dest.open("w", encoding=encoding, newline="") as f:
        f.write(content)
    return dest

def _walk(root: Path, ignore_dirs: Iterable[str]) -> Iterable[Path]:
    ignored = set(ignore_dirs)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in ignored)
        for name in sorted(filenames):
            yield Path(dirpath) / name

def search_files(settings: Settings, root: str | Path, pattern: str) -> List[Path]:
    """
    Recherche de fichiers pour les marqueurs SEARCH_FILE.
    - motif glob (``*.py``, ``src/**/x.js``) comparé au chemin relatif et au nom
    - sinon sous-chaîne du chemin relatif
    """
    base = Path(root)
    pattern = pattern.strip().strip("`'\"")
    if not pattern or not base.is_dir():
        return []
    is_glob = any(ch in pattern for ch in "*?[")
    found: List[Path] = []
    for f in _walk(base, settings.search.ignore_dirs):
        rel = f.relative_to(base).as_posix()
        if is_glob:
            hit = fnmatch.fnmatch(rel, pattern) or fnmatch.fnmatch(f.name, pattern)
        else:
            hit = pattern in rel
        if hit:
            found.append(f)
            if len(found) >= settings.search.max_results:
                break
    return found

def render_search_results(settings: Settings, root: str | Path, files: List[Path]) -> str:
    """Blocs ``File: <chemin>`` réinjectés dans le contexte de l'étape."""
    chunks: List[str] = []
    for f in files:
        rel = f.relative_to(Path(root)).as_posix() if _is_under(f, Path(root)) else str(f)
        try:
            content = read_text(f)
        except OSError as e:
            content = f"(lecture impossible: {e})"
        if len(content) > settings.search.max_bytes:
            content = content[: settings.search.max_bytes] + "\n...[truncated]"
        chunks.append(f"File: {rel}\n```\n{content.rstrip()}\n```")
    return "\n\n".join(chunks)
