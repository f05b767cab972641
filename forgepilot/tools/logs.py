from __future__ import annotations
from datetime import datetime, timezone
from pathlib import Path
from ..config import Settings

LOG_NAME = "forgepilot.log"

def log_event(settings: Settings, message: str) -> Path:
    """Ajoute une ligne horodatée (UTC) au journal texte du profil."""
    log_dir = Path(settings.general.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    path = log_dir / LOG_NAME
    ts = datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")
    one_line = message.replace("\n", " | ")
    with path.open("a", encoding="utf-8") as f:
        f.write(f"{ts} | {one_line}\n")
    return path
