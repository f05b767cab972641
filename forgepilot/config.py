from __future__ import annotations
from dataclasses import dataclass, field, fields
from pathlib import Path
import tomllib, os

PROFILES = ["safe", "balanced", "danger"]

@dataclass
class General:
    profile: str = "safe"
    workspace_root: str = "."
    no_confirm: bool = False
    log_dir: str = "data/logs"
    kill_switch_path: str = "data/kill.switch"

@dataclass
class Security:
    # vide = aucune restriction sur le premier mot de la commande
    shell_allowlist: list[str] = field(default_factory=list)
    confine_writes: bool = False
    command_timeout_sec: float = 120.0

@dataclass
class Orchestrator:
    max_retries: int = 5
    # re-validation sans nouvelle preuve : False = comportement historique (on boucle)
    short_circuit_no_evidence: bool = False
    step_max_tokens: int = 2000
    validation_max_tokens: int = 800
    temperature: float = 0.2

@dataclass
class Search:
    max_results: int = 5
    max_bytes: int = 20_000
    ignore_dirs: list[str] = field(default_factory=lambda: [".git", "node_modules", "__pycache__", ".venv", "data"])

@dataclass
class LLM:
    model: str = "dummy"
    max_tokens: int = 2000
    temperature: float = 0.2

@dataclass
class Memory:
    db_path: str = "data/memory.db"
    persist_events: bool = True

@dataclass
class Settings:
    general: General
    security: Security
    orchestrator: Orchestrator
    search: Search
    llm: LLM
    memory: Memory

def default_settings(**general) -> Settings:
    """Settings sans fichier TOML (tests, usage en bibliothèque)."""
    return Settings(
        general=General(**general),
        security=Security(),
        orchestrator=Orchestrator(),
        search=Search(),
        llm=LLM(),
        memory=Memory(),
    )

def _load_toml_if_exists(path: Path) -> dict:
    if path.exists():
        with path.open("rb") as f:
            return tomllib.load(f)
    return {}

def _read_profile_toml(config_path: Path, profile: str) -> dict:
    """
    Cherche dans:
      - config/defaults.toml et config/<profile>.toml
      - puis fallback: config/profiles/defaults.toml et config/profiles/<profile>.toml
    """
    cfg_dir = config_path if config_path.is_dir() else config_path.parent

    data = _load_toml_if_exists(cfg_dir / "defaults.toml")
    if not data:
        data = _load_toml_if_exists(cfg_dir / "profiles" / "defaults.toml")

    prof = _load_toml_if_exists(cfg_dir / f"{profile}.toml")
    if not prof:
        prof = _load_toml_if_exists(cfg_dir / "profiles" / f"{profile}.toml")

    # Fusion superficielle defaults <- profil
    base = data or {}
    for k, v in prof.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            base[k].update(v)
        else:
            base[k] = v
    return base

def _filter_for_dataclass(cls, data: dict) -> dict:
    """Ne garde que les clés connues du dataclass (évite TypeError sur clés en trop)."""
    allowed = {f.name for f in fields(cls)}
    return {k: v for k, v in (data or {}).items() if k in allowed}

def load_settings(config: str | None, profile: str, overrides: dict | None = None) -> Settings:
    if profile not in PROFILES:
        raise ValueError(f"Profil inconnu: {profile!r} (attendu: {', '.join(PROFILES)})")
    config_path = Path(config) if config else Path("config")
    raw = _read_profile_toml(config_path, profile)

    for section in ("general", "llm"):
        raw.setdefault(section, {})
    raw["general"]["profile"] = profile

    # Variables d'environnement prioritaires sur les TOML
    env_ws = os.environ.get("FORGEPILOT_WORKSPACE")
    if env_ws:
        raw["general"]["workspace_root"] = env_ws
    env_model = os.environ.get("FORGEPILOT_MODEL")
    if env_model:
        raw["llm"]["model"] = env_model

    g = General(**_filter_for_dataclass(General, raw.get("general")))
    s = Security(**_filter_for_dataclass(Security, raw.get("security")))
    o = Orchestrator(**_filter_for_dataclass(Orchestrator, raw.get("orchestrator")))
    se = Search(**_filter_for_dataclass(Search, raw.get("search")))
    l = LLM(**_filter_for_dataclass(LLM, raw.get("llm")))
    mem = Memory(**_filter_for_dataclass(Memory, raw.get("memory")))

    # Overrides (CLI) : General d'abord, puis orchestrator pour max_retries
    if overrides:
        for k, v in overrides.items():
            if v is None:
                continue
            if hasattr(g, k):
                setattr(g, k, v)
            elif hasattr(o, k):
                setattr(o, k, v)

    return Settings(general=g, security=s, orchestrator=o, search=se, llm=l, memory=mem)
