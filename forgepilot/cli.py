from __future__ import annotations
import argparse, sys
from pathlib import Path
from . import __version__
from .config import PROFILES, Settings, load_settings
from .core import events as ev
from .core.context import RunContext
from .core.session import handle_request, run_plan_text
from .core.types import RunResult
from .llm import has_ollama, select_llm
from .memory.db import MemoryDB
from .tools.logs import log_event
from .tools.permissions import (
    ALLOW_TERMINAL_KEY, DBPermissionStore, MODE_BACKGROUND, console_prompter, fixed_prompter,
)

# === Affichage ================================================================
def _print_banner() -> None:
    print(f"forgepilot v{__version__}")

def _print_settings(s: Settings) -> None:
    print(f"profile   = {s.general.profile}")
    print(f"workspace = {Path(s.general.workspace_root).resolve()}")
    print(f"model     = {s.llm.model}")
    print(f"no_confirm = {s.general.no_confirm}")
    print(f"max_retries = {s.orchestrator.max_retries}")
    allow = ", ".join(s.security.shell_allowlist) or "(none)"
    print(f"security = {{confine_writes={s.security.confine_writes}, allowlist={allow}}}")
    print(f"memory.db = {s.memory.db_path}")

def _print_result(res: RunResult) -> None:
    print()
    print(res.summary)
    print(f"\nSTATUS: {res.status}")

# === Arguments ================================================================
def _argparser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser("forgepilot", description="forgepilot: plans, patches et commandes pilotés par un modèle local")
    ap.add_argument("--goal", help="Requête en texte libre envoyée au modèle.")
    ap.add_argument("--plan-file", help="Fichier contenant un plan (bloc ```json ou PLAN_JSON:) à exécuter directement.")
    ap.add_argument("--config", default="config", help="Chemin vers le dossier de configuration.")
    ap.add_argument("--profile", choices=PROFILES, default="safe", help="Profil de sécurité.")
    ap.add_argument("--workspace", help="Racine du projet cible (défaut: config / FORGEPILOT_WORKSPACE).")
    ap.add_argument("--model", help="dummy | tag Ollama (ex: llama3.1:8b-instruct-q4_K_M).")
    ap.add_argument("--max-retries", type=int, help="Nombre maximum de re-validations par étape.")
    ap.add_argument("--no-confirm", action="store_true", help="Exécuter les commandes sans confirmation (arrière-plan).")
    ap.add_argument("--target-file", help="Fichier visé par les instructions libres (Line N: ...).")
    ap.add_argument("--allow-terminal", action="store_true", help="Mémoriser l'autorisation permanente d'exécution.")
    ap.add_argument("--revoke-terminal", action="store_true", help="Retirer l'autorisation permanente d'exécution.")
    ap.add_argument("--strict", action="store_true", help="Code retour 1 si une étape reste non validée.")
    ap.add_argument("--version", action="store_true", help="Afficher la version et quitter.")
    return ap

def build_parser() -> argparse.ArgumentParser:
    return _argparser()

# === Main ====================================================================
def main(argv: list[str] | None = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    if args.version:
        print(__version__)
        return 0

    try:
        s = load_settings(
            config=args.config,
            profile=args.profile,
            overrides={
                "no_confirm": True if args.no_confirm else None,
                "workspace_root": args.workspace,
                "max_retries": args.max_retries,
            },
        )
    except (ValueError, OSError) as e:
        print(f"ERR: configuration invalide: {e}", file=sys.stderr)
        return 2
    if args.model:
        s.llm.model = args.model

    _print_banner()
    _print_settings(s)

    db = MemoryDB(s.memory.db_path)
    try:
        store = DBPermissionStore(db)
        if args.revoke_terminal:
            store.set_flag(ALLOW_TERMINAL_KEY, False)
            print("[permissions] autorisation permanente retirée")
        if args.allow_terminal:
            store.set_flag(ALLOW_TERMINAL_KEY, True)
            print("[permissions] autorisation permanente enregistrée")

        if not (args.goal or args.plan_file):
            if not (args.allow_terminal or args.revoke_terminal):
                print("Rien à faire: utilisez --goal ou --plan-file.")
            return 0

        if s.llm.model.lower() != "dummy" and not has_ollama():
            print("ERR: Ollama non disponible. Installez-le (winget install -e --id Ollama.Ollama) ou utilisez --model dummy.",
                  file=sys.stderr)
            return 2

        ctx = RunContext(
            settings=s,
            responder=select_llm(s.llm.model, kill_switch_path=s.general.kill_switch_path),
            permissions=store,
            prompter=fixed_prompter(MODE_BACKGROUND) if s.general.no_confirm else console_prompter,
            echo=lambda cmd: print(f"$ {cmd}"),
            target_file=args.target_file,
            db=db,
        )
        ctx.events.subscribe(ev.print_sink())
        ctx.events.subscribe(ev.log_sink(s))
        if s.memory.persist_events:
            ctx.events.subscribe(ev.db_sink(db))

        if args.plan_file:
            try:
                text = Path(args.plan_file).read_text(encoding="utf-8")
            except OSError as e:
                print(f"ERR: plan illisible: {e}", file=sys.stderr)
                return 2
            res = run_plan_text(ctx, text)
        else:
            res = handle_request(ctx, args.goal)

        _print_result(res)
        log_event(s, f"run status={res.status} unresolved={len(res.unresolved)} goal={args.goal or args.plan_file}")
        if res.status == "error":
            return 2
        if args.strict and res.unresolved:
            return 1
        return 0
    finally:
        db.close()

if __name__ == "__main__":
    raise SystemExit(main())
