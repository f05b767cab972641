import json, os, sqlite3, subprocess, sys
from pathlib import Path

from forgepilot import cli
from forgepilot.llm.dummy import ScriptedLLM

ROOT = Path(__file__).resolve().parents[1]
CONFIG = str(ROOT / "config")

def run_cli(*args: str, cwd: Path) -> subprocess.CompletedProcess:
    env = dict(os.environ, PYTHONPATH=str(ROOT))
    env.pop("FORGEPILOT_WORKSPACE", None)
    env.pop("FORGEPILOT_MODEL", None)
    return subprocess.run(
        [sys.executable, "-m", "forgepilot", *args],
        text=True,
        capture_output=True,
        check=False,
        cwd=str(cwd),
        env=env,
    )

def test_help_works(tmp_path: Path):
    p = run_cli("--help", cwd=tmp_path)
    assert p.returncode == 0
    assert "forgepilot" in p.stdout
    assert "--plan-file" in p.stdout

def test_version(tmp_path: Path):
    p = run_cli("--version", cwd=tmp_path)
    assert p.returncode == 0
    assert p.stdout.strip() == cli.__version__

def test_goal_with_dummy_model(tmp_path: Path):
    ws = tmp_path / "ws"
    ws.mkdir()
    p = run_cli("--goal", "Objet test", "--no-confirm", "--config", CONFIG, "--profile", "safe",
                "--workspace", str(ws), cwd=tmp_path)
    assert p.returncode == 0, p.stderr
    assert "forgepilot v" in p.stdout
    assert "Planned 1 step(s):" in p.stdout
    assert "STATUS: ok" in p.stdout
    con = sqlite3.connect(tmp_path / "data" / "memory.db")
    try:
        kinds = {r[0] for r in con.execute("SELECT kind FROM events")}
        assert {"plan_preview", "step_started", "validation", "summary"} <= kinds
        names = {r[0] for r in con.execute("SELECT name FROM actions")}
        assert "shell" in names
    finally:
        con.close()
    assert (tmp_path / "data" / "logs" / "forgepilot.log").exists()

def test_missing_ollama_exit_2(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "has_ollama", lambda: False)
    rc = cli.main(["--goal", "x", "--config", CONFIG, "--model", "llama3.1:8b"])
    assert rc == 2

def test_strict_exit_1_on_unresolved(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    plan = tmp_path / "plan.md"
    plan.write_text('PLAN_JSON: {"steps": [{"title": "t", "objective": "o"}]}', encoding="utf-8")
    verdict = json.dumps({"stepId": 1, "completed": False, "fixCommands": []})
    monkeypatch.setattr(cli, "select_llm", lambda model, **kw: ScriptedLLM(["nothing"], fallback=verdict))
    rc = cli.main(["--plan-file", str(plan), "--config", CONFIG, "--profile", "balanced",
                   "--max-retries", "1", "--workspace", str(tmp_path)])
    assert rc == 0
    rc = cli.main(["--plan-file", str(plan), "--config", CONFIG, "--profile", "balanced",
                   "--max-retries", "1", "--workspace", str(tmp_path), "--strict"])
    assert rc == 1
    assert "not validated after 1 attempts" in capsys.readouterr().out

def test_allow_and_revoke_terminal(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert cli.main(["--config", CONFIG, "--allow-terminal"]) == 0
    con = sqlite3.connect(tmp_path / "data" / "memory.db")
    try:
        assert con.execute("SELECT value FROM kv WHERE key='allow_terminal_execution'").fetchone()[0] == "1"
    finally:
        con.close()
    assert cli.main(["--config", CONFIG, "--revoke-terminal"]) == 0
    con = sqlite3.connect(tmp_path / "data" / "memory.db")
    try:
        assert con.execute("SELECT value FROM kv WHERE key='allow_terminal_execution'").fetchone()[0] == "0"
    finally:
        con.close()
