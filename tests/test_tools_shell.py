from pathlib import Path
from forgepilot.core.types import EXEC_DONE, EXEC_SKIPPED
from forgepilot.tools.permissions import ALLOW_TERMINAL_KEY, MemoryPermissionStore, fixed_prompter
from forgepilot.tools.shell import CommandRunner, ShellSecurityError, check_allowed, run_command

def test_run_command_captures_output(tmp_path: Path):
    res = run_command("echo hello", str(tmp_path))
    assert res.status == EXEC_DONE
    assert res.exit_code == 0 and res.ok
    assert "hello" in res.stdout.lower()
    assert res.error is None

def test_run_command_failure_is_data(tmp_path: Path):
    res = run_command("exit 3", str(tmp_path))
    assert res.status == EXEC_DONE
    assert res.exit_code == 3
    assert res.error == "Command failed with exit code 3"
    assert not res.ok

def test_run_command_bad_cwd(tmp_path: Path):
    res = run_command("echo x", str(tmp_path / "missing"))
    assert res.status == "error"
    assert res.error

def test_run_command_invalid_command_is_data(tmp_path: Path):
    res = run_command("echo a\x00b", str(tmp_path))
    assert res.status == "error"
    assert res.exit_code is None and res.error

def test_allowlist(settings):
    settings.security.shell_allowlist = ["echo"]
    check_allowed(settings, "echo ok")
    try:
        check_allowed(settings, "rm -rf /tmp/x")
        assert False, "Should have raised"
    except ShellSecurityError:
        pass

def _runner(settings, workspace, store=None, mode="background", echo=None):
    return CommandRunner(settings, store or MemoryPermissionStore(), cwd=str(workspace),
                         prompter=fixed_prompter(mode) if mode else None, echo=echo)

def test_cancel_skips_whole_batch(settings, workspace):
    res = _runner(settings, workspace, mode="cancel").run_batch(["echo a", "echo b"])
    assert [r.status for r in res] == [EXEC_SKIPPED, EXEC_SKIPPED]
    assert all(r.stdout == "" for r in res)

def test_no_prompter_cancels(settings, workspace):
    res = _runner(settings, workspace, mode=None).run_batch(["echo a"])
    assert res[0].status == EXEC_SKIPPED

def test_always_persists_flag_and_echoes(settings, workspace):
    store = MemoryPermissionStore()
    echoed = []
    res = _runner(settings, workspace, store=store, mode="always", echo=echoed.append).run_batch(["echo a"])
    assert res[0].status == EXEC_DONE
    assert store.get_flag(ALLOW_TERMINAL_KEY) is True
    assert echoed == ["echo a"]
    # ensuite plus de question : même un prompter "cancel" est ignoré
    res2 = _runner(settings, workspace, store=store, mode="cancel").run_batch(["echo b"])
    assert res2[0].status == EXEC_DONE

def test_background_does_not_echo(settings, workspace):
    echoed = []
    res = _runner(settings, workspace, mode="background", echo=echoed.append).run_batch(["echo a"])
    assert res[0].ok and echoed == []

def test_allowlist_marks_skipped_without_raising(settings, workspace):
    settings.security.shell_allowlist = ["echo"]
    res = _runner(settings, workspace).run_batch(["echo a", "ls"])
    assert [r.status for r in res] == [EXEC_DONE, EXEC_SKIPPED]
    assert "non autorisée" in res[1].error

def test_kill_switch_skips_remaining(settings, workspace):
    Path(settings.general.kill_switch_path).write_text("KILLED", encoding="utf-8")
    res = _runner(settings, workspace).run_batch(["echo a", "echo b"])
    assert [r.status for r in res] == [EXEC_SKIPPED, EXEC_SKIPPED]
    assert res[0].error == "Kill-switch engaged"

def test_empty_batch(settings, workspace):
    assert _runner(settings, workspace).run_batch(["", "  "]) == []
