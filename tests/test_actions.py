from pathlib import Path
from forgepilot.core.actions import (
    ActionExtractor, expand_placeholders, extract_file_blocks, extract_search_patterns,
    extract_terminal_commands, strip_placeholders,
)
from forgepilot.memory.db import MemoryDB

def test_terminal_commands_from_markers_and_fences():
    text = (
        "First RUN_TERMINAL: npm install\n"
        "```bash\n# comment\nnpm test\n\n// other comment\nls -la\n```\n"
        "```python\nprint('not a command')\n```\n"
        "```sh\necho done\n```"
    )
    assert extract_terminal_commands(text) == ["npm install", "npm test", "ls -la", "echo done"]

def test_file_blocks_comment_syntaxes():
    text = (
        "```js\n// filepath: src/a.js\nconsole.log(1)\n```\n"
        "```python\n# filepath: b.py\nprint(2)\n```\n"
        "```sql\n-- filepath: c.sql\nselect 1;\n```\n"
        "```css\n/* filepath: d.css */\nbody {}\n```\n"
        "```html\n<!-- filepath: e.html -->\n<p></p>\n```\n"
        "```\nno filepath here\n```"
    )
    blocks = extract_file_blocks(text)
    assert [b.path for b in blocks] == ["src/a.js", "b.py", "c.sql", "d.css", "e.html"]
    assert blocks[0].body == "console.log(1)"

def test_placeholders():
    original = "keep me\n"
    for form in ("// ...existing code...", "/* ...existing code... */", "...existing code...", "# …existing code…"):
        assert expand_placeholders(f"top\n{form}\n", original) == f"top\n{original}\n"
        assert strip_placeholders(f"top\n{form}\n").strip() == "top"

def test_search_markers():
    assert extract_search_patterns("SEARCH_FILE: *.py\nnothing\nSEARCH_FILE:   README") == ["*.py", "README"]

def test_create_new_file_strips_placeholders(make_ctx, workspace: Path):
    ctx = make_ctx()
    res = ActionExtractor(ctx).process("```py\n// filepath: pkg/new.py\n// ...existing code...\n\nx = 1\n```")
    assert len(res.file_edit_results) == 1
    r = res.file_edit_results[0]
    assert r.success and r.action == "created" and r.message == "Created"
    assert (workspace / "pkg" / "new.py").read_text(encoding="utf-8") == "x = 1\n"

def test_update_expands_placeholder(make_ctx, workspace: Path):
    (workspace / "app.js").write_text("const a = 1;\n", encoding="utf-8")
    ctx = make_ctx()
    res = ActionExtractor(ctx).process("```js\n// filepath: app.js\n// ...existing code...\nconst b = 2;\n```")
    r = res.file_edit_results[0]
    assert r.success and r.action == "updated"
    assert (workspace / "app.js").read_text(encoding="utf-8") == "const a = 1;\n\nconst b = 2;\n"

def test_instruction_block_routes_to_patch_engine(make_ctx, workspace: Path):
    (workspace / "conf.ini").write_text("a=1\nb=2\nc=3\n", encoding="utf-8")
    ctx = make_ctx()
    res = ActionExtractor(ctx).process("```\n# filepath: conf.ini\nLine 2: b=20\nDelete line 3\n```")
    r = res.file_edit_results[0]
    assert r.success and r.action == "patched"
    assert len(r.applied_edits) == 2
    assert (workspace / "conf.ini").read_text(encoding="utf-8") == "a=1\nb=20\n"

def test_free_text_instructions_need_target_file(make_ctx, workspace: Path):
    f = workspace / "notes.txt"
    f.write_text("one\ntwo\n", encoding="utf-8")
    text = "Please apply:\nLine 1: ONE\nAdd at end: three"
    assert ActionExtractor(make_ctx()).process(text).file_edit_results == []
    res = ActionExtractor(make_ctx(target_file="notes.txt")).process(text)
    assert res.file_edit_results[0].success
    assert f.read_text(encoding="utf-8") == "ONE\ntwo\nthree\n"

def test_failed_file_does_not_abort_siblings(make_ctx, settings, workspace: Path, tmp_path: Path):
    settings.security.confine_writes = True
    ctx = make_ctx()
    text = (
        "```\n// filepath: ../outside.txt\nnope\n```\n"
        "```\n// filepath: inside.txt\nyes\n```"
    )
    res = ActionExtractor(ctx).process(text)
    assert [r.success for r in res.file_edit_results] == [False, True]
    assert not (tmp_path / "outside.txt").exists()
    assert (workspace / "inside.txt").exists()

def test_commands_run_and_search_context(make_ctx, workspace: Path):
    (workspace / "hello.txt").write_text("hi there\n", encoding="utf-8")
    ctx = make_ctx()
    res = ActionExtractor(ctx).process("RUN_TERMINAL: echo ran\nSEARCH_FILE: hello")
    assert res.exec_results[0].ok and "ran" in res.exec_results[0].stdout
    assert res.search_results[0]["pattern"] == "hello"
    assert "File: hello.txt" in res.search_context and "hi there" in res.search_context

def test_actions_recorded_in_db(make_ctx, tmp_path: Path):
    with MemoryDB(tmp_path / "a.db") as db:
        ctx = make_ctx(db=db)
        ActionExtractor(ctx).process("RUN_TERMINAL: echo x\n```\n// filepath: f.txt\nx\n```")
        names = sorted(a["name"] for a in db.list_actions())
        assert names == ["file_edit", "shell"]

def test_idempotent_on_identical_input(make_ctx, workspace: Path):
    text = "RUN_TERMINAL: echo same\n```\n// filepath: out.txt\nsame content\n```"
    ctx = make_ctx()
    first = ActionExtractor(ctx).process(text)
    content_after_first = (workspace / "out.txt").read_text(encoding="utf-8")
    second = ActionExtractor(ctx).process(text)
    assert [r.stdout for r in first.exec_results] == [r.stdout for r in second.exec_results]
    assert [r.success for r in first.file_edit_results] == [r.success for r in second.file_edit_results]
    assert (workspace / "out.txt").read_text(encoding="utf-8") == content_after_first

def test_invalid_path_becomes_failed_result(make_ctx, workspace: Path):
    ctx = make_ctx()
    text = (
        "```\n// filepath: bad\x00name.txt\nx\n```\n"
        "```\n// filepath: good.txt\ny\n```"
    )
    res = ActionExtractor(ctx).process(text)
    assert [r.success for r in res.file_edit_results] == [False, True]
    assert (workspace / "good.txt").read_text(encoding="utf-8") == "y\n"
