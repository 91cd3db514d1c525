"""Data model, subprocess helper and workspace tests."""
import sys
import time

import pytest

from deploy_pipeline.core.errors import StageTimeoutError
from deploy_pipeline.core.process import run_command, split_command
from deploy_pipeline.core.workflow import ALLOWED_TRANSITIONS, RunStatus, StageContext, TriggerEvent
from deploy_pipeline.workspace.manager import WorkspaceManager


def test_terminal_states_have_no_exits():
    for status in (RunStatus.SUCCEEDED, RunStatus.FAILED, RunStatus.CANCELLED):
        assert status.terminal
        assert ALLOWED_TRANSITIONS[status] == frozenset()
    assert not RunStatus.PENDING.terminal
    assert RunStatus.SUCCEEDED not in ALLOWED_TRANSITIONS[RunStatus.PENDING]


def test_run_command_merges_stderr():
    result = run_command([sys.executable, "-c", "import sys; sys.stderr.write('warn\\n'); sys.exit(4)"])
    assert result.returncode == 4
    assert not result.ok
    assert result.lines == ["warn"]


def test_run_command_timeout():
    with pytest.raises(StageTimeoutError) as exc:
        run_command([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.3)
    assert exc.value.kind == "TimeoutError"
    assert isinstance(exc.value, TimeoutError)


def test_split_command():
    assert split_command("npm ci --no-audit") == ["npm", "ci", "--no-audit"]
    assert split_command(["npm", "test"]) == ["npm", "test"]


def test_workspace_lifecycle(tmp_path):
    ws = WorkspaceManager("run-42", tmp_path)
    ws.ensure()
    assert ws.root == tmp_path / "run-42"
    assert ws.root.is_dir()
    assert ws.source_dir == ws.root / "source"
    ws.cleanup()
    assert not ws.root.exists()


def test_stage_context_remaining_budget(tmp_path):
    context = StageContext(
        run_id="run-42",
        event=TriggerEvent("main", "abc123"),
        workspace=WorkspaceManager("run-42", tmp_path),
        secrets={},
        stage_name="publish",
        timeout_s=5,
    )
    assert context.remaining() is None

    context.deadline = time.monotonic() + 5
    assert 0 < context.remaining() <= 5

    context.deadline = time.monotonic() - 0.1
    with pytest.raises(StageTimeoutError, match="publish"):
        context.remaining()
