"""
CLI 测试
"""

import json

import pytest

from jarvis_tasks.cli import cli


@pytest.fixture
def invoke(runner, temp_dir):
    """在临时数据库上调用 CLI，返回 (exit_code, output)"""
    db = temp_dir / "cli.db"

    def _invoke(*args, as_json=True):
        base = ["--repo", str(temp_dir), "--db", str(db), "--log-level", "error"]
        if as_json:
            base.append("--json")
        result = runner.invoke(cli, base + list(args))
        return result
    return _invoke


def _json(result):
    return json.loads(result.output.strip().splitlines()[-1])


class TestTaskCommands:

    def test_add_task(self, invoke):
        result = invoke("task", "add", "api", "--title", "Design API")
        assert result.exit_code == 0
        assert _json(result) == {"id": "api", "title": "Design API", "status": "todo"}

    def test_remove_unknown_task(self, invoke):
        result = invoke("task", "rm", "ghost")
        assert result.exit_code == 1
        assert _json(result)["error"] == "Task not found"

    def test_status_blocked_by_dependency(self, invoke):
        invoke("task", "add", "api")
        invoke("task", "add", "ui")
        invoke("deps", "add", "ui", "api")

        result = invoke("task", "status", "ui", "done")
        assert result.exit_code == 1
        assert _json(result)["blockingTasks"] == ["api"]

        assert invoke("task", "status", "api", "done").exit_code == 0
        assert _json(invoke("task", "status", "ui", "done"))["status"] == "done"


class TestDepsCommands:

    @pytest.fixture(autouse=True)
    def chain(self, invoke):
        for task_id in ("task-1", "task-2", "task-3"):
            invoke("task", "add", task_id)
        invoke("deps", "add", "task-2", "task-1")
        invoke("deps", "add", "task-3", "task-2")

    def test_show(self, invoke):
        data = _json(invoke("deps", "show", "task-2"))
        assert data["dependsOn"] == ["task-1"]
        assert data["blockedBy"] == ["task-3"]
        assert data["count"] == {"dependencies": 1, "dependents": 1}

    def test_show_unknown(self, invoke):
        result = invoke("deps", "show", "missing")
        assert result.exit_code == 1

    def test_add_cycle_rejected(self, invoke):
        result = invoke("deps", "add", "task-1", "task-3")
        assert result.exit_code == 1
        assert _json(result) == {
            "error": "This dependency would create a circular reference",
            "cycle": ["task-3", "task-2", "task-1"],
        }

    def test_add_cycle_rejected_rich(self, invoke):
        result = invoke("deps", "add", "task-1", "task-3", as_json=False)
        assert result.exit_code == 1
        assert "circular reference" in result.output
        assert "task-3 → task-2 → task-1" in result.output

    def test_remove(self, invoke):
        data = _json(invoke("deps", "rm", "task-3", "task-2"))
        assert data["dependsOn"] == []
        assert data["message"] == "Dependency removed successfully"

    def test_depth_and_waves(self, invoke):
        assert _json(invoke("deps", "depth", "task-3"))["depth"] == 2
        assert _json(invoke("deps", "waves"))["waves"] == [["task-1"], ["task-2"], ["task-3"]]

    def test_check(self, invoke):
        assert _json(invoke("deps", "check")) == {"acyclic": True}

    def test_show_rich(self, invoke):
        result = invoke("deps", "show", "task-2", as_json=False)
        assert result.exit_code == 0
        assert "task-1" in result.output
        assert "task-3" in result.output

    def test_delete_task_cascades(self, invoke):
        assert invoke("task", "rm", "task-2").exit_code == 0
        assert _json(invoke("deps", "show", "task-3"))["dependsOn"] == []
