# tests/test_cli.py

from __future__ import annotations

import os
from pathlib import Path

import pytest

from tasktracker.cli import ServerProcess, main
from tasktracker.models import TaskIn, TaskStatus
from tasktracker.store import TaskStore

from conftest import TODAY


@pytest.fixture()
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for var in ("TASKTRACKER_DB", "TASKTRACKER_STATUS_FILTER", "TASKTRACKER_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    store = TaskStore(tmp_path / "db.sqlite")
    with store.session() as s:
        s.create(TaskIn(title="Study X", due_date=TODAY))
        s.create(TaskIn(title="Study Y", status=TaskStatus.DONE))
        s.create(TaskIn(title="Project", description="Write tests"))
    return tmp_path


def _run(data_dir: Path, *args: str) -> None:
    main(["--data-dir", str(data_dir), "query", *args])


def test_query_all(data_dir: Path, capsys) -> None:
    _run(data_dir, "all")
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 3
    assert lines[0] == f"[1] {TODAY.isoformat()}  Pending  Study X"
    assert lines[2] == "[3] -  Pending  Project  (Write tests)"


def test_query_title(data_dir: Path, capsys) -> None:
    _run(data_dir, "title", "Study")
    out = capsys.readouterr().out
    assert "Study X" in out and "Study Y" in out
    assert "Project" not in out


def test_query_date(data_dir: Path, capsys) -> None:
    _run(data_dir, "date", TODAY.isoformat())
    assert capsys.readouterr().out.splitlines() == [f"[1] {TODAY.isoformat()}  Pending  Study X"]


def test_query_status(data_dir: Path, capsys) -> None:
    _run(data_dir, "status", "Done")
    assert capsys.readouterr().out.splitlines() == ["[2] -  Done     Study Y"]


def test_query_unknown_status_exits(data_dir: Path, capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        _run(data_dir, "status", "Pendng")
    assert exc.value.code == 1
    assert "Unknown status" in capsys.readouterr().out


def test_query_status_lenient_from_env(data_dir: Path, capsys, monkeypatch) -> None:
    monkeypatch.setenv("TASKTRACKER_STATUS_FILTER", "lenient")
    _run(data_dir, "status", "Pendng")
    assert "Study Y" in capsys.readouterr().out


def test_query_get_missing(data_dir: Path, capsys) -> None:
    with pytest.raises(SystemExit):
        _run(data_dir, "get", "999")
    assert "Task 999 not found" in capsys.readouterr().out


def test_query_without_database(tmp_path: Path, capsys, monkeypatch) -> None:
    monkeypatch.delenv("TASKTRACKER_DB", raising=False)
    with pytest.raises(SystemExit):
        main(["--data-dir", str(tmp_path / "empty"), "query", "all"])
    assert "Database not found" in capsys.readouterr().out


def test_empty_database_path_falls_back_to_default(data_dir: Path, capsys) -> None:
    configs = data_dir / "configs"
    configs.mkdir()
    (configs / "settings.json").write_text('{"database": {"path": ""}}')
    _run(data_dir, "all")
    assert len(capsys.readouterr().out.splitlines()) == 3


def test_server_process_pid_file(tmp_path: Path, monkeypatch) -> None:
    server = ServerProcess(tmp_path / "api.pid", 8001)
    monkeypatch.setattr(server, "pid_from_port", lambda: None)
    assert server.running_pid() is None
    assert server.stop() is None

    server.record()
    assert server.read_pid() == os.getpid()
    server.clear()
    assert not server.pid_file.exists()


def test_server_process_drops_stale_pid_file(tmp_path: Path) -> None:
    server = ServerProcess(tmp_path / "api.pid", 8001)
    server.pid_file.write_text("not-a-pid")
    assert server.read_pid() is None
    assert not server.pid_file.exists()


def test_serve_status_when_not_running(data_dir: Path, capsys, monkeypatch) -> None:
    monkeypatch.setattr(ServerProcess, "pid_from_port", lambda self: None)
    main(["--data-dir", str(data_dir), "serve", "status"])
    assert capsys.readouterr().out.strip() == "API server not running."
