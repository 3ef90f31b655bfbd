from __future__ import annotations

import argparse
import logging
import os
import re
import signal
import subprocess
import sys
import time
from datetime import date
from pathlib import Path

from tasktracker.models import Task, UnknownStatusError, parse_status
from tasktracker.settings import DEFAULTS, load_settings, resolve_path, strict_status

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="tasktracker", description="Task Tracker")
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path("data"),
        help="Directory for database, logs, and configs (default: ./data)",
    )

    sub = parser.add_subparsers(dest="group", required=True)

    # ── tasktracker serve ──
    serve_parser = sub.add_parser("serve", help="Manage the API server")
    serve_parser.add_argument(
        "action", nargs="?", default="start",
        choices=["start", "stop", "restart", "status"],
        help="Server action (default: start)",
    )
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)

    # ── tasktracker query ──
    query_parser = sub.add_parser("query", help="Query tasks directly from DB")
    query_sub = query_parser.add_subparsers(dest="command", required=True)
    query_sub.add_parser("all", help="List all tasks")
    get_parser = query_sub.add_parser("get", help="Show one task")
    get_parser.add_argument("id", type=int)
    title_parser = query_sub.add_parser("title", help="Tasks whose title contains TEXT")
    title_parser.add_argument("text")
    date_parser = query_sub.add_parser("date", help="Tasks due on a date")
    date_parser.add_argument("day", type=date.fromisoformat, help="yyyy-mm-dd")
    status_parser = query_sub.add_parser("status", help="Tasks with a status")
    status_parser.add_argument("label", help="Pending or Done")

    args = parser.parse_args(argv)

    data_dir: Path = args.data_dir.resolve()
    data_dir.mkdir(parents=True, exist_ok=True)
    settings = load_settings(data_dir / "configs" / "settings.json")
    db_path = resolve_path(data_dir, settings["database"]["path"] or DEFAULTS["database"]["path"])

    # ── serve ──
    if args.group == "serve":
        args.host = args.host or settings["server"]["host"]
        args.port = args.port or settings["server"]["port"]
        _handle_serve(args, data_dir, settings, db_path)

    # ── query ──
    elif args.group == "query":
        _handle_query(args, settings, db_path)


def format_task(task: Task) -> str:
    due = task.due_date.isoformat() if task.due_date else "-"
    line = f"[{task.id}] {due}  {task.status.value:<7}  {task.title}"
    if task.description:
        line += f"  ({task.description})"
    return line


def _handle_query(args, settings: dict, db_path: Path) -> None:
    from tasktracker.store import TaskStore

    if not db_path.exists():
        print(f"Database not found: {db_path}")
        raise SystemExit(1)

    store = TaskStore(db_path)
    with store.session() as session:
        if args.command == "all":
            tasks = session.list_all()
        elif args.command == "get":
            task = session.get(args.id)
            if task is None:
                print(f"Task {args.id} not found")
                raise SystemExit(1)
            tasks = [task]
        elif args.command == "title":
            tasks = session.filter_by_title(args.text)
        elif args.command == "date":
            tasks = session.filter_by_date(args.day)
        elif args.command == "status":
            try:
                status = parse_status(args.label, strict=strict_status(settings))
            except UnknownStatusError as exc:
                print(exc)
                raise SystemExit(1)
            tasks = session.filter_by_status(status)
        else:
            tasks = []

    for task in tasks:
        print(format_task(task))


class ServerProcess:
    """Tracks a running API server through its pid file, falling back to
    the process listening on the configured port."""

    def __init__(self, pid_file: Path, port: int) -> None:
        self.pid_file = pid_file
        self.port = port

    def pid_from_port(self) -> int | None:
        try:
            out = subprocess.check_output(
                ["ss", "-tlnp", f"sport = :{self.port}"],
                text=True, stderr=subprocess.DEVNULL,
            )
        except (FileNotFoundError, subprocess.CalledProcessError):
            return None
        m = re.search(r"pid=(\d+)", out)
        return int(m.group(1)) if m else None

    def read_pid(self) -> int | None:
        """Pid recorded in the pid file, if that process is still alive."""
        if not self.pid_file.exists():
            return None
        try:
            pid = int(self.pid_file.read_text().strip())
            os.kill(pid, 0)
            return pid
        except (ValueError, ProcessLookupError, PermissionError):
            self.pid_file.unlink(missing_ok=True)
            return None

    def running_pid(self) -> int | None:
        return self.read_pid() or self.pid_from_port()

    def record(self) -> None:
        self.pid_file.write_text(str(os.getpid()))

    def clear(self) -> None:
        self.pid_file.unlink(missing_ok=True)

    def stop(self, grace: float = 5.0) -> int | None:
        """SIGTERM the server, then SIGKILL after the grace period.

        Returns the pid that was stopped, or None when nothing was running.
        """
        pid = self.running_pid()
        if pid is None:
            return None
        os.kill(pid, signal.SIGTERM)
        deadline = time.monotonic() + grace
        while time.monotonic() < deadline:
            time.sleep(0.5)
            try:
                os.kill(pid, 0)
            except ProcessLookupError:
                break
        else:
            os.kill(pid, signal.SIGKILL)
        self.clear()
        return pid


def _wait_until_ready(host: str, port: int, attempts: int = 15) -> bool:
    import httpx

    for _ in range(attempts):
        time.sleep(1)
        try:
            httpx.get(f"http://{host}:{port}/tasks", timeout=2)
            return True
        except httpx.HTTPError:
            continue
    return False


def _run_server(args, data_dir: Path, settings: dict, db_path: Path,
                server: ServerProcess) -> None:
    import uvicorn

    from tasktracker.api import create_app
    from tasktracker.logging_setup import setup_logging
    from tasktracker.store import TaskStore

    setup_logging(
        level=settings["logging"]["level"],
        log_file=resolve_path(data_dir, settings["logging"]["file"]),
    )
    app = create_app(TaskStore(db_path), strict_status=strict_status(settings))
    server.record()
    logger.info("Serving %s on %s:%s", db_path, args.host, args.port)
    try:
        uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    finally:
        server.clear()


def _spawn_server(args, data_dir: Path, settings: dict) -> None:
    proc = subprocess.Popen(
        [sys.executable, "-m", "tasktracker", "--data-dir", str(data_dir),
         "serve", "--host", args.host, "--port", str(args.port)],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        stdin=subprocess.DEVNULL,
        start_new_session=True,
    )
    if _wait_until_ready(args.host, args.port):
        print(f"API server started (pid {proc.pid}, port {args.port}).")
    else:
        print(f"API server launched (pid {proc.pid}) but not yet responding. "
              f"Check {resolve_path(data_dir, settings['logging']['file'])}")


def _handle_serve(args, data_dir: Path, settings: dict, db_path: Path) -> None:
    server = ServerProcess(data_dir / "api.pid", args.port)

    if args.action in ("stop", "restart"):
        pid = server.stop()
        print(f"Stopped API server (pid {pid})." if pid else "No running API server found.")
        if args.action == "stop":
            return
        time.sleep(1)

    if args.action == "status":
        pid = server.running_pid()
        print(f"API server running (pid {pid}, port {args.port})." if pid
              else "API server not running.")
        return

    pid = server.read_pid()
    if pid is not None:
        print(f"API server already running (pid {pid}).")
    elif args.action == "restart":
        _spawn_server(args, data_dir, settings)
    else:
        _run_server(args, data_dir, settings, db_path, server)
