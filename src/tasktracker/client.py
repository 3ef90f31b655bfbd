"""taskq — CLI client for the Task Tracker API."""
from __future__ import annotations

import argparse
import json
import os
import subprocess
import tempfile
from datetime import date, datetime
from pathlib import Path

import httpx
from rich.console import Console
from rich.table import Table

console = Console()


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

def _load_config(data_dir: Path) -> dict:
    path = data_dir / "configs" / "api.json"
    if path.exists():
        return json.loads(path.read_text())
    return {"host": "localhost", "port": 8001}


def _base_url(cfg: dict) -> str:
    return f"http://{cfg['host']}:{cfg['port']}"


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------

def _detail(resp: httpx.Response, default: str) -> str:
    try:
        return resp.json().get("detail", default)
    except ValueError:
        return default


def _request(method: str, url: str, *, ok: tuple[int, ...] = (200,),
             params: dict | None = None, body: dict | None = None) -> httpx.Response:
    try:
        resp = httpx.request(method, url, params=params, json=body, timeout=10)
    except httpx.ConnectError:
        console.print(f"[red]Cannot reach server at {url}[/red]")
        raise SystemExit(1)
    if resp.status_code == 404:
        console.print(f"[yellow]{_detail(resp, 'Not found')}[/yellow]")
        raise SystemExit(1)
    if resp.status_code not in ok:
        console.print(f"[red]HTTP {resp.status_code}: {_detail(resp, resp.text)}[/red]")
        raise SystemExit(1)
    return resp


def _get(url: str, params: dict | None = None) -> httpx.Response:
    return _request("GET", url, params=params)


def _post(url: str, body: dict) -> httpx.Response:
    return _request("POST", url, ok=(200, 201), body=body)


def _put(url: str, body: dict) -> httpx.Response:
    return _request("PUT", url, body=body)


def _delete(url: str) -> httpx.Response:
    return _request("DELETE", url, ok=(200, 204))


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------

def _relative_date(date_str: str | None) -> tuple[str, str]:
    """Return (label, style) for a date relative to today."""
    if not date_str:
        return ("-", "dim")
    try:
        dt = datetime.strptime(date_str, "%Y-%m-%d").date()
    except (ValueError, TypeError):
        return (date_str, "")
    delta = (dt - datetime.now().date()).days
    if delta == 0:
        return ("today", "bold green")
    elif delta > 0:
        return (f"in {delta} day{'s' if delta != 1 else ''}", "cyan")
    else:
        n = abs(delta)
        return (f"{n} day{'s' if n != 1 else ''} ago", "dim yellow")


def _show_tasks_table(tasks: list[dict], title: str | None = None) -> None:
    if not tasks:
        console.print("[yellow]No tasks found.[/yellow]")
        return
    table = Table(title=title, show_lines=True)
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Due", justify="right")
    table.add_column("Status")
    table.add_column("Title", style="bold")
    table.add_column("Description")
    for t in tasks:
        label, style = _relative_date(t.get("due_date"))
        date_cell = f"[{style}]{label}[/{style}]" if style else label
        status = t["status"]
        status_cell = f"[green]{status}[/green]" if status == "Done" else status
        table.add_row(str(t["id"]), date_cell, status_cell, t["title"],
                      t.get("description") or "")
    console.print(table)


def _show_task(t: dict) -> None:
    console.print(f"  [{t['id']}] {t.get('due_date') or '-'}  {t['status']}  {t['title']}"
                  + (f"  ({t['description']})" if t.get("description") else ""))


def _editable(task: dict) -> dict:
    return {k: task.get(k) for k in ("title", "description", "due_date", "status")}


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_list(base: str) -> None:
    resp = _get(f"{base}/tasks")
    _show_tasks_table(resp.json(), title="All tasks")


def cmd_get(base: str, task_id: int) -> None:
    resp = _get(f"{base}/tasks/{task_id}")
    _show_task(resp.json())


def cmd_search(base: str, field: str, value: str) -> None:
    resp = _get(f"{base}/tasks/by-{field}", params={field: value})
    _show_tasks_table(resp.json(), title=f"Tasks by {field}: {value}")


def cmd_add(base: str, title: str, description: str | None = None,
            due: date | None = None, status: str = "Pending") -> None:
    body = {
        "title": title,
        "description": description,
        "due_date": due.isoformat() if due else None,
        "status": status,
    }
    resp = _post(f"{base}/tasks", body)
    console.print(f"[green]Created:[/green] {resp.headers.get('location', '')}")
    _show_task(resp.json())


def cmd_done(base: str, task_id: int) -> None:
    task = _get(f"{base}/tasks/{task_id}").json()
    edit_data = _editable(task)
    edit_data["status"] = "Done"
    resp = _put(f"{base}/tasks/{task_id}", edit_data)
    console.print("[green]Marked done:[/green]")
    _show_task(resp.json())


def cmd_edit(base: str, task_id: int) -> None:
    task = _get(f"{base}/tasks/{task_id}").json()

    editor = os.environ.get("EDITOR", "vi")
    edit_data = _editable(task)

    with tempfile.NamedTemporaryFile(
        mode="w", suffix=".json", prefix="taskq_", delete=False
    ) as tmp:
        json.dump(edit_data, tmp, indent=2)
        tmp.write("\n")
        tmp_path = tmp.name

    try:
        result = subprocess.run([editor, tmp_path])
        if result.returncode != 0:
            console.print("[red]Editor exited with non-zero status, aborting.[/red]")
            raise SystemExit(1)
        edited = json.loads(Path(tmp_path).read_text())
    except json.JSONDecodeError as exc:
        console.print(f"[red]Invalid JSON: {exc}[/red]")
        raise SystemExit(1)
    finally:
        os.unlink(tmp_path)

    resp = _put(f"{base}/tasks/{task_id}", edited)
    console.print("[green]Updated:[/green]")
    _show_task(resp.json())


def cmd_delete(base: str, task_id: int) -> None:
    _delete(f"{base}/tasks/{task_id}")
    console.print(f"[green]Deleted task {task_id}.[/green]")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="taskq",
        description="Query and manage the Task Tracker via its API.",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path("data"),
        help="Directory containing configs/api.json (default: ./data)",
    )

    sub = parser.add_subparsers(dest="group", required=True)

    sub.add_parser("list", help="List all tasks")

    get_parser = sub.add_parser("get", help="Show one task")
    get_parser.add_argument("id", type=int, help="Task ID")

    # ── taskq search ──
    search_parser = sub.add_parser("search", help="Filter tasks")
    search_parser.add_argument("field", choices=["title", "date", "status"])
    search_parser.add_argument("value", help="Substring, yyyy-mm-dd date, or Pending/Done")

    # ── taskq add ──
    add_parser = sub.add_parser("add", help="Create a task")
    add_parser.add_argument("title")
    add_parser.add_argument("--description", default=None)
    add_parser.add_argument("--date", type=date.fromisoformat, default=None,
                            help="Due date as yyyy-mm-dd")
    add_parser.add_argument("--status", choices=["Pending", "Done"], default="Pending")

    done_parser = sub.add_parser("done", help="Mark a task as done")
    done_parser.add_argument("id", type=int, help="Task ID")

    edit_parser = sub.add_parser("edit", help="Edit a task in $EDITOR")
    edit_parser.add_argument("id", type=int, help="Task ID to edit")

    delete_parser = sub.add_parser("delete", help="Delete a task")
    delete_parser.add_argument("id", type=int, help="Task ID to delete")

    args = parser.parse_args(argv)

    cfg = _load_config(args.data_dir.resolve())
    base = _base_url(cfg)

    if args.group == "list":
        cmd_list(base)
    elif args.group == "get":
        cmd_get(base, args.id)
    elif args.group == "search":
        cmd_search(base, args.field, args.value)
    elif args.group == "add":
        cmd_add(base, args.title, args.description, args.date, args.status)
    elif args.group == "done":
        cmd_done(base, args.id)
    elif args.group == "edit":
        cmd_edit(base, args.id)
    elif args.group == "delete":
        cmd_delete(base, args.id)


if __name__ == "__main__":
    main()
