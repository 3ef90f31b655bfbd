from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import date

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response

from tasktracker.models import Task, TaskIn, UnknownStatusError, parse_status
from tasktracker.store import TaskSession, TaskStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


def create_app(store: TaskStore, *, strict_status: bool = True) -> FastAPI:
    app = FastAPI(title="Task Tracker")
    app.state.store = store
    app.state.strict_status = strict_status
    app.include_router(router)
    return app


def get_session(request: Request) -> Iterator[TaskSession]:
    """One connection per request, closed once the response is produced."""
    with request.app.state.store.session() as session:
        yield session


def _not_found(task_id: int) -> HTTPException:
    logger.info("Task %s not found", task_id)
    return HTTPException(status_code=404, detail=f"Task {task_id} not found")


# Search routes are registered before /{task_id} so their paths are not
# captured as ids.

@router.get("", response_model=list[Task])
def list_tasks(session: TaskSession = Depends(get_session)):
    return session.list_all()


@router.get("/by-title", response_model=list[Task])
def tasks_by_title(title: str, session: TaskSession = Depends(get_session)):
    return session.filter_by_title(title)


@router.get("/by-date", response_model=list[Task])
def tasks_by_date(
    day: date = Query(alias="date", description="Due date as yyyy-mm-dd"),
    session: TaskSession = Depends(get_session),
):
    return session.filter_by_date(day)


@router.get("/by-status", response_model=list[Task])
def tasks_by_status(
    request: Request,
    status: str = Query(description="Pending or Done"),
    session: TaskSession = Depends(get_session),
):
    try:
        wanted = parse_status(status, strict=request.app.state.strict_status)
    except UnknownStatusError as exc:
        logger.warning("Rejected status filter %r", status)
        raise HTTPException(status_code=400, detail=str(exc))
    return session.filter_by_status(wanted)


@router.get("/{task_id}", response_model=Task)
def get_task(task_id: int, session: TaskSession = Depends(get_session)):
    task = session.get(task_id)
    if task is None:
        raise _not_found(task_id)
    return task


@router.post("", response_model=Task, status_code=201)
def create_task(
    task: TaskIn,
    request: Request,
    response: Response,
    session: TaskSession = Depends(get_session),
):
    created = session.create(task)
    response.headers["Location"] = str(request.url_for("get_task", task_id=created.id))
    return created


@router.put("/{task_id}", response_model=Task)
def update_task(task_id: int, task: TaskIn, session: TaskSession = Depends(get_session)):
    updated = session.update(task_id, task)
    if updated is None:
        raise _not_found(task_id)
    return updated


@router.delete("/{task_id}", status_code=204, response_class=Response)
def delete_task(task_id: int, session: TaskSession = Depends(get_session)):
    if not session.delete(task_id):
        raise _not_found(task_id)
    return Response(status_code=204)
