import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from api import state
from api.dependencies import get_engine
from api.metrics import TASK_LIST_SIZE, record_result
from engine import queries
from engine.commands import TaskCommandEngine
from tasktalk.models import CommandResult, Priority, RecurrenceRule, TaskPayload

router = APIRouter()
logger = logging.getLogger(__name__)

STATUS_BY_REASON = {
    "invalid": 400,
    "invalid-date": 400,
    "not-found": 404,
    "duplicate": 409,
    "locked": 409,
}


class CreateTaskIn(BaseModel):
    text: str
    priority: Optional[Priority] = None
    due_date: Optional[str] = Field(None, alias="dueDate")
    category: Optional[str] = None
    notes: Optional[str] = None
    recurring: Optional[RecurrenceRule] = None

    model_config = {"populate_by_name": True}


class SubtaskIn(BaseModel):
    text: str


def _apply(result: CommandResult, start: float) -> dict:
    """Swap in the new list on success, map failures to HTTP errors."""
    try:
        record_result(result, time.time() - start)
    except Exception:
        pass

    if not result.success:
        status = STATUS_BY_REASON.get(result.reason or "", 400)
        raise HTTPException(status_code=status, detail={"reason": result.reason, "message": result.message})

    state.replace_tasks(result.tasks)
    try:
        TASK_LIST_SIZE.set(len(state.tasks))
    except Exception:
        pass
    return result.model_dump(by_alias=True)


@router.get("/tasks")
async def get_tasks(include_completed: bool = True) -> dict:
    """Current task list."""
    tasks_list = state.tasks if include_completed else queries.pending(state.tasks)
    return {
        "tasks": [t.model_dump(by_alias=True) for t in tasks_list],
        "total": len(state.tasks),
    }


@router.get("/tasks/stats")
async def get_stats(engine: TaskCommandEngine = Depends(get_engine)) -> dict:
    result = engine.summarize(state.tasks)
    return {"statistics": result.statistics.model_dump(by_alias=True), "message": result.message}


@router.post("/tasks")
async def create_task(payload: CreateTaskIn, engine: TaskCommandEngine = Depends(get_engine)) -> dict:
    start = time.time()
    result = engine.validate_and_add(state.tasks, TaskPayload(**payload.model_dump()))
    return _apply(result, start)


@router.post("/tasks/recurring/process")
async def process_recurring(engine: TaskCommandEngine = Depends(get_engine)) -> dict:
    start = time.time()
    return _apply(engine.process_recurring(state.tasks), start)


@router.delete("/tasks/completed")
async def clear_completed(engine: TaskCommandEngine = Depends(get_engine)) -> dict:
    start = time.time()
    return _apply(engine.clear_completed(state.tasks), start)


@router.delete("/tasks")
async def clear_all(engine: TaskCommandEngine = Depends(get_engine)) -> dict:
    start = time.time()
    return _apply(engine.clear_all(state.tasks), start)


@router.post("/tasks/{task_id}/toggle")
async def toggle_task(task_id: str, engine: TaskCommandEngine = Depends(get_engine)) -> dict:
    start = time.time()
    return _apply(engine.toggle_task(state.tasks, task_id), start)


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str, engine: TaskCommandEngine = Depends(get_engine)) -> dict:
    start = time.time()
    return _apply(engine.delete_task_by_id(state.tasks, task_id), start)


@router.post("/tasks/{task_id}/subtasks")
async def add_subtask(task_id: str, payload: SubtaskIn, engine: TaskCommandEngine = Depends(get_engine)) -> dict:
    start = time.time()
    return _apply(engine.add_subtask(state.tasks, task_id, payload.text), start)


@router.post("/tasks/{task_id}/subtasks/{index}/toggle")
async def toggle_subtask(task_id: str, index: int, engine: TaskCommandEngine = Depends(get_engine)) -> dict:
    start = time.time()
    return _apply(engine.toggle_subtask(state.tasks, task_id, index), start)


@router.delete("/tasks/{task_id}/subtasks/{index}")
async def delete_subtask(task_id: str, index: int, engine: TaskCommandEngine = Depends(get_engine)) -> dict:
    start = time.time()
    return _apply(engine.delete_subtask(state.tasks, task_id, index), start)
