import logging
import time
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api import state
from api.dependencies import get_engine
from api.metrics import TASK_LIST_SIZE, record_result
from engine.commands import TaskCommandEngine

router = APIRouter()
logger = logging.getLogger(__name__)


class CommandIn(BaseModel):
    message: str = Field(..., min_length=1)
    context: Optional[str] = None


@router.post("/commands")
async def run_command(
    payload: CommandIn,
    engine: TaskCommandEngine = Depends(get_engine),
) -> dict:
    """Apply one free-text command to the in-memory task list."""
    start = time.time()
    logger.info(f"Received command: {payload.message[:50]}...")

    result = await engine.handle_message(state.tasks, payload.message, context=payload.context)
    if result.success:
        state.replace_tasks(result.tasks)
    else:
        logger.warning(f"Command not applied ({result.intent}): {result.reason}")

    state.recent_commands.appendleft(
        {
            "message": payload.message,
            "intent": result.intent,
            "success": result.success,
            "reason": result.reason,
            "at": datetime.now().isoformat(),
        }
    )

    # Prometheus counters (best-effort)
    try:
        record_result(result, time.time() - start)
        TASK_LIST_SIZE.set(len(state.tasks))
    except Exception:
        pass

    return result.model_dump(by_alias=True)


@router.get("/commands/recent")
async def recent_commands(limit: int = 20) -> dict:
    """Latest command outcomes, newest first."""
    return {
        "commands": list(state.recent_commands)[:limit],
        "total": len(state.recent_commands),
    }
