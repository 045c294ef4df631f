from collections import deque
from typing import Deque, Dict, Any, List

from engine.lock import OperationLocks
from tasktalk.models import Task

# The task list lives in process memory only; saving it is the host's concern.
tasks: List[Task] = []

# Recent command outcomes (for display purposes)
recent_commands: Deque[Dict[str, Any]] = deque(maxlen=100)

# Shared by every engine instance so HTTP handlers contend for one writer slot.
locks = OperationLocks()


def replace_tasks(new_tasks: List[Task]) -> None:
    global tasks
    tasks = list(new_tasks)


def reset() -> None:
    replace_tasks([])
    recent_commands.clear()
