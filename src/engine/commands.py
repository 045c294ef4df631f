from __future__ import annotations

import inspect
import logging
import re
from datetime import date
from typing import Any, Callable, Optional, Union

from classification.task_classifier import KNOWN_CATEGORIES, TaskClassifier
from dates.normalizer import normalize_due_date
from engine import queries
from engine.lock import MutationLock
from extraction.command_parser import (
    extract_task_reference,
    parse_due_date_change,
    parse_priority_change,
)
from extraction.task_extractor import TaskExtractor
from matching.duplicates import find_duplicate, has_pending_instance
from matching.fuzzy import MatchPolicy, ReferenceResolution, resolve_reference
from scheduling.recurrence import build_next_instance, roll_over
from tasktalk.models import (
    DEFAULT_CATEGORY,
    DEFAULT_PRIORITY,
    CommandResult,
    Subtask,
    Task,
    TaskPayload,
    TaskRef,
    utc_now_iso,
)
from tasktalk.text import sanitize_plain_text

logger = logging.getLogger(__name__)

PayloadLike = Union[TaskPayload, dict]

LOCKED_MESSAGE = "Another change is still being applied. Try again in a moment."
HELP_MESSAGE = (
    "I can add tasks (\"add buy milk tomorrow with high priority\"), complete or delete them "
    "(\"mark buy milk as done\"), move due dates (\"move report to next friday\"), change "
    "priorities (\"set priority of report to low\") and answer questions like "
    "\"what's due today?\" or \"show my summary\"."
)
GREETING_MESSAGE = "Hi! Tell me what you need to get done, or ask what's due today."

# Share of the lock timeout a remote extraction may use before the local parse wins.
EXTRACTION_LOCK_SHARE = 0.75

_I = re.IGNORECASE

ADD_LEAD = re.compile(
    r"^(?:(?:please|hey|ok|okay|so)[\s,]+)*"
    r"(?:add|create|new\s+task|remind\s+me|don't\s+forget|i\s+(?:need|want|have)\s+to|i\s+must"
    r"|(?:can|could|would)\s+you\s+(?:please\s+)?(?:add|create|remind)"
    r"|schedule|plan|book|arrange|set\s+up|todo|to-do)\b",
    _I,
)
SEARCH = re.compile(
    r"^(?:search|find|look\s+(?:for|up))\s+(?:(?:my\s+)?tasks?\s+)?"
    r"(?:for\s+|about\s+|with\s+|containing\s+|mentioning\s+)?(?P<query>.+?)[\s?.!]*$",
    _I,
)
QUERY_LEAD = re.compile(
    r"^(?:what|what's|whats|which|show|list|display|give|tell|any|anything|do\s+i\s+have|how\s+many|get|view)\b",
    _I,
)
COMPLETE = re.compile(
    r"^(?:please\s+)?(?:mark|complete|finish|check\s+off|tick\s+off|done(?:\s+with)?"
    r"|i(?:\s+have|'ve|\s+just)?\s+(?:finished|completed|done|did))\b"
    r"|\b(?:as\s+)?(?:done|complete|completed|finished)\s*[.!]*$",
    _I,
)
DELETE = re.compile(r"^(?:please\s+)?(?:delete|remove|cancel|drop|get\s+rid\s+of)\b", _I)
GREETING = re.compile(r"^(?:hi|hello|hey|howdy|good\s+(?:morning|afternoon|evening))\b", _I)
STATISTICS = re.compile(
    r"\b(?:summary|stats|statistics|progress|overview|how\s+am\s+i\s+doing)\b", _I
)
CATEGORY_QUERY = re.compile(rf"\b(?P<category>{'|'.join(KNOWN_CATEGORIES)})\s+(?:tasks|items|to-?dos)\b", _I)
PRIORITY_QUERY = re.compile(r"\b(?P<level>high|medium|low)[\s-]+priority\b|\b(?P<urgent>urgent)\b", _I)


def _replace(tasks: list[Task], updated: Task) -> list[Task]:
    return [updated if t.id == updated.id else t for t in tasks]


def _find(tasks: list[Task], task_id: str) -> Optional[Task]:
    return next((t for t in tasks if t.id == task_id), None)


class TaskCommandEngine:
    """Applies task commands to a caller-owned task list.

    Every operation takes the current list and returns a CommandResult whose
    `tasks` field is the new list; the input list is never modified. Anything
    that changes the list runs inside the MutationLock, so a second change
    while one is in flight comes back with reason "locked" instead of waiting.
    """

    def __init__(
        self,
        lock: Optional[MutationLock] = None,
        extractor: Optional[TaskExtractor] = None,
        classifier: Optional[TaskClassifier] = None,
        policy: MatchPolicy = MatchPolicy(),
        llm_tier: str = "large",
        today_fn: Callable[[], date] = date.today,
        now_fn: Callable[[], str] = utc_now_iso,
    ):
        self.lock = lock if lock is not None else MutationLock()
        self.extractor = extractor if extractor is not None else TaskExtractor()
        self.classifier = classifier if classifier is not None else TaskClassifier()
        self.policy = policy
        self.llm_tier = llm_tier
        self._today_fn = today_fn
        self._now_fn = now_fn

    def today(self) -> date:
        return self._today_fn()

    def extraction_timeout_s(self) -> float:
        return min(self.extractor.timeout_s, self.lock.timeout_s * EXTRACTION_LOCK_SHARE)

    def _locked(self, tasks: list[Task], intent: str) -> Callable[[], CommandResult]:
        def result() -> CommandResult:
            return CommandResult(
                success=False, reason="locked", intent=intent, message=LOCKED_MESSAGE, tasks=list(tasks)
            )
        return result

    def _mutate(self, tasks: list[Task], intent: str, operation: Callable[[], CommandResult]) -> CommandResult:
        return self.lock.run(operation, on_locked=self._locked(tasks, intent))

    # --- creation ---------------------------------------------------------

    def create_task(self, payload: PayloadLike, created_by: Optional[str] = None) -> Task:
        """Build a Task from a payload, filling defaults. Does not touch any list."""
        if isinstance(payload, dict):
            payload = TaskPayload.model_validate(payload)
        now = self._now_fn()
        return Task(
            text=payload.text or "",
            priority=payload.priority or DEFAULT_PRIORITY,
            due_date=normalize_due_date(payload.due_date, self.today()),
            category=payload.category or DEFAULT_CATEGORY,
            notes=payload.notes or "",
            recurring=payload.recurring,
            created_by=created_by or payload.created_by or "user",
            created_at=now,
            updated_at=now,
        )

    def _validate_and_add(self, tasks: list[Task], payload: TaskPayload) -> CommandResult:
        text = sanitize_plain_text(payload.text)
        if not text:
            return CommandResult(
                success=False, reason="invalid", intent="add", message="A task needs some text.", tasks=tasks
            )

        raw = payload.due_date
        provided = raw is not None and not (isinstance(raw, str) and not raw.strip())
        due_date = normalize_due_date(raw, self.today()) if provided else None
        if provided and due_date is None:
            return CommandResult(
                success=False,
                reason="invalid-date",
                intent="add",
                task_name=text,
                message=f"I couldn't understand the due date {raw!r}.",
                tasks=tasks,
            )

        payload = payload.model_copy(update={"text": text, "due_date": due_date})
        existing = find_duplicate(payload, tasks)
        if existing is not None:
            return CommandResult(
                success=False,
                reason="duplicate",
                intent="add",
                task=existing,
                task_name=existing.text,
                message=queries.format_added([]),
                tasks=tasks,
            )

        task = self.create_task(payload)
        logger.info(f"Added task '{task.text}' ({task.priority}, due {task.due_date})")
        return CommandResult(
            success=True,
            intent="add",
            task=task,
            task_name=task.text,
            created=[task],
            message=queries.format_added([task]),
            tasks=[*tasks, task],
        )

    def validate_and_add(self, tasks: list[Task], payload: PayloadLike) -> CommandResult:
        if isinstance(payload, dict):
            payload = TaskPayload.model_validate(payload)
        return self._mutate(tasks, "add", lambda: self._validate_and_add(list(tasks), payload))

    async def add_tasks_from_message(
        self, tasks: list[Task], message: str, context: Optional[str] = None
    ) -> CommandResult:
        """Parse one or more tasks out of `message` and add those that are new.

        The lock is held across the (possibly remote) extraction, so nothing
        else can change the list between parsing and insertion.
        """

        async def apply() -> CommandResult:
            today = self.today()
            payloads = await self.extractor.extract_async(
                message,
                llm_tier=self.llm_tier,
                context=context,
                today=today,
                timeout_s=self.extraction_timeout_s(),
            )
            if not payloads:
                return CommandResult(
                    success=False, reason="invalid", intent="add", message=HELP_MESSAGE, tasks=list(tasks)
                )

            current = list(tasks)
            created: list[Task] = []
            last_failure: Optional[CommandResult] = None
            for payload in payloads:
                result = self._validate_and_add(current, self.classifier.classify(payload, today))
                if result.success:
                    created.extend(result.created)
                    current = result.tasks
                else:
                    last_failure = result

            if not created:
                return last_failure.model_copy(update={"tasks": list(tasks)})
            return CommandResult(
                success=True,
                intent="add",
                task=created[0] if len(created) == 1 else None,
                task_name=created[0].text if len(created) == 1 else None,
                created=created,
                message=queries.format_added(created),
                tasks=current,
            )

        return await self.lock.run_async(apply, on_locked=self._locked(tasks, "add"))

    # --- resolution helpers ---------------------------------------------

    def _unresolved(self, resolution: ReferenceResolution, tasks: list[Task], intent: str) -> Optional[CommandResult]:
        if resolution.status == "exact":
            return None
        if resolution.status == "not_found":
            return CommandResult(
                success=False,
                reason="not-found",
                intent=intent,
                task_name=resolution.reference,
                message=f'There is no task with id "{resolution.reference}".',
                tasks=tasks,
            )
        if resolution.status == "ambiguous":
            matches = [TaskRef.of(c.task) for c in resolution.candidates]
            lines = [f'More than one task matches "{resolution.reference}". Which one did you mean?']
            lines.extend(f"{i}. {queries.format_task_line(c.task)}" for i, c in enumerate(resolution.candidates, 1))
            return CommandResult(
                success=False,
                reason="ambiguous",
                intent=intent,
                task_name=resolution.reference,
                multiple_matches=True,
                matches=matches,
                message="\n".join(lines),
                tasks=tasks,
            )
        return CommandResult(
            success=False,
            reason="no-match",
            intent=intent,
            task_name=resolution.reference,
            message=f'I couldn\'t find a task matching "{resolution.reference}".',
            tasks=tasks,
        )

    def _resolve(self, reference: str, candidates: list[Task]) -> ReferenceResolution:
        return resolve_reference(reference, candidates, self.policy)

    # --- completion -----------------------------------------------------

    def _complete(self, tasks: list[Task], task: Task) -> CommandResult:
        now = self._now_fn()
        done = task.model_copy(update={"completed": True, "completed_at": now, "updated_at": now})
        updated = _replace(tasks, done)
        message = f'Marked "{done.text}" as complete.'

        created = []
        if done.recurring is not None:
            instance = build_next_instance(done, now)
            if instance is not None and not has_pending_instance(instance.text, instance.due_date, updated):
                updated.append(instance)
                created.append(instance)
                message += f" The next one is due {queries.format_display_date(instance.due_date)}."

        logger.info(f"Completed task '{done.text}'")
        return CommandResult(
            success=True,
            intent="complete",
            task=done,
            task_name=done.text,
            created=created,
            message=message,
            tasks=updated,
        )

    def complete_task(self, tasks: list[Task], reference: str) -> CommandResult:
        def apply() -> CommandResult:
            current = list(tasks)
            resolution = self._resolve(extract_task_reference(reference), queries.pending(current))
            failed = self._unresolved(resolution, current, "complete")
            if failed is not None:
                return failed
            return self._complete(current, resolution.task)

        return self._mutate(tasks, "complete", apply)

    def toggle_task(self, tasks: list[Task], task_id: str) -> CommandResult:
        def apply() -> CommandResult:
            current = list(tasks)
            task = _find(current, task_id)
            if task is None:
                return self._unresolved(ReferenceResolution("not_found", task_id), current, "toggle")
            if not task.completed:
                return self._complete(current, task)
            now = self._now_fn()
            reopened = task.model_copy(update={"completed": False, "completed_at": None, "updated_at": now})
            return CommandResult(
                success=True,
                intent="toggle",
                task=reopened,
                task_name=reopened.text,
                message=f'Reopened "{reopened.text}".',
                tasks=_replace(current, reopened),
            )

        return self._mutate(tasks, "toggle", apply)

    def process_recurring(self, tasks: list[Task]) -> CommandResult:
        def apply() -> CommandResult:
            current = list(tasks)
            created = roll_over(current, self._now_fn())
            return CommandResult(
                success=True,
                intent="recurring",
                created=created,
                message=f"Created {len(created)} upcoming recurring task(s).",
                tasks=current + created,
            )

        return self._mutate(tasks, "recurring", apply)

    # --- deletion -------------------------------------------------------

    def _delete(self, tasks: list[Task], task: Task) -> CommandResult:
        logger.info(f"Deleted task '{task.text}'")
        return CommandResult(
            success=True,
            intent="delete",
            task=task,
            task_name=task.text,
            message=f'Deleted "{task.text}".',
            tasks=[t for t in tasks if t.id != task.id],
        )

    def delete_task(self, tasks: list[Task], reference: str) -> CommandResult:
        def apply() -> CommandResult:
            current = list(tasks)
            resolution = self._resolve(extract_task_reference(reference), current)
            failed = self._unresolved(resolution, current, "delete")
            if failed is not None:
                return failed
            return self._delete(current, resolution.task)

        return self._mutate(tasks, "delete", apply)

    def delete_task_by_id(self, tasks: list[Task], task_id: str) -> CommandResult:
        def apply() -> CommandResult:
            current = list(tasks)
            task = _find(current, task_id)
            if task is None:
                return self._unresolved(ReferenceResolution("not_found", task_id), current, "delete")
            return self._delete(current, task)

        return self._mutate(tasks, "delete", apply)

    def clear_completed(self, tasks: list[Task]) -> CommandResult:
        def apply() -> CommandResult:
            remaining = queries.pending(tasks)
            removed = len(tasks) - len(remaining)
            return CommandResult(
                success=True, intent="clear", message=f"Cleared {removed} completed task(s).", tasks=remaining
            )

        return self._mutate(tasks, "clear", apply)

    def clear_all(self, tasks: list[Task]) -> CommandResult:
        def apply() -> CommandResult:
            return CommandResult(
                success=True, intent="clear", message=f"Cleared all {len(tasks)} task(s).", tasks=[]
            )

        return self._mutate(tasks, "clear", apply)

    # --- updates --------------------------------------------------------

    def update_due_date(self, tasks: list[Task], message: str) -> CommandResult:
        change = parse_due_date_change(message, self.today())
        if change is None:
            return CommandResult(
                success=False,
                reason="invalid",
                intent="update-due-date",
                message='Try something like "move the report to next friday".',
                tasks=list(tasks),
            )

        def apply() -> CommandResult:
            current = list(tasks)
            resolution = self._resolve(change.task_name, queries.pending(current))
            failed = self._unresolved(resolution, current, "update-due-date")
            if failed is not None:
                return failed
            updated = resolution.task.model_copy(
                update={"due_date": change.when.value, "updated_at": self._now_fn()}
            )
            logger.info(f"Moved '{updated.text}' to {updated.due_date}")
            return CommandResult(
                success=True,
                intent="update-due-date",
                task=updated,
                task_name=updated.text,
                message=f'"{updated.text}" is now due {queries.format_display_date(updated.due_date)}.',
                tasks=_replace(current, updated),
            )

        return self._mutate(tasks, "update-due-date", apply)

    def update_priority(self, tasks: list[Task], message: str) -> CommandResult:
        change = parse_priority_change(message)
        if change is None:
            return CommandResult(
                success=False,
                reason="invalid",
                intent="update-priority",
                message='Try something like "set the priority of the report to high".',
                tasks=list(tasks),
            )

        def apply() -> CommandResult:
            current = list(tasks)
            resolution = self._resolve(change.task_name, queries.pending(current))
            failed = self._unresolved(resolution, current, "update-priority")
            if failed is not None:
                return failed
            updated = resolution.task.model_copy(
                update={"priority": change.priority, "updated_at": self._now_fn()}
            )
            logger.info(f"Set priority of '{updated.text}' to {updated.priority}")
            return CommandResult(
                success=True,
                intent="update-priority",
                task=updated,
                task_name=updated.text,
                message=f'"{updated.text}" now has {updated.priority} priority.',
                tasks=_replace(current, updated),
            )

        return self._mutate(tasks, "update-priority", apply)

    # --- subtasks -------------------------------------------------------

    def _edit_subtasks(
        self,
        tasks: list[Task],
        task_id: str,
        edit: Callable[[list[Subtask]], Optional[list[Subtask]]],
        message: str,
    ) -> CommandResult:
        def apply() -> CommandResult:
            current = list(tasks)
            task = _find(current, task_id)
            if task is None:
                return self._unresolved(ReferenceResolution("not_found", task_id), current, "subtask")
            subtasks = edit(list(task.subtasks))
            if subtasks is None:
                return CommandResult(
                    success=False,
                    reason="not-found",
                    intent="subtask",
                    task=task,
                    message="That subtask does not exist.",
                    tasks=current,
                )
            updated = task.model_copy(update={"subtasks": subtasks, "updated_at": self._now_fn()})
            return CommandResult(
                success=True, intent="subtask", task=updated, message=message, tasks=_replace(current, updated)
            )

        return self._mutate(tasks, "subtask", apply)

    def add_subtask(self, tasks: list[Task], task_id: str, text: str) -> CommandResult:
        text = sanitize_plain_text(text)
        if not text:
            return CommandResult(
                success=False, reason="invalid", intent="subtask", message="A subtask needs some text.", tasks=list(tasks)
            )
        return self._edit_subtasks(tasks, task_id, lambda subs: [*subs, Subtask(text=text)], f'Added subtask "{text}".')

    def toggle_subtask(self, tasks: list[Task], task_id: str, index: int) -> CommandResult:
        def edit(subs: list[Subtask]) -> Optional[list[Subtask]]:
            if not 0 <= index < len(subs):
                return None
            sub = subs[index]
            done = not sub.completed
            subs[index] = sub.model_copy(
                update={"completed": done, "completed_at": self._now_fn() if done else None}
            )
            return subs

        return self._edit_subtasks(tasks, task_id, edit, "Subtask updated.")

    def delete_subtask(self, tasks: list[Task], task_id: str, index: int) -> CommandResult:
        def edit(subs: list[Subtask]) -> Optional[list[Subtask]]:
            if not 0 <= index < len(subs):
                return None
            del subs[index]
            return subs

        return self._edit_subtasks(tasks, task_id, edit, "Subtask deleted.")

    # --- read-only ------------------------------------------------------

    def _view(self, tasks: list[Task], title: str, found: list[Task], empty: str) -> CommandResult:
        return CommandResult(
            success=True,
            intent="query",
            items=[TaskRef.of(t) for t in found],
            message=queries.format_task_list(title, found, empty),
            tasks=list(tasks),
        )

    def summarize(self, tasks: list[Task]) -> CommandResult:
        stats = queries.statistics(tasks, self.today())
        return CommandResult(
            success=True,
            intent="query",
            statistics=stats,
            message=queries.format_statistics(stats),
            tasks=list(tasks),
        )

    def search(self, tasks: list[Task], keyword: str) -> CommandResult:
        found = queries.search(tasks, keyword)
        result = self._view(tasks, f'Tasks matching "{keyword}"', found, f'No tasks mention "{keyword}".')
        return result.model_copy(update={"intent": "search"})

    def answer_query(self, tasks: list[Task], message: str) -> Optional[CommandResult]:
        """Answer a read-only question about the list, or None if it is not one."""
        today = self.today()
        lowered = message.lower()

        if STATISTICS.search(message):
            return self.summarize(tasks)
        if not QUERY_LEAD.search(message):
            return None

        if re.search(r"\b(?:without|no|missing)\s+(?:a\s+)?(?:due\s+)?dates?\b", lowered):
            return self._view(tasks, "Tasks without a due date", queries.without_due_date(tasks), "Every open task has a due date.")
        if "weekend" in lowered:
            return self._view(tasks, "This weekend", queries.this_weekend(tasks, today), "Nothing is due this weekend.")
        if re.search(r"\bnext\s+week\b", lowered):
            return self._view(tasks, "Next week", queries.next_week(tasks, today), "Nothing is due next week.")
        if re.search(r"\bthis\s+week\b", lowered):
            return self._view(tasks, "This week", queries.this_week(tasks, today), "Nothing else is due this week.")
        if re.search(r"\b(?:overdue|late|missed)\b", lowered):
            return self._view(tasks, "Overdue", queries.overdue(tasks, today), "Nothing is overdue.")
        if re.search(r"\b(?:completed|done|finished)\b", lowered):
            return self._view(tasks, "Completed", queries.completed(tasks), "You haven't completed anything yet.")
        priority = PRIORITY_QUERY.search(message)
        if priority:
            level = (priority.group("level") or "high").lower()
            return self._view(
                tasks, f"{level.capitalize()} priority", queries.with_priority(tasks, level), f"No open {level} priority tasks."
            )
        if re.search(r"\b(?:tomorrow|tmr|tmrw)\b", lowered):
            return self._view(tasks, "Due tomorrow", queries.due_tomorrow(tasks, today), "Nothing is due tomorrow.")
        if re.search(r"\b(?:today|tonight)\b", lowered):
            return self._view(tasks, "Due today", queries.due_today(tasks, today), "Nothing is due today.")
        category = CATEGORY_QUERY.search(message)
        if category:
            name = category.group("category").lower()
            return self._view(tasks, f"{name.capitalize()} tasks", queries.in_category(tasks, name), f"No open {name} tasks.")
        if re.search(r"\b(?:tasks|list|to-?dos|everything)\b", lowered):
            return self._view(tasks, "Open tasks", queries.pending(tasks), "Your list is empty.")
        return None

    # --- chat dispatch --------------------------------------------------

    async def handle_message(
        self, tasks: list[Task], message: str, context: Optional[str] = None
    ) -> CommandResult:
        """Route a chat message to the command it asks for.

        Intents are tried in a fixed order; the first that recognizes the
        message handles it, and unrecognized messages get the help text.
        """
        message = sanitize_plain_text(message)
        today = self.today()
        search = SEARCH.match(message)

        intents: tuple[tuple[str, Callable[[], bool], Callable[[], Any]], ...] = (
            ("update-due-date", lambda: parse_due_date_change(message, today) is not None,
             lambda: self.update_due_date(tasks, message)),
            ("update-priority", lambda: parse_priority_change(message) is not None,
             lambda: self.update_priority(tasks, message)),
            ("search", lambda: search is not None,
             lambda: self.search(tasks, search.group("query"))),
            ("add", lambda: ADD_LEAD.search(message) is not None,
             lambda: self.add_tasks_from_message(tasks, message, context)),
            ("query", lambda: True, lambda: self.answer_query(tasks, message)),
            ("complete", lambda: COMPLETE.search(message) is not None,
             lambda: self.complete_task(tasks, message)),
            ("delete", lambda: DELETE.search(message) is not None,
             lambda: self.delete_task(tasks, message)),
            ("greeting", lambda: GREETING.search(message) is not None,
             lambda: CommandResult(success=True, intent="greeting", message=GREETING_MESSAGE, tasks=list(tasks))),
        )

        for name, recognizes, handle in intents:
            if not recognizes():
                continue
            result = handle()
            if inspect.isawaitable(result):
                result = await result
            if result is None:
                continue
            logger.debug(f"Message handled as '{name}'")
            return result

        return CommandResult(success=False, reason="no-match", intent="help", message=HELP_MESSAGE, tasks=list(tasks))
