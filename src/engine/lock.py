from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LOCK_TIMEOUT_S = 4.0
TASK_MUTATION = "task-mutation"


@dataclass(frozen=True)
class _Hold:
    token: str
    expires_at: float


class OperationLocks:
    """Named advisory locks, each either free or held until an expiry time.

    Expiry is checked lazily on every access against `clock`, so a holder that
    never releases only blocks others until its timeout passes. Nothing here
    blocks or waits: a busy lock simply refuses.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._held: dict[str, _Hold] = {}

    def _expire(self, name: str) -> None:
        hold = self._held.get(name)
        if hold is not None and self._clock() >= hold.expires_at:
            logger.warning(f"Lock '{name}' expired while held, force-releasing")
            del self._held[name]

    def is_held(self, name: str) -> bool:
        self._expire(name)
        return name in self._held

    def acquire(self, name: str, timeout_s: float = DEFAULT_LOCK_TIMEOUT_S) -> Optional[str]:
        """Take `name` and return a release token, or None when it is already held."""
        self._expire(name)
        if name in self._held:
            return None
        token = uuid.uuid4().hex
        self._held[name] = _Hold(token=token, expires_at=self._clock() + timeout_s)
        return token

    def release(self, name: str, token: Optional[str] = None) -> bool:
        """Free `name`. With a token, only the hold that issued it is released."""
        hold = self._held.get(name)
        if hold is None:
            return False
        if token is not None and hold.token != token:
            logger.debug(f"Ignoring stale release of lock '{name}'")
            return False
        del self._held[name]
        return True

    def owns(self, name: str, token: str) -> bool:
        """Whether the hold that issued `token` is still the live one."""
        self._expire(name)
        hold = self._held.get(name)
        return hold is not None and hold.token == token

    def force_expire(self, name: str) -> None:
        self._held.pop(name, None)


class MutationLock:
    """Single-writer guard around every operation that changes the task list."""

    def __init__(
        self,
        locks: Optional[OperationLocks] = None,
        name: str = TASK_MUTATION,
        timeout_s: float = DEFAULT_LOCK_TIMEOUT_S,
    ):
        self.locks = locks if locks is not None else OperationLocks()
        self.name = name
        self.timeout_s = timeout_s

    @property
    def held(self) -> bool:
        return self.locks.is_held(self.name)

    def run(
        self,
        operation: Callable[[], T],
        on_locked: Optional[Callable[[], T]] = None,
    ) -> Optional[T]:
        token = self.locks.acquire(self.name, self.timeout_s)
        if token is None:
            logger.warning(f"Rejected mutation: lock '{self.name}' is held")
            return on_locked() if on_locked is not None else None
        try:
            return operation()
        finally:
            self.locks.release(self.name, token)

    async def run_async(
        self,
        operation: Callable[[], Awaitable[T]],
        on_locked: Optional[Callable[[], T]] = None,
    ) -> Optional[T]:
        token = self.locks.acquire(self.name, self.timeout_s)
        if token is None:
            logger.warning(f"Rejected mutation: lock '{self.name}' is held")
            return on_locked() if on_locked is not None else None
        try:
            result = await operation()
            if not self.locks.owns(self.name, token):
                # the hold expired mid-operation; another writer may have run since
                logger.warning(f"Lock '{self.name}' expired during the operation, discarding its result")
                return on_locked() if on_locked is not None else None
            return result
        finally:
            self.locks.release(self.name, token)
