import asyncio

import pytest

from engine.lock import MutationLock


def test_acquire_and_release(locks):
    token = locks.acquire("task-mutation")
    assert token is not None
    assert locks.acquire("task-mutation") is None
    assert locks.release("task-mutation", token)
    assert locks.acquire("task-mutation") is not None


def test_names_are_independent(locks):
    assert locks.acquire("a") is not None
    assert locks.acquire("b") is not None


def test_hold_expires_lazily(locks, clock):
    token = locks.acquire("task-mutation", timeout_s=4.0)
    clock.advance(3.9)
    assert locks.is_held("task-mutation")
    clock.advance(0.2)
    assert not locks.is_held("task-mutation")
    assert locks.acquire("task-mutation") is not None
    # the expired holder must not free the new hold
    assert not locks.release("task-mutation", token)
    assert locks.is_held("task-mutation")


def test_force_expire(locks):
    locks.acquire("task-mutation")
    locks.force_expire("task-mutation")
    assert not locks.is_held("task-mutation")


def test_run_rejects_without_running(locks):
    lock = MutationLock(locks)
    locks.acquire(lock.name)
    ran = []
    assert lock.run(lambda: ran.append(1)) is None
    assert lock.run(lambda: ran.append(1), on_locked=lambda: "busy") == "busy"
    assert ran == []


def test_run_releases_after_exception(locks):
    lock = MutationLock(locks)

    def boom():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        lock.run(boom)
    assert not lock.held


def test_run_async_holds_across_await(locks):
    lock = MutationLock(locks)
    seen = {}

    async def operation():
        await asyncio.sleep(0)
        seen["inner"] = lock.run(lambda: "nested", on_locked=lambda: "locked")
        return "done"

    assert asyncio.run(lock.run_async(operation)) == "done"
    assert seen["inner"] == "locked"
    assert not lock.held


def test_owns_follows_the_live_hold(locks, clock):
    token = locks.acquire("task-mutation", timeout_s=4.0)
    assert locks.owns("task-mutation", token)
    clock.advance(5)
    assert not locks.owns("task-mutation", token)


def test_run_async_discards_result_when_hold_expired(locks, clock):
    lock = MutationLock(locks, timeout_s=4.0)
    seen = {}

    async def operation():
        clock.advance(6)
        # the expired hold lets a second writer through
        seen["inner"] = lock.run(lambda: "second write", on_locked=lambda: "locked")
        return "stale result"

    assert asyncio.run(lock.run_async(operation, on_locked=lambda: "locked")) == "locked"
    assert seen["inner"] == "second write"
    assert not lock.held
