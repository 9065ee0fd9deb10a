# src/skill_arena/tasks/task_scheduler.py

from __future__ import annotations

"""
Rotation scheduler.

A small polling loop that, every interval:
- loads the active task snapshot from the store,
- partitions it into rotated / remaining with the rotation engine,
- generates one replacement per rotated task,
- persists rotated tasks + replacements in ONE batch.

Evaluate-then-persist: nothing is written until the whole sweep has been computed,
and a sweep that times out while reading or generating writes nothing.
Sweeps never overlap inside one process (asyncio.Lock); across processes the
external scheduler holds a lease, and deterministic replacement ids make a
duplicated sweep converge on the same rows.
"""

import asyncio
import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field

from ..core.ports import TaskRepo
from ..errors import RotationStoreError
from .rotation import TaskRotationEngine, replacement_id_for
from .task_models import Task

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SweepResult:
    checked: int = 0
    rotated: list[Task] = field(default_factory=list)
    replacements: list[Task] = field(default_factory=list)
    remaining: int = 0


def plan_sweep(engine: TaskRotationEngine, snapshot: Sequence[Task], *, replace_rotated: bool = True) -> SweepResult:
    """Compute what a sweep would write. No I/O except the template source."""
    batch = engine.batch_evaluate(snapshot)
    existing_ids = {t.id for t in snapshot}

    replacements: list[Task] = []
    if replace_rotated:
        for task in batch.rotated:
            # A replacement that is already part of the pool must not be regenerated.
            if replacement_id_for(task.id) in existing_ids:
                logger.debug("Replacement for %s already in pool; skipping", task.id)
                continue
            replacements.append(engine.generate_replacement(task))

    return SweepResult(
        checked=len(snapshot),
        rotated=list(batch.rotated),
        replacements=replacements,
        remaining=len(batch.remaining),
    )


async def run_rotation_sweep(
        store: TaskRepo,
        engine: TaskRotationEngine,
        *,
        timeout_seconds: float = 60.0,
        replace_rotated: bool = True,
) -> SweepResult:
    """
    One sweep over the active snapshot.

    Raises:
    - RotationStoreError if the store fails or the sweep times out (nothing written
      in the timeout case; a failing save_batch is rolled back by the store).
    """
    timeout_s = max(0.1, float(timeout_seconds))
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_s

    def remaining() -> float:
        return max(0.0, deadline - loop.time())

    try:
        snapshot = await asyncio.wait_for(asyncio.to_thread(store.load, True), timeout=remaining())
        plan = await asyncio.wait_for(
            asyncio.to_thread(plan_sweep, engine, snapshot, replace_rotated=replace_rotated),
            timeout=remaining(),
        )
    except TimeoutError as e:
        raise RotationStoreError(f"Rotation sweep timed out after {timeout_s:.1f}s; nothing persisted") from e

    to_write = [*plan.rotated, *plan.replacements]
    if to_write:
        # The write itself is not abandoned half-way: the store commits or rolls back as a unit.
        await asyncio.to_thread(store.save_batch, to_write)
        for task in plan.rotated:
            engine.forget_replacement(task.id)

    logger.info(
        "Rotation sweep: checked=%d rotated=%d replacements=%d remaining=%d",
        plan.checked,
        len(plan.rotated),
        len(plan.replacements),
        plan.remaining,
    )
    return plan


async def run_rotation_scheduler(
        store: TaskRepo,
        engine: TaskRotationEngine,
        *,
        interval_seconds: float = 3600.0,
        timeout_seconds: float = 60.0,
        lock: asyncio.Lock | None = None,
) -> None:
    """
    Polling scheduler.

    Every interval_seconds run one sweep. Failures are logged and retried on the
    next interval. To stop the scheduler, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))
    lock = lock or asyncio.Lock()

    while True:
        if lock.locked():
            logger.info("Previous rotation sweep still running; skipping this interval")
        else:
            async with lock:
                try:
                    await run_rotation_sweep(store, engine, timeout_seconds=timeout_seconds)
                except RotationStoreError:
                    logger.exception("Rotation sweep failed; will retry next interval")
                except Exception:
                    logger.exception("Rotation sweep crashed; will retry next interval")

        await asyncio.sleep(sleep_s)


@dataclass(slots=True)
class RotationSchedulerRunner:
    """Handle on a scheduler running in its own event loop on a background thread."""

    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    lock: asyncio.Lock
    task: asyncio.Task

    def run_sweep_now(
            self, store: TaskRepo, engine: TaskRotationEngine, *, timeout_seconds: float = 60.0
    ) -> SweepResult:
        """Run one sweep on the scheduler loop, sharing its lock (blocks the caller)."""

        async def locked() -> SweepResult:
            async with self.lock:
                return await run_rotation_sweep(store, engine, timeout_seconds=timeout_seconds)

        fut = asyncio.run_coroutine_threadsafe(locked(), self.loop)
        return fut.result(timeout=timeout_seconds + 5.0)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.task.cancel)
        except RuntimeError:
            logger.debug("Scheduler loop already closed.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_rotation_scheduler_in_background(
        store: TaskRepo,
        engine: TaskRotationEngine,
        *,
        interval_seconds: float = 3600.0,
        timeout_seconds: float = 60.0,
) -> RotationSchedulerRunner | None:
    """
    Start the rotation scheduler in a background thread with its own event loop,
    so the blocking console REPL can run in parallel.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        lock = asyncio.Lock()
        task = loop.create_task(
            run_rotation_scheduler(
                store,
                engine,
                interval_seconds=interval_seconds,
                timeout_seconds=timeout_seconds,
                lock=lock,
            )
        )
        holder.update(loop=loop, lock=lock, task=task)
        ready.set()

        try:
            loop.run_until_complete(task)
        except asyncio.CancelledError:
            logger.info("Rotation scheduler stopped.")
        finally:
            loop.close()

    t = threading.Thread(target=runner, name="rotation-scheduler", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    lock = holder.get("lock")
    task = holder.get("task")
    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(lock, asyncio.Lock) or task is None:
        logger.error("Rotation scheduler thread did not initialize properly.")
        return None

    logger.info("Rotation scheduler started (interval=%.0fs).", interval_seconds)
    return RotationSchedulerRunner(thread=t, loop=loop, lock=lock, task=task)  # type: ignore[arg-type]
