"""Tick-driven timer wheel for delayed and refreshable tasks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

WHEEL_CAPACITY = 60

log = logging.getLogger(__name__)


@dataclass(eq=False)
class TimerTask:
    """A callback run once the wheel drops its last reference to it."""

    task_id: int
    delay: int
    callback: Callable[[], object]
    on_release: Callable[[int], object] | None = None
    cancelled: bool = field(default=False, init=False)
    fired: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        if not 0 <= self.delay < WHEEL_CAPACITY:
            raise ValueError(
                f"delay must be in [0, {WHEEL_CAPACITY}), got {self.delay}"
            )

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        """Run the callback unless cancelled, then notify release; only once."""
        if self.fired:
            return
        self.fired = True
        try:
            if self.cancelled:
                log.debug("Cancel task %s success", self.task_id)
            else:
                self.callback()
        finally:
            if self.on_release is not None:
                self.on_release(self.task_id)


class TimerWheel:
    """Wheel of slots; each tick empties the current slot and advances."""

    def __init__(self, capacity: int = WHEEL_CAPACITY) -> None:
        self.capacity = capacity
        self._step = 0
        self._slots: list[list[TimerTask]] = [[] for _ in range(capacity)]
        self._refs: dict[TimerTask, int] = {}
        self._tasks: dict[int, TimerTask] = {}

    def _place(self, task: TimerTask) -> None:
        self._slots[(self._step + task.delay) % self.capacity].append(task)
        self._refs[task] = self._refs.get(task, 0) + 1

    def _forget(self, task: TimerTask) -> None:
        if self._tasks.get(task.task_id) is task:
            del self._tasks[task.task_id]

    def add_task(
        self, task_id: int, delay: int, callback: Callable[[], object]
    ) -> TimerTask:
        task = TimerTask(task_id, delay, callback)
        task.on_release = lambda _task_id: self._forget(task)
        self._place(task)
        self._tasks[task_id] = task
        return task

    def cancel_task(self, task_id: int) -> None:
        task = self._tasks.get(task_id)
        if task is not None:
            task.cancel()

    def delay_task(self, task_id: int) -> None:
        """Push the task's expiry back by its delay from now."""
        task = self._tasks.get(task_id)
        if task is not None:
            self._place(task)

    def has_timer(self, task_id: int) -> bool:
        return task_id in self._tasks

    def tick(self, ticks: int = 1) -> None:
        """Advance the wheel by ``ticks`` steps, firing expired tasks."""
        if ticks < 0:
            raise ValueError("ticks must not be negative")
        for _ in range(ticks):
            expired = self._slots[self._step]
            self._slots[self._step] = []
            for task in expired:
                self._refs[task] -= 1
                if self._refs[task] == 0:
                    del self._refs[task]
                    task.fire()
            self._step = (self._step + 1) % self.capacity