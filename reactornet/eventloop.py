"""Reactor primitives: channels, a selector-based poller and event loops."""

from __future__ import annotations

import enum
import logging
import selectors
import socket
import threading
import time
from typing import Callable

from .timerwheel import TimerTask, TimerWheel

log = logging.getLogger(__name__)

Callback = Callable[[], object]


class Events(enum.IntFlag):
    """Event bits a channel can watch for or be notified about."""

    NONE = 0
    READ = selectors.EVENT_READ
    WRITE = selectors.EVENT_WRITE
    HUP = 4
    ERROR = 8


_IO_EVENTS = Events.READ | Events.WRITE


class Channel:
    """Binds a file descriptor to the callbacks run when it becomes ready."""

    def __init__(self, loop: EventLoop, fd: int, name: str = "") -> None:
        self.loop = loop
        self.fd = fd
        self.name = name
        self.events = Events.NONE
        self.revents = Events.NONE
        self.on_read: Callback | None = None
        self.on_write: Callback | None = None
        self.on_close: Callback | None = None
        self.on_error: Callback | None = None
        self.on_event: Callback | None = None

    def __repr__(self) -> str:
        return f"Channel(name={self.name!r}, fd={self.fd}, events={self.events!r})"

    def readable(self) -> bool:
        return bool(self.events & Events.READ)

    def writable(self) -> bool:
        return bool(self.events & Events.WRITE)

    def enable_read(self) -> None:
        self.events |= Events.READ
        self.update()

    def enable_write(self) -> None:
        self.events |= Events.WRITE
        self.update()

    def disable_read(self) -> None:
        self.events &= ~Events.READ
        self.update()

    def disable_write(self) -> None:
        self.events &= ~Events.WRITE
        self.update()

    def disable_all(self) -> None:
        """Clear every watched event without telling the poller."""
        self.events = Events.NONE

    def update(self) -> None:
        self.loop.update_event(self)

    def remove(self) -> None:
        self.loop.remove_event(self)

    def handle_event(self, revents: int) -> None:
        """Dispatch ``revents``: errors and hang-ups short-circuit the rest."""
        self.revents = Events(revents)
        if self.revents & Events.ERROR:
            log.debug("%s error callback", self.name)
            if self.on_error is not None:
                self.on_error()
            return
        if self.revents & Events.HUP:
            log.debug("%s close callback", self.name)
            if self.on_close is not None:
                self.on_close()
            return
        if self.revents & Events.READ:
            log.debug("%s read callback", self.name)
            if self.on_read is not None:
                self.on_read()
        if self.revents & Events.WRITE:
            log.debug("%s write callback", self.name)
            if self.on_write is not None:
                self.on_write()
        if self.on_event is not None:
            self.on_event()


class Poller:
    """Keeps channels registered with a selector and dispatches readiness."""

    def __init__(self) -> None:
        self._selector = selectors.DefaultSelector()
        self._channels: dict[int, Channel] = {}

    def has_channel(self, channel: Channel) -> bool:
        return channel.fd in self._channels

    def _registered(self, fd: int) -> bool:
        try:
            self._selector.get_key(fd)
        except KeyError:
            return False
        return True

    def update_event(self, channel: Channel) -> None:
        """Add the channel or change the events it is watched for."""
        action = "update" if self.has_channel(channel) else "add"
        mask = int(channel.events & _IO_EVENTS)
        registered = self._registered(channel.fd)
        try:
            if mask == 0:
                if registered:
                    self._selector.unregister(channel.fd)
            elif registered:
                self._selector.modify(channel.fd, mask, channel)
            else:
                self._selector.register(channel.fd, mask, channel)
        except (OSError, ValueError):
            log.error("%s events %s error", channel.name, action)
            raise
        self._channels[channel.fd] = channel
        log.debug("%s events %s success", channel.name, action)

    def remove_event(self, channel: Channel) -> None:
        if not self.has_channel(channel):
            log.error("Delete nonexistent event for %s", channel.name)
            return
        if self._registered(channel.fd):
            self._selector.unregister(channel.fd)
        del self._channels[channel.fd]
        log.debug("%s events delete success", channel.name)

    def poll(self, timeout: float | None = None) -> list[Channel]:
        """Wait for readiness, run each ready channel's handlers, return them."""
        ready = []
        for key, mask in self._selector.select(timeout):
            channel: Channel = key.data
            channel.handle_event(Events(mask))
            ready.append(channel)
        return ready

    def close(self) -> None:
        self._selector.close()
        self._channels.clear()


class EventLoop:
    """One-thread reactor with a task queue and a one-tick-per-interval timer."""

    def __init__(self, tick_interval: float = 1.0) -> None:
        if tick_interval <= 0:
            raise ValueError("tick_interval must be positive")
        self.thread_id = threading.get_ident()
        self.poller = Poller()
        self.timer_wheel = TimerWheel()
        self._tasks: list[Callback] = []
        self._lock = threading.Lock()
        self._quit = False
        self._tick_interval = tick_interval
        self._next_tick = time.monotonic() + tick_interval
        self._wake_recv, self._wake_send = socket.socketpair()
        self._wake_recv.setblocking(False)
        self._wake_send.setblocking(False)
        self._wake_channel = Channel(self, self._wake_recv.fileno(), "EventLoop")
        self._wake_channel.on_read = self._drain_wakeup
        self._wake_channel.enable_read()

    def __enter__(self) -> EventLoop:
        return self

    def __exit__(self, *exc_info) -> None:
        self.poller.close()
        self._wake_recv.close()
        self._wake_send.close()

    def _drain_wakeup(self) -> None:
        while True:
            try:
                if not self._wake_recv.recv(4096):
                    return
            except (BlockingIOError, InterruptedError):
                return
            except OSError as exc:
                log.error("Error reading wakeup socket: %s", exc)
                return

    def wakeup(self) -> None:
        """Make a blocked poll return."""
        try:
            self._wake_send.send(b"\x01")
        except BlockingIOError:
            pass
        except OSError as exc:
            log.error("Error writing wakeup socket: %s", exc)

    def run_tasks(self) -> None:
        """Run every task queued so far."""
        with self._lock:
            tasks, self._tasks = self._tasks, []
        for task in tasks:
            task()

    def _advance_timer(self) -> None:
        now = time.monotonic()
        ticks = 0
        while now >= self._next_tick:
            ticks += 1
            self._next_tick += self._tick_interval
        if ticks:
            self.timer_wheel.tick(ticks)

    def _run_once(self) -> None:
        timeout = max(0.0, self._next_tick - time.monotonic())
        self.poller.poll(timeout)
        self.run_tasks()
        self._advance_timer()

    def start(self) -> None:
        """Run until ``stop`` is called."""
        log.debug("Thread %s run start", self.thread_id)
        while not self._quit:
            self._run_once()

    def stop(self) -> None:
        """Ask the loop to leave ``start``; safe from any thread."""
        self._quit = True
        self.wakeup()

    def is_in_loop(self) -> bool:
        return self.thread_id == threading.get_ident()

    def assert_in_loop(self) -> None:
        if not self.is_in_loop():
            raise RuntimeError("operation must run in the event loop's thread")

    def run_in_loop(self, callback: Callback) -> None:
        """Run now when called from the loop's thread, otherwise queue."""
        if self.is_in_loop():
            callback()
        else:
            self.queue_in_loop(callback)

    def queue_in_loop(self, callback: Callback) -> None:
        with self._lock:
            self._tasks.append(callback)
        self.wakeup()

    def update_event(self, channel: Channel) -> None:
        self.run_in_loop(lambda: self.poller.update_event(channel))

    def remove_event(self, channel: Channel) -> None:
        self.run_in_loop(lambda: self.poller.remove_event(channel))

    def add_timer_task(self, task_id: int, delay: int, callback: Callback) -> TimerTask:
        return self.timer_wheel.add_task(task_id, delay, callback)

    def delay_timer_task(self, task_id: int) -> None:
        self.timer_wheel.delay_task(task_id)

    def cancel_timer_task(self, task_id: int) -> None:
        self.timer_wheel.cancel_task(task_id)

    def has_timer(self, task_id: int) -> bool:
        return self.timer_wheel.has_timer(task_id)


class LoopThread:
    """A daemon thread that owns and runs one ``EventLoop``."""

    def __init__(self, tick_interval: float = 1.0) -> None:
        self._cond = threading.Condition()
        self._loop: EventLoop | None = None
        self.thread = threading.Thread(
            target=self._entry, args=(tick_interval,), name="LoopThread", daemon=True
        )
        self.thread.start()

    def _entry(self, tick_interval: float) -> None:
        loop = EventLoop(tick_interval)
        with self._cond:
            self._loop = loop
            self._cond.notify_all()
        with loop:
            loop.start()

    def get_loop(self) -> EventLoop:
        """Block until the thread's loop exists, then return it."""
        with self._cond:
            self._cond.wait_for(lambda: self._loop is not None)
            return self._loop


class LoopThreadPool:
    """Round-robin set of loop threads, falling back to the base loop."""

    def __init__(self, base_loop: EventLoop) -> None:
        self.base_loop = base_loop
        self.thread_count = 0
        self._next_index = 0
        self.threads: list[LoopThread] = []
        self.loops: list[EventLoop] = []

    def set_thread_count(self, count: int) -> None:
        if count < 0:
            raise ValueError("thread count must not be negative")
        self.thread_count = count

    def create(self) -> None:
        self.threads = [LoopThread() for _ in range(self.thread_count)]
        self.loops = [thread.get_loop() for thread in self.threads]

    def next_loop(self) -> EventLoop:
        if not self.loops:
            return self.base_loop
        self._next_index = (self._next_index + 1) % len(self.loops)
        return self.loops[self._next_index]