"""Source watching and rebuild scheduling for the Weaving dev server.

Watchdog delivers file system events on its observer thread. ``SourceWatcher``
filters them and hands them to the event loop, where ``RebuildScheduler``
folds bursts of changes into a single rebuild.

Key classes:
- WatchEvent: One relevant file change.
- RebuildScheduler: Debounce state machine that runs at most one rebuild at a time.
- SourceWatcher: Wires watchdog observers to a scheduler.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import SiteConfig
from .utils import matches_any

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 0.25


class WatchKind(str, Enum):
    CREATE = "create"
    MODIFY = "modify"
    REMOVE = "remove"


@dataclass(frozen=True)
class WatchEvent:
    path: Path
    kind: WatchKind


class WatchState(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    REBUILDING = "rebuilding"


class RebuildScheduler:
    """Coalesces change notifications into rebuilds.

    ``Idle -> Debouncing -> Rebuilding -> Idle``. Every notification while
    idle or debouncing restarts the debounce window. Notifications during a
    rebuild set a pending flag that triggers exactly one more rebuild once
    the current one finishes.

    Must be used from the event loop thread.

    Attributes:
        rebuild: Coroutine function performing one rebuild.
        debounce: Quiet period in seconds before a rebuild starts.
        state: Current state.
        rebuilds: Number of rebuilds started so far.
    """

    def __init__(
        self,
        rebuild: Callable[[], Awaitable[object]],
        debounce: float = DEFAULT_DEBOUNCE,
    ):
        self.rebuild = rebuild
        self.debounce = debounce
        self.state = WatchState.IDLE
        self.rebuilds = 0
        self._pending = False
        self._timer: asyncio.TimerHandle | None = None
        self._task: asyncio.Task | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    def notify(self, event: WatchEvent | None = None) -> None:
        """Record a change; schedules or defers a rebuild."""
        if event is not None:
            logger.debug("Change detected: %s %s", event.kind.value, event.path)
        if self.state is WatchState.REBUILDING:
            self._pending = True
            return
        if self._timer is not None:
            self._timer.cancel()
        self.state = WatchState.DEBOUNCING
        self._idle.clear()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce, self._fire)

    def _fire(self) -> None:
        self._timer = None
        self.state = WatchState.REBUILDING
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            self._pending = False
            self.rebuilds += 1
            try:
                await self.rebuild()
            except Exception:
                logger.exception("Rebuild failed")
            if not self._pending:
                break
        self.state = WatchState.IDLE
        self._task = None
        self._idle.set()

    async def wait_idle(self) -> None:
        """Wait until no rebuild is scheduled or running."""
        await self._idle.wait()

    def cancel(self) -> None:
        """Drop a scheduled rebuild and cancel a running one."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._pending = False
        self.state = WatchState.IDLE
        self._idle.set()


class SourceWatcher:
    """Watches the site's source directories and notifies a scheduler.

    Attributes:
        config: Site configuration.
        scheduler: Scheduler notified of relevant changes.
        loop: Event loop the scheduler lives on.
    """

    def __init__(
        self,
        config: SiteConfig,
        scheduler: RebuildScheduler,
        loop: asyncio.AbstractEventLoop,
    ):
        self.config = config
        self.scheduler = scheduler
        self.loop = loop
        self._observer: Observer | None = None

    def watched_dirs(self) -> list[Path]:
        dirs: list[Path] = []
        for candidate in (
            self.config.content_dir,
            self.config.template_dir,
            self.config.partials_dir,
            self.config.public_dir,
        ):
            if candidate.is_dir() and candidate not in dirs:
                dirs.append(candidate)
        return dirs

    def start(self) -> None:
        handler = _ChangeHandler(self)
        observer = Observer()
        for folder in self.watched_dirs():
            observer.schedule(handler, str(folder), recursive=True)
            logger.debug("Watching %s", folder)
        observer.start()
        self._observer = observer

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def should_ignore(self, path: Path) -> bool:
        """Return True for paths that must never trigger a rebuild."""
        if path.name.endswith("~"):
            return True
        if path.is_relative_to(self.config.build_dir):
            return True
        if path.is_relative_to(self.config.base_dir):
            rel = path.relative_to(self.config.base_dir)
        else:
            rel = path
        return matches_any(rel, self.config.serve_config.watch_excludes)

    def dispatch(self, event: WatchEvent) -> None:
        """Forward an event from the observer thread to the event loop."""
        if self.should_ignore(event.path):
            return
        self.loop.call_soon_threadsafe(self.scheduler.notify, event)


_KINDS = {
    "created": WatchKind.CREATE,
    "modified": WatchKind.MODIFY,
    "deleted": WatchKind.REMOVE,
}


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, watcher: SourceWatcher):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        for change in self._translate(event):
            self.watcher.dispatch(change)

    @staticmethod
    def _translate(event: FileSystemEvent) -> list[WatchEvent]:
        src = Path(os.fsdecode(event.src_path))
        if event.event_type == "moved":
            dest = Path(os.fsdecode(event.dest_path))
            return [WatchEvent(src, WatchKind.REMOVE), WatchEvent(dest, WatchKind.CREATE)]
        kind = _KINDS.get(event.event_type)
        # Opened/closed notifications carry no content change.
        if kind is None:
            return []
        return [WatchEvent(src, kind)]
