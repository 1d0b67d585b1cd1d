"""Watching of config files for changes, with debounced reloads.

Each config file may not exist yet, nor may its parent directories, so
the watcher keeps a watch on the closest existing ancestor of every
target and moves the watch closer as directories and files appear.
It reports that configs should be reloaded without saying which file
changed. Callers are expected to reload every config file.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
import time
from collections import Counter
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from .watch_events import (
    EventKind,
    ReWatch,
    WatchEvent,
    handle_event,
    rewatch_targets,
    watch_entry,
)

log = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 0.1

_EVENT_KINDS = {
    "created": EventKind.CREATE,
    "deleted": EventKind.REMOVE,
    "moved": EventKind.RENAME,
    "modified": EventKind.MODIFY,
}


@dataclass(frozen=True)
class _AddWatch:
    path: Path
    reply: Future


class _Shutdown:
    pass


def _to_watch_event(event: FileSystemEvent) -> WatchEvent:
    kind = _EVENT_KINDS.get(event.event_type, EventKind.OTHER)
    paths = [Path(os.fsdecode(event.src_path))]
    dest = getattr(event, "dest_path", None)
    if kind is EventKind.RENAME and dest:
        paths.append(Path(os.fsdecode(dest)))
    return WatchEvent(kind, tuple(paths))


class _Forwarder(FileSystemEventHandler):
    """Forwards file-system notifications to the worker queue."""

    def __init__(self, inbox: queue.Queue) -> None:
        super().__init__()
        self._inbox = inbox

    def dispatch(self, event: FileSystemEvent) -> None:
        self._inbox.put(_to_watch_event(event))


class ConfigWatcher:
    """Calls ``handler`` when any watched config file may have changed.

    Changes that fall within ``reload_debounce`` seconds of the first one
    result in a single call. The handler runs on a worker thread, so it
    must do its own locking.
    """

    def __init__(
        self, handler: Callable[[], object], reload_debounce: float = DEFAULT_DEBOUNCE
    ) -> None:
        self._handler = handler
        self._debounce = reload_debounce
        self._deadline: float | None = None
        self._inbox: queue.Queue = queue.Queue()
        self._closed = False
        self._close_lock = threading.Lock()

        # target path -> (watched path, immediate child path)
        self._paths: dict[Path, tuple[Path, Path]] = {}
        # watched path -> directory actually scheduled for it
        self._dir_of: dict[Path, Path] = {}
        self._watched_refs: Counter[Path] = Counter()
        self._dir_refs: Counter[Path] = Counter()
        self._scheduled: dict[Path, ObservedWatch] = {}

        self._forwarder = _Forwarder(self._inbox)
        self._observer = Observer()
        self._observer.start()
        self._worker = threading.Thread(target=self._run, name="config-reload", daemon=True)
        self._worker.start()

    def watch(self, path: str | os.PathLike) -> None:
        """Start watching ``path``.

        Raises ValueError if it is already watched, OSError if no ancestor
        of it can be watched, and RuntimeError once the watcher is closed.
        """
        if self._closed:
            raise RuntimeError("config watcher is closed")
        reply: Future = Future()
        self._inbox.put(_AddWatch(Path(os.path.abspath(path)), reply))
        reply.result()

    def close(self) -> None:
        """Stop watching and shut down the worker thread."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._inbox.put(_Shutdown())
        self._worker.join()
        self._observer.stop()
        self._observer.join()

    def __enter__(self) -> ConfigWatcher:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # Worker thread side.

    def _run(self) -> None:
        while True:
            timeout = None
            if self._deadline is not None:
                timeout = max(0.0, self._deadline - time.monotonic())
            try:
                item = self._inbox.get(timeout=timeout)
            except queue.Empty:
                log.debug("debounce elapsed, reloading")
                self._deadline = None
                self._call_handler()
                continue

            if isinstance(item, _Shutdown):
                log.debug("stopping config watcher thread")
                self._release_all()
                return
            if isinstance(item, _AddWatch):
                self._add_watch(item)
                continue

            rewatch, reload = handle_event(item, self._paths)
            log.debug("event %s: rewatch=%s reload=%s", item, rewatch, reload)
            reload = self._rewatch(rewatch) or reload
            if reload:
                self._trigger_reload()

    def _call_handler(self) -> None:
        try:
            self._handler()
        except Exception:
            log.exception("config reload handler failed")

    def _trigger_reload(self) -> None:
        if self._deadline is None:
            self._deadline = time.monotonic() + self._debounce
        log.debug("deferring config reload to %s", self._deadline)

    def _add_watch(self, command: _AddWatch) -> None:
        if command.path in self._paths:
            command.reply.set_exception(
                ValueError(f"{command.path} is already being watched")
            )
            return
        try:
            entry, reload = watch_entry(self._acquire, command.path)
        except OSError as err:
            command.reply.set_exception(err)
            return
        self._paths[command.path] = entry
        if reload:
            self._trigger_reload()
        command.reply.set_result(None)

    def _rewatch(self, rewatch: ReWatch) -> bool:
        targets = rewatch_targets(rewatch, self._paths)
        if rewatch.all:
            self._paths.clear()
        reload = False
        for target, old_watched in targets:
            # Watch anew before dropping the old watch, so that a shared
            # directory watch is never briefly missing.
            try:
                entry, needs_reload = watch_entry(self._acquire, target)
                self._paths[target] = entry
            except OSError as err:
                log.error("failed to add watch for %s: %s", target, err)
                self._paths.pop(target, None)
                needs_reload = True
            self._release(old_watched)
            reload = reload or needs_reload
        return reload

    def _acquire(self, candidate: Path) -> None:
        if candidate.is_dir():
            directory = candidate
        elif candidate.exists():
            directory = candidate.parent
        else:
            raise FileNotFoundError(f"{candidate} does not exist")

        if self._dir_refs[directory] == 0:
            self._scheduled[directory] = self._observer.schedule(
                self._forwarder, str(directory), recursive=False
            )
        self._dir_refs[directory] += 1
        self._dir_of[candidate] = directory
        self._watched_refs[candidate] += 1

    def _release(self, watched: Path) -> None:
        directory = self._dir_of.get(watched)
        if directory is None:
            return
        self._watched_refs[watched] -= 1
        if self._watched_refs[watched] <= 0:
            del self._watched_refs[watched]
            del self._dir_of[watched]
        self._dir_refs[directory] -= 1
        if self._dir_refs[directory] <= 0:
            del self._dir_refs[directory]
            observed = self._scheduled.pop(directory, None)
            if observed is not None:
                try:
                    self._observer.unschedule(observed)
                except (KeyError, OSError) as err:
                    # Expected when the directory itself went away.
                    log.debug("error unwatching %s: %s", directory, err)
                else:
                    log.debug("unwatched %s", directory)

    def _release_all(self) -> None:
        for observed in self._scheduled.values():
            try:
                self._observer.unschedule(observed)
            except (KeyError, OSError):
                pass
        self._scheduled.clear()
        self._dir_refs.clear()
        self._watched_refs.clear()
        self._dir_of.clear()
        self._paths.clear()