"""Decisions about which paths to re-watch and when to reload config.

These are the pure parts of config file watching. They work on plain
paths and events, so they can be driven by any file-system notification
backend.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar

log = logging.getLogger(__name__)

# A map from a target config path to (watched path, immediate child path).
WatchState = Mapping[Path, tuple[Path, Path]]


class EventKind(enum.Enum):
    """The kinds of file-system events the watcher cares about."""

    CREATE = "create"
    REMOVE = "remove"
    RENAME = "rename"
    MODIFY = "modify"
    OTHER = "other"


@dataclass(frozen=True)
class WatchEvent:
    """A file-system event touching one or more paths."""

    kind: EventKind
    paths: tuple[Path, ...] = ()
    need_rescan: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "paths", tuple(Path(p) for p in self.paths))


@dataclass(frozen=True)
class ReWatch:
    """Which (target path, watched path) pairs must be watched again.

    ``all`` means every watched path must be re-established.
    """

    paths: tuple[tuple[Path, Path], ...] = field(default_factory=tuple)
    all: bool = False

    ALL: ClassVar[ReWatch]
    NONE: ClassVar[ReWatch]


ReWatch.ALL = ReWatch(all=True)
ReWatch.NONE = ReWatch()


def best_effort_watch(
    watch: Callable[[Path], object], path: str | Path
) -> tuple[Path, Path | None]:
    """Watch ``path`` or, failing that, its closest watchable ancestor.

    ``watch`` is called with each candidate, starting at ``path`` itself,
    and must raise OSError when the candidate cannot be watched. Returns
    the watched path and the immediate child of it that leads towards
    ``path``, or None when ``path`` itself is watched.
    """
    target = Path(path)
    last_err: OSError | None = None
    for candidate in (target, *target.parents):
        try:
            watch(candidate)
        except OSError as err:
            last_err = err
            continue
        remaining = target.relative_to(candidate).parts
        immediate_child = Path(remaining[0]) if remaining else None
        log.debug("actually watching %s, immediate child %s", candidate, immediate_child)
        return candidate, immediate_child

    raise OSError(f"adding watch for config file {target}") from last_err


def handle_event(event: WatchEvent, paths: WatchState) -> tuple[ReWatch, bool]:
    """Decide what to re-watch after ``event`` and whether to reload."""
    if event.need_rescan:
        log.debug("need rescan")
        return ReWatch.ALL, True

    is_original = any(p in paths for p in event.paths)

    if event.kind in (EventKind.CREATE, EventKind.REMOVE, EventKind.RENAME):
        log.debug("create/remove: %s", event)
        rewatch = tuple(
            (target, watched)
            for target, (watched, immediate_child) in paths.items()
            if any(p == watched or p == immediate_child for p in event.paths)
        )
        return ReWatch(rewatch), is_original

    if event.kind is EventKind.MODIFY:
        log.debug("modify: %s", event)
        return ReWatch.NONE, is_original

    log.debug("ignore %s", event)
    return ReWatch.NONE, False


def rewatch_targets(rewatch: ReWatch, paths: WatchState) -> list[tuple[Path, Path]]:
    """Expand ``rewatch`` into concrete (target path, watched path) pairs."""
    if rewatch.all:
        return [(target, watched) for target, (watched, _) in paths.items()]
    return list(rewatch.paths)


def watch_entry(
    watch: Callable[[Path], object], target: Path
) -> tuple[tuple[Path, Path], bool]:
    """Watch ``target`` as well as possible.

    Returns the (watched path, immediate child path) entry for the watch
    state and whether a reload is due because the target itself is now
    being watched.
    """
    watched, immediate_child = best_effort_watch(watch, target)
    child_path = watched / immediate_child if immediate_child is not None else watched
    reload = watched == Path(target)
    if reload:
        log.debug("force reload since now watching the target file")
    return (watched, child_path), reload


def iter_event_paths(events: Iterable[WatchEvent]) -> list[Path]:
    """All paths touched by ``events``, in order of appearance."""
    return [p for event in events for p in event.paths]