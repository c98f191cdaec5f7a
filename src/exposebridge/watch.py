from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Iterable

import pathspec
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import BridgeOptions
from .shared.console import BridgeLogger

_GLOB_CHARS = frozenset("*?[")


def _exclude_matcher(options: BridgeOptions) -> pathspec.PathSpec | None:
    if not options.exclude:
        return None
    return pathspec.PathSpec.from_lines("gitwildmatch", options.exclude)


def _relative(path: Path, base: Path) -> str:
    try:
        return path.relative_to(base).as_posix()
    except ValueError:
        return path.as_posix()


def expand_inputs(
    inputs: Iterable[str], options: BridgeOptions, logger: BridgeLogger
) -> list[Path]:
    """
    Turn CLI inputs (files, directories, glob patterns relative to the base
    directory) into a sorted list of ``.py`` files. Missing plain files are
    kept so the pipeline can report them.
    """
    base = options.base_path
    matcher = _exclude_matcher(options)
    artifacts = set(options.artifact_paths)
    found: set[Path] = set()

    for raw in inputs:
        if any(ch in raw for ch in _GLOB_CHARS):
            candidates = [p for p in base.glob(raw) if p.suffix == ".py"]
            if not candidates:
                logger.warning(f"Pattern matched no files: {raw}")
        else:
            path = Path(raw)
            path = (path if path.is_absolute() else base / path).resolve()
            if path.is_dir():
                candidates = list(path.rglob("*.py"))
            else:
                found.add(path)
                continue

        for candidate in candidates:
            candidate = candidate.resolve()
            if candidate in artifacts:
                continue
            if matcher and matcher.match_file(_relative(candidate, base)):
                continue
            found.add(candidate)

    return sorted(found)


class SourceChangeHandler(FileSystemEventHandler):
    """
    Watchdog event handler that records changed ``.py`` files until the
    watcher drains them. Generated artifacts and excluded paths are ignored.
    """

    def __init__(self, options: BridgeOptions) -> None:
        super().__init__()
        self._base = options.base_path
        self._matcher = _exclude_matcher(options)
        self._artifacts = set(options.artifact_paths)
        self._lock = threading.Lock()
        self._pending: set[Path] = set()

    def on_created(self, event: FileSystemEvent) -> None:
        self._record(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._record(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._record(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._record(event)
        if event.dest_path:
            self._add(event.dest_path)

    def drain(self) -> list[Path]:
        with self._lock:
            batch = sorted(self._pending)
            self._pending.clear()
        return batch

    def _record(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._add(event.src_path)

    def _add(self, raw: str | bytes) -> None:
        if isinstance(raw, bytes):
            raw = raw.decode()
        path = Path(raw).resolve()
        if path.suffix != ".py" or path in self._artifacts:
            return
        if self._matcher and self._matcher.match_file(_relative(path, self._base)):
            return
        with self._lock:
            self._pending.add(path)


class SourceWatcher:
    """
    Watches the source roots (and the directories of the analyzed files)
    and reports changed files in batches, at most once per interval.
    """

    def __init__(
        self,
        options: BridgeOptions,
        logger: BridgeLogger,
        *,
        extra_paths: Iterable[Path] = (),
        interval: float = 1.0,
    ) -> None:
        self._logger = logger
        self._interval = interval
        self.handler = SourceChangeHandler(options)
        self._directories = _watch_roots(
            [options.resolve(r) for r in options.source_roots]
            + [p.parent for p in extra_paths]
        )

    @property
    def directories(self) -> list[Path]:
        return list(self._directories)

    def run(self, on_change: Callable[[list[Path]], None], stop: threading.Event) -> None:
        observer = Observer()
        for directory in self._directories:
            observer.schedule(self.handler, str(directory), recursive=True)
        observer.start()
        self._logger.info(
            f"Watching {len(self._directories)} directories for changes "
            f"(every {self._interval:g}s)"
        )
        try:
            while not stop.wait(self._interval):
                changed = self.handler.drain()
                if not changed:
                    continue
                self._logger.debug(f"Detected {len(changed)} changed files")
                on_change(changed)
        finally:
            observer.stop()
            observer.join(timeout=5.0)


def _watch_roots(candidates: list[Path]) -> list[Path]:
    """Existing directories, without those nested in another one."""
    roots: list[Path] = []
    for path in sorted({p.resolve() for p in candidates if p.is_dir()}):
        if not any(path.is_relative_to(root) for root in roots):
            roots.append(path)
    return roots
