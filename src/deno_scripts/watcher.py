"""Poll watched paths and turn change batches into rerun cycles."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from fnmatch import fnmatch
from pathlib import Path
from typing import Protocol, TypeAlias

from watchfiles import Change, watch

from deno_scripts.config import DEFAULT_WATCH_INTERVAL_MS
from deno_scripts.errors import ConfigError
from deno_scripts.models import ChangeEvent, FileScript, ResolvedScript, WatchOptions

logger = logging.getLogger(__name__)

RawChange: TypeAlias = tuple[Change | str, str]
RawBatch: TypeAlias = Iterable[RawChange]


class ChangeSource(Protocol):
    """Factory for an iterator of raw change batches."""

    def __call__(
        self,
        *,
        paths: Sequence[str],
        interval_ms: int,
        recursive: bool,
        stop_event: threading.Event,
    ) -> Iterable[RawBatch]: ...


def watch_paths(resolved: ResolvedScript, cwd: Path | None = None) -> tuple[str, ...]:
    """Paths to observe: the script's own file plus any configured paths."""

    base = cwd if cwd is not None else Path.cwd()
    options = resolved.watch or WatchOptions()
    candidates: list[str] = []
    if isinstance(resolved.script, FileScript) and resolved.script.file:
        candidates.append(resolved.script.file)
    candidates.extend(options.paths or ())
    if not candidates:
        candidates.append(".")

    paths: list[str] = []
    for candidate in candidates:
        path = Path(candidate)
        resolved_path = str((path if path.is_absolute() else base / path).resolve())
        if resolved_path not in paths:
            paths.append(resolved_path)
    return tuple(paths)


def polling_source(
    *,
    paths: Sequence[str],
    interval_ms: int,
    recursive: bool,
    stop_event: threading.Event,
    force_polling: bool = True,
) -> Iterator[set[RawChange]]:
    """Yield one set of changes per polling interval until `stop_event` is set."""

    existing = [path for path in paths if Path(path).exists()]
    for missing in sorted(set(paths) - set(existing)):
        logger.warning("Watch path %s does not exist; skipping it.", missing)
    if not existing:
        raise ConfigError(f"None of the watch paths exist: {', '.join(paths)}")

    yield from watch(
        *existing,
        debounce=interval_ms,
        step=min(50, interval_ms),
        stop_event=stop_event,
        raise_interrupt=False,
        force_polling=force_polling,
        poll_delay_ms=interval_ms,
        recursive=recursive,
        watch_filter=None,
    )


class ChangeFilter:
    """Apply extension, match, skip and recursion rules to raw changes."""

    def __init__(
        self,
        options: WatchOptions,
        roots: Sequence[str],
        base: Path | None = None,
    ) -> None:
        self.match = tuple(options.match or ())
        self.skip = tuple(options.skip or ())
        self.extensions = tuple(ext.lstrip(".") for ext in options.extensions or ())
        self.recursive = options.recursive if options.recursive is not None else True
        self.roots = tuple(Path(root) for root in roots)
        self.base = base if base is not None else Path.cwd()

    def __call__(self, change: ChangeEvent) -> bool:
        path = Path(change.path)
        if self.extensions and not any(
            path.name.endswith(f".{ext}") for ext in self.extensions
        ):
            return False
        candidates = self._candidates(path)
        if self.match and not any(
            fnmatch(candidate, pattern) for candidate in candidates for pattern in self.match
        ):
            return False
        if any(fnmatch(candidate, pattern) for candidate in candidates for pattern in self.skip):
            return False
        if not self.recursive and not self._is_shallow(path):
            return False
        return True

    def apply(self, changes: Iterable[ChangeEvent]) -> tuple[ChangeEvent, ...]:
        return tuple(change for change in changes if self(change))

    def _candidates(self, path: Path) -> tuple[str, ...]:
        candidates = [path.as_posix(), path.name]
        try:
            candidates.append(path.relative_to(self.base).as_posix())
        except ValueError:
            pass
        return tuple(candidates)

    def _is_shallow(self, path: Path) -> bool:
        return any(path == root or path.parent == root for root in self.roots)


class WatchSupervisor:
    """Runs one callback per filtered change batch until cancelled.

    Batches are handled in the order the source yields them. A callback that
    is still running is never interrupted; changes observed meanwhile arrive
    as the next batch.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        paths: Sequence[str],
        options: WatchOptions,
        on_batch: Callable[[tuple[ChangeEvent, ...]], object],
        source: ChangeSource | None = None,
        base: Path | None = None,
        default_interval_ms: int = DEFAULT_WATCH_INTERVAL_MS,
        force_polling: bool = True,
    ) -> None:
        self.paths = tuple(paths)
        self.options = options
        self.on_batch = on_batch
        self.source = source
        self.interval_ms = options.interval or default_interval_ms
        self.recursive = options.recursive if options.recursive is not None else True
        self.force_polling = force_polling
        self.change_filter = ChangeFilter(options, self.paths, base=base)
        self._stop_event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._stop_event.is_set()

    def cancel(self) -> None:
        self._stop_event.set()

    def batches(self) -> Iterator[tuple[ChangeEvent, ...]]:
        """Yield non-empty filtered change batches."""

        for raw_batch in self._raw_batches():
            if self.cancelled:
                return
            batch = self.change_filter.apply(_to_events(raw_batch))
            if batch:
                yield batch

    def run(self) -> int:
        """Watch until cancelled or the source is exhausted; return the rerun count."""

        reruns = 0
        logger.debug("Watching %s every %dms", ", ".join(self.paths), self.interval_ms)
        with self._signal_handlers():
            for batch in self.batches():
                count = len(batch)
                logger.info("Detected %d change%s. Rerunning...", count, "s" if count > 1 else "")
                for change in batch:
                    logger.debug('File "%s" was %s', change.path, change.event)
                self.on_batch(batch)
                reruns += 1
                if self.cancelled:
                    break
        return reruns

    def _raw_batches(self) -> Iterable[RawBatch]:
        if self.source is not None:
            return self.source(
                paths=self.paths,
                interval_ms=self.interval_ms,
                recursive=self.recursive,
                stop_event=self._stop_event,
            )
        return polling_source(
            paths=self.paths,
            interval_ms=self.interval_ms,
            recursive=self.recursive,
            stop_event=self._stop_event,
            force_polling=self.force_polling,
        )

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        if not hasattr(signal, "SIGINT"):
            yield
            return

        def _handler(signum: int, _: object | None) -> None:
            logger.info("Stopping watch mode (%s).", signal.Signals(signum).name)
            self.cancel()

        try:
            original_sigint = signal.getsignal(signal.SIGINT)
            original_sigterm = signal.getsignal(signal.SIGTERM)
            signal.signal(signal.SIGINT, _handler)
            signal.signal(signal.SIGTERM, _handler)
        except ValueError:
            # Signal handlers can only be installed in main thread.
            yield
            return
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)


def _to_events(raw_batch: RawBatch) -> list[ChangeEvent]:
    events = [
        ChangeEvent(path=path, event=kind.name if isinstance(kind, Change) else str(kind))
        for kind, path in raw_batch
    ]
    return sorted(events, key=lambda event: event.path)
