"""Scan pipeline — traversal thread, bounded queue, probe worker pool."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional

from gitrove.errors import GitroveError, TraversalError
from gitrove.filters import FilterMode, matches, search_matches
from gitrove.render import OutputTemplate
from gitrove.scanner import iter_repos
from gitrove.status import RepoStatus, probe_repo

logger = logging.getLogger(__name__)

QUEUE_SIZE = 10
DEFAULT_JOBS = 8

_DONE = object()

Emitter = Callable[[RepoStatus, str], None]


@dataclass
class ScanOptions:
    filters: list[str] = field(default_factory=list)
    mode: FilterMode = FilterMode.AND
    search: str = ""
    template: OutputTemplate = field(default_factory=OutputTemplate)
    jobs: int = DEFAULT_JOBS
    fail_fast: bool = False
    exclude: frozenset[str] = frozenset()
    max_depth: Optional[int] = None


@dataclass
class ScanReport:
    found: int = 0
    emitted: int = 0
    errors: list[GitroveError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class Pipeline:
    """One scan run over a root directory.

    A producer thread walks the tree into a bounded queue; the consumer loop
    hands each path to a thread pool that probes, filters, renders and emits.
    At most jobs + QUEUE_SIZE probes are submitted and unfinished at once, so
    a slow pool blocks the consumer, which in turn blocks the walker.
    Calls to ``emit`` are serialized.

    Without fail_fast, traversal and probe errors are logged, recorded on the
    report and skipped. With fail_fast the first error stops new work and is
    re-raised from run().
    """

    def __init__(
        self,
        root: str,
        options: ScanOptions,
        emit: Emitter,
        probe: Callable[[str], RepoStatus] = probe_repo,
    ) -> None:
        self.root = root
        self.options = options
        self._emit = emit
        self._probe = probe
        self._queue: queue.Queue = queue.Queue(maxsize=QUEUE_SIZE)
        self._lock = threading.Lock()
        self._abort = threading.Event()
        # Caps submitted-but-unfinished probes so the walker feels backpressure
        self._slots = threading.BoundedSemaphore(options.jobs + QUEUE_SIZE)
        self._fatal: Optional[GitroveError] = None
        self._crash: Optional[BaseException] = None
        self.report = ScanReport()

    def run(self) -> ScanReport:
        producer = threading.Thread(target=self._produce, name="gitrove-walk", daemon=True)
        producer.start()

        executor = ThreadPoolExecutor(max_workers=self.options.jobs, thread_name_prefix="gitrove-probe")
        try:
            while True:
                path = self._queue.get()
                if path is _DONE:
                    break
                if self._abort.is_set():
                    # Keep draining so the producer is never stuck on a full queue
                    continue
                self._slots.acquire()
                future = executor.submit(self._process, path)
                future.add_done_callback(self._finished)
        except BaseException:
            self._abort.set()
            executor.shutdown(wait=False, cancel_futures=True)
            raise

        executor.shutdown(wait=True, cancel_futures=self._abort.is_set())
        producer.join()

        if self._crash is not None:
            raise self._crash
        if self._fatal is not None:
            raise self._fatal
        return self.report

    def _produce(self) -> None:
        on_error = None if self.options.fail_fast else self._record
        try:
            for path in iter_repos(
                self.root,
                exclude=self.options.exclude,
                max_depth=self.options.max_depth,
                on_error=on_error,
            ):
                if self._abort.is_set():
                    break
                with self._lock:
                    self.report.found += 1
                self._queue.put(path)
        except TraversalError as exc:
            self._fail(exc)
        except Exception as exc:
            with self._lock:
                if self._crash is None:
                    self._crash = exc
            self._abort.set()
        finally:
            self._queue.put(_DONE)

    def _process(self, path: str) -> None:
        if self._abort.is_set():
            return
        opts = self.options
        try:
            status = self._probe(path)
            if not matches(status, opts.filters, opts.mode):
                return
            line = opts.template.render(status)
        except GitroveError as exc:
            if opts.fail_fast:
                self._fail(exc)
            else:
                self._record(exc)
            return

        if not search_matches(line, opts.search):
            return
        with self._lock:
            if self._abort.is_set():
                return
            self._emit(status, line)
            self.report.emitted += 1

    def _finished(self, future: Future) -> None:
        self._slots.release()
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            with self._lock:
                if self._crash is None:
                    self._crash = exc
            self._abort.set()

    def _record(self, error: GitroveError) -> None:
        logger.warning("%s", error)
        with self._lock:
            self.report.errors.append(error)

    def _fail(self, error: GitroveError) -> None:
        with self._lock:
            self.report.errors.append(error)
            if self._fatal is None:
                self._fatal = error
        self._abort.set()
