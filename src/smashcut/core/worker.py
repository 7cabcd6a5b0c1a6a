"""Background worker that runs transforms off the caller's thread.

Each submitted transform gets a TransformHandle: a Future for the result,
a cancellation token checked by the transform once per frame, and a FIFO
relay that hands progress events back to whichever thread iterates it.
"""

from __future__ import annotations

import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterator

from smashcut.core.errors import TransformBusy
from smashcut.core.events import EventCallback, PipelineEvent
from smashcut.core.models import TransformResult


class CancellationToken:
    """Cooperative cancellation flag shared between caller and worker."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


TransformJob = Callable[[EventCallback, CancellationToken], TransformResult]


class TransformHandle:
    """Caller-side view of one running transform."""

    def __init__(self, output_path: Path, token: CancellationToken) -> None:
        self.output_path = output_path
        self.token = token
        self.future: Future[TransformResult] | None = None
        self._events: queue.SimpleQueue[PipelineEvent] = queue.SimpleQueue()

    def _emit(self, event: PipelineEvent) -> None:
        self._events.put(event)

    def cancel(self) -> None:
        self.token.cancel()

    def done(self) -> bool:
        return self.future is not None and self.future.done()

    def events(self, poll: float = 0.1) -> Iterator[PipelineEvent]:
        """Yield progress events in emission order until the transform ends."""
        while True:
            try:
                yield self._events.get(timeout=poll)
            except queue.Empty:
                if self.done():
                    break
        while True:
            try:
                yield self._events.get_nowait()
            except queue.Empty:
                return

    def result(self, timeout: float | None = None) -> TransformResult:
        """Block for the result; re-raises the transform's typed error."""
        assert self.future is not None
        return self.future.result(timeout)


class TransformWorker:
    """Runs transforms on a dedicated thread pool (one thread by default).

    Two transforms must never write the same output path concurrently, since
    each one deletes whatever file is already there when it starts.
    """

    def __init__(self, max_workers: int = 1) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="smashcut-worker"
        )
        self._active: set[Path] = set()
        self._lock = threading.Lock()

    def submit(self, output_path: Path, job: TransformJob) -> TransformHandle:
        key = Path(output_path).resolve()
        with self._lock:
            if key in self._active:
                raise TransformBusy(f"A transform is already writing {output_path}")
            self._active.add(key)

        handle = TransformHandle(Path(output_path), CancellationToken())

        def _run() -> TransformResult:
            try:
                return job(handle._emit, handle.token)
            finally:
                with self._lock:
                    self._active.discard(key)

        try:
            handle.future = self._executor.submit(_run)
        except RuntimeError:
            with self._lock:
                self._active.discard(key)
            raise
        return handle

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> TransformWorker:
        return self

    def __exit__(self, *exc: object) -> None:
        self.shutdown()
