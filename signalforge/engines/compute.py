"""
SignalForge — Compute Backends

Pluggable execution for the engine's independent stages (indicator bundle,
pattern scan, trend). A backend takes a batch of named jobs and returns
their results by name; every backend must return identical results.

  InProcessBackend  sequential, in the calling thread
  ParallelBackend   concurrent.futures thread or process pool; a batch
                    that fails to dispatch or collect is recomputed
                    in-process and the fallback is logged
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

import structlog

from signalforge.config import Settings, get_settings
from signalforge.errors import BackendError

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Job:
    """A pure function call. Must be picklable for the process pool."""
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)

    def __call__(self) -> Any:
        return self.func(*self.args, **self.kwargs)


def _run_job(job: Job) -> tuple[bool, Any]:
    # The job's own exception travels back as a value, apart from pool failures
    try:
        return True, job()
    except Exception as e:
        return False, e


def _run_sequential(jobs: Mapping[str, Job]) -> dict[str, Any]:
    return {name: job() for name, job in jobs.items()}


class ComputeBackend(ABC):
    """Base class for job-batch executors."""

    name: str = "base"

    def __init__(self):
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def run(self, jobs: Mapping[str, Job]) -> dict[str, Any]:
        """Execute every job and return results keyed by job name."""
        if self._closed:
            raise BackendError(f"{self.name} backend is closed", detail=self.name)
        return self._execute(dict(jobs))

    @abstractmethod
    def _execute(self, jobs: dict[str, Job]) -> dict[str, Any]:
        ...

    def close(self) -> None:
        self._closed = True

    def __enter__(self) -> "ComputeBackend":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name} closed={self._closed}>"


class InProcessBackend(ComputeBackend):
    """Runs jobs one after another in the calling thread."""

    name = "in_process"

    def _execute(self, jobs: dict[str, Job]) -> dict[str, Any]:
        return _run_sequential(jobs)


class ParallelBackend(ComputeBackend):
    """Fans jobs out over a thread or process pool.

    The pool is created on first use. A batch the pool cannot dispatch or
    collect (broken or shut-down pool, unpicklable job or result) is
    recomputed in-process. Exceptions raised by a job itself are re-raised
    as they are.
    """

    def __init__(
        self,
        kind: str = "thread",
        max_workers: int = 2,
        executor: Optional[Executor] = None,
    ):
        super().__init__()
        if kind not in ("thread", "process"):
            raise ValueError(f"Unknown pool kind: {kind!r} (expected 'thread' or 'process')")
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.name = kind
        self.max_workers = max_workers
        self._executor = executor
        self._lock = threading.Lock()
        self.fallback_count = 0

    def _get_executor(self) -> Executor:
        with self._lock:
            if self._executor is None:
                pool_cls = ThreadPoolExecutor if self.name == "thread" else ProcessPoolExecutor
                self._executor = pool_cls(max_workers=self.max_workers)
                log.debug("backend.pool_started", backend=self.name, max_workers=self.max_workers)
            return self._executor

    def _execute(self, jobs: dict[str, Job]) -> dict[str, Any]:
        try:
            executor = self._get_executor()
            futures = {name: executor.submit(_run_job, job) for name, job in jobs.items()}
            outcomes = {name: future.result() for name, future in futures.items()}
        except Exception as e:
            with self._lock:
                self.fallback_count += 1
            log.warning(
                "backend.fallback",
                backend=self.name,
                jobs=sorted(jobs),
                error=f"{type(e).__name__}: {e}",
            )
            return _run_sequential(jobs)

        results = {}
        for name, (ok, value) in outcomes.items():
            if not ok:
                raise value
            results[name] = value
        return results

    def close(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
        super().close()


def create_backend(settings: Optional[Settings] = None) -> ComputeBackend:
    """Build the backend selected by Settings.compute_backend."""
    settings = settings or get_settings()
    if settings.compute_backend == "in_process":
        backend: ComputeBackend = InProcessBackend()
    else:
        backend = ParallelBackend(kind=settings.compute_backend, max_workers=settings.max_workers)
    log.info("backend.created", backend=backend.name, max_workers=settings.max_workers)
    return backend
