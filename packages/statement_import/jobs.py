"""Asynchronous commit jobs.

The job queue collaborator accepts an :class:`ImportJobPayload` and returns a
job id immediately; :meth:`InProcessJobQueue.status` reports progress and the
final :class:`~statement_import.models.CommitResult`. The in-process queue runs
jobs on a small thread pool; a distributed queue can implement the same
``enqueue``/``status`` pair.
"""

from __future__ import annotations

import base64
import threading
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

from pydantic import BaseModel, ConfigDict

from .logging_setup import get_logger
from .models import ColumnMapping, CommitOptions, CommitResult, FileKind, JobState, JobStatus

_logger = get_logger("statement_import.jobs")


class ImportJobPayload(BaseModel):
    """Serializable job input; the file travels base64-encoded."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_id: str
    file_b64: str
    kind: FileKind
    mapping: ColumnMapping
    options: CommitOptions
    sheet: str | None = None

    @classmethod
    def build(
        cls,
        *,
        user_id: str,
        data: bytes,
        kind: FileKind,
        mapping: ColumnMapping,
        options: CommitOptions,
        sheet: str | None = None,
    ) -> ImportJobPayload:
        return cls(
            user_id=user_id,
            file_b64=base64.b64encode(data).decode("ascii"),
            kind=kind,
            mapping=mapping,
            options=options,
            sheet=sheet,
        )

    def file_bytes(self) -> bytes:
        return base64.b64decode(self.file_b64)


class JobQueue(Protocol):
    def enqueue(self, payload: ImportJobPayload) -> str: ...

    def status(self, job_id: str) -> JobStatus: ...


type JobRunner = Callable[[ImportJobPayload], CommitResult]


class InProcessJobQueue:
    """Thread-pool job queue keeping job state in memory."""

    def __init__(self, runner: JobRunner, *, max_workers: int = 2) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be a positive integer")
        self._runner = runner
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="si-import")
        self._lock = threading.Lock()
        self._jobs: dict[str, JobStatus] = {}

    def _set(self, job_id: str, state: JobState, **fields: object) -> None:
        with self._lock:
            self._jobs[job_id] = JobStatus(job_id=job_id, state=state, **fields)

    def _run(self, job_id: str, payload: ImportJobPayload) -> None:
        self._set(job_id, "running")
        try:
            result = self._runner(payload)
        except Exception as exc:  # noqa: BLE001 - recorded on the job, surfaced by status()
            _logger.exception("import_job:failed job_id=%s user_id=%s", job_id, payload.user_id)
            self._set(job_id, "failed", error=str(exc))
            return
        self._set(job_id, "completed", result=result)
        _logger.info(
            "import_job:completed job_id=%s inserted=%d", job_id, result.inserted
        )

    def enqueue(self, payload: ImportJobPayload) -> str:
        job_id = uuid.uuid4().hex
        self._set(job_id, "queued")
        self._pool.submit(self._run, job_id, payload)
        _logger.info("import_job:queued job_id=%s user_id=%s", job_id, payload.user_id)
        return job_id

    def status(self, job_id: str) -> JobStatus:
        with self._lock:
            status = self._jobs.get(job_id)
        return status if status is not None else JobStatus(job_id=job_id, state="not_found")

    def shutdown(self, *, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)


__all__ = ["ImportJobPayload", "JobQueue", "JobRunner", "InProcessJobQueue"]
