import logging
import threading
import time
import uuid
from typing import Dict, List, Optional, Any, Callable

from config import JOB_TTL_SECONDS
from utils.logger import build_formatter

# Loggers whose records are copied into a running job's log
JOB_LOGGER_NAMES = ("pptx_engine", "server")


class GenerationJob:
    def __init__(self, kind: str, params: Dict[str, Any]):
        self.id: str = str(uuid.uuid4())
        self.kind: str = kind
        self.params: Dict[str, Any] = params
        self.status: str = "queued"  # queued | running | succeeded | failed
        self.logs: List[str] = []
        self.result: Optional[Dict[str, Any]] = None
        self.error: Optional[Dict[str, str]] = None  # {"kind": ..., "message": ...}
        self.content: Optional[bytes] = None
        self.file_name: Optional[str] = None
        self.created_at: float = time.time()
        self.started_at: Optional[float] = None
        self.completed_at: Optional[float] = None

    def append_log(self, message: str) -> None:
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())
        self.logs.append(f"{timestamp} | {message}")


class JobLogHandler(logging.Handler):
    """Copies records emitted on the job's own thread into job.logs"""

    def __init__(self, job: GenerationJob, thread_id: Optional[int] = None):
        super().__init__()
        self.job = job
        self.thread_id = thread_id if thread_id is not None else threading.get_ident()

    def filter(self, record):
        # The engine loggers are shared by every job thread
        if record.thread != self.thread_id:
            return False
        return super().filter(record)

    def emit(self, record):
        try:
            msg = self.format(record)
        except (TypeError, ValueError):
            msg = record.getMessage()
        self.job.append_log(msg)


class JobManager:
    def __init__(self, ttl_seconds: float = JOB_TTL_SECONDS):
        self._jobs: Dict[str, GenerationJob] = {}
        self._lock = threading.Lock()
        self.ttl_seconds = ttl_seconds

    def create(self, kind: str, params: Dict[str, Any]) -> GenerationJob:
        job = GenerationJob(kind, params)
        with self._lock:
            self._evict_expired(time.time())
            self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> Optional[GenerationJob]:
        with self._lock:
            return self._jobs.get(job_id)

    def list(self) -> List[Dict[str, Any]]:
        with self._lock:
            self._evict_expired(time.time())
            return [self._serialize(j) for j in self._jobs.values()]

    def evict_expired(self, now: Optional[float] = None) -> int:
        """Forget jobs that finished more than ttl_seconds ago; returns how many were dropped"""
        with self._lock:
            return self._evict_expired(time.time() if now is None else now)

    def _evict_expired(self, now: float) -> int:
        expired = [
            job_id for job_id, job in self._jobs.items()
            if job.completed_at is not None and now - job.completed_at > self.ttl_seconds
        ]
        for job_id in expired:
            del self._jobs[job_id]
        return len(expired)

    def _serialize(self, job: GenerationJob) -> Dict[str, Any]:
        return {
            "id": job.id,
            "kind": job.kind,
            "status": job.status,
            "created_at": job.created_at,
            "started_at": job.started_at,
            "completed_at": job.completed_at,
        }

    def attach_logger_handler(self, job: GenerationJob, thread_id: Optional[int] = None) -> JobLogHandler:
        handler = JobLogHandler(job, thread_id)
        handler.setFormatter(build_formatter())
        return handler

    def run(self, job: GenerationJob, target: Callable[[GenerationJob], None],
            on_error: Callable[[GenerationJob, Exception], None]) -> threading.Thread:
        """
        Run ``target(job)`` on a daemon thread with the job's log handler attached.

        ``target`` fills job.result / job.content; an exception marks the job
        failed and is handed to ``on_error``. Only records logged on that
        thread reach the job's log.
        """
        def _run():
            job.status = "running"
            job.started_at = time.time()
            handler = self.attach_logger_handler(job, threading.get_ident())
            loggers = [logging.getLogger(name) for name in JOB_LOGGER_NAMES]
            for target_logger in loggers:
                target_logger.addHandler(handler)
            try:
                target(job)
                job.status = "succeeded"
            except Exception as e:
                job.status = "failed"
                on_error(job, e)
            finally:
                job.completed_at = time.time()
                for target_logger in loggers:
                    target_logger.removeHandler(handler)

        thread = threading.Thread(target=_run, daemon=True)
        thread.start()
        return thread
