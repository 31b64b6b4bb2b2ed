"""
Background job manager for long-running sequence optimizations.

Runs each GA in a background thread and exposes state that callers can
poll.  Job state is held in-memory; the result object is the only
durable output of a run.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import numpy as np
from loguru import logger

from config import SequenceConfig
from core.contracts import GAConfig, OpportunitySignal
from sequencing.genetic import (
    GenerationStats,
    GeneticSequenceOptimizer,
    SequenceOptimizationResult,
)


@dataclass
class SequenceJob:
    job_id: str
    status: str = "pending"  # pending | running | completed | cancelled | failed
    generation: int = 0
    total_generations: int = 0
    progress_pct: int = 0
    best_fitness: float | None = None
    logs: list[str] = field(default_factory=list)
    error: str | None = None
    result: SequenceOptimizationResult | None = None
    created_at: str = ""
    finished_at: str | None = None
    cancel_event: threading.Event = field(default_factory=threading.Event, repr=False)
    thread: threading.Thread | None = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self.status in ("completed", "cancelled", "failed")

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status,
            "generation": self.generation,
            "total_generations": self.total_generations,
            "progress_pct": self.progress_pct,
            "best_fitness": self.best_fitness,
            "logs": self.logs[-50:],
            "error": self.error,
            "result": self.result.to_dict() if self.result else None,
            "created_at": self.created_at,
            "finished_at": self.finished_at,
        }


class SequenceJobManager:
    """Manages GA runs in background threads."""

    def __init__(self, max_history: int = 50, settings: SequenceConfig | None = None):
        self._jobs: dict[str, SequenceJob] = {}
        self._lock = threading.Lock()
        self._max_history = max_history
        self.settings = settings

    def create_job(self, config: GAConfig) -> SequenceJob:
        job = SequenceJob(
            job_id=uuid4().hex[:12],
            total_generations=config.generations,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        with self._lock:
            self._jobs[job.job_id] = job
            self._trim_history()
        return job

    def get_job(self, job_id: str) -> SequenceJob | None:
        return self._jobs.get(job_id)

    def list_jobs(self, limit: int = 20) -> list[dict[str, Any]]:
        with self._lock:
            jobs = sorted(
                self._jobs.values(),
                key=lambda j: j.created_at,
                reverse=True,
            )
        return [j.to_dict() for j in jobs[:limit]]

    def submit(
        self,
        config: GAConfig,
        opportunity_signals: list[OpportunitySignal],
        rng: np.random.Generator | None = None,
    ) -> SequenceJob:
        """Create a job and start the GA in a daemon thread."""
        # Construct up front so invalid configs fail in the caller
        optimizer = GeneticSequenceOptimizer(config, settings=self.settings, rng=rng)
        job = self.create_job(config)

        def _progress(stats: GenerationStats) -> None:
            with self._lock:
                job.status = "running"
                job.generation = stats.generation
                job.best_fitness = stats.best_fitness
                job.progress_pct = int(stats.generation / max(job.total_generations, 1) * 100)

        def _worker() -> None:
            try:
                with self._lock:
                    job.status = "running"
                    job.logs.append("Sequence optimization started")
                result = optimizer.optimize(
                    opportunity_signals,
                    cancel_event=job.cancel_event,
                    on_generation=_progress,
                )
                with self._lock:
                    job.result = result
                    job.best_fitness = result.best_fitness
                    job.finished_at = datetime.now(timezone.utc).isoformat()
                    if result.cancelled:
                        job.status = "cancelled"
                        job.logs.append(
                            f"Cancelled after generation {result.generations_run}"
                        )
                    else:
                        job.status = "completed"
                        job.progress_pct = 100
                        job.logs.append("Sequence optimization completed successfully")
            except Exception as exc:
                with self._lock:
                    job.status = "failed"
                    job.error = str(exc)
                    job.finished_at = datetime.now(timezone.utc).isoformat()
                    job.logs.append(f"Sequence optimization failed: {exc}")
                logger.exception("Background sequence job failed")

        job.thread = threading.Thread(target=_worker, daemon=True)
        job.thread.start()
        return job

    def cancel(self, job_id: str) -> bool:
        """
        Request cancellation; honoured at the next generation boundary.

        Returns False for unknown or already finished jobs.
        """
        job = self.get_job(job_id)
        if job is None or job.done:
            return False
        job.cancel_event.set()
        logger.info(f"Cancellation requested for job {job_id}")
        return True

    def wait(self, job_id: str, timeout: float | None = None) -> SequenceJob:
        job = self._jobs[job_id]
        if job.thread is not None:
            job.thread.join(timeout)
        return job

    def _trim_history(self) -> None:
        if len(self._jobs) > self._max_history:
            sorted_jobs = sorted(
                self._jobs.items(),
                key=lambda kv: kv[1].created_at,
            )
            for jid, _ in sorted_jobs[: len(self._jobs) - self._max_history]:
                del self._jobs[jid]
