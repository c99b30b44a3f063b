"""
Delivery queue -- explicit handoff for best-effort notification channels.

Responsibility:
    Decouple push and email latency and failures from the state transition
    that produced them.  The caller persists its notification rows, submits
    delivery jobs, and returns without waiting on the network.

Architecture position:
    Services > Dispatch.  NotificationFanout and ApprovalProcessor submit
    jobs to the DeliveryOutbox of their unit of work; ProcurementWorkflow
    releases the outbox to the live queue once the transaction commits.
    Channels do the I/O.

Invariants enforced:
    - Jobs carry plain data only (ids as strings, dict payloads, frozen
      EmailMessage values), never ORM instances or sessions, so they are
      safe to run after the submitting session has closed.
    - A failing job is logged and dropped.  It never affects the
      submitter or sibling jobs.
    - Jobs run under a copy of the submitter's ``LogContext``.
    - Nothing held in an outbox reaches a channel unless its unit of work
      committed.
"""

from __future__ import annotations

import contextvars
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from procurement_kernel.domain.dtos import EmailMessage
from procurement_kernel.logging_config import get_logger
from procurement_services.channels import EmailChannel, PushChannel

logger = get_logger("services.dispatch")


class DeliveryJob(ABC):
    kind: str = "delivery"

    @abstractmethod
    def run(self) -> None:
        ...


@dataclass(frozen=True)
class PushJob(DeliveryJob):
    channel: PushChannel
    user_id: str
    payload: dict[str, Any]

    kind = "push"

    def run(self) -> None:
        self.channel.publish(self.user_id, self.payload)


@dataclass(frozen=True)
class EmailJob(DeliveryJob):
    channel: EmailChannel
    message: EmailMessage
    user_id: str | None = None

    kind = "email"

    def run(self) -> None:
        result = self.channel.send(self.message)
        if not result.sent:
            logger.warning(
                "email_not_delivered",
                extra={
                    "user_id": self.user_id,
                    "to": self.message.to,
                    "subject": self.message.subject,
                    "error": result.error,
                },
            )


def _run_isolated(job: DeliveryJob) -> None:
    try:
        job.run()
    except Exception as exc:
        logger.warning(
            "delivery_job_failed",
            extra={"job_kind": job.kind, "error": str(exc)},
            exc_info=True,
        )


class DeliveryQueue(ABC):
    """Accepts delivery jobs.  ``submit`` never raises because of a job."""

    @abstractmethod
    def submit(self, job: DeliveryJob) -> None:
        ...

    def shutdown(self, wait: bool = True) -> None:
        """Release resources.  No-op by default."""


class InlineDeliveryQueue(DeliveryQueue):
    """Runs each job immediately in the caller's thread.  For tests and scripts."""

    def submit(self, job: DeliveryJob) -> None:
        _run_isolated(job)


class ThreadPoolDeliveryQueue(DeliveryQueue):
    """
    Runs jobs on a ``concurrent.futures`` thread pool.

    Guarantees:
        - submit() returns as soon as the job is queued.
        - shutdown(wait=True) drains every queued job.
    """

    def __init__(self, max_workers: int = 4):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="procurement-delivery",
        )

    def submit(self, job: DeliveryJob) -> None:
        context = contextvars.copy_context()
        self._executor.submit(context.run, _run_isolated, job)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class DeliveryOutbox(DeliveryQueue):
    """
    Holds the jobs of one unit of work until its transaction settles.

    Services submit here exactly as they would to a live queue.  The owner
    of the transaction calls ``release()`` after a successful commit, or
    ``discard()`` after a rollback.
    """

    def __init__(self):
        self._jobs: list[DeliveryJob] = []

    def submit(self, job: DeliveryJob) -> None:
        self._jobs.append(job)

    @property
    def pending(self) -> tuple[DeliveryJob, ...]:
        return tuple(self._jobs)

    def release(self, queue: DeliveryQueue) -> int:
        """Hand every held job to ``queue`` in submission order."""
        jobs, self._jobs = self._jobs, []
        for job in jobs:
            queue.submit(job)
        return len(jobs)

    def discard(self) -> int:
        dropped = len(self._jobs)
        self._jobs = []
        if dropped:
            logger.info("deliveries_discarded", extra={"job_count": dropped})
        return dropped
