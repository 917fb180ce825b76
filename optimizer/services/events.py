"""
Job lifecycle events. The orchestrator publishes; logging, metrics and any
caller-supplied listener subscribe.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


class JobEventKind(str, Enum):
    STARTED = "started"
    PROGRESS = "progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class JobEvent:
    kind: JobEventKind
    job_id: str
    tenant_id: str
    processed_items: int = 0
    total_items: int = 0
    error: Optional[str] = None
    duration_sec: Optional[float] = None


Listener = Callable[[JobEvent], None]


class JobEventBus:
    def __init__(self):
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: JobEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # a broken listener must not fail the job
                logger.exception("Job event listener failed", extra={
                    "component": "events",
                    "event": event.kind.value,
                    "job_id": event.job_id
                })


def log_listener(event: JobEvent) -> None:
    extra = {
        "component": "orchestrator",
        "event": event.kind.value,
        "job_id": event.job_id,
        "tenant_id": event.tenant_id,
        "processed_items": event.processed_items,
        "total_items": event.total_items,
    }
    if event.kind == JobEventKind.FAILED:
        logger.error("Job %s failed: %s", event.job_id, event.error, extra=extra)
    elif event.kind == JobEventKind.PROGRESS:
        logger.debug("Job %s progress %d/%d", event.job_id, event.processed_items, event.total_items, extra=extra)
    else:
        logger.info("Job %s %s", event.job_id, event.kind.value, extra=extra)


def metrics_listener(event: JobEvent) -> None:
    if event.kind == JobEventKind.PROGRESS:
        return
    prometheus_metrics.increment_jobs(event.kind.value)
    if event.duration_sec is not None:
        prometheus_metrics.observe_job_duration(event.duration_sec)
