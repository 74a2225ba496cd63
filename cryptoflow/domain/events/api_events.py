"""Domain Events related to upstream calls and resilience.

Examples include events for when tasks are queued, retried, fail, or
succeed, and when an orchestrator falls back to a canned value.
"""

from dataclasses import dataclass, field
import logging
import time
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class TaskQueued(DomainEvent):
    """Event triggered when a task joins the serial queue."""
    task_id: int
    queue_length: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class TaskStarted(DomainEvent):
    """Event triggered when the queue hands the lane to a task."""
    task_id: int
    waited_seconds: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class TaskCompleted(DomainEvent):
    """Event triggered when a task settles, successfully or not."""
    task_id: int
    succeeded: bool
    duration_seconds: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when an upstream call succeeds."""
    endpoint: str
    attempts: int
    latency_ms: float
    response_summary: Optional[Any] = None # e.g., token usage
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when an upstream call fails definitively."""
    endpoint: str
    error_type: str
    error_message: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a rate-limited call is scheduled for retry."""
    endpoint: str
    attempt_number: int
    delay_seconds: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class FallbackReturned(DomainEvent):
    """Event triggered when an orchestrator answers with its fallback value."""
    cache_key: str
    reason: str
    timestamp: float = field(default_factory=time.time)


def dispatch_event(event: DomainEvent) -> None:
    """Publishes an event. Events currently go to the debug log only."""
    logger.debug(f"EVENT: {event}")
