"""Domain Events related to API calls and resilience.

Examples include events for when calls are retried, fail, succeed, or
consume a tracking credit.
"""

from dataclasses import dataclass, field
import time
from typing import Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


# --- Specific API Events ---

@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when an API call is about to be made."""
    endpoint: str
    attempt_number: int = 1
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when an API call returns without raising."""
    endpoint: str
    latency_ms: float
    attempt_number: int = 1
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when an API call fails definitively (after retries or fatally)."""
    endpoint: str
    error_type: str
    error_message: str
    status: Optional[int] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed API call."""
    endpoint: str
    attempt_number: int
    delay_seconds: float
    reason: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class CreditConsumed(DomainEvent):
    """Event triggered when a create call started a new (billable) tracking entry."""
    shipment_id: str
    reference: str
    timestamp: float = field(default_factory=time.time)
