"""Interface for persisting rate limit state between invocations."""

import abc

from ..models.rate_limit import RateLimitRecord


class RateLimitStore(abc.ABC):
    """Abstract Base Class for loading and saving a RateLimitRecord.

    Implementations are best-effort: `load` returns an empty record when
    nothing usable is stored and `save` must not raise.
    """

    @abc.abstractmethod
    def load(self) -> RateLimitRecord:
        pass

    @abc.abstractmethod
    def save(self, record: RateLimitRecord) -> None:
        pass
