import math
import random
from collections.abc import Iterator
from dataclasses import dataclass

from doctranslate.config.settings import Settings


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with jitter.

    ``multiplier=1`` and ``jitter=0`` give a fixed interval.
    """

    initial_seconds: float = 5.0
    max_seconds: float = 60.0
    multiplier: float = 2.0
    jitter: float = 0.2

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            initial_seconds=settings.reconnect_initial_seconds,
            max_seconds=settings.reconnect_max_seconds,
            multiplier=settings.reconnect_multiplier,
            jitter=settings.reconnect_jitter,
        )

    def delay(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (1-based)."""
        try:
            growth = self.multiplier ** min(attempt - 1, 64)
        except OverflowError:
            growth = math.inf
        base = self.initial_seconds * growth
        if self.jitter and math.isfinite(base):
            base *= random.uniform(1.0 - self.jitter, 1.0 + self.jitter)
        return max(0.0, min(self.max_seconds, base))

    def delays(self) -> Iterator[float]:
        attempt = 1
        while True:
            yield self.delay(attempt)
            attempt += 1
