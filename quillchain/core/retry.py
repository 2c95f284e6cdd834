# quillchain/core/retry.py
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from quillchain.config import env_float, env_int

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Fixed-budget retry: at most ``max_attempts`` calls, ``delay`` seconds apart."""
    max_attempts: int = 12
    delay: float = 5.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    @classmethod
    def from_env(cls) -> "RetryPolicy":
        return cls(
            max_attempts=max(1, env_int("QUILL_FEE_MAX_ATTEMPTS", 12)),
            delay=max(0.0, env_float("QUILL_FEE_RETRY_DELAY", 5.0)),
        )

    @property
    def budget(self) -> float:
        """Worst-case time spent sleeping between attempts"""
        return self.delay * max(0, self.max_attempts - 1)

    def run(self, attempt: Callable[[int], Optional[T]]) -> Optional[T]:
        """Call ``attempt(n)`` until it returns something other than None."""
        for n in range(self.max_attempts):
            result = attempt(n)
            if result is not None:
                return result
            if n < self.max_attempts - 1:
                self.sleep(self.delay)
        return None
