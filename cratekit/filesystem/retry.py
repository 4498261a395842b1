"""Bounded retry policy for transient file-system contention.

Responsibilities:
- Classify `OSError` instances as transient (lock/sharing contention) or structural.
- Re-run an operation a bounded number of times with a fixed short delay.
- Keep sleep injectable so tests never wait.
"""

from __future__ import annotations

from dataclasses import dataclass
import errno
import math
from time import sleep
from typing import TYPE_CHECKING, Callable, TypeVar

if TYPE_CHECKING:
    from ..telemetry.logger import OperationLogger

T = TypeVar("T")

DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 0.05

# ERROR_SHARING_VIOLATION, ERROR_LOCK_VIOLATION
_TRANSIENT_WINERRORS = frozenset({32, 33})
_TRANSIENT_ERRNOS = frozenset(
    code
    for code in (
        getattr(errno, "EBUSY", None),
        getattr(errno, "EAGAIN", None),
        getattr(errno, "ETXTBSY", None),
    )
    if code is not None
)


def is_transient_error(exc: BaseException) -> bool:
    """Return whether an error looks like short-lived contention worth retrying."""

    if not isinstance(exc, OSError):
        return False
    if getattr(exc, "winerror", None) in _TRANSIENT_WINERRORS:
        return True
    return exc.errno in _TRANSIENT_ERRNOS


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Fixed-delay bounded retry policy.

    Attributes:
        attempts: Total attempts including the first call (minimum 1).
        delay_seconds: Delay between attempts.
        sleeper: Blocking sleep function, injectable for tests.
        is_transient: Error classifier deciding which failures are retried.
    """

    attempts: int = DEFAULT_RETRY_ATTEMPTS
    delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    sleeper: Callable[[float], None] = sleep
    is_transient: Callable[[BaseException], bool] = is_transient_error

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("`attempts` must be at least 1.")
        if self.delay_seconds < 0 or not math.isfinite(self.delay_seconds):
            raise ValueError("`delay_seconds` must be finite and not negative.")

    def run(
        self,
        action: Callable[[], T],
        *,
        operation: str,
        logger: OperationLogger | None = None,
        silent: bool = False,
    ) -> T:
        """Run `action`, retrying transient `OSError`s until attempts are exhausted.

        Structural errors and the final transient error propagate unmodified.
        """

        for attempt in range(1, self.attempts + 1):
            try:
                return action()
            except OSError as exc:
                if attempt == self.attempts or not self.is_transient(exc):
                    raise
                if logger is not None:
                    logger.log_retry(operation, attempt, self.attempts, exc, silent=silent)
                if self.delay_seconds > 0:
                    self.sleeper(self.delay_seconds)
        raise RuntimeError("retry loop exited without a result")
