"""Rate-limit aware retry for per-record migration tasks.

A :class:`RecordTask` wraps the work for one source record and walks the
states ``PENDING -> (RETRYING ->)* DONE | FAILED``. Only rate-limit errors
are retried: every other failure is final for the record and leaves its
siblings alone.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from secrets import SystemRandom
from typing import Any, Protocol

from clubhouse_migration.clients.exceptions import RateLimitError


class TaskState(Enum):
    """Lifecycle of a record task."""

    PENDING = "pending"
    RETRYING = "retrying"
    DONE = "done"
    FAILED = "failed"


class _Random(Protocol):
    def uniform(self, a: float, b: float) -> float: ...


class _Logger(Protocol):
    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None: ...


@dataclass
class RetryPolicy:
    """Randomized backoff for throttled upstreams.

    Each retry waits a uniformly random delay in ``[min_delay, max_delay]``
    so that many throttled workers do not wake up together. A ``Retry-After``
    sent by the server raises the delay to at least that. ``max_attempts`` of
    ``None`` retries until the pipeline deadline.
    """

    min_delay: float = 60.0
    max_delay: float = 120.0
    max_attempts: int | None = None
    retryable_exceptions: tuple[type[BaseException], ...] = (RateLimitError,)

    def __post_init__(self) -> None:
        if self.min_delay < 0 or self.max_delay < self.min_delay:
            msg = f"Invalid backoff bounds: [{self.min_delay}, {self.max_delay}]"
            raise ValueError(msg)
        if self.max_attempts is not None and self.max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {self.max_attempts}"
            raise ValueError(msg)

    def next_delay(self, rng: _Random, retry_after: float | None = None) -> float:
        """Random delay within bounds, never shorter than the server's ``Retry-After``."""
        delay = rng.uniform(self.min_delay, self.max_delay)
        if retry_after is not None:
            return max(delay, retry_after)
        return delay

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "RetryPolicy":
        """Build the policy from the ``migration`` configuration section."""
        return cls(
            min_delay=float(config.get("rate_limit_min_delay", 60)),
            max_delay=float(config.get("rate_limit_max_delay", 120)),
            max_attempts=config.get("rate_limit_max_attempts"),
        )


class RecordTask:
    """Runs ``work`` for one record, retrying on rate limiting.

    Args:
        label: Record description used in log lines (``issue #42``)
        work: Callable doing one full attempt; its return value is kept in ``result``
        policy: Backoff policy
        logger: Where retries and failures are reported
        deadline: Monotonic time after which no retry is scheduled
        sleep: Injected for tests
        rng: Injected for tests, ``SystemRandom`` by default
        clock: Injected for tests

    """

    def __init__(
        self,
        label: str,
        work: Callable[[], Any],
        policy: RetryPolicy,
        logger: _Logger,
        *,
        deadline: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: _Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.label = label
        self.work = work
        self.policy = policy
        self.logger = logger
        self.deadline = deadline
        self._sleep = sleep
        self._rng = rng or SystemRandom()
        self._clock = clock

        self.state = TaskState.PENDING
        self.attempts = 0
        self.delays: list[float] = []
        self.result: Any = None
        self.error: BaseException | None = None

    @property
    def retry_delay(self) -> float | None:
        """Delay of the current retry, set while the task is RETRYING."""
        return self.delays[-1] if self.state is TaskState.RETRYING else None

    def _can_retry(self, delay: float) -> bool:
        if self.policy.max_attempts is not None and self.attempts >= self.policy.max_attempts:
            return False
        return self.deadline is None or self._clock() + delay < self.deadline

    def run(self) -> "RecordTask":
        """Drive the task to DONE or FAILED. Never raises ``Exception``."""
        while True:
            self.attempts += 1
            try:
                self.result = self.work()
            except self.policy.retryable_exceptions as e:
                delay = self.policy.next_delay(self._rng, getattr(e, "retry_after", None))
                if not self._can_retry(delay):
                    self.state = TaskState.FAILED
                    self.error = e
                    self.logger.warning(
                        "Giving up on %s after %d rate-limited attempts: %s",
                        self.label, self.attempts, e,
                    )
                    return self
                self.state = TaskState.RETRYING
                self.delays.append(delay)
                self.logger.warning(
                    "Rate limited while migrating %s. Waiting %.0f seconds before retrying.",
                    self.label, delay,
                )
                self._sleep(delay)
            except Exception as e:
                self.state = TaskState.FAILED
                self.error = e
                self.logger.warning("Failed to migrate %s: %s", self.label, e, exc_info=True)
                return self
            else:
                self.state = TaskState.DONE
                return self
