"""Bounded retry with exponential backoff."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, TypeVar

from riad_bookings.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryOutcome(Generic[T]):
    """
    Result of a bounded retry sequence.

    Callers branch on ``success``; the last error is kept for logging
    and is never re-raised.
    """

    success: bool
    attempts_used: int
    result: T | None = None
    last_error: BaseException | None = None
    delays: list[float] = field(default_factory=list)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    *,
    operation_name: str = "operation",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> RetryOutcome[T]:
    """
    Run ``operation`` sequentially until it succeeds or attempts run out.

    After failed attempt ``i`` (1-based) the caller is suspended for
    ``base_delay * 2 ** (i - 1)`` seconds, unless it was the last attempt.
    The operation must be safe to repeat: a failed attempt may still have
    been applied remotely.

    Args:
        operation: Zero-argument callable returning an awaitable
        max_attempts: Attempt ceiling (>= 1)
        base_delay: Delay after the first failure, in seconds (> 0)
        operation_name: Name used in log events
        sleep: Awaitable sleep function

    Returns:
        RetryOutcome with attempts used and the result or last error
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    if base_delay <= 0:
        raise ValueError("base_delay must be positive")

    last_error: Exception | None = None
    delays: list[float] = []

    for attempt in range(1, max_attempts + 1):
        try:
            result = await operation()
        except Exception as e:
            last_error = e
            logger.warning(
                "retry_attempt_failed",
                operation=operation_name,
                attempt=attempt,
                max_attempts=max_attempts,
                error=str(e),
            )

            if attempt < max_attempts:
                delay = base_delay * 2 ** (attempt - 1)
                delays.append(delay)
                await sleep(delay)
            continue

        return RetryOutcome(
            success=True,
            attempts_used=attempt,
            result=result,
            delays=delays,
        )

    return RetryOutcome(
        success=False,
        attempts_used=max_attempts,
        last_error=last_error,
        delays=delays,
    )
