"""
Explicit retry policy built on tenacity.

RetryPolicy.run() never raises the wrapped function's error. It returns a
tagged result instead:

    outcome = await policy.run(client.get, url)
    if isinstance(outcome, RetrySuccess):
        use(outcome.value)
    else:
        log(outcome.error, outcome.attempts)
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar, Union

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetrySuccess(Generic[T]):
    value: T
    attempts: int


@dataclass(frozen=True)
class RetryExhausted:
    error: BaseException
    attempts: int


RetryOutcome = Union[RetrySuccess, RetryExhausted]


def _always_retry(exc: BaseException) -> bool:
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff: attempt n waits min(max_delay, base_delay * multiplier ** (n - 1)).

    Attributes:
        max_attempts: Total attempts including the first call
        base_delay: Delay before the first retry, in seconds
        multiplier: Growth factor between retries
        max_delay: Upper bound for a single delay, in seconds
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0

    def delay_for(self, retry_count: int) -> float:
        """Backoff before retry number ``retry_count`` (0-based)."""
        return min(self.max_delay, self.base_delay * self.multiplier ** retry_count)

    async def run(
        self,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        retry_if: Callable[[BaseException], bool] = _always_retry,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        **kwargs: Any,
    ) -> RetryOutcome:
        """
        Call ``fn`` until it succeeds, a non-retryable error occurs, or attempts run out.

        Args:
            fn: Coroutine function to call
            retry_if: Predicate deciding whether an exception is worth another attempt
            sleep: Sleep coroutine (tests pass a no-op)
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.base_delay,
                exp_base=self.multiplier,
                max=self.max_delay,
            ),
            retry=retry_if_exception(retry_if),
            sleep=sleep,
            reraise=False,
        )

        attempts = 0
        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    value = await fn(*args, **kwargs)
        except RetryError as exc:
            error = exc.last_attempt.exception()
            logger.warning(f"Retries exhausted after {attempts} attempts: {error}")
            return RetryExhausted(error=error, attempts=attempts)
        except Exception as exc:
            # Non-retryable errors propagate out of tenacity unchanged
            logger.debug(f"Non-retryable error on attempt {attempts}: {exc}")
            return RetryExhausted(error=exc, attempts=attempts)

        return RetrySuccess(value=value, attempts=attempts)
