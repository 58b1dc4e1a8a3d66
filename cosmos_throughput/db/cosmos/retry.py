from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from ...errors import UnknownStrategyError
from ...observability.logging import get_logger

log = get_logger("cosmos_retry")

T = TypeVar("T")

# Request rate too large, request timeout, retry-with, service unavailable.
_RETRYABLE_STATUS_CODES = frozenset({429, 408, 449, 503})

# Mongo API equivalent of a 429 (RU budget exceeded).
MONGO_REQUEST_RATE_TOO_LARGE = 16500

RETRYABLE_CODES = _RETRYABLE_STATUS_CODES | {MONGO_REQUEST_RATE_TOO_LARGE}

DEFAULT_STRATEGY = "normal"


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    name: str
    # Seconds to wait before each retry; its length is the number of retries.
    delays: tuple[float, ...]
    retryable_codes: frozenset[int] = RETRYABLE_CODES

    @property
    def max_attempts(self) -> int:
        return len(self.delays) + 1

    def is_retryable(self, exc: BaseException) -> bool:
        code = error_code(exc)
        return code is not None and code in self.retryable_codes

    def delay_for(self, attempt: int, exc: BaseException | None = None) -> float:
        """Wait before retry number `attempt` (1-based), honoring a retry-after hint."""
        delay = self.delays[min(attempt, len(self.delays)) - 1]
        hint = retry_after_seconds(exc) if exc is not None else None
        if hint is not None:
            return max(delay, hint)
        return delay


_STRATEGIES: dict[str, RetryPolicy] = {
    "none": RetryPolicy(name="none", delays=()),
    "fastest": RetryPolicy(name="fastest", delays=(0.0, 0.0, 0.0)),
    "fast": RetryPolicy(name="fast", delays=(0.01, 0.02, 0.05, 0.1)),
    "normal": RetryPolicy(name="normal", delays=(0.1, 0.2, 0.4, 0.8, 1.6)),
    "patient": RetryPolicy(name="patient", delays=(0.5, 1.0, 2.0, 4.0, 8.0, 16.0)),
}


def list_retry_strategies() -> list[str]:
    return list(_STRATEGIES)


def get_retry_strategy(name: str | None) -> RetryPolicy:
    """Select a retry policy by name; None selects the default strategy."""
    if name is None:
        return _STRATEGIES[DEFAULT_STRATEGY]
    policy = _STRATEGIES.get(name)
    if policy is None:
        raise UnknownStrategyError(
            message=f'Unknown retry strategy "{name}" (known: {", ".join(_STRATEGIES)})',
            strategy=name,
        )
    return policy


def error_code(exc: BaseException) -> int | None:
    # ServiceError and the Azure SDK expose `status_code`; pymongo exposes `code`.
    for attr in ("status_code", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def retry_after_seconds(exc: BaseException) -> float | None:
    ms = getattr(exc, "retry_after_ms", None)
    if ms is None:
        headers = getattr(exc, "headers", None) or {}
        try:
            ms = headers.get("x-ms-retry-after-ms")
        except AttributeError:
            ms = None
    if ms is None:
        return None
    try:
        return float(ms) / 1000.0
    except (TypeError, ValueError):
        return None


async def cosmos_call(
    operation: str,
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy | None = None,
    map_error: Callable[[str, Exception], Exception] | None = None,
) -> T:
    """Run `fn` under `policy`, retrying throttled/transient failures only."""
    policy = policy or get_retry_strategy(None)

    attempt = 1
    while True:
        try:
            return await fn()
        except Exception as e:  # noqa: BLE001
            mapped = map_error(operation, e) if map_error else e

            if not policy.is_retryable(mapped) or attempt >= policy.max_attempts:
                if mapped is e:
                    raise
                raise mapped from e

            delay = policy.delay_for(attempt, mapped)
            log.info(
                "cosmos_call_retry",
                operation=operation,
                attempt=attempt,
                status_code=error_code(mapped),
                delay_s=delay,
                strategy=policy.name,
            )
            await asyncio.sleep(delay)
            attempt += 1
