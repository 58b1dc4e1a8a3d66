from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class CosmosThroughputError(Exception):
    """Base error for the throughput client.

    Carries a human readable message plus whatever structured context the
    raising layer knows about, so callers and log processors can inspect it
    without parsing the message.
    """

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class ConfigurationError(CosmosThroughputError):
    violations: list[str] = field(default_factory=list)


@dataclass(slots=True)
class NotInitializedError(CosmosThroughputError):
    pass


@dataclass(slots=True)
class NotFoundError(CosmosThroughputError):
    database: str | None = None
    collection: str | None = None


@dataclass(slots=True)
class UnknownStrategyError(CosmosThroughputError):
    strategy: str | None = None


@dataclass(slots=True)
class SafetyGuardError(CosmosThroughputError):
    operation: str | None = None


@dataclass(slots=True)
class ServiceError(CosmosThroughputError):
    """Failure reported by the database service.

    `status_code` is the HTTP status (or Mongo API error code) returned by the
    service, when there was one.
    """

    operation: str | None = None
    status_code: int | None = None
    sub_status: int | None = None
    retry_after_ms: float | None = None
    retryable: bool = False
    cause: Any | None = None
