"""Cosmos DB access.

This package centralizes:
- the service contract the client depends on (`CosmosService`)
- the Azure SDK adapter and an in-memory emulator implementing it
- retry/backoff strategies for throttled and transient failures

"""

from .memory import InMemoryCosmosService
from .retry import RetryPolicy, cosmos_call, get_retry_strategy, list_retry_strategies
from .service import DELETE_OK, CosmosService, ThroughputOffer

__all__ = [
    "DELETE_OK",
    "CosmosService",
    "InMemoryCosmosService",
    "RetryPolicy",
    "ThroughputOffer",
    "cosmos_call",
    "get_retry_strategy",
    "list_retry_strategies",
]
