"""Provisioned throughput management for Azure Cosmos DB containers."""

from .client import ClientRegistry, CosmosClientWrapper, create_client, get_client, reset_client
from .config import ClientConfiguration, CollectionSpec
from .db.cosmos import InMemoryCosmosService, RetryPolicy, ThroughputOffer, get_retry_strategy
from .errors import (
    ConfigurationError,
    CosmosThroughputError,
    NotFoundError,
    NotInitializedError,
    SafetyGuardError,
    ServiceError,
    UnknownStrategyError,
)
from .observability.logging import configure_logging
from .services.throughput import CollectionThroughput

__all__ = [
    "ClientConfiguration",
    "ClientRegistry",
    "CollectionSpec",
    "CollectionThroughput",
    "ConfigurationError",
    "CosmosClientWrapper",
    "CosmosThroughputError",
    "InMemoryCosmosService",
    "NotFoundError",
    "NotInitializedError",
    "RetryPolicy",
    "SafetyGuardError",
    "ServiceError",
    "ThroughputOffer",
    "UnknownStrategyError",
    "configure_logging",
    "create_client",
    "get_client",
    "get_retry_strategy",
    "reset_client",
]
