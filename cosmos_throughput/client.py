"""Client facade: configuration, initialization and the public operations."""

from __future__ import annotations

from typing import Any

from .config import (
    NUMERIC_OPTIONS,
    OPTIONS_SCHEMA,
    ClientConfiguration,
    build_configuration,
    coerce_option,
)
from .db.cosmos.client import AzureCosmosService
from .db.cosmos.retry import RetryPolicy, get_retry_strategy
from .db.cosmos.service import DELETE_OK, CosmosService
from .errors import ConfigurationError, NotInitializedError, SafetyGuardError, ServiceError
from .models.adapter import OdmHandle, RetryingModel, collection_name_for, ensure_valid_model_name
from .observability.logging import get_logger
from .services.lifecycle import LifecycleManager
from .services.throughput import CollectionThroughput, ThroughputController
from .settings import Settings, get_settings
from .validation import validate

log = get_logger("client")

DELETE_DATABASE_CONFIRMATION = "I'm sure it's okay!"
DELETE_COLLECTION_CONFIRMATION = "Yes, do it!"

LIST_OF_PUBLIC_METHODS = [
    "init",
    "get_option",
    "set_option",
    "create_model",
    "get_collection_throughput",
    "list_collections_with_throughput",
    "increase_collection_throughput",
    "update_collection_throughput",
    "update_all_collections_throughput",
    "reset_throughput",
    "delete_database",
    "delete_collection",
]


class CosmosClientWrapper:
    """Manages the provisioned throughput of one database's containers.

    Options are validated once at construction; only the options marked
    mutable in `OPTIONS_SCHEMA` can change afterwards (see `set_option`).
    Call `init()` before using any throughput operation.
    """

    def __init__(
        self,
        options: Any,
        *,
        service: CosmosService | None = None,
        settings: Settings | None = None,
    ):
        self._config: ClientConfiguration = build_configuration(options)
        # Fail at startup rather than on the first throttled request.
        self._retry_policy = get_retry_strategy(self._config.retry_strategy)
        self._settings = settings
        self._service: CosmosService = service or AzureCosmosService(
            self._config, retry_policy=self._retry_policy
        )
        self._set_retry_policy(self._retry_policy)
        self._lifecycle = LifecycleManager(self._service, self._config)
        self._throughput = ThroughputController(self._service, self._lifecycle, self._config)
        self.initialized = False

    async def __aenter__(self) -> "CosmosClientWrapper":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @staticmethod
    def get_list_of_public_methods() -> list[str]:
        return list(LIST_OF_PUBLIC_METHODS)

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @property
    def configuration(self) -> ClientConfiguration:
        return self._config

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    @property
    def service(self) -> CosmosService:
        return self._service

    # --- options ---

    def get_option(self, key: str) -> Any:
        """Current value of an option; None for unknown option names."""
        if key not in OPTIONS_SCHEMA:
            return None
        return getattr(self._config, key)

    def set_option(self, key: str, value: Any) -> "CosmosClientWrapper":
        """
        Change a mutable option.

        Unknown or immutable options and invalid values raise ConfigurationError;
        a `retry_strategy` outside the registry raises UnknownStrategyError.
        """
        field = OPTIONS_SCHEMA.get(key)
        if field is None:
            raise ConfigurationError(message=f'Unknown option "{key}"', violations=[key])
        if not field.mutable:
            raise ConfigurationError(
                message=f'Can\'t change immutable option "{key}"',
                violations=[key],
            )
        if value is None and key in NUMERIC_OPTIONS:
            raise ConfigurationError(message=f'Option "{key}" can\'t be unset', violations=[key])

        try:
            validate({key: value}, OPTIONS_SCHEMA, ignore_missing_keys=True)
        except ConfigurationError as e:
            raise ConfigurationError(
                message=f'Invalid value for option "{key}" - {e.message}',
                violations=e.violations,
            ) from e

        value = coerce_option(key, value)
        if key == "retry_strategy":
            self._set_retry_policy(get_retry_strategy(value))
        setattr(self._config, key, value)
        log.info("option_changed", option=key)
        return self

    def _set_retry_policy(self, policy: RetryPolicy) -> None:
        self._retry_policy = policy
        if hasattr(self._service, "retry_policy"):
            self._service.retry_policy = policy

    # --- lifecycle ---

    async def init(self) -> "CosmosClientWrapper":
        """Create the database and the declared collections where missing."""
        log.debug("client_initializing", endpoint=self._config.endpoint, database=self._config.db)
        try:
            await self._lifecycle.provision()
        except Exception as e:
            log.error("client_init_failed", database=self._config.db, error=str(e))
            raise

        self.initialized = True
        return self

    async def close(self) -> None:
        await self._service.close()

    def _ensure_is_initialized(self) -> None:
        if not self.initialized:
            raise NotInitializedError(
                message="Can't use client method - call init() and wait for it, first."
            )

    def _ensure_destructive_operation_allowed(
        self, operation: str, safety_flag: Any, expected: str
    ) -> None:
        if self.settings.is_production:
            raise SafetyGuardError(
                message=f"{operation}(): Not available in production mode",
                operation=operation,
            )
        if safety_flag != expected:
            raise SafetyGuardError(
                message=f"{operation}(): Won't proceed - missing/invalid safety flag!",
                operation=operation,
            )

    async def delete_database(self, *, safety_flag: Any = None) -> "CosmosClientWrapper":
        """
        Remove the configured database (if it exists).

        `safety_flag` has to be "I'm sure it's okay!"; never available in production.
        """
        self._ensure_destructive_operation_allowed(
            "delete_database", safety_flag, DELETE_DATABASE_CONFIRMATION
        )

        status = await self._lifecycle.delete_database()
        if status is not None and status != DELETE_OK:
            raise ServiceError(
                message="delete_database() failed",
                operation="DeleteDatabase",
                status_code=status,
            )
        if status is not None:
            log.warning("database_deleted", database=self._config.db)
        return self

    async def delete_collection(
        self, collection_name: str, *, safety_flag: Any = None
    ) -> "CosmosClientWrapper":
        """
        Remove one collection (if it exists).

        `safety_flag` has to be "Yes, do it!"; never available in production.
        """
        self._ensure_destructive_operation_allowed(
            "delete_collection", safety_flag, DELETE_COLLECTION_CONFIRMATION
        )

        status = await self._lifecycle.delete_container(collection_name)
        if status is not None and status != DELETE_OK:
            raise ServiceError(
                message="delete_collection() failed",
                operation="DeleteContainer",
                status_code=status,
            )
        if status is not None:
            spec = self._config.collection(collection_name)
            if spec is not None:
                spec.prepared = False
            log.warning("collection_deleted", collection=collection_name)
        return self

    # --- models ---

    def create_model(self, model_name: str, schema: Any, orm: OdmHandle) -> RetryingModel:
        """
        Build an ODM model for a declared collection, wrapped with retry handling.

        Only collections declared in the options can back a model, and the
        client has to be initialized first.
        """
        try:
            ensure_valid_model_name(model_name)
            if schema is None:
                raise ConfigurationError(message="Missing model schema", violations=["schema"])
            if orm is None or not callable(getattr(orm, "model", None)):
                raise ConfigurationError(
                    message="Invalid ODM handle - expected an object with model()",
                    violations=["orm"],
                )

            self._ensure_is_initialized()

            collection_name = collection_name_for(model_name, schema, orm)
            spec = self._config.collection(collection_name)
            if spec is None:
                raise ConfigurationError(
                    message=(
                        "Can't create model without knowing collection - adapt the client "
                        f'options (model "{model_name}", expected collection "{collection_name}")'
                    ),
                    violations=["collections"],
                )

            model = RetryingModel(orm.model(model_name, schema), client=self, collection=collection_name)

            if self._config.create_collections_with_odm and not spec.prepared:
                spec.prepared = True
        except Exception as e:
            log.error("create_model_failed", model=model_name, error=str(e))
            raise

        return model

    # --- throughput ---

    async def get_collection_throughput(self, collection_name: str) -> int | None:
        self._ensure_is_initialized()
        return await self._throughput.get_throughput(collection_name)

    async def list_collections_with_throughput(self) -> list[CollectionThroughput] | None:
        """
        Throughput of every declared collection that could be resolved.

        Returns None when not a single collection could be resolved.
        """
        self._ensure_is_initialized()
        return await self._throughput.list_with_throughput()

    async def increase_collection_throughput(self, collection_name: str) -> int | None:
        """
        Raise a collection's throughput by the configured step.

        Returns the difference between old and new throughput, or None when the
        collection already uses `max_throughput`. A missing database or
        collection raises NotFoundError.
        """
        self._ensure_is_initialized()
        return await self._throughput.increase_throughput(collection_name)

    async def update_collection_throughput(self, collection_name: str, new_throughput: Any) -> int:
        """Set a collection's throughput; returns the throughput after the update."""
        self._ensure_is_initialized()
        return await self._throughput.update_throughput(collection_name, new_throughput)

    async def update_all_collections_throughput(self, new_throughput: Any) -> list[int]:
        self._ensure_is_initialized()
        return await self._throughput.update_all_throughput(new_throughput)

    async def reset_throughput(self) -> list[int]:
        """Set every collection back to its configured (or the default) throughput."""
        self._ensure_is_initialized()
        return await self._throughput.reset_throughput()


class ClientRegistry:
    """Holds the process-wide client between `create` and `reset`."""

    def __init__(self) -> None:
        self._client: CosmosClientWrapper | None = None

    def create(
        self,
        options: Any,
        *,
        service: CosmosService | None = None,
        settings: Settings | None = None,
    ) -> CosmosClientWrapper:
        self._client = CosmosClientWrapper(options, service=service, settings=settings)
        return self._client

    def get(self) -> CosmosClientWrapper:
        if self._client is None:
            raise NotInitializedError(message="No client created yet - call create_client() first.")
        return self._client

    async def reset(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.close()


_default_registry = ClientRegistry()


def create_client(
    options: Any,
    *,
    service: CosmosService | None = None,
    settings: Settings | None = None,
) -> CosmosClientWrapper:
    return _default_registry.create(options, service=service, settings=settings)


def get_client() -> CosmosClientWrapper:
    return _default_registry.get()


async def reset_client() -> None:
    await _default_registry.reset()
