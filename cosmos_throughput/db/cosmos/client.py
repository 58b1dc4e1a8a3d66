from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

from azure.cosmos import PartitionKey, exceptions
from azure.cosmos.aio import CosmosClient, ContainerProxy, DatabaseProxy

from ...config import ClientConfiguration
from ...errors import ServiceError
from .retry import RETRYABLE_CODES, RetryPolicy, cosmos_call, retry_after_seconds
from .service import DELETE_OK, ThroughputOffer

T = TypeVar("T")

# Containers must have a partition key on the SQL API.
DEFAULT_PARTITION_KEY = "/id"


def cosmos_client_options(config: ClientConfiguration) -> dict[str, Any]:
    options: dict[str, Any] = {
        "url": config.endpoint,
        "credential": config.password,
    }
    if config.disable_ssl_rejection:
        options["connection_verify"] = False
    return options


def partition_key_for(paths: list[str] | None) -> PartitionKey:
    if not paths:
        return PartitionKey(path=DEFAULT_PARTITION_KEY)
    if len(paths) == 1:
        return PartitionKey(path=paths[0])
    return PartitionKey(path=list(paths), kind="MultiHash")


def _map_cosmos_error(operation: str, exc: Exception) -> Exception:
    if isinstance(exc, ServiceError):
        return exc

    if isinstance(exc, exceptions.CosmosHttpResponseError):
        code = exc.status_code
        hint = retry_after_seconds(exc)
        return ServiceError(
            message=f"Cosmos DB request failed ({operation}: HTTP {code})",
            operation=operation,
            status_code=code,
            sub_status=getattr(exc, "sub_status", None),
            retry_after_ms=hint * 1000 if hint is not None else None,
            retryable=code in RETRYABLE_CODES,
            cause=exc,
        )

    return ServiceError(
        message=f"Unexpected Cosmos DB error ({operation})",
        operation=operation,
        retryable=False,
        cause=exc,
    )


class AzureCosmosService:
    """`CosmosService` backed by the async Azure Cosmos DB SDK."""

    def __init__(
        self,
        config: ClientConfiguration,
        *,
        retry_policy: RetryPolicy | None = None,
        client: CosmosClient | None = None,
    ):
        self._client = client or CosmosClient(**cosmos_client_options(config))
        self._retry_policy = retry_policy

    @property
    def retry_policy(self) -> RetryPolicy | None:
        return self._retry_policy

    @retry_policy.setter
    def retry_policy(self, policy: RetryPolicy | None) -> None:
        self._retry_policy = policy

    async def _call(self, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        return await cosmos_call(
            operation,
            fn,
            policy=self._retry_policy,
            map_error=_map_cosmos_error,
        )

    async def find_database(self, name: str) -> DatabaseProxy | None:
        async def _op():
            database = self._client.get_database_client(name)
            try:
                await database.read()
            except exceptions.CosmosResourceNotFoundError:
                return None
            return database

        return await self._call("ReadDatabase", _op)

    async def create_database(self, name: str) -> DatabaseProxy:
        async def _op():
            try:
                return await self._client.create_database(id=name)
            except exceptions.CosmosResourceExistsError:
                # Lost a creation race; the service keeps exactly one.
                return self._client.get_database_client(name)

        return await self._call("CreateDatabase", _op)

    async def find_container(self, database: DatabaseProxy, name: str) -> ContainerProxy | None:
        async def _op():
            container = database.get_container_client(name)
            try:
                await container.read()
            except exceptions.CosmosResourceNotFoundError:
                return None
            return container

        return await self._call("ReadContainer", _op)

    async def create_container(
        self,
        database: DatabaseProxy,
        name: str,
        throughput: int,
        partition_key: list[str] | None = None,
    ) -> ContainerProxy:
        async def _op():
            try:
                return await database.create_container(
                    id=name,
                    partition_key=partition_key_for(partition_key),
                    offer_throughput=throughput,
                )
            except exceptions.CosmosResourceExistsError:
                return database.get_container_client(name)

        return await self._call("CreateContainer", _op)

    async def read_offer(self, container: ContainerProxy) -> ThroughputOffer | None:
        async def _op():
            try:
                properties = await container.get_throughput()
            except exceptions.CosmosResourceNotFoundError:
                # Serverless accounts and shared (database level) throughput.
                return None
            if properties is None or properties.offer_throughput is None:
                return None
            return ThroughputOffer(throughput=int(properties.offer_throughput))

        return await self._call("ReadOffer", _op)

    async def replace_offer(self, container: ContainerProxy, throughput: int) -> ThroughputOffer:
        async def _op():
            properties = await container.replace_throughput(throughput)
            return ThroughputOffer(throughput=int(properties.offer_throughput))

        return await self._call("ReplaceOffer", _op)

    async def delete_database(self, database: DatabaseProxy) -> int:
        async def _op():
            await self._client.delete_database(database)
            return DELETE_OK

        return await self._call("DeleteDatabase", _op)

    async def delete_container(self, container: ContainerProxy) -> int:
        # database_link has the form "dbs/<database id>".
        database_id = container.database_link.split("/", 1)[-1]

        async def _op():
            await self._client.get_database_client(database_id).delete_container(container)
            return DELETE_OK

        return await self._call("DeleteContainer", _op)

    async def close(self) -> None:
        await self._client.close()
