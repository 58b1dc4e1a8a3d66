from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

# Status code the service returns for a successful delete.
DELETE_OK = 204


@dataclass(frozen=True, slots=True)
class ThroughputOffer:
    """Provisioned capacity (RU/s) currently attached to one container."""

    throughput: int


@runtime_checkable
class CosmosService(Protocol):
    """Operations the client needs from the document database.

    Handles returned by the find/create methods are opaque to callers. Find
    and read methods return None when the resource does not exist; every
    other failure is raised as `ServiceError`.
    """

    async def find_database(self, name: str) -> Any | None: ...

    async def create_database(self, name: str) -> Any: ...

    async def find_container(self, database: Any, name: str) -> Any | None: ...

    async def create_container(
        self,
        database: Any,
        name: str,
        throughput: int,
        partition_key: list[str] | None = None,
    ) -> Any: ...

    async def read_offer(self, container: Any) -> ThroughputOffer | None: ...

    async def replace_offer(self, container: Any, throughput: int) -> ThroughputOffer: ...

    async def delete_database(self, database: Any) -> int: ...

    async def delete_container(self, container: Any) -> int: ...

    async def close(self) -> None: ...
