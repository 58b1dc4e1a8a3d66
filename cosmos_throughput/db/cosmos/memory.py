"""Process-local emulation of the Cosmos DB operations the client uses.

Useful for development without an account and as the backend of the test
suite. Faults can be injected per operation to exercise retry handling.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from ...errors import ServiceError
from .retry import RETRYABLE_CODES, RetryPolicy, cosmos_call
from .service import DELETE_OK, ThroughputOffer

T = TypeVar("T")


@dataclass(slots=True)
class MemoryContainer:
    database: "MemoryDatabase"
    name: str
    partition_key: list[str] | None
    throughput: int | None


@dataclass(slots=True)
class MemoryDatabase:
    name: str
    containers: dict[str, MemoryContainer] = field(default_factory=dict)


@dataclass(slots=True)
class _Fault:
    remaining: int
    status_code: int
    retry_after_ms: float | None = None


class InMemoryCosmosService:
    """`CosmosService` keeping databases, containers and offers in memory."""

    def __init__(
        self,
        *,
        retry_policy: RetryPolicy | None = None,
        max_accepted_throughput: int | None = None,
    ):
        self.databases: dict[str, MemoryDatabase] = {}
        self.retry_policy = retry_policy
        # Replacements above this value are only partially honored.
        self.max_accepted_throughput = max_accepted_throughput
        self.calls: defaultdict[str, int] = defaultdict(int)
        self.closed = False
        self._faults: dict[str, _Fault] = {}

    # --- test/dev helpers ---

    def fail_next(
        self,
        operation: str,
        *,
        status_code: int = 429,
        times: int = 1,
        retry_after_ms: float | None = None,
    ) -> None:
        self._faults[operation] = _Fault(
            remaining=times, status_code=status_code, retry_after_ms=retry_after_ms
        )

    def mutation_count(self) -> int:
        return sum(self.calls[op] for op in ("CreateDatabase", "CreateContainer", "ReplaceOffer"))

    def throughput_of(self, database: str, container: str) -> int | None:
        db = self.databases.get(database)
        if db is None or container not in db.containers:
            return None
        return db.containers[container].throughput

    def add_container(
        self,
        database: str,
        name: str,
        *,
        throughput: int | None = 400,
        partition_key: list[str] | None = None,
    ) -> MemoryContainer:
        db = self.databases.setdefault(database, MemoryDatabase(name=database))
        container = MemoryContainer(
            database=db, name=name, partition_key=partition_key, throughput=throughput
        )
        db.containers[name] = container
        return container

    # --- plumbing ---

    async def _call(self, operation: str, fn: Callable[[], T]) -> T:
        async def _op() -> T:
            self.calls[operation] += 1
            # Yield so concurrent fan-out actually interleaves.
            await asyncio.sleep(0)
            self._raise_injected_fault(operation)
            return fn()

        return await cosmos_call(operation, _op, policy=self.retry_policy)

    def _raise_injected_fault(self, operation: str) -> None:
        fault = self._faults.get(operation)
        if fault is None or fault.remaining <= 0:
            return
        fault.remaining -= 1
        if fault.remaining == 0:
            del self._faults[operation]
        raise ServiceError(
            message=f"Injected failure ({operation}: HTTP {fault.status_code})",
            operation=operation,
            status_code=fault.status_code,
            retry_after_ms=fault.retry_after_ms,
            retryable=fault.status_code in RETRYABLE_CODES,
        )

    def _live(self, container: MemoryContainer) -> MemoryContainer:
        db = self.databases.get(container.database.name)
        if db is None or db.containers.get(container.name) is not container:
            raise ServiceError(
                message=f'Container "{container.name}" does not exist',
                status_code=404,
            )
        return container

    # --- CosmosService ---

    async def find_database(self, name: str) -> MemoryDatabase | None:
        return await self._call("ReadDatabase", lambda: self.databases.get(name))

    async def create_database(self, name: str) -> MemoryDatabase:
        return await self._call(
            "CreateDatabase",
            lambda: self.databases.setdefault(name, MemoryDatabase(name=name)),
        )

    async def find_container(self, database: MemoryDatabase, name: str) -> MemoryContainer | None:
        def _op():
            db = self.databases.get(database.name)
            return None if db is None else db.containers.get(name)

        return await self._call("ReadContainer", _op)

    async def create_container(
        self,
        database: MemoryDatabase,
        name: str,
        throughput: int,
        partition_key: list[str] | None = None,
    ) -> MemoryContainer:
        def _op():
            db = self.databases.get(database.name)
            if db is None:
                raise ServiceError(
                    message=f'Database "{database.name}" does not exist',
                    operation="CreateContainer",
                    status_code=404,
                )
            if name not in db.containers:
                db.containers[name] = MemoryContainer(
                    database=db, name=name, partition_key=partition_key, throughput=throughput
                )
            return db.containers[name]

        return await self._call("CreateContainer", _op)

    async def read_offer(self, container: MemoryContainer) -> ThroughputOffer | None:
        def _op():
            live = self._live(container)
            if live.throughput is None:
                return None
            return ThroughputOffer(throughput=live.throughput)

        return await self._call("ReadOffer", _op)

    async def replace_offer(self, container: MemoryContainer, throughput: int) -> ThroughputOffer:
        def _op():
            live = self._live(container)
            accepted = throughput
            if self.max_accepted_throughput is not None:
                accepted = min(accepted, self.max_accepted_throughput)
            live.throughput = accepted
            return ThroughputOffer(throughput=accepted)

        return await self._call("ReplaceOffer", _op)

    async def delete_database(self, database: MemoryDatabase) -> int:
        def _op():
            self.databases.pop(database.name, None)
            return DELETE_OK

        return await self._call("DeleteDatabase", _op)

    async def delete_container(self, container: MemoryContainer) -> int:
        def _op():
            db = self.databases.get(container.database.name)
            if db is not None:
                db.containers.pop(container.name, None)
            return DELETE_OK

        return await self._call("DeleteContainer", _op)

    async def close(self) -> None:
        self.closed = True
