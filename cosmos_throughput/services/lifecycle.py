from __future__ import annotations

import asyncio
from typing import Any

from ..config import ClientConfiguration, CollectionSpec
from ..db.cosmos.service import CosmosService
from ..observability.logging import get_logger

log = get_logger("lifecycle")


class LifecycleManager:
    """Makes sure the configured database and its containers exist.

    Handles are cached for the lifetime of the manager: the database handle by
    name, container handles by name within that database. Deletions through
    this manager evict the cache; deletions made by other processes are not
    noticed.
    """

    def __init__(self, service: CosmosService, config: ClientConfiguration):
        self._service = service
        self._config = config
        self._database: Any | None = None
        self._containers: dict[str, Any] = {}

    # --- provisioning ---

    async def ensure_database(self, name: str) -> Any:
        existing = await self._service.find_database(name)
        if existing is not None:
            log.info("database_reused", database=name)
            self._remember_database(existing)
            return existing

        database = await self._service.create_database(name)
        log.info("database_created", database=name)
        self._remember_database(database)
        return database

    async def ensure_container(self, database: Any, spec: CollectionSpec) -> Any | None:
        existing = await self._service.find_container(database, spec.name)
        if existing is not None:
            log.info("container_reused", container=spec.name)
            spec.prepared = True
            self._containers[spec.name] = existing
            return existing

        if self._config.create_collections_with_odm:
            # The ODM layer creates the collection on first use.
            spec.prepared = False
            return None

        throughput = spec.throughput or self._config.default_throughput
        container = await self._service.create_container(
            database,
            spec.name,
            throughput,
            spec.partition_key or None,
        )
        log.info("container_created", container=spec.name, throughput=throughput)
        spec.prepared = True
        self._containers[spec.name] = container
        return container

    async def provision(self) -> Any:
        """Ensure the database, then every declared container concurrently.

        The first failure is raised; resources created before it are kept.
        """
        database = await self.ensure_database(self._config.db)
        await asyncio.gather(
            *(self.ensure_container(database, spec) for spec in self._config.collections)
        )
        return database

    # --- resolution ---

    async def resolve_database(self) -> Any | None:
        if self._database is not None:
            return self._database
        database = await self._service.find_database(self._config.db)
        if database is not None:
            self._remember_database(database)
        return database

    async def resolve_container(self, database: Any, name: str) -> Any | None:
        cached = self._containers.get(name)
        if cached is not None:
            return cached
        container = await self._service.find_container(database, name)
        if container is not None:
            self._containers[name] = container
        return container

    def forget_container(self, name: str) -> None:
        self._containers.pop(name, None)

    # --- removal ---

    async def delete_database(self) -> int | None:
        """Delete the configured database; None when it did not exist."""
        database = await self._service.find_database(self._config.db)
        if database is None:
            return None
        status = await self._service.delete_database(database)
        self._database = None
        self._containers.clear()
        return status

    async def delete_container(self, name: str) -> int | None:
        """Delete one container; None when it (or the database) did not exist."""
        database = await self._service.find_database(self._config.db)
        if database is None:
            return None
        container = await self._service.find_container(database, name)
        if container is None:
            return None
        status = await self._service.delete_container(container)
        self._containers.pop(name, None)
        return status

    def _remember_database(self, database: Any) -> None:
        if self._database is not database:
            self._containers.clear()
        self._database = database
