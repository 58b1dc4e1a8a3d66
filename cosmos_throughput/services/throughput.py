from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from ..config import ClientConfiguration, CollectionSpec
from ..db.cosmos.service import CosmosService, ThroughputOffer
from ..errors import NotFoundError, ServiceError
from ..observability.logging import get_logger
from ..validation.checks import MIN_THROUGHPUT
from .lifecycle import LifecycleManager

log = get_logger("throughput")


@dataclass(frozen=True, slots=True)
class CollectionThroughput:
    collection: str
    throughput: int


class ThroughputController:
    """Reads and adjusts the provisioned throughput of declared containers.

    The current offer is read from the service before every decision; nothing
    is cached between calls and no lock is held between the read and the
    write, so a concurrent change by another client can make a returned
    delta differ from what this call requested.
    """

    def __init__(
        self,
        service: CosmosService,
        lifecycle: LifecycleManager,
        config: ClientConfiguration,
    ):
        self._service = service
        self._lifecycle = lifecycle
        self._config = config

    # --- resolution ---

    async def _find_container(self, name: str) -> tuple[Any | None, Any | None]:
        database = await self._lifecycle.resolve_database()
        if database is None:
            return None, None
        container = await self._lifecycle.resolve_container(database, name)
        return database, container

    async def _require_container(self, name: str) -> Any:
        database, container = await self._find_container(name)
        if database is None:
            raise NotFoundError(
                message=f'Can\'t find database "{self._config.db}"',
                database=self._config.db,
            )
        if container is None:
            raise NotFoundError(
                message=f'Can\'t find collection "{name}"',
                database=self._config.db,
                collection=name,
            )
        return container

    async def _read_offer(self, name: str, container: Any) -> ThroughputOffer | None:
        try:
            return await self._service.read_offer(container)
        except ServiceError as e:
            if e.status_code != 404:
                raise
            # Stale handle: the container was removed behind our back.
            self._lifecycle.forget_container(name)
            return None

    async def _require_throughput(self, name: str, container: Any) -> int:
        offer = await self._read_offer(name, container)
        if offer is None:
            raise NotFoundError(
                message=f'Can\'t find throughput offer of collection "{name}"',
                database=self._config.db,
                collection=name,
            )
        return offer.throughput

    # --- queries ---

    async def get_throughput(self, name: str) -> int | None:
        _, container = await self._find_container(name)
        if container is None:
            return None
        offer = await self._read_offer(name, container)
        return None if offer is None else offer.throughput

    async def list_with_throughput(self) -> list[CollectionThroughput] | None:
        try:
            database = await self._lifecycle.resolve_database()
            if database is None:
                return None

            async def _one(spec: CollectionSpec) -> CollectionThroughput | None:
                container = await self._lifecycle.resolve_container(database, spec.name)
                if container is None:
                    return None
                offer = await self._read_offer(spec.name, container)
                if offer is None:
                    return None
                return CollectionThroughput(collection=spec.name, throughput=offer.throughput)

            results = await asyncio.gather(*(_one(spec) for spec in self._config.collections))
        except Exception as e:
            log.error("list_collections_with_throughput_failed", error=str(e))
            raise

        resolved = [item for item in results if item is not None]
        return resolved or None

    # --- adjustments ---

    async def increase_throughput(self, name: str) -> int | None:
        """Raise throughput by one step, capped at `max_throughput`.

        Returns the achieved delta, or None when already at the maximum.
        """
        try:
            container = await self._require_container(name)
            before = await self._require_throughput(name, container)

            maximum = self._config.max_throughput
            if before >= maximum:
                log.warning(
                    "throughput_at_maximum",
                    collection=name,
                    throughput=before,
                    max_throughput=maximum,
                )
                return None

            requested = min(before + self._config.throughput_stepsize, maximum)
            await self._service.replace_offer(container, requested)

            after = await self._require_throughput(name, container)
        except Exception as e:
            log.error("increase_collection_throughput_failed", collection=name, error=str(e))
            raise

        log.info(
            "throughput_increased",
            collection=name,
            before=before,
            requested=requested,
            after=after,
        )
        return after - before

    async def update_throughput(self, name: str, target: Any) -> int:
        """Set throughput to `target` and return the value read back afterwards.

        Out of range or non integer targets leave the container untouched and
        return its current throughput.
        """
        try:
            container = await self._require_container(name)
            before = await self._require_throughput(name, container)

            if target == before:
                return before

            valid_value = isinstance(target, int) and not isinstance(target, bool)
            if not valid_value or not MIN_THROUGHPUT <= target <= self._config.max_throughput:
                log.warning(
                    "throughput_update_rejected",
                    collection=name,
                    value=target,
                    max_throughput=self._config.max_throughput,
                )
                return before

            await self._service.replace_offer(container, target)
            return await self._require_throughput(name, container)
        except Exception as e:
            log.error("update_collection_throughput_failed", collection=name, error=str(e))
            raise

    async def update_all_throughput(self, target: Any) -> list[int]:
        try:
            results = await asyncio.gather(
                *(self.update_throughput(spec.name, target) for spec in self._config.collections)
            )
        except Exception as e:
            log.error("update_all_collections_throughput_failed", error=str(e))
            raise

        log.info("all_collections_throughput_updated", value=target)
        return list(results)

    async def reset_throughput(self) -> list[int]:
        async def _reset(spec: CollectionSpec) -> int:
            value = spec.throughput or self._config.default_throughput
            log.info("throughput_reset", collection=spec.name, value=value)
            return await self.update_throughput(spec.name, value)

        try:
            results = await asyncio.gather(*(_reset(spec) for spec in self._config.collections))
        except Exception as e:
            log.error("reset_throughput_failed", error=str(e))
            raise
        return list(results)
