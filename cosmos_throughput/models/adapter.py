from __future__ import annotations

import asyncio
import inspect
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable, Protocol

from ..db.cosmos.retry import RetryPolicy, error_code
from ..errors import ConfigurationError, CosmosThroughputError
from ..observability.logging import get_logger

if TYPE_CHECKING:
    from ..client import CosmosClientWrapper

log = get_logger("model_adapter")

_MODEL_NAME_RE = re.compile(r"^\w+$")


class OdmHandle(Protocol):
    """The part of an object-document mapper `create_model` relies on."""

    def model(self, name: str, schema: Any) -> Any: ...


def ensure_valid_model_name(name: Any) -> str:
    if not isinstance(name, str) or not _MODEL_NAME_RE.match(name):
        raise ConfigurationError(
            message=f"Invalid model name {name!r} - expected letters, digits or underscores",
            violations=["model name"],
        )
    return name


def collection_name_for(model_name: str, schema: Any, orm: Any) -> str:
    """Collection a model is stored in: explicit on the schema, else the ODM's plural."""
    if isinstance(schema, Mapping):
        explicit = schema.get("collection")
    else:
        explicit = getattr(schema, "collection", None)
    if isinstance(explicit, str) and explicit:
        return explicit

    pluralize = getattr(orm, "pluralize", None)
    if callable(pluralize):
        return str(pluralize(model_name))
    return f"{model_name.lower()}s"


async def _resolve(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class RetryingModel:
    """Wraps an ODM model so throttled operations are retried.

    Every retryable failure first asks the client to raise the collection's
    throughput by one step, then waits the policy delay. Attributes other than
    the wrapped operations are delegated to the model.
    """

    def __init__(
        self,
        model: Any,
        *,
        client: "CosmosClientWrapper",
        collection: str,
    ):
        self._model = model
        self._client = client
        self.collection = collection

    @property
    def model(self) -> Any:
        return self._model

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self._model, name)

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._client.retry_policy

    async def _escalate_throughput(self) -> int | None:
        try:
            return await self._client.increase_collection_throughput(self.collection)
        except CosmosThroughputError as e:
            # Keep retrying the original operation; the increase is best effort.
            log.warning(
                "throughput_escalation_failed",
                collection=self.collection,
                error=str(e),
            )
            return None

    async def _call(self, operation: str, fn: Callable[[], Any]) -> Any:
        policy = self.retry_policy
        attempt = 1
        while True:
            try:
                return await _resolve(fn())
            except Exception as e:  # noqa: BLE001
                if not policy.is_retryable(e) or attempt >= policy.max_attempts:
                    log.error(
                        "model_operation_failed",
                        operation=operation,
                        collection=self.collection,
                        attempt=attempt,
                        error=str(e),
                    )
                    raise

                delta = await self._escalate_throughput()
                delay = policy.delay_for(attempt, e)
                log.info(
                    "model_operation_throttled",
                    operation=operation,
                    collection=self.collection,
                    attempt=attempt,
                    status_code=error_code(e),
                    throughput_increase=delta,
                    delay_s=delay,
                )
                await asyncio.sleep(delay)
                attempt += 1

    async def find(self, *args: Any, **kwargs: Any) -> Any:
        batch_size = self._client.get_option("batch_size")

        def _op():
            result = self._model.find(*args, **kwargs)
            if batch_size and hasattr(result, "batch_size"):
                result = result.batch_size(batch_size)
            return result

        return await self._call("find", _op)

    async def find_one(self, *args: Any, **kwargs: Any) -> Any:
        return await self._call("find_one", lambda: self._model.find_one(*args, **kwargs))

    async def find_one_and_update(self, *args: Any, **kwargs: Any) -> Any:
        return await self._call(
            "find_one_and_update",
            lambda: self._model.find_one_and_update(*args, **kwargs),
        )

    async def save(self, document: Any) -> Any:
        save = getattr(document, "save", None)
        if callable(save):
            return await self._call("save", save)
        return await self._call("save", lambda: self._model.save(document))

    async def update(self, *args: Any, **kwargs: Any) -> Any:
        return await self._call("update", lambda: self._model.update(*args, **kwargs))
