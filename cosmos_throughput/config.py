from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .observability.logging import get_logger
from .validation import Custom, Primitive, SchemaField, validate
from .validation.checks import as_int

log = get_logger("config")

DEFAULT_THROUGHPUT = 400
DEFAULT_THROUGHPUT_STEPSIZE = 200
DEFAULT_BATCH_SIZE = 10000

OPTIONS_SCHEMA: dict[str, SchemaField] = {
    "host": SchemaField(Custom("hostname"), required=True),
    "username": SchemaField(Primitive("string"), required=True),
    "password": SchemaField(Custom("azure_key"), required=True),
    "db": SchemaField(Custom("azure_database_name"), required=True),
    "collections": SchemaField(Custom("collections"), required=True),
    "max_throughput": SchemaField(Custom("azure_throughput"), required=True, mutable=True),
    "default_throughput": SchemaField(Custom("azure_throughput"), mutable=True),
    "throughput_stepsize": SchemaField(Custom("azure_throughput_steps"), mutable=True),
    "batch_size": SchemaField(Custom("batch_size"), mutable=True),
    "port": SchemaField(Custom("port")),
    "disable_ssl_rejection": SchemaField(Primitive("boolean")),
    "create_collections_with_odm": SchemaField(Primitive("boolean")),
    "retry_strategy": SchemaField(Primitive("string"), mutable=True),
}

NUMERIC_OPTIONS = frozenset(
    {"port", "default_throughput", "max_throughput", "throughput_stepsize", "batch_size"}
)

_HOST_WITH_PORT_RE = re.compile(r"\w:\d+$")


@dataclass(slots=True)
class CollectionSpec:
    name: str
    throughput: int | None = None
    partition_key: list[str] | None = None
    # Set during init(): True once the container is known to exist.
    prepared: bool = False

    @classmethod
    def from_input(cls, item: Any) -> "CollectionSpec":
        if isinstance(item, Mapping):
            name, throughput, partition_key = (
                item.get("name"),
                item.get("throughput"),
                item.get("partition_key"),
            )
        else:
            name = item.name
            throughput = getattr(item, "throughput", None)
            partition_key = getattr(item, "partition_key", None)
        return cls(
            name=name,
            throughput=as_int(throughput) if throughput is not None else None,
            partition_key=list(partition_key) if partition_key else None,
        )


@dataclass(slots=True)
class ClientConfiguration:
    host: str
    username: str
    password: str
    db: str
    collections: list[CollectionSpec]
    max_throughput: int
    default_throughput: int = DEFAULT_THROUGHPUT
    throughput_stepsize: int = DEFAULT_THROUGHPUT_STEPSIZE
    batch_size: int = DEFAULT_BATCH_SIZE
    port: int | None = None
    disable_ssl_rejection: bool = False
    create_collections_with_odm: bool = False
    retry_strategy: str | None = None

    @property
    def endpoint(self) -> str:
        if self.port:
            return f"https://{self.host}:{self.port}"
        return f"https://{self.host}"

    def collection(self, name: str) -> CollectionSpec | None:
        for spec in self.collections:
            if spec.name == name:
                return spec
        return None


def coerce_option(key: str, value: Any) -> Any:
    if key in NUMERIC_OPTIONS and value is not None:
        # Validated beforehand, so every numeric option parses as an integer.
        return as_int(value)
    return value


def build_configuration(options: Any) -> ClientConfiguration:
    """Validate raw client options and freeze them into a ClientConfiguration.

    Every violated option is reported in a single ConfigurationError.
    """
    if isinstance(options, Mapping):
        host = options.get("host")
        if isinstance(host, str) and _HOST_WITH_PORT_RE.search(host):
            log.warning(
                "host_contains_port",
                host=host,
                hint='use option "port" instead',
            )

    validate(options, OPTIONS_SCHEMA, check_for_invalid_keys=True)

    values = {key: coerce_option(key, value) for key, value in options.items() if value is not None}
    values["collections"] = [CollectionSpec.from_input(item) for item in options["collections"]]
    return ClientConfiguration(**values)
