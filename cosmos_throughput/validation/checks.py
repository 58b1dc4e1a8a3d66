from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Callable

MIN_THROUGHPUT = 100
THROUGHPUT_GRANULARITY = 100

_HOSTNAME_LABEL = r"[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
_HOSTNAME_RE = re.compile(rf"^{_HOSTNAME_LABEL}(?:\.{_HOSTNAME_LABEL})*$")
_AZURE_KEY_RE = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")
_DATABASE_NAME_FORBIDDEN = set("/\\#?")
_PARTITION_KEY_RE = re.compile(r"^/\w+$")


def as_int(value: Any) -> int | None:
    """Integer value of an int or a numeric string; None otherwise."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return None


def check_primitive(kind: str, value: Any) -> bool:
    if kind == "string":
        return isinstance(value, str)
    if kind == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if kind == "boolean":
        return isinstance(value, bool)
    if kind == "list":
        return isinstance(value, (list, tuple))
    if kind == "mapping":
        return isinstance(value, Mapping)
    raise KeyError(f"Unknown primitive kind {kind!r}")


def is_hostname(value: Any) -> bool:
    return isinstance(value, str) and len(value) <= 253 and bool(_HOSTNAME_RE.match(value))


def is_azure_key(value: Any) -> bool:
    return isinstance(value, str) and bool(_AZURE_KEY_RE.match(value))


def is_azure_database_name(value: Any) -> bool:
    if not isinstance(value, str) or not 1 <= len(value) <= 255:
        return False
    if value.endswith(" "):
        return False
    return not any(ch in _DATABASE_NAME_FORBIDDEN for ch in value)


def is_azure_throughput(value: Any) -> bool:
    n = as_int(value)
    return n is not None and n >= MIN_THROUGHPUT


def is_azure_throughput_steps(value: Any) -> bool:
    n = as_int(value)
    return n is not None and n >= THROUGHPUT_GRANULARITY and n % THROUGHPUT_GRANULARITY == 0


def is_batch_size(value: Any) -> bool:
    n = as_int(value)
    return n is not None and n >= 1


def is_port(value: Any) -> bool:
    n = as_int(value)
    return n is not None and 1 <= n <= 65535


def is_partition_key(value: Any) -> bool:
    if not isinstance(value, (list, tuple)) or not value:
        return False
    return all(isinstance(p, str) and _PARTITION_KEY_RE.match(p) for p in value)


def _item_field(item: Any, key: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(key)
    return getattr(item, key, None)


def is_collection_list(value: Any) -> bool:
    """Declared collections: unique non-empty names, valid throughputs and partition keys."""
    if not isinstance(value, (list, tuple)):
        return False
    names: list[Any] = []
    for item in value:
        if item is None or isinstance(item, (str, bytes)):
            return False
        name = _item_field(item, "name")
        if not isinstance(name, str) or not name:
            return False
        names.append(name)

        throughput = _item_field(item, "throughput")
        if throughput is not None and not is_azure_throughput(throughput):
            return False

        partition_key = _item_field(item, "partition_key")
        if partition_key is not None and not is_partition_key(partition_key):
            return False

    return len(set(names)) == len(names)


CUSTOM_CHECKS: dict[str, Callable[[Any], bool]] = {
    "hostname": is_hostname,
    "azure_key": is_azure_key,
    "azure_database_name": is_azure_database_name,
    "azure_throughput": is_azure_throughput,
    "azure_throughput_steps": is_azure_throughput_steps,
    "batch_size": is_batch_size,
    "port": is_port,
    "collections": is_collection_list,
}
