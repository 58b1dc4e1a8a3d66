from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest

# Ensure the repo root is on sys.path so `import cosmos_throughput` works in tests.
ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

from cosmos_throughput.client import CosmosClientWrapper  # noqa: E402
from cosmos_throughput.db.cosmos.memory import InMemoryCosmosService  # noqa: E402
from cosmos_throughput.settings import Settings  # noqa: E402

TEST_KEY = "c2VjcmV0LWtleS1mb3ItdGVzdHM="


@pytest.fixture
def anyio_backend():
    return "asyncio"


def make_options(**overrides: Any) -> dict[str, Any]:
    options: dict[str, Any] = {
        "host": "cosmos.example.com",
        "username": "tester",
        "password": TEST_KEY,
        "db": "testdb",
        "collections": [{"name": "test"}],
        "max_throughput": 4000,
        "retry_strategy": "fastest",
    }
    options.update(overrides)
    return options


@pytest.fixture
def service() -> InMemoryCosmosService:
    return InMemoryCosmosService()


@pytest.fixture
def dev_settings() -> Settings:
    return Settings(environment="development")


@pytest.fixture
def make_client(service, dev_settings):
    def _make(**overrides: Any) -> CosmosClientWrapper:
        return CosmosClientWrapper(make_options(**overrides), service=service, settings=dev_settings)

    return _make
