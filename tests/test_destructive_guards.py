from __future__ import annotations

import pytest

from cosmos_throughput.client import (
    DELETE_COLLECTION_CONFIRMATION,
    DELETE_DATABASE_CONFIRMATION,
    CosmosClientWrapper,
)
from cosmos_throughput.errors import SafetyGuardError, ServiceError
from cosmos_throughput.settings import Settings

from conftest import make_options


@pytest.fixture
def prod_client(service):
    return CosmosClientWrapper(
        make_options(), service=service, settings=Settings(environment="prod")
    )


@pytest.mark.anyio
async def test_production_refuses_even_with_flag(prod_client, service):
    service.add_container("testdb", "test")

    with pytest.raises(SafetyGuardError, match="production"):
        await prod_client.delete_database(safety_flag=DELETE_DATABASE_CONFIRMATION)
    with pytest.raises(SafetyGuardError, match="production"):
        await prod_client.delete_collection("test", safety_flag=DELETE_COLLECTION_CONFIRMATION)

    assert service.throughput_of("testdb", "test") == 400
    assert service.calls["DeleteDatabase"] == 0


@pytest.mark.anyio
@pytest.mark.parametrize("flag", [None, "", "yes", DELETE_COLLECTION_CONFIRMATION])
async def test_database_needs_exact_flag(make_client, service, flag):
    service.add_container("testdb", "test")
    with pytest.raises(SafetyGuardError, match="safety flag"):
        await make_client().delete_database(safety_flag=flag)
    assert "testdb" in service.databases


@pytest.mark.anyio
async def test_collection_needs_exact_flag(make_client, service):
    service.add_container("testdb", "test")
    with pytest.raises(SafetyGuardError) as exc_info:
        await make_client().delete_collection("test", safety_flag=DELETE_DATABASE_CONFIRMATION)
    assert exc_info.value.operation == "delete_collection"
    assert service.throughput_of("testdb", "test") == 400


@pytest.mark.anyio
async def test_delete_database_without_init(make_client, service):
    service.add_container("testdb", "test")
    client = make_client()

    assert await client.delete_database(safety_flag=DELETE_DATABASE_CONFIRMATION) is client
    assert "testdb" not in service.databases

    # Absent database is a no-op.
    await client.delete_database(safety_flag=DELETE_DATABASE_CONFIRMATION)
    assert service.calls["DeleteDatabase"] == 1


@pytest.mark.anyio
async def test_delete_collection(make_client, service):
    client = make_client()
    await client.init()

    await client.delete_collection("test", safety_flag=DELETE_COLLECTION_CONFIRMATION)
    assert "test" not in service.databases["testdb"].containers
    assert client.configuration.collection("test").prepared is False
    assert await client.get_collection_throughput("test") is None

    await client.delete_collection("test", safety_flag=DELETE_COLLECTION_CONFIRMATION)
    await client.delete_collection("unknown", safety_flag=DELETE_COLLECTION_CONFIRMATION)
    assert service.calls["DeleteContainer"] == 1


@pytest.mark.anyio
async def test_unexpected_status_is_an_error(make_client, service, monkeypatch):
    service.add_container("testdb", "test")

    async def _accepted(database):
        return 202

    monkeypatch.setattr(service, "delete_database", _accepted)

    with pytest.raises(ServiceError) as exc_info:
        await make_client().delete_database(safety_flag=DELETE_DATABASE_CONFIRMATION)
    assert exc_info.value.status_code == 202
