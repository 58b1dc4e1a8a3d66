from __future__ import annotations

import pytest
from azure.cosmos import exceptions

from cosmos_throughput.config import build_configuration
from cosmos_throughput.db.cosmos import CosmosService, get_retry_strategy
from cosmos_throughput.db.cosmos.client import (
    AzureCosmosService,
    _map_cosmos_error,
    cosmos_client_options,
    partition_key_for,
)
from cosmos_throughput.errors import ServiceError

from conftest import TEST_KEY, make_options


class _Throughput:
    def __init__(self, value):
        self.offer_throughput = value


class _FakeContainer:
    def __init__(self, name, *, throughput=400, missing=False):
        self.id = name
        self.database_link = "dbs/testdb"
        self.throughput = throughput
        self.missing = missing

    async def read(self):
        if self.missing:
            raise exceptions.CosmosResourceNotFoundError(status_code=404, message="gone")
        return {"id": self.id}

    async def get_throughput(self):
        if self.throughput is None:
            raise exceptions.CosmosResourceNotFoundError(status_code=404, message="no offer")
        return _Throughput(self.throughput)

    async def replace_throughput(self, value):
        self.throughput = value
        return _Throughput(value)


class _FakeDatabase:
    def __init__(self, name, *, missing=False):
        self.id = name
        self.missing = missing
        self.containers: dict[str, _FakeContainer] = {}
        self.deleted: list = []

    async def read(self):
        if self.missing:
            raise exceptions.CosmosResourceNotFoundError(status_code=404, message="gone")
        return {"id": self.id}

    def get_container_client(self, name):
        return self.containers.get(name) or _FakeContainer(name, missing=True)

    async def create_container(self, id, partition_key, offer_throughput):
        if id in self.containers:
            raise exceptions.CosmosResourceExistsError(status_code=409, message="exists")
        self.containers[id] = _FakeContainer(id, throughput=offer_throughput)
        self.containers[id].partition_key = partition_key
        return self.containers[id]

    async def delete_container(self, container):
        self.deleted.append(container.id)
        self.containers.pop(container.id, None)


class _FakeSdkClient:
    def __init__(self):
        self.databases: dict[str, _FakeDatabase] = {}
        self.closed = False
        self.throttle = 0

    def get_database_client(self, name):
        return self.databases.get(name) or _FakeDatabase(name, missing=True)

    async def create_database(self, id):
        if self.throttle:
            self.throttle -= 1
            raise exceptions.CosmosHttpResponseError(status_code=429, message="busy")
        self.databases[id] = _FakeDatabase(id)
        return self.databases[id]

    async def delete_database(self, database):
        self.databases.pop(database.id, None)

    async def close(self):
        self.closed = True


@pytest.fixture
def sdk():
    return _FakeSdkClient()


@pytest.fixture
def azure(sdk):
    return AzureCosmosService(
        build_configuration(make_options()),
        retry_policy=get_retry_strategy("fastest"),
        client=sdk,
    )


def test_client_options():
    config = build_configuration(make_options(port=8081))
    assert cosmos_client_options(config) == {
        "url": "https://cosmos.example.com:8081",
        "credential": TEST_KEY,
    }

    config = build_configuration(make_options(disable_ssl_rejection=True))
    assert cosmos_client_options(config)["connection_verify"] is False


def test_partition_keys():
    assert partition_key_for(None)["paths"] == ["/id"]
    assert partition_key_for(["/city"])["paths"] == ["/city"]
    multi = partition_key_for(["/tenant", "/city"])
    assert multi["paths"] == ["/tenant", "/city"]
    assert multi["kind"] == "MultiHash"


def test_error_mapping():
    throttled = exceptions.CosmosHttpResponseError(status_code=429, message="busy")
    throttled.headers["x-ms-retry-after-ms"] = "120"
    mapped = _map_cosmos_error("ReplaceOffer", throttled)
    assert isinstance(mapped, ServiceError)
    assert mapped.status_code == 429
    assert mapped.retryable is True
    assert mapped.retry_after_ms == pytest.approx(120)
    assert mapped.cause is throttled

    bad = _map_cosmos_error("ReadOffer", exceptions.CosmosHttpResponseError(status_code=400, message="bad"))
    assert bad.retryable is False

    other = _map_cosmos_error("ReadOffer", RuntimeError("socket closed"))
    assert other.status_code is None

    already = ServiceError(message="x", status_code=503)
    assert _map_cosmos_error("ReadOffer", already) is already


def test_services_satisfy_protocol(azure, service):
    assert isinstance(azure, CosmosService)
    assert isinstance(service, CosmosService)


@pytest.mark.anyio
async def test_lookup_of_missing_resources(azure, sdk):
    assert await azure.find_database("testdb") is None

    database = await azure.create_database("testdb")
    assert await azure.find_database("testdb") is database
    assert await azure.find_container(database, "users") is None


@pytest.mark.anyio
async def test_create_is_idempotent(azure, sdk):
    database = await azure.create_database("testdb")
    first = await azure.create_container(database, "users", 600, ["/city"])
    again = await azure.create_container(database, "users", 900)

    assert again is first
    assert first.throughput == 600
    assert first.partition_key["paths"] == ["/city"]


@pytest.mark.anyio
async def test_offers(azure, sdk):
    database = await azure.create_database("testdb")
    container = await azure.create_container(database, "users", 400)

    assert (await azure.read_offer(container)).throughput == 400
    assert (await azure.replace_offer(container, 700)).throughput == 700

    container.throughput = None
    assert await azure.read_offer(container) is None


@pytest.mark.anyio
async def test_throttling_is_retried_and_mapped(azure, sdk):
    sdk.throttle = 2
    database = await azure.create_database("testdb")
    assert database.id == "testdb"

    sdk.throttle = 10
    with pytest.raises(ServiceError) as exc_info:
        await azure.create_database("other")
    assert exc_info.value.status_code == 429
    assert exc_info.value.operation == "CreateDatabase"


@pytest.mark.anyio
async def test_deletes(azure, sdk):
    database = await azure.create_database("testdb")
    container = await azure.create_container(database, "users", 400)

    assert await azure.delete_container(container) == 204
    assert database.deleted == ["users"]
    assert await azure.delete_database(database) == 204
    assert sdk.databases == {}

    await azure.close()
    assert sdk.closed is True
