from __future__ import annotations

import pytest

from cosmos_throughput.db.cosmos import retry as retry_module
from cosmos_throughput.db.cosmos.retry import (
    MONGO_REQUEST_RATE_TOO_LARGE,
    cosmos_call,
    get_retry_strategy,
    list_retry_strategies,
    retry_after_seconds,
)
from cosmos_throughput.errors import ServiceError, UnknownStrategyError


class _Throttled(Exception):
    def __init__(self, status_code: int, headers: dict | None = None):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.headers = headers or {}


@pytest.fixture
def no_sleep(monkeypatch):
    slept: list[float] = []
    real_sleep = retry_module.asyncio.sleep

    async def _fake_sleep(delay, *args, **kwargs):
        slept.append(delay)
        await real_sleep(0)

    monkeypatch.setattr(retry_module.asyncio, "sleep", _fake_sleep)
    return slept


def test_registry_contents():
    assert list_retry_strategies() == ["none", "fastest", "fast", "normal", "patient"]
    assert get_retry_strategy(None).name == "normal"
    assert get_retry_strategy("none").max_attempts == 1
    assert get_retry_strategy("patient").max_attempts == 7


def test_unknown_strategy():
    with pytest.raises(UnknownStrategyError) as exc_info:
        get_retry_strategy("whenever")
    assert exc_info.value.strategy == "whenever"


def test_retryable_codes():
    policy = get_retry_strategy("fast")
    for code in (429, 408, 449, 503, MONGO_REQUEST_RATE_TOO_LARGE):
        assert policy.is_retryable(_Throttled(code))
    assert not policy.is_retryable(_Throttled(400))
    assert not policy.is_retryable(ValueError("boom"))


def test_delay_honors_retry_after_hint():
    policy = get_retry_strategy("fast")
    assert policy.delay_for(1) == 0.01
    assert policy.delay_for(99) == 0.1
    hinted = _Throttled(429, headers={"x-ms-retry-after-ms": "250"})
    assert retry_after_seconds(hinted) == 0.25
    assert policy.delay_for(1, hinted) == 0.25
    assert policy.delay_for(1, ServiceError(message="x", status_code=429, retry_after_ms=5)) == 0.01


@pytest.mark.anyio
async def test_cosmos_call_retries_until_success(no_sleep):
    attempts = {"n": 0}

    async def _op():
        attempts["n"] += 1
        if attempts["n"] < 3:
            raise _Throttled(429)
        return "ok"

    assert await cosmos_call("ReadOffer", _op, policy=get_retry_strategy("fast")) == "ok"
    assert attempts["n"] == 3
    assert no_sleep == [0.01, 0.02]


@pytest.mark.anyio
async def test_cosmos_call_gives_up_after_policy(no_sleep):
    attempts = {"n": 0}

    async def _op():
        attempts["n"] += 1
        raise _Throttled(503)

    with pytest.raises(_Throttled):
        await cosmos_call("ReplaceOffer", _op, policy=get_retry_strategy("fastest"))
    assert attempts["n"] == 4


@pytest.mark.anyio
async def test_cosmos_call_does_not_retry_other_errors(no_sleep):
    attempts = {"n": 0}

    async def _op():
        attempts["n"] += 1
        raise _Throttled(400)

    def _map(operation, exc):
        return ServiceError(message=f"{operation} failed", operation=operation, status_code=exc.status_code)

    with pytest.raises(ServiceError) as exc_info:
        await cosmos_call("ReplaceOffer", _op, policy=get_retry_strategy("patient"), map_error=_map)
    assert attempts["n"] == 1
    assert exc_info.value.status_code == 400
    assert isinstance(exc_info.value.__cause__, _Throttled)
    assert no_sleep == []


@pytest.mark.anyio
async def test_memory_service_faults_go_through_retry(service, no_sleep):
    service.retry_policy = get_retry_strategy("fastest")
    service.fail_next("CreateDatabase", status_code=429, times=2)

    await service.create_database("db")
    assert service.calls["CreateDatabase"] == 3

    service.fail_next("ReadDatabase", status_code=429, times=10)
    with pytest.raises(ServiceError) as exc_info:
        await service.find_database("db")
    assert exc_info.value.status_code == 429
    assert service.calls["ReadDatabase"] == 4
