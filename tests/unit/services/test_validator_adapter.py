"""Unit tests for concurrent validator invocation and failure isolation."""

import asyncio
import time

import pytest

from suggestion_ensemble.core.config import EngineSettings
from suggestion_ensemble.models import ValidationContext, ValidatorResult, ValidatorRole
from suggestion_ensemble.services import CallableValidator, ValidatorAdapter


@pytest.mark.asyncio
async def test_collects_one_result_per_validator(
    registry, make_validator, category, engine_settings
):
    registry.register_all(
        category,
        [
            make_validator("a", score=0.9),
            make_validator("b", score=0.4, role=ValidatorRole.SPECIALIST),
        ],
    )
    adapter = ValidatorAdapter(registry, engine_settings)

    results = await adapter.collect("cache the index", ValidationContext(), category)

    assert list(results) == ["a", "b"]
    assert results["a"].score == 0.9
    assert results["b"].role is ValidatorRole.SPECIALIST
    assert not any(r.failed for r in results.values())


@pytest.mark.asyncio
async def test_failing_validator_gets_fallback(registry, make_validator, category, engine_settings):
    registry.register_all(
        category,
        [make_validator("ok", score=0.9), make_validator("broken", error=RuntimeError("boom"))],
    )
    adapter = ValidatorAdapter(registry, engine_settings)

    results = await adapter.collect("text", ValidationContext(), category)

    assert results["ok"].score == 0.9
    assert results["broken"].score == 0.5
    assert results["broken"].confidence == 0.1
    assert results["broken"].error == "RuntimeError: boom"
    assert adapter.get_metrics()["validator_failures"] == 1


@pytest.mark.asyncio
async def test_slow_validator_times_out_without_cancelling_siblings(
    registry, make_validator, category, engine_settings
):
    registry.register_all(
        category,
        [make_validator("slow", delay=5.0), make_validator("steady", score=0.7, delay=0.05)],
    )
    adapter = ValidatorAdapter(registry, engine_settings)

    start = time.perf_counter()
    results = await adapter.collect("text", ValidationContext(), category)
    elapsed = time.perf_counter() - start

    assert elapsed < 2.0
    assert results["slow"].failed
    assert "timed out" in results["slow"].error
    assert results["steady"].score == 0.7
    assert not results["steady"].failed
    assert adapter.metrics["validator_timeouts"] == 1


@pytest.mark.asyncio
async def test_validators_run_concurrently(registry, make_validator, category, engine_settings):
    registry.register_all(category, [make_validator(f"v{i}", delay=0.1) for i in range(4)])
    adapter = ValidatorAdapter(registry, engine_settings)

    start = time.perf_counter()
    await adapter.collect("text", ValidationContext(), category)

    assert time.perf_counter() - start < 0.35


@pytest.mark.asyncio
async def test_wrong_return_type_is_treated_as_failure(registry, category, engine_settings):
    async def returns_dict(text, context):
        return {"score": 0.9}

    registry.register(category, CallableValidator("odd", returns_dict))
    adapter = ValidatorAdapter(registry, engine_settings)

    results = await adapter.collect("text", ValidationContext(), category)

    assert results["odd"].failed
    assert results["odd"].error.startswith("TypeError")


@pytest.mark.asyncio
async def test_result_is_rekeyed_to_registered_id(registry, category, engine_settings):
    async def misnamed(text, context):
        return ValidatorResult(validator_id="something-else", score=0.6, confidence=0.9)

    registry.register(category, CallableValidator("named", misnamed, role=ValidatorRole.GENERALIST))
    adapter = ValidatorAdapter(registry, engine_settings)

    results = await adapter.collect("text", ValidationContext(), category)

    assert results["named"].validator_id == "named"
    assert results["named"].role is ValidatorRole.GENERALIST


@pytest.mark.asyncio
async def test_empty_registry_returns_no_results(registry, category, engine_settings):
    adapter = ValidatorAdapter(registry, engine_settings)

    assert await adapter.collect("text", ValidationContext(), category) == {}


@pytest.mark.asyncio
async def test_cancellation_propagates(registry, make_validator, category, engine_settings):
    registry.register(category, make_validator("slow", delay=0.15))
    adapter = ValidatorAdapter(registry, engine_settings)

    task = asyncio.create_task(adapter.collect("text", ValidationContext(), category))
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_validator_raising_cancelled_error_gets_fallback(
    registry, make_validator, category, engine_settings
):
    registry.register_all(
        category,
        [make_validator("a", score=0.9), make_validator("b", error=asyncio.CancelledError())],
    )
    adapter = ValidatorAdapter(registry, engine_settings)

    results = await adapter.collect("text", ValidationContext(), category)

    assert results["a"].score == 0.9
    assert not results["a"].failed
    assert results["b"].failed
    assert results["b"].error.startswith("CancelledError")
    assert results["b"].score == 0.5


@pytest.mark.asyncio
async def test_concurrency_limit_applies_per_call(registry, category):
    settings = EngineSettings(max_concurrent_validators=1, configuration_path=None)
    in_flight = 0
    peak = 0

    async def counting(text, context):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.05)
        in_flight -= 1
        return ValidatorResult(validator_id="x", score=0.6, confidence=0.6)

    registry.register_all(
        category, [CallableValidator("a", counting), CallableValidator("b", counting)]
    )
    adapter = ValidatorAdapter(registry, settings)

    await adapter.collect("one", ValidationContext(), category)
    assert peak == 1

    peak = 0
    await asyncio.gather(
        *(adapter.collect(text, ValidationContext(), category) for text in ("x", "y", "z"))
    )
    assert peak == 3
