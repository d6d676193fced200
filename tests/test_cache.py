"""Tests for the TTL cache, cache keys and the background sweeper."""

import asyncio

import pytest

from tradein.cache import TTLCache, make_key, run_sweeper

from conftest import FakeClock


def test_make_key_normalizes_parts():
    assert make_key("130point", " Charizard PSA 10 ", None, True) == "130point:charizard psa 10::true"


def test_entry_expires_exactly_at_ttl():
    clock = FakeClock()
    cache = TTLCache(60, clock=clock)
    cache.set("k", {"price": 1})

    clock.advance(59.9)
    assert cache.get("k") == {"price": 1}

    clock.advance(0.1)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_age_and_overwrite_resets_timestamp():
    clock = FakeClock()
    cache = TTLCache(10, clock=clock)
    cache.set("k", "a")
    clock.advance(8)
    assert cache.age("k") == pytest.approx(8)

    cache.set("k", "b")
    clock.advance(8)
    assert cache.get("k") == "b"
    assert cache.age("missing") is None


def test_delete_and_clear():
    cache = TTLCache(10, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)

    assert cache.delete("a") is True
    assert cache.delete("a") is False
    assert "b" in cache

    cache.clear()
    assert cache.keys() == []


def test_sweep_removes_only_stale_entries():
    clock = FakeClock()
    cache = TTLCache(30, clock=clock)
    cache.set("old", 1)
    clock.advance(20)
    cache.set("new", 2)
    clock.advance(15)

    assert cache.sweep() == 1
    assert cache.keys() == ["new"]


@pytest.mark.asyncio
async def test_run_sweeper_sweeps_until_cancelled():
    clock = FakeClock()
    cache = TTLCache(5, clock=clock)
    cache.set("stale", 1)
    clock.advance(10)

    task = asyncio.create_task(run_sweeper({"test": cache}, interval=0.01))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(cache) == 0
