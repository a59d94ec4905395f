# File: tests/test_slot.py
import time

import pytest

from tx_scout.crawler.slot import WorkerSlot

COOLDOWN = 0.2


class StampingRenderer:
    """Records when each navigation starts."""

    def __init__(self):
        self.started = []

    async def navigate(self, url, timeout):
        self.started.append(time.monotonic())

    async def content(self):
        return ""

    async def evaluate(self, script):
        return None

    async def close(self):
        pass


class SteppingClock:
    def __init__(self, step):
        self.now = 0.0
        self.step = step

    def __call__(self):
        self.now += self.step
        return self.now


async def _fetch(slot, page, *, paced=True):
    async with slot.reserve(page):
        return await slot.fetch(f"https://example.test/?p={page}", 1.0, paced=paced)


@pytest.mark.asyncio()
async def test_first_request_does_not_wait():
    renderer = StampingRenderer()
    slot = WorkerSlot(0, renderer, cooldown=COOLDOWN)

    began = time.monotonic()
    await _fetch(slot, 1)

    assert renderer.started[0] - began < COOLDOWN / 2
    assert slot.requests == 1


@pytest.mark.asyncio()
async def test_second_request_waits_out_cooldown():
    renderer = StampingRenderer()
    slot = WorkerSlot(0, renderer, cooldown=COOLDOWN)

    await _fetch(slot, 1)
    await _fetch(slot, 2)

    first, second = renderer.started
    # measured from the start of the previous request
    assert second - first >= COOLDOWN * 0.95
    assert slot.requests == 2


@pytest.mark.asyncio()
async def test_unpaced_request_skips_cooldown():
    renderer = StampingRenderer()
    slot = WorkerSlot(0, renderer, cooldown=COOLDOWN)

    await _fetch(slot, 1)
    await _fetch(slot, 2, paced=False)

    first, second = renderer.started
    assert second - first < COOLDOWN / 2


@pytest.mark.asyncio()
async def test_elapsed_time_counts_against_cooldown():
    renderer = StampingRenderer()
    # every clock read moves a full cooldown forward
    slot = WorkerSlot(0, renderer, cooldown=COOLDOWN, clock=SteppingClock(COOLDOWN))

    await _fetch(slot, 1)
    began = time.monotonic()
    await _fetch(slot, 2)

    assert renderer.started[1] - began < COOLDOWN / 2
    assert slot.last_request_at is not None


@pytest.mark.asyncio()
async def test_fetch_requires_reservation():
    slot = WorkerSlot(3, StampingRenderer(), cooldown=0)
    with pytest.raises(RuntimeError, match="slot 3"):
        await slot.fetch("https://example.test/", 1.0)
    assert slot.requests == 0
    assert slot.in_flight is None
