import asyncio

import pytest

from heading_autolink.scheduling import AsyncioScheduler, Debouncer, ManualScheduler


def test_manual_scheduler_runs_due_callbacks_in_order():
    s = ManualScheduler()
    calls = []
    s.call_later(0.2, lambda: calls.append("b"))
    s.call_later(0.1, lambda: calls.append("a"))
    cancelled = s.call_later(0.15, lambda: calls.append("x"))
    cancelled.cancel()
    assert s.pending == 2
    assert s.advance(0.05) == 0
    assert s.advance(0.2) == 2
    assert calls == ["a", "b"]
    assert s.now == pytest.approx(0.25)


def test_debouncer_resets_on_trigger():
    s = ManualScheduler()
    fired = []
    d = Debouncer(s, 0.12, lambda: fired.append(s.now))
    d.trigger()
    s.advance(0.1)
    d.trigger()
    s.advance(0.1)
    assert fired == []
    assert d.pending
    s.advance(0.05)
    assert fired == [pytest.approx(0.22)]
    assert not d.pending


def test_debouncer_cancel():
    s = ManualScheduler()
    fired = []
    d = Debouncer(s, 0.1, lambda: fired.append(1))
    d.trigger()
    d.cancel()
    s.advance(1)
    assert fired == []


def test_debouncer_rejects_negative_delay():
    with pytest.raises(ValueError):
        Debouncer(ManualScheduler(), -1, lambda: None)


def test_asyncio_scheduler():
    async def run():
        fired = []
        d = Debouncer(AsyncioScheduler(), 0.01, lambda: fired.append(1))
        d.trigger()
        d.trigger()
        await asyncio.sleep(0.05)
        return fired

    assert asyncio.run(run()) == [1]
