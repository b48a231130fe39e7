import pytest

from src.thumbnails.pacing import CallPacer


class SteppedClock:
    def __init__(self, *times):
        self.times = list(times)
        self.slept = []

    def __call__(self):
        return self.times.pop(0)

    async def sleep(self, seconds):
        self.slept.append(seconds)


@pytest.mark.asyncio
async def test_first_call_is_not_delayed():
    clock = SteppedClock()
    pacer = CallPacer(1.0, clock=clock, sleep=clock.sleep)

    assert await pacer.wait() == 0.0
    assert clock.slept == []


@pytest.mark.asyncio
async def test_waits_only_for_the_remaining_interval():
    # finished at 10.0, next call requested at 10.4
    clock = SteppedClock(10.0, 10.4)
    pacer = CallPacer(1.0, clock=clock, sleep=clock.sleep)

    pacer.mark_finished()
    waited = await pacer.wait()

    assert waited == pytest.approx(0.6)
    assert clock.slept == [pytest.approx(0.6)]


@pytest.mark.asyncio
async def test_no_wait_once_interval_elapsed():
    clock = SteppedClock(10.0, 12.0)
    pacer = CallPacer(1.0, clock=clock, sleep=clock.sleep)

    pacer.mark_finished()

    assert await pacer.wait() == 0.0
    assert clock.slept == []


@pytest.mark.asyncio
async def test_slot_marks_finish_even_on_error():
    clock = SteppedClock(5.0, 5.0)
    pacer = CallPacer(2.0, clock=clock, sleep=clock.sleep)

    with pytest.raises(RuntimeError):
        async with pacer.slot():
            raise RuntimeError("call failed")

    await pacer.wait()
    assert clock.slept == [2.0]


def test_negative_interval_rejected():
    with pytest.raises(ValueError):
        CallPacer(-1)
