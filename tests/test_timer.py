import asyncio

import pytest

from compliance_console.processing.timer import AsyncioRepeatingTimer


@pytest.mark.asyncio
class TestAsyncioRepeatingTimer:
    async def test_fires_repeatedly(self):
        fired = []
        handle = AsyncioRepeatingTimer().schedule_repeating(
            0.01, lambda: fired.append(asyncio.get_running_loop().time())
        )

        await asyncio.sleep(0.065)
        handle.cancel()

        assert 3 <= len(fired) <= 7

    async def test_first_firing_after_one_interval(self):
        fired = []
        handle = AsyncioRepeatingTimer().schedule_repeating(0.05, lambda: fired.append(1))

        await asyncio.sleep(0.01)
        assert fired == []
        handle.cancel()

    async def test_cancel_stops_firing(self):
        fired = []
        handle = AsyncioRepeatingTimer().schedule_repeating(0.01, lambda: fired.append(1))

        await asyncio.sleep(0.025)
        handle.cancel()
        count = len(fired)
        await asyncio.sleep(0.03)

        assert handle.cancelled
        assert len(fired) == count

    async def test_callback_error_does_not_stop_timer(self):
        fired = []

        def callback():
            fired.append(1)
            raise RuntimeError("callback failed")

        handle = AsyncioRepeatingTimer().schedule_repeating(0.01, callback)
        await asyncio.sleep(0.045)
        handle.cancel()

        assert len(fired) >= 2

    @pytest.mark.parametrize("interval", [0, -1.0])
    async def test_rejects_nonpositive_interval(self, interval):
        with pytest.raises(ValueError):
            AsyncioRepeatingTimer().schedule_repeating(interval, lambda: None)
