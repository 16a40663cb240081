"""Unit tests for the output channel."""

import asyncio

import pytest

from flowrelay.ingestion.channel import OutputChannel


@pytest.mark.unit
class TestOutputChannel:
    """Test cases for OutputChannel."""

    @pytest.fixture
    def channel(self) -> OutputChannel[int]:
        """Create a small channel."""
        return OutputChannel(maxsize=3)

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            OutputChannel(maxsize=0)

    @pytest.mark.asyncio
    async def test_initial_state(self, channel: OutputChannel[int]):
        assert channel.size == 0
        assert channel.capacity == 3

    @pytest.mark.asyncio
    async def test_fifo(self, channel: OutputChannel[int]):
        for i in range(3):
            await channel.put(i)

        assert [await channel.get() for _ in range(3)] == [0, 1, 2]
        assert channel.size == 0

    @pytest.mark.asyncio
    async def test_put_blocks_when_full(self, channel: OutputChannel[int]):
        """A full channel makes producers wait instead of dropping."""
        for i in range(3):
            await channel.put(i)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(channel.put(99), timeout=0.05)

        assert channel.size == 3
        assert channel.stats.total_put == 3

    @pytest.mark.asyncio
    async def test_blocked_put_resumes_after_get(self, channel: OutputChannel[int]):
        """The waiting record is delivered once the consumer catches up."""
        for i in range(3):
            await channel.put(i)

        producer = asyncio.create_task(channel.put(3))
        await asyncio.sleep(0.01)
        assert not producer.done()

        assert await channel.get() == 0
        await asyncio.wait_for(producer, timeout=1)

        assert [await channel.get() for _ in range(3)] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_get_blocks_when_empty(self, channel: OutputChannel[int]):
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(channel.get(), timeout=0.05)

    @pytest.mark.asyncio
    async def test_stats(self, channel: OutputChannel[int]):
        await channel.put(1)
        await channel.put(2)
        await channel.get()

        stats = channel.stats
        assert stats.size == 1
        assert stats.capacity == 3
        assert stats.total_put == 2
        assert stats.total_get == 1
        assert stats.utilization == pytest.approx(100 / 3)
