"""Tests for the bounded power history buffer."""

import pytest

from procwatt.core.ring_buffer import RingBuffer


def test_ring_buffer_evicts_oldest() -> None:
    buffer: RingBuffer[int] = RingBuffer(3)
    for value in range(5):
        buffer.append(value)

    assert len(buffer) == 3
    assert buffer.to_tuple() == (2, 3, 4)
    assert list(buffer) == [2, 3, 4]
    assert buffer.latest() == 4
    assert buffer.is_full


def test_ring_buffer_empty() -> None:
    buffer: RingBuffer[float] = RingBuffer(2)

    assert len(buffer) == 0
    assert buffer.latest() is None
    assert buffer.to_tuple() == ()
    assert not buffer.is_full
    assert buffer.capacity == 2


def test_ring_buffer_clear() -> None:
    buffer: RingBuffer[int] = RingBuffer(2)
    buffer.append(1)
    buffer.clear()

    assert len(buffer) == 0


@pytest.mark.parametrize("capacity", [0, -1])
def test_ring_buffer_rejects_invalid_capacity(capacity) -> None:
    with pytest.raises(ValueError):
        RingBuffer(capacity)
