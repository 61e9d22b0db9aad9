"""Unit tests for trails, packets, broadcasts and their pools."""

from __future__ import annotations

from dataclasses import asdict

import pytest

from mesh_node import Hop
from packets import Broadcast, Pools, Trail, TrailPoint

pytestmark = pytest.mark.unit


def _pt(i: float) -> TrailPoint:
    return TrailPoint(x=i, y=-i, time=i / 10)


class TestTrail:
    def test_fills_in_order_before_wrapping(self):
        trail = Trail(capacity=4)
        for i in range(3):
            trail.add(_pt(i))
        assert [p.x for p in trail] == [0, 1, 2]
        assert trail.index == 0

    def test_wraps_and_overwrites_oldest(self):
        trail = Trail(capacity=4)
        for i in range(6):
            trail.add(_pt(i))
        assert len(trail) == 4
        assert trail.index == 2
        assert [p.x for p in trail] == [2, 3, 4, 5]

    def test_full_cycle_returns_cursor_to_zero(self):
        trail = Trail(capacity=3)
        for i in range(6):
            trail.add(_pt(i))
        assert trail.index == 0
        assert [p.x for p in trail] == [3, 4, 5]

    def test_reset_empties_buffer(self):
        trail = Trail(capacity=3)
        for i in range(5):
            trail.add(_pt(i))
        trail.reset()
        assert len(trail) == 0
        assert trail.index == 0
        assert list(trail) == []

    def test_single_slot_keeps_latest(self):
        trail = Trail(capacity=1)
        for i in range(3):
            trail.add(_pt(i))
        assert [p.x for p in trail] == [2]

    @pytest.mark.parametrize("capacity", [0, -1])
    def test_rejects_empty_capacity(self, capacity):
        with pytest.raises(ValueError):
            Trail(capacity=capacity)
        with pytest.raises(ValueError):
            Pools(trail_length=capacity)


class TestPacketPooling:
    def test_released_packet_returns_exactly_one_trail(self):
        pools = Pools(trail_length=8)
        packet = pools.packets.acquire()
        packet.trail = pools.trails.acquire()
        packet.trail.add(_pt(1))
        assert len(pools.trails) == 0

        pools.packets.release(packet)
        assert len(pools.trails) == 1
        assert len(pools.packets) == 1
        assert packet.trail is None

    def test_reacquired_trail_is_empty(self):
        pools = Pools(trail_length=8)
        packet = pools.packets.acquire()
        packet.trail = pools.trails.acquire()
        for i in range(10):
            packet.trail.add(_pt(i))
        pools.packets.release(packet)

        trail = pools.trails.acquire()
        assert len(trail) == 0
        assert trail.index == 0
        assert trail.capacity == 8

    def test_reset_is_idempotent(self):
        pools = Pools()
        packet = pools.packets.acquire()
        packet.trail = pools.trails.acquire()
        packet.reset()
        packet.reset()
        assert len(pools.trails) == 1

    def test_reset_clears_route_state(self):
        pools = Pools()
        packet = pools.packets.acquire()
        packet.id = "p1"
        packet.route = [Hop("a", 0, 0), Hop("b", 10, 0)]
        packet.hop_index = 1
        packet.delivered = True
        packet.progress = 0.4
        pools.packets.release(packet)
        again = pools.packets.acquire()
        assert again is packet
        assert again.id == ""
        assert again.route == []
        assert again.hop_index == 0
        assert not again.delivered
        assert again.progress == 0.0

    def test_recycle_trail_swaps_in_fresh_buffer(self):
        pools = Pools()
        packet = pools.packets.acquire()
        packet.trail = pools.trails.acquire()
        packet.trail.add(_pt(1))
        old = packet.trail
        packet.recycle_trail()
        assert len(packet.trail) == 0
        assert len(old) == 0
        # LIFO reuse hands back the buffer just released
        assert packet.trail is old
        assert len(pools.trails) == 0

    def test_next_hop(self):
        pools = Pools()
        packet = pools.packets.acquire()
        packet.route = [Hop("a", 0, 0), Hop("b", 10, 0)]
        assert packet.next_hop.id == "b"
        packet.hop_index = 1
        assert packet.next_hop is None


class TestBroadcastEntity:
    def test_reset(self):
        b = Broadcast(id="x", flood_id="f", source_id="s", x=1, y=2, radius=5, range=10, speed=3, opacity=0.5)
        b.reset()
        assert asdict(b) == asdict(Broadcast())

    def test_expired(self):
        b = Broadcast(radius=9.9, range=10)
        assert not b.expired
        b.radius = 10
        assert b.expired

    def test_pools_clear(self):
        pools = Pools()
        pools.broadcasts.release(pools.broadcasts.acquire())
        pools.trails.release(pools.trails.acquire())
        pools.clear()
        assert len(pools.broadcasts) == 0
        assert len(pools.trails) == 0
        assert len(pools.packets) == 0
