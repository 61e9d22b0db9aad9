"""Unit tests for flood wavefront propagation in WirelessChannel."""

from __future__ import annotations

import pytest

from mesh_node import NodeType
from packets import Broadcast
from routing import RoutingStrategy

pytestmark = pytest.mark.unit

DT = 1 / 60


def _drain(sim, max_ticks=5000):
    """Tick until no wavefront is left; returns every hit in order."""
    hits = []
    for _ in range(max_ticks):
        if not sim.broadcasts:
            return hits
        hits.extend(sim.advance(DT).hits)
    raise AssertionError("flood never finished")


@pytest.fixture
def relay_line(sim, place):
    """Client A and client B out of each other's range, both reachable by repeater R."""
    a = place(NodeType.CLIENT, 0, 0, 160)
    r = place(NodeType.REPEATER, 150, 0, 280)
    b = place(NodeType.CLIENT, 300, 0, 160)
    return a, r, b


class TestFloodScenarios:
    def test_repeater_relays_once_to_far_client(self, sim, relay_line):
        a, r, b = relay_line
        # wavefronts are pooled; read the id before the flood retires
        flood_id = sim.transmit_packet(a.id, RoutingStrategy.FLOOD).flood_id
        hits = _drain(sim)

        assert hits == [(flood_id, r.id), (flood_id, b.id)]
        assert sim.state.stats["floods"] == 1
        assert sim.state.stats["rebroadcasts"] == 1
        assert sim.state.seen == set()

    def test_relay_starts_at_zero_and_expands_next_tick(self, sim, relay_line):
        a, r, _b = relay_line
        sim.transmit_packet(a.id, RoutingStrategy.FLOOD)
        for _ in range(1000):
            report = sim.advance(DT)
            if report.hits:
                break
        relays = [b for b in sim.broadcasts if b.source_id == r.id]
        assert len(relays) == 1
        child = relays[0]
        assert child.radius == 0
        assert child.range == r.range
        assert (child.x, child.y) == (r.x, r.y)

        sim.advance(DT)
        assert child.radius == pytest.approx(sim.cfg["broadcast"]["speed"] * DT)

    def test_source_never_hit_by_own_flood(self, sim, relay_line):
        a, _r, _b = relay_line
        sim.transmit_packet(a.id, RoutingStrategy.FLOOD)
        hits = _drain(sim)
        assert a.id not in [node_id for _flood, node_id in hits]

    def test_neighboring_repeaters_relay_once_each(self, sim, place):
        a = place(NodeType.CLIENT, 0, 0, 160)
        r1 = place(NodeType.REPEATER, 150, 0, 280)
        r2 = place(NodeType.REPEATER, 150, 100, 280)
        b = place(NodeType.CLIENT, 300, 100, 160)
        assert r2 not in a.neighbors

        sim.transmit_packet(a.id, RoutingStrategy.FLOOD)
        hit_ids = [node_id for _flood, node_id in _drain(sim)]

        assert sorted(hit_ids) == sorted([r1.id, r2.id, b.id])
        assert sim.state.stats["rebroadcasts"] == 2
        assert sim.state.seen == set()

    def test_new_flood_can_revisit_nodes(self, sim, relay_line):
        a, r, _b = relay_line
        sim.transmit_packet(a.id, RoutingStrategy.FLOOD)
        _drain(sim)
        sim.transmit_packet(a.id, RoutingStrategy.FLOOD)
        hits = _drain(sim)
        assert r.id in [node_id for _flood, node_id in hits]
        assert sim.state.stats["rebroadcasts"] == 2

    def test_wavefronts_return_to_pool(self, sim, relay_line):
        a, _r, _b = relay_line
        sim.transmit_packet(a.id, RoutingStrategy.FLOOD)
        _drain(sim)
        assert len(sim.state.pools.broadcasts) == 2


class TestSeenSet:
    def test_entries_kept_while_relay_still_active(self, sim, relay_line):
        a, r, _b = relay_line
        origin = sim.transmit_packet(a.id, RoutingStrategy.FLOOD)
        flood_id, origin_id = origin.flood_id, origin.id
        while any(b.id == origin_id for b in sim.broadcasts):
            sim.advance(DT)
        assert any(b.source_id == r.id for b in sim.broadcasts)
        assert (flood_id, a.id) in sim.state.seen
        assert (flood_id, r.id) in sim.state.seen

    def test_purge_only_touches_finished_flood(self, sim, relay_line):
        a, r, b = relay_line
        first = sim.channel.create_broadcast(r).flood_id
        second = sim.channel.create_broadcast(b).flood_id
        while any(x.flood_id == first for x in sim.broadcasts):
            sim.advance(DT)
        # b's flood was relayed by r, so it outlives the first one
        assert any(x.flood_id == second for x in sim.broadcasts)
        assert all(key[0] == second for key in sim.state.seen)
        assert (second, b.id) in sim.state.seen

    def test_relay_shares_flood_id(self, sim, relay_line):
        _a, r, _b = relay_line
        origin = sim.channel.create_broadcast(r)
        relay = sim.channel.create_broadcast(r, origin.flood_id)
        assert relay.flood_id == origin.flood_id
        assert relay.id != origin.id
        assert sim.channel.active_floods() == [origin.flood_id]


class TestCollision:
    def _wave(self, sim, source, radius):
        wave = Broadcast(id="w", flood_id="f", source_id=source.id, x=source.x, y=source.y,
                         radius=radius, range=source.range, speed=0, opacity=0.7)
        return wave

    def test_annulus_bounds(self, sim, relay_line):
        a, r, _b = relay_line
        hitbox = r.hitbox
        assert not sim.channel.process_collision(self._wave(sim, a, 150 - hitbox - 1), r)
        assert sim.channel.process_collision(self._wave(sim, a, 150 - hitbox), r)

    def test_outer_edge(self, sim, relay_line):
        a, _r, b = relay_line
        wave = self._wave(sim, a, 300 + b.hitbox + 1)
        assert not sim.channel.process_collision(wave, b)
        wave.radius = 300 + b.hitbox
        assert sim.channel.process_collision(wave, b)

    def test_already_seen_is_ignored(self, sim, relay_line):
        a, r, _b = relay_line
        wave = self._wave(sim, a, 150)
        assert sim.channel.process_collision(wave, r)
        assert not sim.channel.process_collision(wave, r)
        assert sim.state.stats["rebroadcasts"] == 1

    def test_client_hit_does_not_relay(self, sim, relay_line):
        _a, r, b = relay_line
        wave = self._wave(sim, r, 150)
        assert sim.channel.process_collision(wave, b)
        assert sim.broadcasts == []

    def test_opacity_fades_linearly(self, sim, relay_line):
        _a, r, _b = relay_line
        wave = sim.channel.create_broadcast(r)
        sim.advance(1.0)
        base = sim.cfg["broadcast"]["opacity"]
        expected = base * (1 - wave.radius / wave.range)
        assert wave.opacity == pytest.approx(expected)
        assert 0 < wave.opacity < base
