"""
Simulation coordinator for Mesh Network Simulation
"""

import math
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from loguru import logger

from channel import Hit, WirelessChannel
from config import SIM_CONFIG, apply_scaling
from mesh_node import (
    MeshNode,
    NodeType,
    compute_neighbors,
    create_node,
    find_node,
    generate_id,
    pick_random_client,
)
from packets import Broadcast, Packet, Pools, TrailPoint
from routing import Route, RoutingStrategy, find_aesthetic_route, plan_route


@dataclass
class SimulationState:
    """Everything one simulation owns; engine operations act on this aggregate."""
    config: Dict[str, Any]
    rng: random.Random
    width: float
    height: float
    nodes: List[MeshNode] = field(default_factory=list)
    packets: List[Packet] = field(default_factory=list)
    broadcasts: List[Broadcast] = field(default_factory=list)
    seen: Set[Tuple[str, str]] = field(default_factory=set)
    pools: Pools = field(default_factory=Pools)
    clock: float = 0.0
    stats: Dict[str, int] = field(default_factory=dict)

    def reset_stats(self) -> None:
        self.stats = {
            "generated": 0,
            "delivered": 0,
            "floods": 0,
            "flood_hits": 0,
            "rebroadcasts": 0,
        }


@dataclass
class TickReport:
    delivered: List[str] = field(default_factory=list)  # packet ids that arrived this tick
    retired: int = 0
    hits: List[Hit] = field(default_factory=list)


class FrameClock:
    """Turns wall-clock timestamps into capped simulation deltas.

    Ticks faster than the target frame rate are skipped; long gaps (a
    hidden window, a debugger pause) are clamped to ``max_delta``.
    """

    def __init__(self, fps_target: float, max_delta: float):
        self.min_frame_delay = 1.0 / fps_target
        self.max_delta = max_delta
        self.last: Optional[float] = None

    def tick(self, timestamp: float) -> Optional[float]:
        if self.last is None:
            self.last = timestamp
            return None
        elapsed = timestamp - self.last
        if elapsed < self.min_frame_delay * 0.9:
            return None
        self.last = timestamp
        return min(elapsed, self.max_delta)

    def reset(self) -> None:
        self.last = None


class AutoTransmitter:
    """Background traffic: bursts of staggered sends at jittered intervals."""

    def __init__(self, cfg: Dict[str, Any], rng: random.Random):
        self.cfg = cfg
        self.rng = rng
        self.next_time = 0.0
        self.interval = 0.0
        # (due time, node id or None for a random client, strategy or None for a random pick)
        self.pending: List[Tuple[float, Optional[str], Optional[str]]] = []

    def reset(self, now: float) -> None:
        self.next_time = now
        self.pending.clear()

    def queue(self, due: float, node_id: Optional[str] = None, strategy: Optional[str] = None) -> None:
        self.pending.append((due, node_id, strategy))
        self.pending.sort(key=lambda entry: entry[0])

    def poll(self, sim: "Simulation", now: float) -> int:
        """Schedule a new burst if one is due, then fire every due send."""
        if now >= self.next_time and any(n.is_client for n in sim.state.nodes):
            for i in range(self.cfg["batch_size"]):
                self.queue(now + i * self.cfg["stagger_s"])
            self.interval = self.rng.uniform(self.cfg["min_interval_s"], self.cfg["max_interval_s"])
            self.next_time = now + self.interval

        fired = 0
        while self.pending and self.pending[0][0] <= now:
            _due, node_id, strategy = self.pending.pop(0)
            if node_id is None:
                source = pick_random_client(sim.state.nodes, self.rng)
                if source is None:
                    continue
                node_id = source.id
            if strategy is None:
                if self.rng.random() < self.cfg["flood_probability"]:
                    strategy = RoutingStrategy.FLOOD
                else:
                    strategy = RoutingStrategy.DIRECT
            sim.transmit_packet(node_id, strategy)
            fired += 1
        return fired


class Simulation:
    """Coordinates the entire mesh network simulation"""

    def __init__(self, cfg: Optional[Dict[str, Any]] = None,
                 world_size: Optional[Tuple[float, float]] = None,
                 rng: Optional[random.Random] = None,
                 scale: float = 1.0):
        self.cfg = cfg if cfg is not None else apply_scaling(scale)
        sim_cfg = self.cfg["sim"]
        W, H = world_size or sim_cfg["world_size"]
        self.state = SimulationState(
            config=self.cfg,
            rng=rng or random.Random(sim_cfg.get("seed", SIM_CONFIG["seed"])),
            width=W,
            height=H,
            pools=Pools(sim_cfg["trail_length"]),
        )
        self.state.reset_stats()
        self.channel = WirelessChannel(self.state)
        self.transmitter = AutoTransmitter(self.cfg["auto_transmit"], self.state.rng)

    @property
    def nodes(self) -> List[MeshNode]:
        return self.state.nodes

    @property
    def packets(self) -> List[Packet]:
        return self.state.packets

    @property
    def broadcasts(self) -> List[Broadcast]:
        return self.state.broadcasts

    @property
    def _log(self) -> bool:
        return self.cfg["sim"]["log_events"]

    # -------- Layout --------

    def node_config(self, node_type: str) -> Optional[Dict[str, Any]]:
        config = self.cfg["nodes"].get(node_type)
        if config is None:
            logger.error(f"Unknown node type: {node_type}")
        return config

    def _generate_coords(self, use_grid: bool, col: int, row: int,
                         cell_w: float, cell_h: float, radius: float) -> Tuple[float, float]:
        rng = self.state.rng
        if use_grid:
            return (
                col * cell_w + cell_w * (0.25 + rng.random() * 0.5),
                row * cell_h + cell_h * (0.25 + rng.random() * 0.5),
            )
        margin = int(radius * 2)
        x = rng.randint(margin, max(margin, int(self.state.width - margin)))
        y = rng.randint(margin, max(margin, int(self.state.height - margin)))
        return float(x), float(y)

    def _is_too_close(self, x: float, y: float) -> bool:
        min_dist = self.cfg["sim"]["min_node_distance"]
        return any(math.hypot(x - n.x, y - n.y) < min_dist for n in self.state.nodes)

    def _try_place_node(self, node: MeshNode, use_grid: bool = False, col: int = 0, row: int = 0,
                        cell_w: float = 0.0, cell_h: float = 0.0) -> bool:
        for _ in range(self.cfg["sim"]["placement_attempts"]):
            node.x, node.y = self._generate_coords(use_grid, col, row, cell_w, cell_h, node.hitbox)
            if not self._is_too_close(node.x, node.y):
                return True
        return False

    def layout_nodes(self, node_type: str) -> int:
        """Place ``count`` nodes of one type, on a jittered grid or at random.

        Returns how many were placed; crowded layouts may fall short.
        """
        config = self.node_config(node_type)
        if config is None:
            return 0

        count, use_grid = config["count"], config["use_grid"]
        cols = math.ceil(math.sqrt(count)) if use_grid and count > 0 else 0
        rows = math.ceil(count / cols) if cols else 0
        cell_w = self.state.width / cols if cols else 0.0
        cell_h = self.state.height / rows if rows else 0.0

        placed = 0
        for _ in range(count):
            node = create_node(node_type, config, self.state.rng)
            row, col = divmod(placed, cols) if cols else (0, 0)
            if self._try_place_node(node, bool(cols), col, row, cell_w, cell_h):
                self.state.nodes.append(node)
                placed += 1
        return placed

    def reset_network(self, client_count: Optional[int] = None,
                      repeater_count: Optional[int] = None) -> None:
        """Drop everything in flight and lay out a fresh network."""
        state = self.state
        state.nodes.clear()
        state.packets.clear()
        state.broadcasts.clear()
        state.seen.clear()
        state.pools.clear()
        state.reset_stats()

        clients = self.node_config(NodeType.CLIENT)
        repeaters = self.node_config(NodeType.REPEATER)
        if client_count is not None:
            clients["count"] = client_count
        if repeater_count is not None:
            repeaters["count"] = repeater_count

        # Repeaters first so they get the best grid spacing
        self.layout_nodes(NodeType.REPEATER)
        self.layout_nodes(NodeType.CLIENT)

        compute_neighbors(state.nodes)
        self.transmitter.reset(state.clock)
        if self._log:
            logger.debug(f"[LAYOUT] placed {len(state.nodes)} nodes "
                         f"({repeaters['count']} repeaters, {clients['count']} clients requested)")

    build = reset_network

    def add_node(self, node_type: str) -> Optional[MeshNode]:
        """Place one extra node at a random free spot; no-op if none is found."""
        config = self.node_config(node_type)
        if config is None:
            return None
        node = create_node(node_type, config, self.state.rng)
        if not self._try_place_node(node):
            if self._log:
                logger.debug(f"[LAYOUT] no room for another {node_type}")
            return None
        self.state.nodes.append(node)
        compute_neighbors(self.state.nodes)
        return node

    # -------- Transmission --------

    def create_direct_packet(self, source: MeshNode, target: MeshNode,
                             route: Optional[Route] = None) -> Optional[Packet]:
        """Acquire a packet routed from source to target, or None if unroutable."""
        cfg = self.cfg["unicast"]
        if route is None:
            route = plan_route(self.state.nodes, source, target, cfg["max_hops"])
        if route is None:
            return None

        packet = self.state.pools.packets.acquire()
        packet.id = generate_id(self.state.rng)
        packet.strategy = RoutingStrategy.DIRECT
        packet.source_id = source.id
        packet.target_id = target.id
        packet.x = source.x
        packet.y = source.y
        packet.size = cfg["size"]
        packet.speed = cfg["speed"]
        packet.route = route
        packet.trail = self.state.pools.trails.acquire()
        self.state.stats["generated"] += 1
        return packet

    def send_packet(self, source_id: str, target_id: str) -> Optional[Packet]:
        """Unicast between two specific nodes."""
        source = find_node(self.state.nodes, source_id)
        target = find_node(self.state.nodes, target_id)
        if source is None or target is None:
            return None
        packet = self.create_direct_packet(source, target)
        if packet is not None:
            self.state.packets.append(packet)
        return packet

    def transmit_packet(self, node_id: Optional[str] = None,
                        strategy: str = RoutingStrategy.DIRECT) -> Optional[Union[Packet, Broadcast]]:
        """Send from ``node_id`` (or a random client) using the given strategy.

        Unicast picks its own destination; flood starts a new flood group.
        """
        if strategy not in RoutingStrategy.ALL:
            logger.warning(f"Unknown routing strategy: {strategy}")
            return None

        state = self.state
        if node_id is not None:
            source = find_node(state.nodes, node_id)
        else:
            source = pick_random_client(state.nodes, state.rng)
        if source is None:
            return None

        if strategy == RoutingStrategy.FLOOD:
            return self.channel.create_broadcast(source)

        choice = find_aesthetic_route(state.nodes, source, self.cfg["unicast"]["max_hops"],
                                      state.rng, self.cfg["sim"])
        if choice is None:
            return None
        target, route = choice
        packet = self.create_direct_packet(source, target, route)
        if packet is not None:
            state.packets.append(packet)
            if self._log:
                logger.debug(f"[DIRECT] {packet.id[:8]} {len(route) - 1} hop(s) "
                             f"{source.id[:8]} -> {target.id[:8]}")
        return packet

    def send_direct_burst(self, now: float) -> None:
        """Queue a short burst of unicasts from random clients."""
        sim_cfg = self.cfg["sim"]
        for i in range(sim_cfg["direct_burst"]):
            self.transmitter.queue(now + i * sim_cfg["direct_burst_stagger_s"],
                                   strategy=RoutingStrategy.DIRECT)

    # -------- Tick --------

    def _move_packet_along_route(self, packet: Packet, dt: float) -> bool:
        """Advance an en-route packet; True when this move delivered it."""
        nxt = packet.next_hop
        if nxt is None:
            return False

        packet.trail.add(TrailPoint(packet.x, packet.y, self.state.clock))

        dx, dy = nxt.x - packet.x, nxt.y - packet.y
        dist = math.hypot(dx, dy)
        step = packet.speed * dt

        if step >= dist:
            packet.x, packet.y = nxt.x, nxt.y
            packet.hop_index += 1
            packet.recycle_trail()
            if packet.hop_index == len(packet.route) - 1:
                packet.delivered = True
                packet.progress = 0.0
                return True
        else:
            packet.x += step * dx / dist
            packet.y += step * dy / dist
        return False

    def update_packets(self, dt: float, report: TickReport) -> None:
        state = self.state
        fade = self.cfg["sim"]["delivery_fade_s"]
        for i in range(len(state.packets) - 1, -1, -1):
            packet = state.packets[i]
            if packet.delivered:
                packet.progress += dt / fade
                if packet.progress >= 1:
                    del state.packets[i]
                    state.pools.packets.release(packet)
                    report.retired += 1
            elif self._move_packet_along_route(packet, dt):
                state.stats["delivered"] += 1
                report.delivered.append(packet.id)

    def advance(self, dt: float) -> TickReport:
        """Advance every packet and wavefront by ``dt`` seconds."""
        self.state.clock += dt
        report = TickReport()
        self.update_packets(dt, report)
        report.hits = self.channel.update(dt)
        return report

    def run(self, duration_s: float, dt: Optional[float] = None, auto_transmit: bool = True) -> None:
        """Headless fixed-step run, used when no window is available."""
        dt = dt or 1.0 / self.cfg["sim"]["fps_target"]
        end = self.state.clock + duration_s
        while self.state.clock < end:
            if auto_transmit:
                self.transmitter.poll(self, self.state.clock)
            self.advance(dt)

    # -------- Snapshots & Summary --------

    def snapshot(self) -> Dict[str, List[Dict[str, Any]]]:
        """Read-only view of the current frame for renderers."""
        return {
            "nodes": [
                {"id": n.id, "type": n.type, "x": n.x, "y": n.y, "size": n.size, "range": n.range}
                for n in self.state.nodes
            ],
            "packets": [
                {
                    "id": p.id,
                    "x": p.x,
                    "y": p.y,
                    "size": p.size,
                    "delivered": p.delivered,
                    "progress": p.progress,
                    "route": [(h.x, h.y) for h in p.route],
                    "trail": [(pt.x, pt.y) for pt in p.trail] if p.trail is not None else [],
                }
                for p in self.state.packets
            ],
            "broadcasts": [
                {"x": b.x, "y": b.y, "radius": b.radius, "opacity": b.opacity}
                for b in self.state.broadcasts
            ],
        }

    def report(self):
        """Print simulation statistics"""
        s = self.state.stats
        clients = sum(1 for n in self.state.nodes if n.is_client)
        repeaters = len(self.state.nodes) - clients
        print("\n=== Simulation Summary ===")
        print(f"Nodes: {len(self.state.nodes)} ({clients} clients, {repeaters} repeaters)  "
              f"World: {self.state.width:.0f}x{self.state.height:.0f}  Time: {self.state.clock:.1f} s")
        print(f"Unicast generated: {s['generated']}  delivered: {s['delivered']}")
        dr = (s["delivered"] / s["generated"]) if s["generated"] else 0.0
        print(f"Delivery ratio: {dr:.3f}  In flight: {len(self.state.packets)}")
        print(f"Floods: {s['floods']}  Rebroadcasts: {s['rebroadcasts']}  Hits: {s['flood_hits']}")

        print("\nPer-node quick view:")
        for n in self.state.nodes[:8]:
            info = n.summary()
            print(f"- {info['type']:<8} {info['id'][:8]} at {info['pos']} range={info['range']} "
                  f"neighbors={info['neighbors']} near={info['near_clients']} far={info['far_clients']}")
        if len(self.state.nodes) > 8:
            print("  ...")
