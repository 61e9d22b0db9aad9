"""
Wireless Channel: flood (broadcast) wavefront propagation for the Mesh Network Simulation
"""

from typing import List, Optional, Tuple, TYPE_CHECKING

from loguru import logger

from mesh_node import MeshNode, find_node, generate_id, squared_distance
from packets import Broadcast

if TYPE_CHECKING:
    from simulation import SimulationState

Hit = Tuple[str, str]  # (flood_id, node_id)


class WirelessChannel:
    """In-memory 'air' carrying expanding flood wavefronts between nodes in range.

    Every wavefront belongs to a flood group. The seen-set records which
    nodes each flood has already reached so a repeater relays a given
    flood at most once.
    """

    def __init__(self, state: "SimulationState"):
        self.state = state

    @property
    def _log(self) -> bool:
        return self.state.config["sim"]["log_events"]

    def create_broadcast(self, source: MeshNode, origin_flood_id: Optional[str] = None) -> Broadcast:
        """Start a wavefront at ``source``; a new flood id is minted when none is given."""
        state = self.state
        cfg = state.config["broadcast"]
        flood_id = origin_flood_id or generate_id(state.rng)

        broadcast = state.pools.broadcasts.acquire()
        broadcast.id = generate_id(state.rng)
        broadcast.flood_id = flood_id
        broadcast.source_id = source.id
        broadcast.x = source.x
        broadcast.y = source.y
        broadcast.radius = 0.0
        broadcast.range = source.range
        broadcast.speed = cfg["speed"]
        broadcast.opacity = cfg["opacity"]

        state.seen.add((flood_id, source.id))
        state.broadcasts.append(broadcast)

        if origin_flood_id is None:
            state.stats["floods"] += 1
            if self._log:
                logger.debug(f"[FLOOD] {flood_id[:8]} started at {source.type} {source.id[:8]}")
        else:
            state.stats["rebroadcasts"] += 1
            if self._log:
                logger.debug(f"[FLOOD] {flood_id[:8]} relayed by {source.id[:8]}")
        return broadcast

    def process_collision(self, broadcast: Broadcast, node: MeshNode) -> bool:
        """Check whether the wavefront edge is sweeping over ``node``.

        A hit marks the node as seen for this flood; a repeater that is hit
        immediately spawns its own wavefront in the same flood group.
        """
        key = (broadcast.flood_id, node.id)
        if node.id == broadcast.source_id or key in self.state.seen:
            return False

        dist_sq = squared_distance(broadcast, node)
        min_r = max(0.0, broadcast.radius - node.hitbox)
        max_r = broadcast.radius + node.hitbox
        if not (min_r * min_r <= dist_sq <= max_r * max_r):
            return False

        self.state.seen.add(key)
        self.state.stats["flood_hits"] += 1
        if node.is_repeater:
            self.create_broadcast(node, broadcast.flood_id)
        return True

    def update(self, dt: float) -> List[Hit]:
        """Expand every wavefront by one tick and retire those at full range.

        Iterates in reverse so retirements and same-tick relays are safe;
        a relayed wavefront is appended past the current index and first
        expands on the following tick.
        """
        state = self.state
        base_opacity = state.config["broadcast"]["opacity"]
        hits: List[Hit] = []

        for i in range(len(state.broadcasts) - 1, -1, -1):
            broadcast = state.broadcasts[i]
            broadcast.radius += broadcast.speed * dt
            if broadcast.range > 0:
                broadcast.opacity = max(0.0, base_opacity * (1 - broadcast.radius / broadcast.range))
            else:
                broadcast.opacity = 0.0

            source = find_node(state.nodes, broadcast.source_id)
            if source is not None:
                for node in source.neighbors:
                    if self.process_collision(broadcast, node):
                        hits.append((broadcast.flood_id, node.id))

            if not broadcast.expired:
                continue

            flood_id = broadcast.flood_id
            del state.broadcasts[i]
            state.pools.broadcasts.release(broadcast)

            if not any(b.flood_id == flood_id for b in state.broadcasts):
                self.purge_flood(flood_id)

        return hits

    def purge_flood(self, flood_id: str) -> None:
        self.state.seen.difference_update([key for key in self.state.seen if key[0] == flood_id])
        if self._log:
            logger.debug(f"[FLOOD] {flood_id[:8]} finished")

    def active_floods(self) -> List[str]:
        return sorted({b.flood_id for b in self.state.broadcasts})
