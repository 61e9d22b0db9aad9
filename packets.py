"""
Pooled transmission entities for the Mesh Network Simulation
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from config import UNICAST
from mesh_node import Hop
from pool import ObjectPool


@dataclass
class TrailPoint:
    x: float
    y: float
    time: float


class Trail:
    """Fixed-capacity ring buffer of recent packet positions."""

    def __init__(self, capacity: int = 8):
        if capacity < 1:
            raise ValueError(f"Trail capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self.points: List[TrailPoint] = []
        self.index = 0  # next slot to overwrite once full

    def __len__(self) -> int:
        return len(self.points)

    def add(self, point: TrailPoint) -> None:
        if len(self.points) < self.capacity:
            self.points.append(point)
        else:
            self.points[self.index] = point
            self.index = (self.index + 1) % self.capacity

    def __iter__(self) -> Iterator[TrailPoint]:
        """Oldest to newest."""
        n = len(self.points)
        for i in range(n):
            yield self.points[(self.index + i) % n]

    def reset(self) -> None:
        self.points.clear()
        self.index = 0


class Packet:
    """A unicast packet travelling hop by hop along a precomputed route."""

    def __init__(self, trail_pool: ObjectPool[Trail]):
        self._trail_pool = trail_pool
        self.id = ""
        self.strategy = UNICAST
        self.source_id = ""
        self.target_id = ""
        self.x = 0.0
        self.y = 0.0
        self.size = 0.0
        self.speed = 0.0
        self.route: List[Hop] = []
        self.hop_index = 0
        self.delivered = False
        self.progress = 0.0  # delivery effect, 0..1
        self.trail: Optional[Trail] = None

    @property
    def next_hop(self) -> Optional[Hop]:
        if self.hop_index + 1 < len(self.route):
            return self.route[self.hop_index + 1]
        return None

    def recycle_trail(self) -> None:
        if self.trail is not None:
            self._trail_pool.release(self.trail)
        self.trail = self._trail_pool.acquire()

    def reset(self) -> None:
        self.id = ""
        self.strategy = UNICAST
        self.source_id = ""
        self.target_id = ""
        self.x = 0.0
        self.y = 0.0
        self.size = 0.0
        self.speed = 0.0
        self.route = []
        self.hop_index = 0
        self.delivered = False
        self.progress = 0.0
        if self.trail is not None:
            self._trail_pool.release(self.trail)
            self.trail = None


@dataclass(eq=False)
class Broadcast:
    """One expanding flood wavefront centered on its source node"""
    id: str = ""
    flood_id: str = ""
    source_id: str = ""
    x: float = 0.0
    y: float = 0.0
    radius: float = 0.0
    range: float = 0.0
    speed: float = 0.0
    opacity: float = 0.0

    @property
    def expired(self) -> bool:
        return self.radius >= self.range

    def reset(self) -> None:
        self.id = ""
        self.flood_id = ""
        self.source_id = ""
        self.x = 0.0
        self.y = 0.0
        self.radius = 0.0
        self.range = 0.0
        self.speed = 0.0
        self.opacity = 0.0


@dataclass
class Pools:
    """The three entity pools, wired so packets return trails to the right pool"""
    trail_length: int = 8
    trails: ObjectPool[Trail] = field(init=False)
    packets: ObjectPool[Packet] = field(init=False)
    broadcasts: ObjectPool[Broadcast] = field(init=False)

    def __post_init__(self):
        if self.trail_length < 1:
            raise ValueError(f"trail_length must be at least 1, got {self.trail_length}")
        self.trails = ObjectPool(lambda: Trail(self.trail_length))
        self.packets = ObjectPool(lambda: Packet(self.trails))
        self.broadcasts = ObjectPool(Broadcast)

    def clear(self) -> None:
        self.broadcasts.clear()
        self.packets.clear()
        self.trails.clear()
