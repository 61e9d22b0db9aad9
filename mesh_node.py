"""
Mesh node model and neighbor graph for the Mesh Network Simulation
"""

import random
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from config import CLIENT, REPEATER


class NodeType:
    CLIENT = CLIENT
    REPEATER = REPEATER

    ALL = (CLIENT, REPEATER)


def generate_id(rng: random.Random) -> str:
    """Opaque unique id drawn from the injected random source."""
    return str(uuid.UUID(int=rng.getrandbits(128), version=4))


@dataclass(frozen=True)
class Hop:
    """One route hop: a node id plus where that node stood when routed"""
    id: str
    x: float
    y: float


@dataclass(eq=False)
class MeshNode:
    """A stationary client or repeater with its own transmission range"""
    id: str
    type: str
    x: float = 0.0
    y: float = 0.0
    size: float = 0.0
    hitbox: float = 0.0
    range: float = 0.0

    # Derived by compute_neighbors()
    neighbors: List["MeshNode"] = field(default_factory=list, repr=False)
    near_clients: List["MeshNode"] = field(default_factory=list, repr=False)
    far_clients: List["MeshNode"] = field(default_factory=list, repr=False)

    @property
    def is_repeater(self) -> bool:
        return self.type == NodeType.REPEATER

    @property
    def is_client(self) -> bool:
        return self.type == NodeType.CLIENT

    @property
    def pos(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def hop(self) -> Hop:
        """Positional snapshot used as a route hop."""
        return Hop(self.id, self.x, self.y)

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "pos": (round(self.x, 1), round(self.y, 1)),
            "range": self.range,
            "neighbors": len(self.neighbors),
            "near_clients": len(self.near_clients),
            "far_clients": len(self.far_clients),
        }


def squared_distance(a, b) -> float:
    dx = a.x - b.x
    dy = a.y - b.y
    return dx * dx + dy * dy


def create_node(node_type: str, cfg: Dict[str, Any], rng: random.Random) -> MeshNode:
    """Build an unplaced node; range variance is applied once, here."""
    variance = cfg["range_variance"]
    return MeshNode(
        id=generate_id(rng),
        type=node_type,
        size=cfg["size"],
        hitbox=cfg["hitbox"],
        range=cfg["range"] + rng.randint(-variance, variance),
    )


def compute_neighbors(nodes: List[MeshNode]) -> None:
    """Recompute neighbors / near_clients / far_clients for every node.

    The range test uses the evaluating node's own range, so the relation
    is not necessarily symmetric.
    """
    for node in nodes:
        node.neighbors = []
        node.near_clients = []
        node.far_clients = []
        range_sq = node.range * node.range

        for other in nodes:
            if other.id == node.id:
                continue

            if squared_distance(node, other) <= range_sq:
                node.neighbors.append(other)
                if other.is_client:
                    node.near_clients.append(other)
            elif other.is_client:
                node.far_clients.append(other)


def find_node(nodes: List[MeshNode], node_id: str) -> Optional[MeshNode]:
    for node in nodes:
        if node.id == node_id:
            return node
    return None


def pick_random_client(nodes: List[MeshNode], rng: random.Random,
                       exclude_id: Optional[str] = None) -> Optional[MeshNode]:
    clients = [n for n in nodes if n.is_client and n.id != exclude_id]
    if not clients:
        return None
    return rng.choice(clients)


def node_at(nodes: List[MeshNode], x: float, y: float) -> Optional[MeshNode]:
    """First node whose drawn size covers the point (pointer hit test)."""
    for node in nodes:
        dx = node.x - x
        dy = node.y - y
        if dx * dx + dy * dy <= node.size * node.size:
            return node
    return None
