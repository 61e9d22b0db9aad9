"""
Route discovery for the Mesh Network Simulation
"""

import random
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Tuple

from config import BROADCAST, UNICAST
from mesh_node import Hop, MeshNode


class RoutingStrategy:
    DIRECT = UNICAST
    FLOOD = BROADCAST

    ALL = (DIRECT, FLOOD)


Route = List[Hop]


def find_route(nodes: List[MeshNode], source: MeshNode, target: MeshNode) -> Route:
    """Breadth-first search for the shortest repeater-clean route.

    Two-node routes (a direct hop) are always acceptable; longer routes
    must only pass through repeaters. A node is marked visited when its
    path is dequeued, so several equal-length partial paths can be
    queued at once and the next one is tried if the first is rejected.
    Paths are only extended from the source or from repeaters, so a
    client reached first cannot claim a repeater ahead of a clean path.

    Returns the list of hops starting at the source. A single-element
    list (just the source) means no route was found.
    """
    by_id: Dict[str, MeshNode] = {n.id: n for n in nodes}
    visited = set()
    queue: Deque[Route] = deque([[source.hop()]])

    while queue:
        path = queue.popleft()
        last = path[-1]

        if last.id == target.id:
            if len(path) <= 2 or _interior_is_repeaters(path, by_id):
                return path
            continue

        if last.id in visited:
            continue
        visited.add(last.id)

        current = by_id.get(last.id)
        if current is None:
            continue
        # A client can only start or end a route, never relay one. Among
        # equal-length clean routes the first in neighbor order wins.
        if len(path) > 1 and not current.is_repeater:
            continue

        for neighbor in current.neighbors:
            if neighbor.id not in visited:
                queue.append(path + [neighbor.hop()])

    return [source.hop()]


def _interior_is_repeaters(path: Route, by_id: Dict[str, MeshNode]) -> bool:
    for hop in path[1:-1]:
        node = by_id.get(hop.id)
        if node is None or not node.is_repeater:
            return False
    return True


def hop_count(route: Route) -> int:
    return len(route) - 1


def plan_route(nodes: List[MeshNode], source: MeshNode, target: MeshNode,
               max_hops: int) -> Optional[Route]:
    """find_route() plus the packet-creation checks: None when unusable."""
    route = find_route(nodes, source, target)
    if len(route) == 1 or hop_count(route) > max_hops:
        return None
    return route


# ----------------------- Target Selection -----------------------

Choice = Tuple[MeshNode, Route]


def try_multi_hop_route(nodes: List[MeshNode], source: MeshNode,
                        candidates: List[MeshNode], max_hops: int,
                        rng: random.Random, cfg: Dict[str, Any]) -> Optional[Choice]:
    """Sample far clients looking for a long repeater chain.

    Routes through two or more repeaters are taken at once; a single
    repeater route is kept only with probability ``short_route_accept``.
    """
    for _ in range(cfg["multi_hop_attempts"]):
        target = rng.choice(candidates)
        route = plan_route(nodes, source, target, max_hops)
        if route is None:
            continue
        if len(route) > 3:
            return target, route
        if len(route) > 2 and rng.random() < cfg["short_route_accept"]:
            return target, route
    return None


def try_any_route(nodes: List[MeshNode], source: MeshNode,
                  candidates: List[MeshNode], max_hops: int) -> Optional[Choice]:
    for target in candidates:
        route = plan_route(nodes, source, target, max_hops)
        if route is not None:
            return target, route
    return None


def find_aesthetic_route(nodes: List[MeshNode], source: MeshNode, max_hops: int,
                         rng: random.Random, cfg: Dict[str, Any]) -> Optional[Choice]:
    """Pick a visually interesting destination for an untargeted unicast.

    Order of preference: a multi-hop route to a far client, a direct hop
    to a near client, then any reachable far client.
    """
    far_clients = source.far_clients
    near_clients = source.near_clients

    if far_clients and rng.random() < cfg["multi_hop_probability"]:
        choice = try_multi_hop_route(nodes, source, far_clients, max_hops, rng, cfg)
        if choice:
            return choice

    if near_clients:
        target = rng.choice(near_clients)
        route = plan_route(nodes, source, target, max_hops)
        if route is not None:
            return target, route

    if far_clients:
        return try_any_route(nodes, source, far_clients, max_hops)

    return None
