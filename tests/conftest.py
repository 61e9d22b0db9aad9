"""Shared fixtures for mesh simulation tests."""

from __future__ import annotations

import random

import pytest

from config import apply_scaling
from mesh_node import MeshNode, compute_neighbors
from simulation import Simulation


@pytest.fixture
def sim() -> Simulation:
    """Empty simulation on a fixed canvas with a seeded random source."""
    return Simulation(apply_scaling(1.0), world_size=(1000.0, 600.0), rng=random.Random(7))


@pytest.fixture
def place(sim):
    """Hand-place a node with an exact range, then refresh neighbor sets.

    Returns the node; ids are readable ("client-0", "repeater-1", ...).
    """

    def _place(node_type: str, x: float, y: float, rng_range: float | None = None) -> MeshNode:
        cfg = sim.node_config(node_type)
        node = MeshNode(
            id=f"{node_type}-{len(sim.nodes)}",
            type=node_type,
            x=x,
            y=y,
            size=cfg["size"],
            hitbox=cfg["hitbox"],
            range=cfg["range"] if rng_range is None else rng_range,
        )
        sim.nodes.append(node)
        compute_neighbors(sim.nodes)
        return node

    return _place


def _run_until(sim: Simulation, done, dt: float = 1 / 60, max_ticks: int = 2000) -> int:
    for tick in range(1, max_ticks + 1):
        sim.advance(dt)
        if done():
            return tick
    raise AssertionError(f"condition not reached within {max_ticks} ticks")


@pytest.fixture
def run_until():
    """Advance a simulation until ``done()`` holds; returns the number of ticks taken."""
    return _run_until

