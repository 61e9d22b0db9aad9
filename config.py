"""
Configuration for Mesh Network Simulation
"""

import copy
from typing import Any, Dict

CLIENT = "client"
REPEATER = "repeater"
UNICAST = "unicast"
BROADCAST = "broadcast"

# Theme colors as (hue, saturation %, lightness %)
THEME = {
    "client_fill": (200.0, 70.0, 55.0),
    "client_stroke": (200.0, 70.0, 35.0),
    "repeater_fill": (35.0, 90.0, 55.0),
    "repeater_stroke": (35.0, 90.0, 35.0),
    "packet_fill": (145.0, 65.0, 50.0),
    "packet_stroke": (145.0, 65.0, 25.0),
    "broadcast_stroke": (285.0, 60.0, 60.0),
    "background": (220.0, 20.0, 12.0),
}

NODE_DEFAULT: Dict[str, Dict[str, Any]] = {
    CLIENT: {
        "count": 25,
        "size": 15,           # px circumradius of client hexagon
        "hitbox": 12,         # px radius for proximity detection
        "range": 160,         # px max transmission range
        "range_variance": 60, # px +/- offset for range
        "use_grid": False,
        "color": THEME["client_fill"],
        "border_color": THEME["client_stroke"],
    },
    REPEATER: {
        "count": 10,
        "size": 25,
        "hitbox": 20,
        "range": 280,
        "range_variance": 70,
        "use_grid": True,
        "color": THEME["repeater_fill"],
        "border_color": THEME["repeater_stroke"],
    },
}

PACKET_DEFAULT: Dict[str, Dict[str, Any]] = {
    UNICAST: {
        "size": 7,            # px radius of packet circle
        "speed": 320,         # px per second
        "max_hops": 6,
        "color": THEME["packet_fill"],
        "border_color": THEME["packet_stroke"],
    },
    BROADCAST: {
        "speed": 180,         # px per second
        "color": THEME["broadcast_stroke"],
        "opacity": 0.7,
    },
}

AUTO_TRANSMIT = {
    "min_interval_s": 0.7,
    "max_interval_s": 1.7,
    "batch_size": 4,
    "stagger_s": 0.12,        # delay between sends inside one batch
    "flood_probability": 0.05,
}

SIM_CONFIG = {
    "world_size": (1200.0, 700.0),  # px (width, height)
    "min_node_distance": 70,        # px between node centers
    "placement_attempts": 30,
    "trail_length": 8,              # samples kept per packet trail
    "delivery_fade_s": 0.6,
    "multi_hop_attempts": 3,
    "multi_hop_probability": 0.8,   # chance to try a far client first
    "short_route_accept": 0.5,      # chance to keep a single-repeater route
    "direct_burst": 3,
    "direct_burst_stagger_s": 0.15,
    "fps_target": 60,
    "max_frame_delta_s": 0.1,
    "seed": 42,
    "log_events": False,
}

COMPACT_SCALE = 3 / 5
COMPACT_FPS_TARGET = 30


def _scaled(value: float, factor: float) -> int:
    return int(round(value * factor))


def apply_scaling(factor: float = 1.0) -> Dict[str, Any]:
    """Build per-session config state, scaling pixel quantities by ``factor``.

    Defaults are deep-copied so repeated resets never compound the scale.
    """
    nodes = {}
    for node_type, default in NODE_DEFAULT.items():
        cfg = copy.deepcopy(default)
        for key in ("count", "size", "hitbox", "range", "range_variance"):
            cfg[key] = _scaled(default[key], factor)
        nodes[node_type] = cfg

    unicast = copy.deepcopy(PACKET_DEFAULT[UNICAST])
    unicast["size"] = _scaled(unicast["size"], factor)
    unicast["speed"] = _scaled(unicast["speed"], factor)

    broadcast = copy.deepcopy(PACKET_DEFAULT[BROADCAST])
    broadcast["speed"] = _scaled(broadcast["speed"], factor)

    sim = copy.deepcopy(SIM_CONFIG)
    sim["min_node_distance"] = _scaled(sim["min_node_distance"], factor)

    return {
        "nodes": nodes,
        UNICAST: unicast,
        BROADCAST: broadcast,
        "auto_transmit": dict(AUTO_TRANSMIT),
        "sim": sim,
    }


def session_config(compact: bool = False) -> Dict[str, Any]:
    """Config for one run; compact mode shrinks the network and halves the frame rate."""
    if not compact:
        return apply_scaling(1.0)
    cfg = apply_scaling(COMPACT_SCALE)
    cfg["sim"]["fps_target"] = COMPACT_FPS_TARGET
    return cfg
