#!/usr/bin/env python3
"""
Mesh Network Simulator - Main Entry Point

An animated simulation of a wireless mesh of clients and repeaters.

Features:
- Range-limited neighbor graph with per-node transmission range
- Breadth-first routing that only relays through repeaters
- Unicast packets travelling hop by hop with fading trails
- Flood wavefronts relayed once per repeater per flood
- Live Matplotlib animation with keyboard and mouse controls

Run:
    python main.py            # live view
    python main.py --headless --duration 20
"""

import argparse
import random
import sys

from loguru import logger

from config import SIM_CONFIG, session_config
from simulation import Simulation


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Wireless mesh network simulation")
    parser.add_argument("--seed", type=int, default=SIM_CONFIG["seed"])
    parser.add_argument("--clients", type=int, default=None, help="override client count")
    parser.add_argument("--repeaters", type=int, default=None, help="override repeater count")
    parser.add_argument("--compact", action="store_true", help="scale the network down for small screens")
    parser.add_argument("--headless", action="store_true", help="run without a window and print a report")
    parser.add_argument("--duration", type=float, default=30.0, help="seconds to simulate when headless")
    parser.add_argument("--verbose", action="store_true", help="log packet and flood events")
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point for the mesh network simulation"""
    args = parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else "INFO")

    cfg = session_config(args.compact)
    cfg["sim"]["log_events"] = args.verbose
    cfg["sim"]["seed"] = args.seed

    sim = Simulation(cfg, rng=random.Random(args.seed))
    sim.build(client_count=args.clients, repeater_count=args.repeaters)

    if args.headless:
        print(f"Running headless for {args.duration:.0f} s...")
        sim.run(args.duration)
        sim.report()
        return

    from visualization import run_live_viz

    print("Starting simulation with live visualization...")
    run_live_viz(sim)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass
