"""
Live visualization for Mesh Network Simulation
"""

import colorsys
import time
from typing import Dict, List, Optional, Tuple

import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation
from matplotlib.collections import LineCollection
from matplotlib.patches import Circle, RegularPolygon

from config import THEME
from mesh_node import MeshNode, NodeType, node_at
from routing import RoutingStrategy
from simulation import FrameClock, Simulation

HSL = Tuple[float, float, float]
RGBA = Tuple[float, float, float, float]

DELIVERY_PULSE_SCALE = 2.0


class ColorCache:
    """Memoizes (hsl color, alpha) -> RGBA tuples for matplotlib."""

    def __init__(self):
        self._cache: Dict[Tuple[HSL, float], RGBA] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def __call__(self, color: HSL, alpha: Optional[float] = None) -> RGBA:
        if alpha is None:
            raise ValueError("Alpha value must be explicitly provided")
        key = (color, alpha)
        rgba = self._cache.get(key)
        if rgba is None:
            h, s, l = color
            r, g, b = colorsys.hls_to_rgb(h / 360.0, l / 100.0, s / 100.0)
            rgba = (r, g, b, min(1.0, max(0.0, alpha)))
            self._cache[key] = rgba
        return rgba


class LiveArtist:
    """Matplotlib view of the mesh; also routes key and mouse input to the simulation"""

    KEYS = {
        "d": "send direct burst",
        "f": "send flood",
        "c": "add client",
        "r": "add repeater",
        "x": "reset network",
        "p": "pause / resume",
    }

    def __init__(self, sim: Simulation):
        self.sim = sim
        self.hsla = ColorCache()
        sim_cfg = sim.cfg["sim"]
        self.clock = FrameClock(sim_cfg["fps_target"], sim_cfg["max_frame_delta_s"])
        self.running = True
        self.hovered: Optional[MeshNode] = None
        self.needs_static_redraw = True

        # Free our keys from matplotlib's default toolbar bindings (f = fullscreen, p = pan, ...)
        for name in [k for k in plt.rcParams if k.startswith("keymap.")]:
            plt.rcParams[name] = [k for k in plt.rcParams[name] if k not in self.KEYS]

        self.fig, self.ax = plt.subplots(figsize=(10.0, 6.0))
        W, H = sim.state.width, sim.state.height
        self.ax.set_xlim(0, W)
        self.ax.set_ylim(H, 0)  # canvas coordinates: y grows downward
        self.ax.set_aspect("equal", adjustable="box")
        self.ax.set_axis_off()
        self.ax.set_facecolor(self.hsla(THEME["background"], 1.0))
        self.fig.patch.set_facecolor(self.hsla(THEME["background"], 1.0))
        self.ax.set_title("Mesh Network  " + "  ".join(f"[{k}] {v}" for k, v in self.KEYS.items()),
                          fontsize=8, color="white")

        self._static: List = []
        self._dynamic: List = []

        self.stats_txt = self.ax.text(0.01, 0.99, "", transform=self.ax.transAxes,
                                      va="top", fontsize=8, color="white")

        self.fig.canvas.mpl_connect("key_press_event", self.on_key)
        self.fig.canvas.mpl_connect("button_press_event", self.on_click)
        self.fig.canvas.mpl_connect("motion_notify_event", self.on_move)

    # -------- Static layer --------

    def _draw_static(self):
        for artist in self._static:
            artist.remove()
        self._static = []

        for node in self.sim.nodes:
            cfg = self.sim.node_config(node.type)
            if cfg is None:
                continue
            hovered = self.hovered is not None and node.id == self.hovered.id
            ring = Circle((node.x, node.y), node.range, fill=False, linewidth=1,
                          edgecolor=self.hsla(cfg["color"], 0.5 if hovered else 0.1))
            hexagon = RegularPolygon((node.x, node.y), numVertices=6, radius=node.size,
                                     facecolor=self.hsla(cfg["color"], 1.0),
                                     edgecolor=self.hsla(cfg["border_color"], 1.0),
                                     linewidth=3 if hovered else 1.5, zorder=3)
            self.ax.add_patch(ring)
            self.ax.add_patch(hexagon)
            self._static.extend([ring, hexagon])
        self.needs_static_redraw = False

    # -------- Dynamic layer --------

    def _draw_dynamic(self):
        for artist in self._dynamic:
            artist.remove()
        self._dynamic = []

        snap = self.sim.snapshot()
        unicast = self.sim.cfg["unicast"]
        flood = self.sim.cfg["broadcast"]

        for b in snap["broadcasts"]:
            wave = Circle((b["x"], b["y"]), b["radius"], fill=False, linewidth=2,
                          edgecolor=self.hsla(flood["color"], round(b["opacity"], 2)), zorder=2)
            self.ax.add_patch(wave)
            self._dynamic.append(wave)

        routes = [p["route"] for p in snap["packets"] if not p["delivered"] and len(p["route"]) >= 2]
        if routes:
            lines = LineCollection(routes, linestyles="dashed", linewidths=1,
                                   colors=[self.hsla(unicast["color"], 0.5)], zorder=4)
            self.ax.add_collection(lines)
            self._dynamic.append(lines)

        for p in snap["packets"]:
            trail = p["trail"]
            if len(trail) >= 2:
                segs = list(zip(trail[:-1], trail[1:]))
                n = len(segs)
                colors = [self.hsla(unicast["color"], round(0.5 * (i + 1) / n, 2)) for i in range(n)]
                tail = LineCollection(segs, colors=colors, linewidths=3, zorder=5)
                self.ax.add_collection(tail)
                self._dynamic.append(tail)

            if p["delivered"]:
                eased = p["progress"] ** 0.5
                pulse = Circle((p["x"], p["y"]), p["size"] + eased * DELIVERY_PULSE_SCALE * p["size"],
                               facecolor=self.hsla(unicast["color"], round(max(0.0, 1 - eased), 2)),
                               linewidth=0, zorder=5)
                self.ax.add_patch(pulse)
                self._dynamic.append(pulse)

            dot = Circle((p["x"], p["y"]), p["size"], facecolor=self.hsla(unicast["color"], 1.0),
                         edgecolor=self.hsla(unicast["border_color"], 0.6), linewidth=1, zorder=6)
            self.ax.add_patch(dot)
            self._dynamic.append(dot)

    def render(self):
        if self.needs_static_redraw:
            self._draw_static()
        self._draw_dynamic()

        s = self.sim.state.stats
        self.stats_txt.set_text(
            f"Nodes: {len(self.sim.nodes)}  Packets: {len(self.sim.packets)}  "
            f"Waves: {len(self.sim.broadcasts)}\n"
            f"Delivered: {s['delivered']}/{s['generated']}  Floods: {s['floods']}  "
            f"Relays: {s['rebroadcasts']}"
        )
        return [*self._static, *self._dynamic, self.stats_txt]

    def update(self, _frame):
        """Update animation frame"""
        if not self.running:
            return [self.stats_txt]
        dt = self.clock.tick(time.monotonic())
        if dt is not None:
            self.sim.transmitter.poll(self.sim, self.sim.state.clock)
            self.sim.advance(dt)
        return self.render()

    # -------- Input --------

    def on_key(self, event):
        key = event.key
        sim = self.sim
        if key == "d":
            sim.send_direct_burst(sim.state.clock)
        elif key == "f":
            sim.transmit_packet(strategy=RoutingStrategy.FLOOD)
        elif key in ("c", "r"):
            node_type = NodeType.CLIENT if key == "c" else NodeType.REPEATER
            if sim.add_node(node_type) is not None:
                self.needs_static_redraw = True
        elif key == "x":
            self.hovered = None
            sim.reset_network()
            self.needs_static_redraw = True
        elif key == "p":
            self.running = not self.running
            self.clock.reset()

    def on_click(self, event):
        if event.inaxes is not self.ax or event.xdata is None:
            return
        node = node_at(self.sim.nodes, event.xdata, event.ydata)
        if node is not None:
            strategy = RoutingStrategy.FLOOD if node.is_repeater else RoutingStrategy.DIRECT
            self.sim.transmit_packet(node.id, strategy)
        self.hovered = node
        self.needs_static_redraw = True

    def on_move(self, event):
        node = None
        if event.inaxes is self.ax and event.xdata is not None:
            node = node_at(self.sim.nodes, event.xdata, event.ydata)
        if (node and node.id) != (self.hovered and self.hovered.id):
            self.hovered = node
            self.needs_static_redraw = True


def run_live_viz(sim: Simulation):
    """Show a live Matplotlib view driving the simulation from the animation timer"""
    artist = LiveArtist(sim)
    interval = 1000.0 / sim.cfg["sim"]["fps_target"]
    anim = FuncAnimation(artist.fig, artist.update, interval=interval, blit=False,
                         cache_frame_data=False)

    # Show blocking window; after close, print final report
    plt.show()
    sim.report()
    return anim
