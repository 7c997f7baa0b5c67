"""
2D Billiards — desktop host (Ursina)
Layer 3: Ursina window, mouse input and per-frame tick.
Layer 2: controller.py (BilliardsController)
Layer 1: physics.py (PhysicsEngine)

Left-drag anywhere and release to shoot the cue ball; the farther the
drag, the harder the shot. R re-racks.

Usage: python main.py [classic|rack]
"""

import logging
import sys

from ursina import Ursina, Entity, Text, Texture, camera, color, mouse, window

from controller import BilliardsController, DEFAULT_INFO_MSG
from layouts import DEFAULT_VARIANT
from render import render_frame
from surface import ImageSurface

logger = logging.getLogger(__name__)

# ── Layer 2: controller instance ──────────────────────────────────────────────
ctrl = BilliardsController(sys.argv[1] if len(sys.argv) > 1 else DEFAULT_VARIANT)
table = ctrl.table
surface = ImageSurface(table.width, table.height)

# ──────────────────────────────────────────
# Ursina App
# ──────────────────────────────────────────

app = Ursina(borderless=False, title="2D Billiards",
             size=(int(table.width), int(table.height)))
window.color = color.hsv(0, 0, 0.13)

# The table frame is a UI quad one unit tall, textured with the rendered frame.
board = Entity(parent=camera.ui, model="quad", scale=(table.width / table.height, 1))

info_text = Text(text=DEFAULT_INFO_MSG, position=(-0.98, 0.49), scale=0.8,
                 color=color.white)
status_text = Text(text="", position=(-0.98, -0.44), scale=0.8,
                   color=color.light_gray)


def _mouse_table_pos():
    """Mouse position in table pixels (origin top-left, y down)."""
    x = (mouse.x / board.scale_x + 0.5) * table.width
    y = (0.5 - mouse.y / board.scale_y) * table.height
    return x, y


# ──────────────────────────────────────────
# Input + per-frame tick
# ──────────────────────────────────────────

def input(key):
    if key == "left mouse down":
        ctrl.pointer_down(*_mouse_table_pos())
    elif key == "left mouse up":
        ctrl.pointer_up(*_mouse_table_pos())
    elif key == "r":
        ctrl.reset()


def update():
    if ctrl.mode == "aiming":
        ctrl.pointer_move(*_mouse_table_pos())

    ctrl.step()

    render_frame(surface, ctrl)
    board.texture = Texture(surface.image.copy())

    status_text.text = ctrl.status_msg
    ctrl.pending_events.clear()


# ──────────────────────────────────────────
# Run
# ──────────────────────────────────────────

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(name)s %(levelname)s %(message)s")
    app.run()
