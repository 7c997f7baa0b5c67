"""
BilliardsController — Layer 2 (Game Logic)

Owns the balls, the table variant and the pointer-driven aim state.
Hosts (server.py / main.py) drive it with:
  ctrl.step()                   — advance physics by one frame
  ctrl.pointer_down/move/up     — aim and shoot the cue ball
  ctrl.pending_events           — render commands (clear_aim, reset)
  ctrl.physics_events           — cushion / pocket / ball_ball events of the last frame
and draw it with render.render_frame(surface, ctrl).
"""

import json
import math
import logging

import numpy as np

from physics import PhysicsEngine, Ball, SHOT_SCALE
from layouts import DEFAULT_VARIANT, get_variant

logger = logging.getLogger(__name__)

DEFAULT_INFO_MSG = "Drag from anywhere and release to shoot the cue ball.  [R] Re-rack"


def _finite_pair(value, label: str):
    """[x, y] → float array, or None when absent. Rejects NaN and infinities."""
    if value is None:
        return None
    x, y = float(value[0]), float(value[1])
    if not (math.isfinite(x) and math.isfinite(y)):
        raise ValueError(f"{label} must be finite, got [{x}, {y}]")
    return np.array([x, y])


def _finite_point(x, y) -> bool:
    return math.isfinite(x) and math.isfinite(y)


class BilliardsController:
    """Layer 2: simulation state + aiming state machine."""

    SHOT_SCALE = SHOT_SCALE

    def __init__(self, variant: str = DEFAULT_VARIANT):
        self.variant = get_variant(variant)
        self.engine = PhysicsEngine(self.variant.table)
        self.balls: list[Ball] = []

        # Aiming ("idle" | "aiming")
        self.mode = "idle"
        self.aim_start = None
        self.aim_point = None

        self.frame_count = 0

        self.status_msg = ""
        self.info_msg = DEFAULT_INFO_MSG

        # Event queues
        self.pending_events: list[dict] = []
        self.physics_events: list[dict] = []

        self.reset()

    @property
    def table(self):
        return self.variant.table

    # ──────────────────────────────────────────────────────────────────────────
    # Main loop
    # ──────────────────────────────────────────────────────────────────────────

    def step(self) -> None:
        """Advance physics by one frame. Runs whether or not the user is aiming."""
        self.engine.update(self.balls)
        self.physics_events = list(self.engine.events)
        self.frame_count += 1

        for ev in self.physics_events:
            if ev["type"] == "pocket":
                logger.info("%s potted in pocket %d", ev["ball"], ev["pocket"])

        if self.mode == "aiming":
            return
        cue = self.cue_ball
        if cue is None or cue.potted:
            self.status_msg = "Cue ball potted."
        elif self.all_stopped:
            self.status_msg = "Stopped."
        else:
            self.status_msg = "Running..."

    @property
    def all_stopped(self) -> bool:
        return all(not b.is_moving() for b in self.balls)

    # ──────────────────────────────────────────────────────────────────────────
    # Ball management
    # ──────────────────────────────────────────────────────────────────────────

    @property
    def cue_ball(self):
        return next((b for b in self.balls if b.is_cue), None)

    def reset(self, variant: str | None = None) -> np.ndarray:
        """Re-rack the current (or a new) variant and return the obs vector."""
        if variant is not None:
            self.variant = get_variant(variant)
            self.engine = PhysicsEngine(self.variant.table)
        self.balls = self.variant.build_balls()
        self.engine.events.clear()
        self.physics_events = []
        self._cancel_aim()
        self.frame_count = 0
        self.status_msg = "Stopped."
        self.pending_events.append({"type": "reset", "variant": self.variant.name})
        logger.info("racked variant '%s' with %d balls", self.variant.name, len(self.balls))
        return self.get_obs()

    def set_balls(self, balls_info: dict) -> "BilliardsController":
        """Update ball positions/velocities without firing a shot.

            ctrl.set_balls({
                "cue":    {"pos": [150, 200]},
                "yellow": {"pos": [400, 200], "vel": [-2, 0]},
                "red":    {"potted": True},
            })

        Unknown names create new object balls (``"cue": true`` makes a cue
        ball, rejected when one already exists). Potting is one-way: a
        ``"potted": false`` entry does not bring a ball back.

        Every entry is checked before any ball changes, so a rejected
        update leaves the table as it was.
        """
        existing = {b.name: b for b in self.balls}
        has_cue = self.cue_ball is not None
        updates = []
        for name, bd in balls_info.items():
            if name not in existing and bd.get("cue"):
                if has_cue:
                    raise ValueError("a cue ball is already on the table")
                has_cue = True
            pos = _finite_pair(bd.get("pos"), f"{name}.pos")
            vel = _finite_pair(bd.get("vel"), f"{name}.vel")
            updates.append((name, bd, pos, vel))

        for name, bd, pos, vel in updates:
            b = existing.get(name)
            if b is None:
                b = Ball(name, color=bd.get("color", name), is_cue=bool(bd.get("cue", False)))
                self.balls.append(b)
                existing[name] = b

            if pos is not None:
                b.position = pos
            if vel is not None:
                b.velocity = vel
            elif pos is not None:
                b.velocity[:] = 0.0
            if bd.get("potted"):
                b.pot()
        return self

    # ──────────────────────────────────────────────────────────────────────────
    # Aiming (pointer input)
    # ──────────────────────────────────────────────────────────────────────────

    def pointer_down(self, x: float, y: float) -> None:
        if self.mode == "aiming" or not _finite_point(x, y):
            return
        self.aim_start = np.array([float(x), float(y)])
        self.aim_point = self.aim_start.copy()
        self.mode = "aiming"
        self.status_msg = "Aiming..."

    def pointer_move(self, x: float, y: float) -> None:
        if self.mode != "aiming" or not _finite_point(x, y):
            return
        self.aim_point = np.array([float(x), float(y)])

    def pointer_up(self, x: float | None = None, y: float | None = None) -> None:
        """Release: shoot the cue ball away from the drag point."""
        if self.mode != "aiming":
            return
        # A non-finite release point keeps the last aim point
        if x is not None and y is not None and _finite_point(x, y):
            self.aim_point = np.array([float(x), float(y)])

        cue = self.cue_ball
        if cue is None or cue.potted:
            logger.debug("shot discarded: no cue ball in play")
        else:
            cue.velocity = self.shot_velocity(self.aim_point)
            logger.debug("shot fired: v=(%.2f, %.2f)", cue.velocity[0], cue.velocity[1])
            self.status_msg = "Running..."
        self._cancel_aim()

    def shot_velocity(self, aim_point) -> np.ndarray:
        """Cue velocity for a release at aim_point (zero if no cue ball in play)."""
        cue = self.cue_ball
        if cue is None or cue.potted or aim_point is None:
            return np.zeros(2)
        return self.SHOT_SCALE * (cue.position - np.asarray(aim_point, dtype=float))

    def _cancel_aim(self) -> None:
        self.mode = "idle"
        self.aim_start = None
        self.aim_point = None
        self.pending_events.append({"type": "clear_aim"})

    # ──────────────────────────────────────────────────────────────────────────
    # JSON commands
    # ──────────────────────────────────────────────────────────────────────────

    def get_state_json(self) -> str:
        """Return current ball state as compact single-line set-command JSON."""
        balls = {}
        for b in self.balls:
            entry = {
                "pos": [round(float(b.position[0]), 3), round(float(b.position[1]), 3)],
                "vel": [round(float(b.velocity[0]), 4), round(float(b.velocity[1]), 4)],
            }
            if b.potted:
                entry["potted"] = True
            balls[b.name] = entry
        return json.dumps({"cmd": "set", "balls": balls}, separators=(',', ':'))

    def execute_command(self, text: str) -> None:
        """Parse a JSON command string (set / reset) and dispatch it."""
        if not text:
            return
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning("command JSON error: %s", exc)
            self.status_msg = f"JSON error: {exc}"
            return
        if not isinstance(data, dict):
            self.status_msg = "Command must be a JSON object."
            return

        cmd = str(data.get("cmd", "")).lower().strip()
        try:
            if cmd == "set":
                balls = data.get("balls")
                if not balls:
                    self.status_msg = "set: 'balls' field required."
                    return
                self.set_balls(balls)
                self.status_msg = f"set: {len(balls)} ball(s) updated."
            elif cmd == "reset":
                self.reset(data.get("variant"))
            else:
                self.status_msg = f"Unknown cmd '{cmd}'. Use set/reset."
        except (ValueError, TypeError, IndexError, AttributeError) as exc:
            logger.warning("command '%s' rejected: %s", cmd, exc)
            self.status_msg = f"{cmd}: {exc}"

    # ── Flat observation vector ───────────────────────────────────────────────

    def get_obs(self) -> np.ndarray:
        """[x, y, vx, vy, potted] per ball in table order, float32."""
        values = []
        for b in self.balls:
            values.extend([
                float(b.position[0]), float(b.position[1]),
                float(b.velocity[0]), float(b.velocity[1]),
                1.0 if b.potted else 0.0,
            ])
        return np.array(values, dtype=np.float32)
