"""
2D Pocket Billiards Physics Engine
Per-frame Euler motion, exponential friction, cushion reflection,
corner pockets and equal-mass pairwise collisions.
"""

import math
import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional

# ──────────────────────────────────────────────
# Constants (pixels, one frame = one time unit)
# ──────────────────────────────────────────────
TABLE_WIDTH: float = 800.0
TABLE_HEIGHT: float = 400.0
BALL_RADIUS: float = 10.0
POCKET_RADIUS: float = 18.0
FRICTION: float = 0.98  # per-frame velocity multiplier

# Shot strength: cue velocity = SHOT_SCALE * (cue position - drag point)
SHOT_SCALE: float = 0.1

# Below this speed a ball counts as still (simulate / all_stopped)
VELOCITY_THRESHOLD: float = 1e-3


@dataclass(frozen=True)
class Table:
    """Immutable table geometry and surface constants."""
    width: float = TABLE_WIDTH
    height: float = TABLE_HEIGHT
    friction: float = FRICTION
    pocket_radius: float = POCKET_RADIUS
    ball_radius: float = BALL_RADIUS
    # Snap velocity to zero below this speed. None keeps pure exponential decay.
    stop_epsilon: Optional[float] = None
    # Clamp positions inside the cushion line instead of only flipping velocity.
    clamp_walls: bool = False

    def __post_init__(self):
        if not 0.0 < self.friction < 1.0:
            raise ValueError(f"friction must be in (0, 1), got {self.friction}")
        if self.ball_radius <= 0 or self.pocket_radius <= 0:
            raise ValueError("ball_radius and pocket_radius must be positive")
        if self.width <= 2 * self.ball_radius or self.height <= 2 * self.ball_radius:
            raise ValueError("table must be wider and taller than one ball")
        if self.stop_epsilon is not None and self.stop_epsilon < 0:
            raise ValueError(f"stop_epsilon must be >= 0, got {self.stop_epsilon}")

    @property
    def pockets(self) -> np.ndarray:
        """Corner pocket centres, shape (4, 2)."""
        return np.array([
            [0.0, 0.0],
            [self.width, 0.0],
            [0.0, self.height],
            [self.width, self.height],
        ])


@dataclass
class Ball:
    """Billiard ball on the table plane."""
    name: str
    position: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    velocity: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    color: str = "white"
    is_cue: bool = False
    potted: bool = False

    def __post_init__(self):
        self.position = np.array(self.position, dtype=float)
        self.velocity = np.array(self.velocity, dtype=float)

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))

    def is_moving(self) -> bool:
        return not self.potted and self.speed > VELOCITY_THRESHOLD

    def pot(self) -> None:
        """Drop the ball into a pocket. There is no way back out."""
        self.potted = True
        self.velocity[:] = 0.0


class PhysicsEngine:
    """Frame-stepped billiards physics over a list of balls."""

    def __init__(self, table: Optional[Table] = None):
        self.table = table or Table()
        self.events: list = []

    # ──────────────────────────────────────────
    # Single-ball update
    # ──────────────────────────────────────────
    def update_ball(self, ball: Ball) -> None:
        """Integrate, apply friction, reflect off cushions and test pockets."""
        if ball.potted:
            return
        table = self.table

        ball.position = ball.position + ball.velocity

        ball.velocity = ball.velocity * table.friction
        if table.stop_epsilon is not None and ball.speed < table.stop_epsilon:
            ball.velocity[:] = 0.0

        self._reflect_walls(ball)
        self._check_pockets(ball)

    def _reflect_walls(self, ball: Ball) -> None:
        """Flip the velocity component of each axis at or past its cushion line.

        Without clamp_walls the position is left where it is, so a ball may
        rest slightly beyond the cushion line after a bounce.
        """
        r = self.table.ball_radius
        limits = (self.table.width, self.table.height)
        for axis in (0, 1):
            lo, hi = r, limits[axis] - r
            p = ball.position[axis]
            v = ball.velocity[axis]
            if p > lo and p < hi:
                continue
            if self.table.clamp_walls:
                ball.position[axis] = min(max(p, lo), hi)
                outward = v < 0 if p <= lo else v > 0
                if not outward:
                    continue
            ball.velocity[axis] = -v
            if v != 0:
                self.events.append({"type": "cushion", "ball": ball.name, "speed": abs(float(v))})

    def _check_pockets(self, ball: Ball) -> None:
        # Runs after the move: a ball crossing a pocket within one frame is missed.
        for i, pocket in enumerate(self.table.pockets):
            if np.linalg.norm(ball.position - pocket) < self.table.pocket_radius:
                ball.pot()
                self.events.append({"type": "pocket", "ball": ball.name, "pocket": i})
                return

    # ──────────────────────────────────────────
    # Ball-Ball Collision
    # ──────────────────────────────────────────
    def resolve_collisions(self, balls: List[Ball]) -> None:
        """
        Resolve every overlapping pair once, in list order.

        A ball touched by pair (i, j) carries its corrected position and
        velocity into pair (i, k) of the same frame, so multi-ball contact is
        order dependent.
        """
        for i in range(len(balls)):
            for j in range(i + 1, len(balls)):
                b1, b2 = balls[i], balls[j]
                if b1.potted or b2.potted:
                    continue
                self._resolve_pair(b1, b2)

    def _resolve_pair(self, b1: Ball, b2: Ball) -> None:
        diff = b1.position - b2.position
        dist = float(np.linalg.norm(diff))
        contact = 2 * self.table.ball_radius
        # NaN distance: no contact
        if not dist < contact:
            return
        # Coincident centres have no collision normal
        if dist == 0.0:
            return

        normal = diff / dist

        # Equal masses: swap the normal components, tangential parts untouched
        closing = float(np.dot(b1.velocity - b2.velocity, normal))
        b1.velocity = b1.velocity - closing * normal
        b2.velocity = b2.velocity + closing * normal

        overlap = contact - dist
        b1.position = b1.position + normal * (overlap / 2)
        b2.position = b2.position - normal * (overlap / 2)

        self.events.append({
            "type": "ball_ball", "ball1": b1.name, "ball2": b2.name,
            "speed": abs(closing),
        })

    # ──────────────────────────────────────────
    # Main Update Loop
    # ──────────────────────────────────────────
    def update(self, balls: List[Ball]) -> None:
        """Advance the simulation by one frame."""
        self.events.clear()
        for ball in balls:
            self.update_ball(ball)
        self.resolve_collisions(balls)

    def simulate(self, balls: List[Ball], max_frames: int = 5000) -> int:
        """
        Run frames until all balls are still or max_frames is reached.

        Returns:
            Number of frames simulated.
        """
        frames = 0
        while frames < max_frames:
            self.update(balls)
            frames += 1
            if all(not b.is_moving() for b in balls):
                break
        return frames


# ──────────────────────────────────────────────
# Aim preview
# ──────────────────────────────────────────────
def reflect_ray(origin, direction, table: Table, length: float,
                bounces: int = 1) -> List[np.ndarray]:
    """
    Trace a ball-centre path from origin along direction for `length` pixels,
    reflecting off the cushion lines at most `bounces` times.

    Returns the polyline as a list of points, starting with origin.
    """
    pos = np.array(origin, dtype=float)
    d = np.array(direction, dtype=float)
    points = [pos.copy()]
    n = np.linalg.norm(d)
    if n < 1e-9 or length <= 0:
        return points
    d = d / n

    r = table.ball_radius
    lo = np.array([r, r])
    hi = np.array([table.width - r, table.height - r])
    remaining = float(length)

    for _ in range(bounces + 1):
        # Distance to the cushion line ahead on each axis
        t_hit = math.inf
        hit_axes = []
        for axis in (0, 1):
            if d[axis] > 1e-12:
                t = (hi[axis] - pos[axis]) / d[axis]
            elif d[axis] < -1e-12:
                t = (lo[axis] - pos[axis]) / d[axis]
            else:
                continue
            t = max(t, 0.0)
            if t < t_hit - 1e-9:
                t_hit, hit_axes = t, [axis]
            elif abs(t - t_hit) <= 1e-9:
                hit_axes.append(axis)

        if t_hit >= remaining:
            points.append(pos + d * remaining)
            return points

        pos = pos + d * t_hit
        points.append(pos.copy())
        remaining -= t_hit
        for axis in hit_axes:
            d[axis] = -d[axis]

    return points
