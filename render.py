"""
Frame rendering — draws the controller state into any Surface.

Order per frame: clear → felt → pockets → balls → aim overlay
(dashed drag line, cue stick, one-bounce path preview).
"""

import numpy as np

from physics import reflect_ray

FELT_COLOR = "#064f1c"
POCKET_COLOR = "#000"
OUTLINE_COLOR = "#000"
AIM_LINE_COLOR = "white"
PREVIEW_COLOR = "yellow"
STICK_COLOR = "#c49a6c"     # wood
STICK_TIP_COLOR = "#f2ead8"

DASH = (5, 5)
STICK_LENGTH = 80.0
STICK_GAP = 2.0             # space between ball edge and stick tip
MAX_PULLBACK = 60.0         # tapered stick: farthest backswing drawn
PREVIEW_LENGTH = 200.0


def draw_table(surface, table) -> None:
    surface.fill_rect(0, 0, table.width, table.height, FELT_COLOR)


def draw_pockets(surface, table) -> None:
    for px, py in table.pockets:
        surface.fill_circle(px, py, table.pocket_radius, POCKET_COLOR)


def draw_ball(surface, ball, radius: float) -> None:
    if ball.potted:
        return
    x, y = ball.position
    surface.fill_circle(x, y, radius, ball.color)
    surface.stroke_circle(x, y, radius, OUTLINE_COLOR)


def draw_cue_stick(surface, cue_pos, aim_point, radius: float, style: str = "line") -> None:
    """Draw the stick behind the cue ball, on the side the pointer was dragged to."""
    cue_pos = np.asarray(cue_pos, dtype=float)
    d = np.asarray(aim_point, dtype=float) - cue_pos
    dist = float(np.linalg.norm(d))
    if dist < 1e-9:
        return
    u = d / dist

    if style == "tapered":
        pull = min(dist, MAX_PULLBACK)
        tip = cue_pos + u * (radius + STICK_GAP + pull)
        ferrule = tip + u * 8.0
        butt = tip + u * STICK_LENGTH * 1.5
        surface.line(ferrule[0], ferrule[1], butt[0], butt[1], STICK_COLOR, width=6)
        surface.line(tip[0], tip[1], ferrule[0], ferrule[1], STICK_TIP_COLOR, width=3)
    else:
        tip = cue_pos + u * (radius + STICK_GAP)
        butt = tip + u * STICK_LENGTH
        surface.line(tip[0], tip[1], butt[0], butt[1], STICK_COLOR, width=4)


def draw_aim_overlay(surface, ctrl) -> None:
    if ctrl.mode != "aiming" or ctrl.aim_start is None:
        return
    (sx, sy), (ex, ey) = ctrl.aim_start, ctrl.aim_point
    surface.line(sx, sy, ex, ey, AIM_LINE_COLOR, width=1, dash=DASH)

    cue = ctrl.cue_ball
    if cue is None or cue.potted:
        return
    table = ctrl.table
    draw_cue_stick(surface, cue.position, ctrl.aim_point, table.ball_radius,
                   ctrl.variant.stick_style)

    path = reflect_ray(cue.position, ctrl.shot_velocity(ctrl.aim_point), table, PREVIEW_LENGTH)
    for a, b in zip(path, path[1:]):
        surface.line(a[0], a[1], b[0], b[1], PREVIEW_COLOR, width=1, dash=DASH)


def render_frame(surface, ctrl) -> None:
    """Draw one complete frame of the controller's current state.

    Balls are drawn where they ended the last step, after collisions were
    resolved, not at their mid-frame positions.
    """
    table = ctrl.table
    surface.clear()
    draw_table(surface, table)
    draw_pockets(surface, table)
    for ball in ctrl.balls:
        draw_ball(surface, ball, table.ball_radius)
    draw_aim_overlay(surface, ctrl)
