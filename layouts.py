"""
Table variants — table constants, opening layout and cue-stick style.

classic : light friction, five balls in a row, plain stick
rack    : slightly slicker cloth with a stop threshold, seven-ball triangle
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Tuple

from physics import Ball, Table, BALL_RADIUS

CUE_START = (150.0, 200.0)

# Gap between ball centres in an opening layout (ball diameter + 2 px)
_SPACING = 2 * BALL_RADIUS + 2

_ROW_COLORS = ["yellow", "red", "blue", "green", "purple"]
_RACK_COLORS = ["yellow", "blue", "red", "black", "purple", "orange", "green"]

STICK_STYLES = ("line", "tapered")


@dataclass(frozen=True)
class BallSpec:
    name: str
    x: float
    y: float
    color: str
    is_cue: bool = False


@dataclass(frozen=True)
class Variant:
    """A named table setup."""
    name: str
    table: Table
    layout: Tuple[BallSpec, ...]
    stick_style: str = "line"

    def __post_init__(self):
        if self.stick_style not in STICK_STYLES:
            raise ValueError(f"unknown stick style '{self.stick_style}'")
        cues = sum(1 for s in self.layout if s.is_cue)
        if cues != 1:
            raise ValueError(f"layout '{self.name}' needs exactly one cue ball, has {cues}")

    def build_balls(self) -> List[Ball]:
        return [
            Ball(s.name, position=[s.x, s.y], color=s.color, is_cue=s.is_cue)
            for s in self.layout
        ]


def _cue_spec() -> BallSpec:
    return BallSpec("cue", CUE_START[0], CUE_START[1], "white", is_cue=True)


def row_layout(x0: float = 600.0, y: float = 200.0) -> Tuple[BallSpec, ...]:
    """Cue ball plus the coloured balls lined up along the centre line."""
    specs = [_cue_spec()]
    for i, color in enumerate(_ROW_COLORS):
        specs.append(BallSpec(color, x0 + i * _SPACING, y, color))
    return tuple(specs)


def rack_layout(apex_x: float = 600.0, y: float = 200.0) -> Tuple[BallSpec, ...]:
    """Cue ball plus seven balls: a 1-2-3 triangle and one ball nested behind it."""
    specs = [_cue_spec()]
    dx = _SPACING * math.sqrt(3) / 2
    slots = []
    for row in range(3):
        for k in range(row + 1):
            slots.append((apex_x + row * dx, y + (k - row / 2) * _SPACING))
    slots.append((apex_x + 3 * dx, y - _SPACING / 2))
    for color, (x, yy) in zip(_RACK_COLORS, slots):
        specs.append(BallSpec(color, x, yy, color))
    return tuple(specs)


VARIANTS: Dict[str, Variant] = {
    "classic": Variant(
        name="classic",
        table=Table(friction=0.98),
        layout=row_layout(),
        stick_style="line",
    ),
    "rack": Variant(
        name="rack",
        table=Table(friction=0.985, stop_epsilon=0.01),
        layout=rack_layout(),
        stick_style="tapered",
    ),
}

DEFAULT_VARIANT = "classic"


def get_variant(name: str) -> Variant:
    try:
        return VARIANTS[name]
    except KeyError:
        raise ValueError(
            f"unknown variant '{name}', choose from {sorted(VARIANTS)}"
        ) from None
