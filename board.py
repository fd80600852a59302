"""
Plinko Board Model — Layer 1 (static geometry)

Peg layout and slot columns for one rendered board. Everything here is a
pure function of BoardConfig; the physics stepper and the viewers share the
resulting PegLayout read-only.
"""

from dataclasses import dataclass
from functools import lru_cache

import numpy as np

# ──────────────────────────────────────────────
# Reference design (pixels at scale 1.0)
# ──────────────────────────────────────────────
REF_CANVAS_WIDTH: float = 600.0
REF_CANVAS_HEIGHT: float = 400.0
REF_SPACING_X: float = 50.0     # horizontal distance between pegs in a row
REF_SPACING_Y: float = 40.0     # vertical distance between rows
REF_PEG_RADIUS: float = 5.0
REF_BALL_RADIUS: float = 8.0
REF_SLOT_BAND: float = 30.0     # height of the landing band at the bottom

MAX_PARTICIPANTS_LIMIT: int = 30


class InvalidConfiguration(ValueError):
    """Board dimensions that cannot be laid out."""


class OutOfRange(IndexError):
    """Slot index outside [0, slot_count)."""


@dataclass(frozen=True)
class BoardConfig:
    row_count: int
    slot_count: int
    canvas_width: float
    canvas_height: float

    @classmethod
    def for_drop(cls, current_participants: int, max_participants: int,
                 canvas_width: float, canvas_height: float,
                 row_count: int = 10) -> "BoardConfig":
        """One slot per recorded participant, never more than the drop's capacity."""
        slots = min(int(current_participants), int(max_participants), MAX_PARTICIPANTS_LIMIT)
        return cls(row_count=int(row_count), slot_count=slots,
                   canvas_width=float(canvas_width), canvas_height=float(canvas_height))


@dataclass(frozen=True, eq=False)
class PegLayout:
    """Derived board geometry. `pegs` is a read-only (N, 2) array of centres."""
    config: BoardConfig
    pegs: np.ndarray
    scale: float
    peg_radius: float
    ball_radius: float
    slot_width: float
    slot_band_top: float
    settle_y: float

    @property
    def width(self) -> float:
        return self.config.canvas_width

    @property
    def height(self) -> float:
        return self.config.canvas_height

    @property
    def slot_count(self) -> int:
        return self.config.slot_count


def reference_size(row_count: int) -> tuple:
    """Design size that fits `row_count` rows, never smaller than 600x400."""
    width = max(REF_CANVAS_WIDTH, (row_count + 2) * REF_SPACING_X)
    height = max(REF_CANVAS_HEIGHT,
                 REF_SPACING_Y * (row_count + 1) + REF_SLOT_BAND)
    return width, height


@lru_cache(maxsize=32)
def build_peg_layout(config: BoardConfig) -> PegLayout:
    """Triangular peg arrangement for `config`, scaled to fit the canvas."""
    if config.row_count <= 0:
        raise InvalidConfiguration(f"row_count must be positive, got {config.row_count}")
    if config.slot_count <= 0:
        raise InvalidConfiguration(f"slot_count must be positive, got {config.slot_count}")
    if config.slot_count > MAX_PARTICIPANTS_LIMIT:
        raise InvalidConfiguration(
            f"slot_count {config.slot_count} exceeds participant cap {MAX_PARTICIPANTS_LIMIT}"
        )
    if config.canvas_width <= 0 or config.canvas_height <= 0:
        raise InvalidConfiguration(
            f"canvas must be positive, got {config.canvas_width}x{config.canvas_height}"
        )

    W, H = float(config.canvas_width), float(config.canvas_height)
    ref_w, ref_h = reference_size(config.row_count)
    scale = min(W / ref_w, H / ref_h)

    sx = REF_SPACING_X * scale
    sy = REF_SPACING_Y * scale
    top = sy
    cx = W / 2

    rows = []
    for r in range(config.row_count):
        n = r + 2
        xs = cx + (np.arange(n) - (n - 1) / 2) * sx
        ys = np.full(n, top + r * sy)
        rows.append(np.column_stack([xs, ys]))
    pegs = np.vstack(rows)
    pegs.setflags(write=False)

    ball_radius = REF_BALL_RADIUS * scale
    band_top = H - REF_SLOT_BAND * scale
    return PegLayout(
        config=config,
        pegs=pegs,
        scale=scale,
        peg_radius=REF_PEG_RADIUS * scale,
        ball_radius=ball_radius,
        slot_width=W / config.slot_count,
        slot_band_top=band_top,
        settle_y=band_top - ball_radius,
    )


def slot_to_position(slot: int, layout: PegLayout) -> float:
    """Horizontal centre of `slot`'s column."""
    if not 0 <= slot < layout.slot_count:
        raise OutOfRange(f"slot {slot} outside [0, {layout.slot_count})")
    return (slot + 0.5) * layout.slot_width


def slot_index_at(x: float, layout: PegLayout) -> int:
    """Column under x, clamped to the board."""
    idx = int(x // layout.slot_width)
    return max(0, min(layout.slot_count - 1, idx))
