"""
Plinko Physics Stepper — Layer 1
Gravity, peg / wall rebound, target steering and settle test.

Units are canvas pixels and seconds at board scale 1.0; every length-based
constant is multiplied by PegLayout.scale so a small canvas behaves like a
shrunken copy of the reference board.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Optional, Tuple

from board import PegLayout, slot_to_position, REF_SPACING_X

# ──────────────────────────────────────────────
# Constants (px, s at scale 1.0)
# ──────────────────────────────────────────────
GRAVITY: float = 360.0            # px/s^2  (0.1 px/frame^2 at 60 fps)
PEG_KICK: float = 30.0            # px/s pushed along the contact normal on a peg hit
SETTLE_SPEED: float = 6.0         # px/s  |vx| below this in the band counts as stopped
SPAWN_JITTER: float = 0.3         # fraction of peg spacing for the start offset
SETTLE_RADII: float = 3.0         # snap distance limit, in ball radii

# Trail
TRAIL_MAX_POINTS: int = 200
TRAIL_FADE_RATE: float = 1.2      # alpha lost per second (0.02 per frame at 60 fps)

# Confetti burst on landing
CONFETTI_COUNT: int = 20
CONFETTI_SPREAD: float = 120.0    # px/s  max |vx| at launch (2 px/frame)
CONFETTI_LIFT: float = 300.0      # px/s  max upward speed at launch (5 px/frame)
CONFETTI_FADE_RATE: float = 1.2   # alpha lost per second

# Step cap: a ball still moving after this many ticks is settled on its target
MAX_TICKS: int = 20000

# ── Runtime-editable behavior constants ───────────────────────────────────────
# These are read by name every call, so server.py can mutate them live via:
#   import physics as _phys;  _phys.RESTITUTION = 0.8
RESTITUTION: float = 0.7          # peg rebound, normal velocity multiplier
WALL_RESTITUTION: float = 0.7     # left/right canvas edge rebound
STEER_START: float = 0.7          # fraction of the drop height where steering begins
STEER_STIFFNESS: float = 12.0     # 1/s^2  spring toward the target column centre
STEER_DAMPING: float = 4.0        # 1/s    horizontal damping while steering above the band
BAND_DAMPING: float = 0.9         # vx multiplier per 1/60 s inside the slot band

_DEAD_CENTRE: float = 1e-3


@dataclass
class BallState:
    """One animating ball. `target_slot` is fixed at creation."""
    target_slot: int
    position: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    velocity: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    settled: bool = False
    trail: Tuple[Tuple[float, float, float], ...] = ()
    ticks: int = 0
    peg_hits: int = 0
    forced: bool = False

    def __post_init__(self):
        self.position = np.array(self.position, dtype=float)
        self.velocity = np.array(self.velocity, dtype=float)
        self.trail = tuple(self.trail)

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))

    def copy(self) -> "BallState":
        return BallState(
            target_slot=self.target_slot,
            position=self.position.copy(),
            velocity=self.velocity.copy(),
            settled=self.settled,
            trail=self.trail,
            ticks=self.ticks,
            peg_hits=self.peg_hits,
            forced=self.forced,
        )


def spawn_ball(target_slot: int, layout: PegLayout, seed: int = 0) -> BallState:
    """Ball resting at the top centre, offset by a seeded jitter."""
    slot_to_position(target_slot, layout)   # validates the slot
    rng = np.random.default_rng(seed)
    jitter = float(rng.uniform(-1.0, 1.0)) * SPAWN_JITTER * REF_SPACING_X * layout.scale
    return BallState(
        target_slot=target_slot,
        position=[layout.width / 2 + jitter, layout.ball_radius],
        velocity=[0.0, 0.0],
    )


# ──────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────

def _fade_trail(trail, dt: float):
    decay = TRAIL_FADE_RATE * dt
    return tuple((px, py, a - decay) for px, py, a in trail if a - decay > 0.0)


def _push_trail(trail, x: float, y: float):
    trail = trail + ((x, y, 1.0),)
    if len(trail) > TRAIL_MAX_POINTS:
        trail = trail[-TRAIL_MAX_POINTS:]
    return trail


def _steer_ramp(y: float, layout: PegLayout) -> float:
    """0 above STEER_START of the drop height, rising linearly to 1 at the band."""
    start = STEER_START * layout.settle_y
    span = layout.settle_y - start
    if span <= 0:
        return 1.0
    return max(0.0, min(1.0, (y - start) / span))


def _collide_pegs(ball: BallState, layout: PegLayout, toward: float) -> None:
    """Push the ball out of any overlapped peg and reflect its normal velocity."""
    diff = ball.position - layout.pegs
    dist = np.hypot(diff[:, 0], diff[:, 1])
    contact = layout.peg_radius + layout.ball_radius
    kick = PEG_KICK * layout.scale

    for i in np.nonzero(dist < contact)[0]:
        d = float(dist[i])
        if d < 1e-9:
            normal = np.array([0.0, -1.0])
        else:
            normal = diff[i] / d

        ball.position = layout.pegs[i] + normal * contact

        vel_along_normal = float(np.dot(ball.velocity, normal))
        if vel_along_normal >= 0:
            continue

        ball.velocity = ball.velocity - (1.0 + RESTITUTION) * vel_along_normal * normal
        ball.velocity = ball.velocity + normal * kick
        # Dead-centre hit would balance on the peg forever
        if abs(normal[0]) < _DEAD_CENTRE:
            ball.velocity[0] += toward * kick
        ball.peg_hits += 1


def _collide_walls(ball: BallState, layout: PegLayout) -> None:
    r = layout.ball_radius
    if ball.position[0] < r:
        ball.position[0] = r
        if ball.velocity[0] < 0:
            ball.velocity[0] = -ball.velocity[0] * WALL_RESTITUTION
    if ball.position[0] > layout.width - r:
        ball.position[0] = layout.width - r
        if ball.velocity[0] > 0:
            ball.velocity[0] = -ball.velocity[0] * WALL_RESTITUTION


def _settle(ball: BallState, target_x: float, layout: PegLayout, forced: bool = False) -> None:
    ball.position = np.array([target_x, layout.settle_y])
    ball.velocity = np.array([0.0, 0.0])
    ball.settled = True
    ball.forced = forced


# ──────────────────────────────────────────────
# Main step
# ──────────────────────────────────────────────

def advance(ball: BallState, layout: PegLayout, dt: float,
            max_ticks: Optional[int] = None) -> BallState:
    """Return the state of `ball` one step of `dt` seconds later.

    The input state is left untouched. A settled ball only ages its trail.
    Once `max_ticks` (default MAX_TICKS) steps have been taken the ball is
    settled on its target regardless of where it is, with `forced` set.
    """
    nb = ball.copy()
    if nb.settled:
        nb.trail = _fade_trail(nb.trail, dt)
        return nb

    cap = MAX_TICKS if max_ticks is None else max_ticks
    scale = layout.scale
    target_x = slot_to_position(nb.target_slot, layout)
    nb.ticks += 1

    x = float(nb.position[0])
    vx, vy = float(nb.velocity[0]), float(nb.velocity[1])

    if nb.position[1] >= layout.settle_y:
        # Rolling along the band: spring toward the column, frame-rate independent damping
        vx += STEER_STIFFNESS * (target_x - x) * dt
        vx *= BAND_DAMPING ** (dt * 60.0)
        vy = 0.0
    else:
        vy += GRAVITY * scale * dt
        ramp = _steer_ramp(float(nb.position[1]), layout)
        if ramp > 0.0:
            vx += ramp * (STEER_STIFFNESS * (target_x - x) - STEER_DAMPING * vx) * dt

    nb.velocity = np.array([vx, vy])
    nb.position = nb.position + nb.velocity * dt

    toward = 1.0 if target_x >= nb.position[0] else -1.0
    _collide_pegs(nb, layout, toward)
    _collide_walls(nb, layout)

    if nb.position[1] >= layout.settle_y:
        nb.position[1] = layout.settle_y
        if nb.velocity[1] > 0:
            nb.velocity[1] = 0.0

    nb.trail = _push_trail(_fade_trail(nb.trail, dt), float(nb.position[0]), float(nb.position[1]))

    tolerance = min(layout.slot_width / 2, SETTLE_RADII * layout.ball_radius)
    if (nb.position[1] >= layout.settle_y
            and abs(nb.velocity[0]) < SETTLE_SPEED * scale
            and abs(target_x - nb.position[0]) < tolerance):
        _settle(nb, target_x, layout)
    elif nb.ticks >= cap:
        _settle(nb, target_x, layout, forced=True)
    return nb


def simulate(ball: BallState, layout: PegLayout, dt: float = 1.0 / 240,
             max_ticks: Optional[int] = None) -> BallState:
    """Run `advance` until the ball settles. Returns the final state."""
    while not ball.settled:
        ball = advance(ball, layout, dt, max_ticks=max_ticks)
    return ball


# ──────────────────────────────────────────────
# Confetti
# ──────────────────────────────────────────────
# Particles are rows of an (N, 5) array: x, y, vx, vy, alpha.

def spawn_confetti(x: float, layout: PegLayout, seed: int = 0,
                   count: int = CONFETTI_COUNT) -> np.ndarray:
    """Burst rising from the top of the slot band at `x`."""
    rng = np.random.default_rng(seed)
    burst = np.empty((count, 5))
    burst[:, 0] = x
    burst[:, 1] = layout.slot_band_top
    burst[:, 2] = rng.uniform(-1.0, 1.0, count) * CONFETTI_SPREAD * layout.scale
    burst[:, 3] = -rng.uniform(0.0, 1.0, count) * CONFETTI_LIFT * layout.scale
    burst[:, 4] = 1.0
    return burst


def advance_confetti(particles: np.ndarray, layout: PegLayout, dt: float) -> np.ndarray:
    """Move, fall and fade every particle; faded ones are dropped. Input is not mutated."""
    if len(particles) == 0:
        return particles
    out = particles.copy()
    out[:, 0] += out[:, 2] * dt
    out[:, 1] += out[:, 3] * dt
    out[:, 3] += GRAVITY * layout.scale * dt
    out[:, 4] -= CONFETTI_FADE_RATE * dt
    return out[out[:, 4] > 0.0]
