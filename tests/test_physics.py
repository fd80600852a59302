"""
Physics Stepper Tests — convergence on the target column, determinism,
step-cap settle, trail bookkeeping and peg / wall rebound.

All boards use the 600x500 canvas with 10 peg rows (scale 1.0).
"""

import sys
import os
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import physics
from board import BoardConfig, OutOfRange, build_peg_layout, slot_to_position
from physics import BallState, advance, simulate, spawn_ball


# ── Helpers ──────────────────────────────────────────────

def make_layout(slots: int = 12, rows: int = 10):
    return build_peg_layout(BoardConfig(rows, slots, 600, 500))


# ── Convergence ──────────────────────────────────────────

class TestConvergence:
    """Every ball ends exactly on the centre of its target column."""

    @pytest.mark.parametrize("slot", range(12))
    def test_settles_on_target(self, slot):
        layout = make_layout(12)
        final = simulate(spawn_ball(slot, layout, seed=slot), layout)
        assert final.settled
        assert final.position[0] == slot_to_position(slot, layout)
        assert final.position[1] == layout.settle_y
        assert final.ticks <= physics.MAX_TICKS

    @pytest.mark.parametrize("slot", [0, 5, 11])
    def test_settles_without_step_cap(self, slot):
        layout = make_layout(12)
        final = simulate(spawn_ball(slot, layout, seed=42), layout)
        assert not final.forced

    @pytest.mark.parametrize("slots", [1, 2, 3, 30])
    def test_extreme_slot_counts(self, slots):
        layout = make_layout(slots)
        for slot in {0, slots - 1}:
            final = simulate(spawn_ball(slot, layout, seed=1), layout)
            assert final.position[0] == slot_to_position(slot, layout)

    def test_ball_hits_pegs_on_the_way_down(self):
        layout = make_layout(12)
        final = simulate(spawn_ball(6, layout, seed=3), layout)
        assert final.peg_hits > 0


class TestStepCap:
    """A ball still moving at the cap is snapped to its target."""

    def test_forced_settle(self):
        layout = make_layout(12)
        ball = spawn_ball(9, layout, seed=0)
        for _ in range(3):
            ball = advance(ball, layout, 1.0 / 240, max_ticks=3)
        assert ball.settled
        assert ball.forced
        assert ball.ticks == 3
        assert ball.position[0] == slot_to_position(9, layout)

    def test_simulate_with_small_cap(self):
        layout = make_layout(12)
        final = simulate(spawn_ball(2, layout), layout, max_ticks=50)
        assert final.forced
        assert final.ticks == 50


# ── Determinism / purity ─────────────────────────────────

class TestDeterminism:

    def test_same_seed_same_path(self):
        layout = make_layout(12)
        a = simulate(spawn_ball(4, layout, seed=7), layout)
        b = simulate(spawn_ball(4, layout, seed=7), layout)
        assert a.ticks == b.ticks
        assert a.peg_hits == b.peg_hits
        assert a.trail == b.trail

    def test_seed_changes_spawn(self):
        layout = make_layout(12)
        a = spawn_ball(4, layout, seed=1)
        b = spawn_ball(4, layout, seed=2)
        assert a.position[0] != b.position[0]

    def test_spawn_within_jitter(self):
        layout = make_layout(12)
        limit = physics.SPAWN_JITTER * 50.0 * layout.scale
        for seed in range(20):
            ball = spawn_ball(0, layout, seed=seed)
            assert abs(ball.position[0] - layout.width / 2) <= limit
            assert ball.position[1] == layout.ball_radius
            np.testing.assert_array_equal(ball.velocity, [0.0, 0.0])

    def test_spawn_rejects_bad_slot(self):
        layout = make_layout(12)
        with pytest.raises(OutOfRange):
            spawn_ball(12, layout)

    def test_advance_leaves_input_untouched(self):
        layout = make_layout(12)
        ball = spawn_ball(3, layout, seed=5)
        pos, vel = ball.position.copy(), ball.velocity.copy()
        after = advance(ball, layout, 1.0 / 240)
        np.testing.assert_array_equal(ball.position, pos)
        np.testing.assert_array_equal(ball.velocity, vel)
        assert ball.ticks == 0
        assert ball.trail == ()
        assert after.ticks == 1
        assert after.position[1] > pos[1]


# ── Trail ────────────────────────────────────────────────

class TestTrail:

    def test_trail_bounded(self):
        layout = make_layout(12)
        ball = spawn_ball(8, layout, seed=9)
        for _ in range(600):
            ball = advance(ball, layout, 1.0 / 240)
            assert len(ball.trail) <= physics.TRAIL_MAX_POINTS
            if ball.settled:
                break

    def test_settled_ball_trail_fades_out(self):
        layout = make_layout(12)
        final = simulate(spawn_ball(1, layout, seed=2), layout)
        assert len(final.trail) > 0
        alive = final
        for _ in range(120):
            alive = advance(alive, layout, 1.0 / 60)
        assert alive.trail == ()
        np.testing.assert_array_equal(alive.position, final.position)

    def test_alpha_decreases(self):
        layout = make_layout(12)
        ball = advance(spawn_ball(1, layout), layout, 1.0 / 60)
        first_alpha = ball.trail[0][2]
        ball = advance(ball, layout, 1.0 / 60)
        assert ball.trail[0][2] < first_alpha
        assert ball.trail[-1][2] == 1.0


# ── Collisions ───────────────────────────────────────────

class TestCollisions:

    def test_peg_rebound(self):
        layout = make_layout(12)
        px, py = layout.pegs[0]
        ball = BallState(target_slot=6, position=[px + 3.0, py - 12.0], velocity=[0.0, 200.0])
        after = advance(ball, layout, 1.0 / 240)
        assert after.velocity[1] < 0
        assert after.peg_hits == 1
        dist = np.hypot(*(after.position - layout.pegs[0]))
        assert dist == pytest.approx(layout.peg_radius + layout.ball_radius)

    def test_dead_centre_hit_pushed_toward_target(self):
        layout = make_layout(12)
        px, py = layout.pegs[0]
        ball = BallState(target_slot=11, position=[px, py - 12.5], velocity=[0.0, 200.0])
        after = advance(ball, layout, 1.0 / 240)
        assert after.peg_hits == 1
        assert after.velocity[0] > 0

    def test_left_wall(self):
        layout = make_layout(12)
        ball = BallState(target_slot=6, position=[layout.ball_radius - 1.0, 20.0],
                         velocity=[-100.0, 0.0])
        after = advance(ball, layout, 1.0 / 240)
        assert after.position[0] == layout.ball_radius
        assert after.velocity[0] == pytest.approx(100.0 * physics.WALL_RESTITUTION)

    def test_right_wall(self):
        layout = make_layout(12)
        ball = BallState(target_slot=6, position=[layout.width - layout.ball_radius + 1.0, 20.0],
                         velocity=[100.0, 0.0])
        after = advance(ball, layout, 1.0 / 240)
        assert after.position[0] == layout.width - layout.ball_radius
        assert after.velocity[0] < 0

    def test_stays_inside_walls(self):
        layout = make_layout(12)
        ball = spawn_ball(0, layout, seed=11)
        while not ball.settled:
            ball = advance(ball, layout, 1.0 / 240)
            assert layout.ball_radius <= ball.position[0] <= layout.width - layout.ball_radius
            assert ball.position[1] <= layout.settle_y


class TestRuntimeParams:
    """Behavior constants are read on every call."""

    def test_restitution_change_takes_effect(self, monkeypatch):
        layout = make_layout(12)
        px, py = layout.pegs[0]
        ball = BallState(target_slot=6, position=[px + 3.0, py - 12.0], velocity=[0.0, 200.0])
        bouncy = advance(ball, layout, 1.0 / 240)
        monkeypatch.setattr(physics, "RESTITUTION", 0.5)
        dull = advance(ball, layout, 1.0 / 240)
        assert dull.velocity[1] > bouncy.velocity[1]


class TestSettleSnap:
    """The band spring brings the ball close before the final snap."""

    @pytest.mark.parametrize("slots", [1, 3])
    @pytest.mark.parametrize("canvas", [(600, 500), (320, 240)])
    def test_snap_distance_bounded(self, slots, canvas):
        layout = build_peg_layout(BoardConfig(10, slots, *canvas))
        for slot in range(slots):
            final = simulate(spawn_ball(slot, layout, seed=slot + 1), layout)
            assert not final.forced
            last_x = final.trail[-1][0]
            gap = abs(last_x - slot_to_position(slot, layout))
            assert gap <= physics.SETTLE_RADII * layout.ball_radius


class TestSteerRamp:

    def test_ramp_bounds(self):
        layout = make_layout(12)
        start = physics.STEER_START * layout.settle_y
        assert physics._steer_ramp(start - 1.0, layout) == 0.0
        assert physics._steer_ramp(layout.settle_y, layout) == 1.0
        mid = (start + layout.settle_y) / 2
        assert physics._steer_ramp(mid, layout) == pytest.approx(0.5)

    def test_ramp_follows_live_start(self, monkeypatch):
        layout = make_layout(12)
        y = 0.6 * layout.settle_y
        assert physics._steer_ramp(y, layout) == 0.0
        monkeypatch.setattr(physics, "STEER_START", 0.5)
        assert physics._steer_ramp(y, layout) > 0.0


class TestConfetti:

    def test_burst_from_slot_band(self):
        layout = make_layout(12)
        burst = physics.spawn_confetti(125.0, layout, seed=4)
        assert burst.shape == (physics.CONFETTI_COUNT, 5)
        np.testing.assert_array_equal(burst[:, 0], 125.0)
        np.testing.assert_array_equal(burst[:, 1], layout.slot_band_top)
        assert np.all(burst[:, 3] <= 0.0)
        assert np.all(np.abs(burst[:, 2]) <= physics.CONFETTI_SPREAD)
        np.testing.assert_array_equal(burst[:, 4], 1.0)

    def test_same_seed_same_burst(self):
        layout = make_layout(12)
        np.testing.assert_array_equal(physics.spawn_confetti(50.0, layout, seed=9),
                                      physics.spawn_confetti(50.0, layout, seed=9))

    def test_falls_and_fades(self):
        layout = make_layout(12)
        burst = physics.spawn_confetti(300.0, layout, seed=1)
        before = burst.copy()
        after = physics.advance_confetti(burst, layout, 1.0 / 60)
        np.testing.assert_array_equal(burst, before)
        np.testing.assert_allclose(after[:, 3], before[:, 3] + physics.GRAVITY / 60)
        np.testing.assert_allclose(after[:, 4], 1.0 - physics.CONFETTI_FADE_RATE / 60)

    def test_gone_after_fade(self):
        layout = make_layout(12)
        particles = physics.spawn_confetti(300.0, layout, seed=1)
        for _ in range(60):
            particles = physics.advance_confetti(particles, layout, 1.0 / 60)
        assert len(particles) == 0
