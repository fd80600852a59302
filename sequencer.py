"""
RevealSequencer — Layer 2 (reveal logic)

Drops one simulated ball per winner, strictly in rank order, and waits for
each ball to settle before releasing the next. Communicates with the host
view (server.py / main.py) through one queue:
  - pending_events : dicts the view consumes and clears every frame
                     (spawn_ball, winner_animated, reveal_complete, clear_balls,
                      notification_cleared, forced_settle, peg_hit)

The host view calls:
  seq.start_reveal(slots)      — begin a RevealJob (manual draw or observed result)
  seq.step(dt)                 — advance the in-flight ball each frame
  seq.skip_animation()         — finish immediately without animation
  seq.reset()                  — back to IDLE, discarding everything
"""

import enum
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from board import PegLayout, slot_to_position
from physics import BallState, advance, advance_confetti, spawn_ball, spawn_confetti


class InvalidWinnerSlot(ValueError):
    """Winner slot index that does not exist on the current board."""


class RevealState(enum.Enum):
    IDLE = 0
    DROPPING = 1
    COMPLETE = 2


class RevealOrigin(enum.Enum):
    TRIGGERED = "triggered"   # host pressed Drop and the draw just returned
    OBSERVED = "observed"     # drop was already completed when we looked at it


@dataclass
class RevealJob:
    winner_slots: Tuple[int, ...]
    origin: RevealOrigin = RevealOrigin.TRIGGERED
    seed: int = 0
    current_index: int = -1
    is_active: bool = False

    @property
    def done(self) -> bool:
        return self.current_index >= len(self.winner_slots)


@dataclass
class Notification:
    """Transient message; fades out over the last FADE_SECONDS of its life."""
    message: str
    remaining: float
    FADE_SECONDS = 1.0

    @property
    def alpha(self) -> float:
        if self.remaining >= self.FADE_SECONDS:
            return 1.0
        return max(0.0, self.remaining / self.FADE_SECONDS)


def ordinal(n: int) -> str:
    """1 -> '1st', 2 -> '2nd', 11 -> '11th', 23 -> '23rd'."""
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def compose_winner_message(winner_slots: Sequence[int]) -> str:
    """'Winners: #4 (1st), #8 (2nd)!' — slots shown 1-indexed, in rank order."""
    parts = [f"#{slot + 1} ({ordinal(rank)})" for rank, slot in enumerate(winner_slots, start=1)]
    return f"Winners: {', '.join(parts)}!"


class RevealSequencer:
    """Layer 2: reveal state machine + physics orchestration for one board."""

    # ── Class-level constants ─────────────────────────────────────────────────
    SIM_DT               = 1.0 / 240
    SIM_SUBSTEPS         = 4
    NOTIFICATION_SECONDS = 2.5

    def __init__(self, layout: PegLayout, pending_events: Optional[list] = None):
        self.layout = layout

        self.state = RevealState.IDLE
        self.job: Optional[RevealJob] = None
        self.ball: Optional[BallState] = None
        self.animated_winners: List[Tuple[int, int]] = []   # (slot, rank)
        self.notification: Optional[Notification] = None
        self.confetti = np.empty((0, 5))   # x, y, vx, vy, alpha per row
        self.status_msg = ""

        # Event queue shared with the owner (session) when one is given
        self.pending_events: list = pending_events if pending_events is not None else []

        # Synchronous listeners: fn(slot, rank) / fn(winner_slots, message)
        self.on_winner_animated: List[Callable[[int, int], None]] = []
        self.on_reveal_complete: List[Callable[[List[int], str], None]] = []

    # ──────────────────────────────────────────────────────────────────────────
    # Job creation
    # ──────────────────────────────────────────────────────────────────────────

    def validate_slots(self, winner_slots: Sequence[int]) -> Tuple[int, ...]:
        slots = tuple(int(s) for s in winner_slots)
        for rank, slot in enumerate(slots, start=1):
            if not 0 <= slot < self.layout.slot_count:
                raise InvalidWinnerSlot(
                    f"winner rank {rank} has slot {slot}, board has "
                    f"{self.layout.slot_count} slot(s)"
                )
        return slots

    def start_reveal(self, winner_slots: Sequence[int],
                     origin: RevealOrigin = RevealOrigin.TRIGGERED,
                     seed: int = 0) -> Optional[RevealJob]:
        """Begin revealing `winner_slots` (rank 1 first). Empty input is a no-op."""
        if not winner_slots:
            return None
        slots = self.validate_slots(winner_slots)

        if self.state != RevealState.IDLE:
            self._discard()

        self.job = RevealJob(winner_slots=slots, origin=origin, seed=seed)
        self.job.is_active = True
        print(f"[REVEAL] start {origin.value} reveal: slots={list(slots)}")
        self._drop_next()
        return self.job

    def _drop_next(self) -> None:
        job = self.job
        job.current_index += 1
        slot = job.winner_slots[job.current_index]
        self.ball = spawn_ball(slot, self.layout, seed=job.seed + job.current_index)
        self.state = RevealState.DROPPING
        self.status_msg = f"Dropping ball {job.current_index + 1}/{len(job.winner_slots)}..."
        self.pending_events.append({
            "type": "spawn_ball",
            "rank": job.current_index + 1,
            "target_slot": slot,
        })

    # ──────────────────────────────────────────────────────────────────────────
    # Main loop
    # ──────────────────────────────────────────────────────────────────────────

    def step(self, dt_frame: float) -> None:
        """Advance the in-flight ball, confetti and notification. Called every frame by L3."""
        self._tick_notification(dt_frame)
        self.confetti = advance_confetti(self.confetti, self.layout, dt_frame)

        if self.state != RevealState.DROPPING:
            return

        hits = 0
        for _ in range(self.SIM_SUBSTEPS):
            before = self.ball.peg_hits
            self.ball = advance(self.ball, self.layout, self.SIM_DT)
            hits += self.ball.peg_hits - before
            if self.ball.settled:
                break

        if hits:
            self.pending_events.append({"type": "peg_hit", "rank": self.job.current_index + 1,
                                        "count": hits})
        if self.ball.settled:
            self._on_ball_settled()

    def _on_ball_settled(self) -> None:
        job = self.job
        rank = job.current_index + 1
        slot = job.winner_slots[job.current_index]

        if self.ball.forced:
            print(f"[REVEAL] ball {rank} hit the step cap, settled on slot {slot}")
            self.pending_events.append({"type": "forced_settle", "rank": rank, "slot": slot})

        burst = spawn_confetti(slot_to_position(slot, self.layout), self.layout,
                               seed=job.seed + job.current_index)
        self.confetti = np.vstack([self.confetti, burst])
        self._record_winner(slot, rank)

        if job.current_index + 1 < len(job.winner_slots):
            self._drop_next()
        else:
            self._complete()

    def _record_winner(self, slot: int, rank: int) -> None:
        self.animated_winners.append((slot, rank))
        self.pending_events.append({"type": "winner_animated", "slot": slot, "rank": rank})
        for fn in self.on_winner_animated:
            fn(slot, rank)

    def _complete(self) -> None:
        job = self.job
        job.current_index = len(job.winner_slots)
        job.is_active = False
        self.ball = None
        self.state = RevealState.COMPLETE

        winners = list(job.winner_slots)
        message = compose_winner_message(winners)
        self.notification = Notification(message, self.NOTIFICATION_SECONDS)
        self.status_msg = message
        print(f"[REVEAL] {message}")
        self.pending_events.append({"type": "reveal_complete", "winners": winners, "message": message})
        for fn in self.on_reveal_complete:
            fn(winners, message)

    def _tick_notification(self, dt: float) -> None:
        if self.notification is None:
            return
        self.notification.remaining -= dt
        if self.notification.remaining <= 0.0:
            self.notification = None
            self.pending_events.append({"type": "notification_cleared"})

    # ──────────────────────────────────────────────────────────────────────────
    # Degraded path / reset
    # ──────────────────────────────────────────────────────────────────────────

    def skip_animation(self) -> None:
        """Reveal every remaining winner at once and complete."""
        if self.state != RevealState.DROPPING:
            return
        job = self.job
        for i in range(job.current_index, len(job.winner_slots)):
            self._record_winner(job.winner_slots[i], i + 1)
        self._complete()

    def _discard(self) -> None:
        self.state = RevealState.IDLE
        self.job = None
        self.ball = None
        self.animated_winners = []
        self.notification = None
        self.confetti = np.empty((0, 5))
        self.status_msg = ""

    def reset(self) -> None:
        """Force IDLE from any state, discarding everything the reveal produced."""
        self._discard()
        self.pending_events.append({"type": "clear_balls"})

    @property
    def highlighted_slots(self) -> List[int]:
        return [slot for slot, _ in self.animated_winners]
