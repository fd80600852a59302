"""
RevealSession — Session Reset Boundary

Owns the simulation context (board layout + sequencer) for whichever drop is
currently viewed. Any change of drop identity forces the sequencer back to
IDLE so one drop's reveal never lands on another drop's board.
"""

import zlib
from dataclasses import dataclass
from typing import Awaitable, Callable, Hashable, List, Optional, Sequence, Tuple

from board import BoardConfig, PegLayout, build_peg_layout
from drops import DropSnapshot, Participant, check_manual_draw, resolve_winner_slots, DrawRejected
from sequencer import InvalidWinnerSlot, RevealOrigin, RevealSequencer, RevealState

FetchResult = Tuple[DropSnapshot, Sequence[Participant]]


@dataclass
class SimulationContext:
    config: BoardConfig
    layout: PegLayout
    sequencer: RevealSequencer


def _seed_for(drop_id: Hashable) -> int:
    """Stable per-drop seed so a replay of the same drop looks the same."""
    return zlib.crc32(str(drop_id).encode("utf-8"))


class RevealSession:
    """One per rendered board. Host views talk to this, never to the sequencer directly."""

    DEFAULT_ROWS = 10

    def __init__(self, canvas_width: float = 600.0, canvas_height: float = 500.0,
                 rows: int = DEFAULT_ROWS, allow_stale: bool = False):
        self.canvas_width = float(canvas_width)
        self.canvas_height = float(canvas_height)
        self.rows = rows
        self.allow_stale = allow_stale

        self.drop_id: Optional[Hashable] = None
        self.snapshot: Optional[DropSnapshot] = None
        self.participants: List[Participant] = []
        self.context: Optional[SimulationContext] = None

        self.loading = False
        self.static_winners: List[int] = []
        self.status_msg = ""

        # Shared with every sequencer this session creates
        self.pending_events: list = []

        self._revealed_for: Optional[Hashable] = None
        self._draw_generation = 0

    # ──────────────────────────────────────────────────────────────────────────
    # Identity / board lifecycle
    # ──────────────────────────────────────────────────────────────────────────

    def reset_for_drop_identity(self, drop_id: Hashable) -> bool:
        """Hard reset when the viewed drop changes. Returns True if a reset happened."""
        if drop_id == self.drop_id:
            return False
        print(f"[SESSION] drop {self.drop_id} -> {drop_id}: resetting reveal")
        if self.context is not None:
            self.context.sequencer.reset()
        self.drop_id = drop_id
        self.snapshot = None
        self.participants = []
        self.static_winners = []
        self.loading = False
        self.status_msg = ""
        self._revealed_for = None
        self._draw_generation += 1   # any in-flight draw result is now stale
        return True

    def configure_board(self, snapshot: DropSnapshot) -> Optional[SimulationContext]:
        """(Re)build the simulation context when the board's structure changes."""
        config = BoardConfig.for_drop(
            snapshot.current_participants, snapshot.max_participants,
            self.canvas_width, self.canvas_height, row_count=self.rows,
        )
        if config.slot_count <= 0:
            if self.context is not None:
                self.context.sequencer.reset()
            self.context = None
            return None
        if self.context is not None and self.context.config == config:
            return self.context

        if self.context is not None:
            self.context.sequencer.reset()
        layout = build_peg_layout(config)
        self.context = SimulationContext(
            config=config,
            layout=layout,
            sequencer=RevealSequencer(layout, pending_events=self.pending_events),
        )
        self.pending_events.append({"type": "board", "rows": config.row_count,
                                    "slots": config.slot_count})
        return self.context

    # ──────────────────────────────────────────────────────────────────────────
    # Reveal entry points
    # ──────────────────────────────────────────────────────────────────────────

    def observe(self, snapshot: DropSnapshot, participants: Sequence[Participant] = ()) -> None:
        """Feed the latest contract read for the viewed drop."""
        self.reset_for_drop_identity(snapshot.drop_id)
        self.snapshot = snapshot
        self.participants = list(participants)
        self.configure_board(snapshot)

        if (snapshot.is_completed and snapshot.winners and not self.loading
                and self._revealed_for != snapshot.drop_id and self.state == RevealState.IDLE):
            self._revealed_for = snapshot.drop_id
            self._reveal(snapshot, self.participants, RevealOrigin.OBSERVED)

    async def request_draw(self, fetch: Callable[[], Awaitable[FetchResult]],
                           account: Optional[str]):
        """Host-triggered manual draw. Awaits `fetch()` for the post-draw drop state.

        The result is thrown away if the viewed drop changed while waiting.
        """
        if self.snapshot is None:
            raise DrawRejected("No drop selected")
        if self.loading:
            raise DrawRejected("Draw already in progress")
        check_manual_draw(self.snapshot, account)

        drop_id = self.drop_id
        generation = self._draw_generation
        self.loading = True
        self.status_msg = "Selecting winners..."
        self.pending_events.append({"type": "loading", "value": True})
        try:
            snapshot, participants = await fetch()
        except Exception as exc:
            print(f"[SESSION] draw for drop {drop_id} failed: {exc}")
            if generation == self._draw_generation:
                self.status_msg = f"Draw failed: {exc}"
            raise
        finally:
            if generation == self._draw_generation:
                self.loading = False
                self.pending_events.append({"type": "loading", "value": False})

        if generation != self._draw_generation or snapshot.drop_id != drop_id:
            print(f"[SESSION] discarding draw result for drop {snapshot.drop_id}, now viewing {self.drop_id}")
            return None

        self.snapshot = snapshot
        self.participants = list(participants)
        self.configure_board(snapshot)
        self._revealed_for = drop_id
        return self._reveal(snapshot, self.participants, RevealOrigin.TRIGGERED)

    def start_reveal(self, winner_slots: Sequence[int],
                     origin: RevealOrigin = RevealOrigin.TRIGGERED):
        """Reveal already-resolved slots on the current board."""
        if self.context is None:
            return None
        return self.context.sequencer.start_reveal(winner_slots, origin=origin,
                                                   seed=_seed_for(self.drop_id))

    def _reveal(self, snapshot: DropSnapshot, participants: Sequence[Participant],
                origin: RevealOrigin):
        if self.context is None:
            return None
        try:
            slots = resolve_winner_slots(snapshot.winners, participants,
                                         snapshot.current_participants,
                                         allow_stale=self.allow_stale)
            return self.context.sequencer.start_reveal(slots, origin=origin,
                                                       seed=_seed_for(snapshot.drop_id))
        except InvalidWinnerSlot as exc:
            print(f"[SESSION] cannot animate drop {snapshot.drop_id}: {exc}")
            self._show_static(snapshot, participants)
            return None

    def _show_static(self, snapshot: DropSnapshot, participants: Sequence[Participant]) -> None:
        """Non-animated fallback: highlight whichever winners can be placed."""
        by_address = {p.address.lower(): p.slot for p in participants}
        slot_count = self.context.config.slot_count if self.context else 0
        self.static_winners = [
            by_address[w.lower()] for w in snapshot.winners
            if w.lower() in by_address and by_address[w.lower()] < slot_count
        ]
        self.status_msg = f"Winners: {', '.join(snapshot.winners)}"
        self.pending_events.append({
            "type": "static_winners",
            "slots": list(self.static_winners),
            "winners": list(snapshot.winners),
        })

    # ──────────────────────────────────────────────────────────────────────────
    # Per-frame
    # ──────────────────────────────────────────────────────────────────────────

    def step(self, dt: float) -> None:
        if self.context is not None:
            self.context.sequencer.step(dt)

    def clear(self) -> None:
        """Forget the viewed drop and tear down its board."""
        self.reset_for_drop_identity(None)
        self.context = None

    def skip(self) -> None:
        if self.context is not None:
            self.context.sequencer.skip_animation()

    @property
    def sequencer(self) -> Optional[RevealSequencer]:
        return self.context.sequencer if self.context else None

    @property
    def layout(self) -> Optional[PegLayout]:
        return self.context.layout if self.context else None

    @property
    def state(self) -> RevealState:
        return self.context.sequencer.state if self.context else RevealState.IDLE

    @property
    def highlighted(self) -> List[int]:
        animated = self.context.sequencer.highlighted_slots if self.context else []
        return animated + [s for s in self.static_winners if s not in animated]
