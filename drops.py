"""
Drop data as the contract-reading front-end hands it over.

DropSnapshot / Participant mirror the contract's getDropInfo and
getDropParticipants results. Winners arrive as addresses and must be mapped
to participant slots before they reach the sequencer.
"""

import importlib.util
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from board import MAX_PARTICIPANTS_LIMIT
from sequencer import InvalidWinnerSlot

MAX_WINNERS_LIMIT: int = 3

# Participant slot colours, cycled by slot index
SLOT_COLORS = [
    "red-600", "red-500", "red-400",
    "orange-500", "orange-400",
    "yellow-500", "yellow-400", "yellow-300", "yellow-200",
]
WINNER_COLOR = "green-500"
EMPTY_COLOR = "gray-600"


class UnresolvedWinner(InvalidWinnerSlot):
    """Winner address not present in the known participant list."""


class DrawRejected(RuntimeError):
    """Manual draw requested when the drop does not allow it."""


@dataclass(frozen=True)
class Participant:
    address: str
    name: str
    slot: int

    @classmethod
    def from_dict(cls, data: dict, slot: Optional[int] = None) -> "Participant":
        return cls(
            address=str(data["address"]),
            name=str(data.get("name", "")),
            slot=int(data.get("slot", slot if slot is not None else 0)),
        )


@dataclass(frozen=True)
class DropSnapshot:
    drop_id: int
    host: str
    max_participants: int
    current_participants: int
    num_winners: int
    is_manual_selection: bool
    is_active: bool
    is_completed: bool
    is_paid_entry: bool = False
    entry_fee: str = "0"
    reward_amount: str = "0"
    winners: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not 1 <= self.num_winners <= MAX_WINNERS_LIMIT:
            raise ValueError(
                f"num_winners must be between 1 and {MAX_WINNERS_LIMIT}, got {self.num_winners}"
            )

    @property
    def status(self) -> str:
        if self.is_completed:
            return "Ended"
        return "Active" if self.is_active else "Inactive"

    @classmethod
    def from_dict(cls, data: dict) -> "DropSnapshot":
        return cls(
            drop_id=int(data["id"]),
            host=str(data.get("host", "")),
            max_participants=int(data["maxParticipants"]),
            current_participants=int(data["currentParticipants"]),
            num_winners=int(data["numWinners"]),
            is_manual_selection=bool(data.get("isManualSelection", False)),
            is_active=bool(data.get("isActive", False)),
            is_completed=bool(data.get("isCompleted", False)),
            is_paid_entry=bool(data.get("isPaidEntry", False)),
            entry_fee=str(data.get("entryFee", "0")),
            reward_amount=str(data.get("rewardAmount", "0")),
            winners=tuple(str(w) for w in data.get("winners", [])),
        )


def participants_from_list(items: Sequence[dict]) -> List[Participant]:
    """Participants in contract order; slot defaults to list position."""
    return [Participant.from_dict(item, slot=i) for i, item in enumerate(items)]


def resolve_winner_slots(winners: Sequence[str], participants: Sequence[Participant],
                         current_participants: int, allow_stale: bool = False) -> List[int]:
    """Map winner addresses to participant slots, rank order preserved.

    An address missing from `participants` usually means the participant list
    was read before the winner list and is stale. That raises UnresolvedWinner
    unless `allow_stale` is set, in which case the winner is placed on
    `rank_index % current_participants` and the guess is logged.
    """
    by_address = {p.address.lower(): p.slot for p in participants}
    slots = []
    for index, winner in enumerate(winners):
        slot = by_address.get(winner.lower())
        if slot is None:
            if not allow_stale or current_participants <= 0:
                raise UnresolvedWinner(
                    f"winner {winner} (rank {index + 1}) not among {len(participants)} known participants"
                )
            slot = index % current_participants
            print(f"[DROP] stale participant list: winner {winner[:10]}... placed on slot {slot}")
        slots.append(slot)
    return slots


def check_manual_draw(snapshot: DropSnapshot, account: Optional[str]) -> None:
    """Raise DrawRejected unless `account` may trigger a manual draw now."""
    if not account or account.lower() != snapshot.host.lower():
        raise DrawRejected("Only the host can select winners")
    if not snapshot.is_manual_selection:
        raise DrawRejected("Drop uses automatic winner selection")
    if snapshot.current_participants < snapshot.num_winners:
        raise DrawRejected("Not enough participants")
    if not snapshot.is_active:
        raise DrawRejected("Drop is not active")
    if snapshot.is_completed:
        raise DrawRejected("Drop is already completed")


def participant_slots(snapshot: DropSnapshot, highlighted: Sequence[int] = ()) -> List[dict]:
    """Display model for the participant strip (at most 30 slots)."""
    winners = set(highlighted)
    slots = []
    for i in range(min(snapshot.max_participants, MAX_PARTICIPANTS_LIMIT)):
        if i >= snapshot.current_participants:
            status, colour = "empty", EMPTY_COLOR
        elif i in winners:
            status, colour = "winner", WINNER_COLOR
        else:
            status, colour = "active", SLOT_COLORS[i % len(SLOT_COLORS)]
        slots.append({"slot": i, "label": str(i + 1), "status": status, "color": colour})
    return slots


# ──────────────────────────────────────────────────────────────────────────────
# Demo drop scripts (scripts/*.py with a SCRIPT dict)
# ──────────────────────────────────────────────────────────────────────────────

def collect_drop_scripts(directory: str = "scripts") -> list:
    """Return sorted list of .py files from the scripts/ dir."""
    scripts_dir = Path(directory)
    if not scripts_dir.is_dir():
        return []
    return sorted(p for p in scripts_dir.glob("*.py") if not p.name.startswith("_"))


def load_drop_script(path: str) -> Tuple[DropSnapshot, List[Participant]]:
    """Load a demo drop from a .py file defining SCRIPT = {"drop": ..., "participants": ...}."""
    abs_path = os.path.abspath(path)
    if not os.path.exists(abs_path):
        raise FileNotFoundError(f"Script not found: {abs_path}")
    spec = importlib.util.spec_from_file_location("_drop_script", abs_path)
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)
    script = getattr(mod, "SCRIPT", None)
    if script is None:
        raise ValueError(f"No SCRIPT variable in {os.path.basename(abs_path)}")
    return DropSnapshot.from_dict(script["drop"]), participants_from_list(script.get("participants", []))
