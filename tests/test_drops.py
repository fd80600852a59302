"""
Drop Data Tests — snapshot parsing, winner-to-slot resolution, manual draw
preconditions, participant strip and demo drop scripts.
"""

import sys
import os
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from drops import (
    DrawRejected, DropSnapshot, Participant, UnresolvedWinner,
    EMPTY_COLOR, SLOT_COLORS, WINNER_COLOR,
    check_manual_draw, collect_drop_scripts, load_drop_script,
    participant_slots, participants_from_list, resolve_winner_slots,
)
from sequencer import InvalidWinnerSlot

ROOT = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..")
SCRIPTS = os.path.join(ROOT, "scripts")
HOST = "0xAbC0000000000000000000000000000000000001"


def make_drop(**overrides) -> DropSnapshot:
    fields = dict(
        drop_id=1, host=HOST, max_participants=10, current_participants=5,
        num_winners=2, is_manual_selection=True, is_active=True, is_completed=False,
    )
    fields.update(overrides)
    return DropSnapshot(**fields)


def make_people(n: int) -> list:
    return [Participant(address=f"0xAA{i:038x}", name=f"P{i}", slot=i) for i in range(n)]


class TestSnapshot:

    def test_from_dict(self):
        snap = DropSnapshot.from_dict({
            "id": "4", "host": HOST, "entryFee": "0.01", "rewardAmount": "1.5",
            "maxParticipants": 20, "currentParticipants": 3,
            "isActive": True, "isCompleted": False, "isPaidEntry": True,
            "isManualSelection": False, "numWinners": 1, "winners": [],
        })
        assert snap.drop_id == 4
        assert snap.max_participants == 20
        assert snap.current_participants == 3
        assert snap.is_paid_entry
        assert not snap.is_manual_selection
        assert snap.entry_fee == "0.01"
        assert snap.winners == ()

    def test_missing_required_key(self):
        with pytest.raises(KeyError):
            DropSnapshot.from_dict({"id": 1, "maxParticipants": 5, "numWinners": 1})

    @pytest.mark.parametrize("n", [0, 4, -1])
    def test_num_winners_bounds(self, n):
        with pytest.raises(ValueError):
            make_drop(num_winners=n)

    @pytest.mark.parametrize("completed,active,status", [
        (True, False, "Ended"), (True, True, "Ended"),
        (False, True, "Active"), (False, False, "Inactive"),
    ])
    def test_status(self, completed, active, status):
        assert make_drop(is_completed=completed, is_active=active).status == status

    def test_participants_from_list(self):
        people = participants_from_list([{"address": "0x1"}, {"address": "0x2", "name": "Bo"}])
        assert [(p.address, p.name, p.slot) for p in people] == [("0x1", "", 0), ("0x2", "Bo", 1)]


class TestResolveWinners:

    def test_rank_order_kept(self):
        people = make_people(8)
        slots = resolve_winner_slots([people[6].address, people[2].address], people, 8)
        assert slots == [6, 2]

    def test_case_insensitive(self):
        people = make_people(4)
        slots = resolve_winner_slots([people[3].address.lower().upper()], people, 4)
        assert slots == [3]

    def test_unknown_winner_raises(self):
        people = make_people(4)
        with pytest.raises(UnresolvedWinner):
            resolve_winner_slots([people[0].address, "0xdead"], people, 4)

    def test_unresolved_is_invalid_slot(self):
        assert issubclass(UnresolvedWinner, InvalidWinnerSlot)

    def test_allow_stale_uses_rank_index(self):
        people = make_people(4)
        slots = resolve_winner_slots(["0xdead", "0xbeef", people[1].address], people, 4,
                                     allow_stale=True)
        assert slots == [0, 1, 1]

    def test_allow_stale_wraps(self):
        slots = resolve_winner_slots(["0x1", "0x2", "0x3"], [], 2, allow_stale=True)
        assert slots == [0, 1, 0]

    def test_allow_stale_without_participants_raises(self):
        with pytest.raises(UnresolvedWinner):
            resolve_winner_slots(["0x1"], [], 0, allow_stale=True)


class TestManualDraw:

    def test_host_allowed(self):
        check_manual_draw(make_drop(), HOST.lower())

    @pytest.mark.parametrize("overrides,account,message", [
        ({}, None, "Only the host"),
        ({}, "0x" + "1" * 40, "Only the host"),
        ({"is_manual_selection": False}, HOST, "automatic"),
        ({"current_participants": 1}, HOST, "Not enough participants"),
        ({"is_active": False}, HOST, "Drop is not active"),
        ({"is_completed": True}, HOST, "Drop is already completed"),
    ])
    def test_rejected(self, overrides, account, message):
        with pytest.raises(DrawRejected, match=message):
            check_manual_draw(make_drop(**overrides), account)


class TestParticipantSlots:

    def test_statuses(self):
        slots = participant_slots(make_drop(max_participants=6, current_participants=4), [2])
        assert [s["status"] for s in slots] == ["active", "active", "winner", "active", "empty", "empty"]
        assert slots[2]["color"] == WINNER_COLOR
        assert slots[5]["color"] == EMPTY_COLOR
        assert slots[0]["color"] == SLOT_COLORS[0]
        assert [s["label"] for s in slots] == ["1", "2", "3", "4", "5", "6"]

    def test_capped_at_thirty(self):
        slots = participant_slots(make_drop(max_participants=50, current_participants=40))
        assert len(slots) == 30

    def test_colours_cycle(self):
        slots = participant_slots(make_drop(max_participants=12, current_participants=12))
        assert slots[9]["color"] == SLOT_COLORS[0]


class TestDropScripts:

    def test_collect_skips_private(self):
        names = [p.name for p in collect_drop_scripts(SCRIPTS)]
        assert "three_winners.py" in names
        assert names == sorted(names)
        assert all(not n.startswith("_") for n in names)

    def test_collect_missing_dir(self, tmp_path):
        assert collect_drop_scripts(str(tmp_path / "nope")) == []

    def test_load_three_winners(self):
        snap, people = load_drop_script(os.path.join(SCRIPTS, "three_winners.py"))
        assert snap.drop_id == 7
        assert snap.is_completed
        assert len(people) == 12
        assert resolve_winner_slots(snap.winners, people, snap.current_participants) == [3, 7, 1]

    def test_load_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_drop_script(str(tmp_path / "missing.py"))

    def test_load_without_script(self, tmp_path):
        path = tmp_path / "empty.py"
        path.write_text("X = 1\n")
        with pytest.raises(ValueError):
            load_drop_script(str(path))
