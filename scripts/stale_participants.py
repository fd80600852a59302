"""Winner list read after the participant list: the 2nd winner is unknown.

Without stale-read tolerance the session falls back to a static highlight.
"""

_ADDRS = [f"0x{i:040x}" for i in range(100, 108)]

SCRIPT = {
    "drop": {
        "id": 21,
        "host": "0x9f00000000000000000000000000000000000003",
        "entryFee": "0",
        "rewardAmount": "0.2",
        "maxParticipants": 10,
        "currentParticipants": 8,
        "isActive": False,
        "isCompleted": True,
        "isPaidEntry": False,
        "isManualSelection": True,
        "numWinners": 2,
        "winners": [_ADDRS[5], "0x" + "ee" * 20],
    },
    "participants": [
        {"address": a, "name": f"User-{a[-4:]}"} for a in _ADDRS
    ],
}
