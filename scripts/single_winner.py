"""Automatic (VRF) drop with one winner on the last slot."""

_ADDRS = [f"0x{i:040x}" for i in range(1, 6)]

SCRIPT = {
    "drop": {
        "id": 12,
        "host": "0x9f00000000000000000000000000000000000002",
        "entryFee": "0.01",
        "rewardAmount": "0.05",
        "maxParticipants": 5,
        "currentParticipants": 5,
        "isActive": False,
        "isCompleted": True,
        "isPaidEntry": True,
        "isManualSelection": False,
        "numWinners": 1,
        "winners": [_ADDRS[4]],
    },
    "participants": [
        {"address": a, "name": f"User-{a[-4:]}"} for a in _ADDRS
    ],
}
