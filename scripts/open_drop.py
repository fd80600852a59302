"""Active manual drop waiting for its host to press Drop."""

_ADDRS = [f"0x{i:040x}" for i in range(200, 209)]

SCRIPT = {
    "drop": {
        "id": 30,
        "host": "0x9f00000000000000000000000000000000000004",
        "entryFee": "0",
        "rewardAmount": "1.0",
        "maxParticipants": 30,
        "currentParticipants": 9,
        "isActive": True,
        "isCompleted": False,
        "isPaidEntry": False,
        "isManualSelection": True,
        "numWinners": 3,
        "winners": [],
    },
    "participants": [
        {"address": a, "name": f"User-{a[-4:]}"} for a in _ADDRS
    ],
}
