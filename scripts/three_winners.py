"""Completed host-funded drop, 3 winners out of 12 participants."""

_ADDRS = [f"0x{i:02x}" + "a1b2c3d4e5f60718293a4b5c6d7e8f9012" + f"{i:04x}" for i in range(12)]

SCRIPT = {
    "drop": {
        "id": 7,
        "host": "0x9f00000000000000000000000000000000000001",
        "entryFee": "0",
        "rewardAmount": "0.3",
        "maxParticipants": 20,
        "currentParticipants": 12,
        "isActive": False,
        "isCompleted": True,
        "isPaidEntry": False,
        "isManualSelection": True,
        "numWinners": 3,
        # rank order: slot 3, slot 7, slot 1
        "winners": [_ADDRS[3], _ADDRS[7], _ADDRS[1]],
    },
    "participants": [
        {"address": a, "name": f"User-{a[-4:]}"} for a in _ADDRS
    ],
}
