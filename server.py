"""
Plinko Reveal Web Server — Layer 3 (FastAPI + WebSocket)

Serves the canvas frontend and runs the reveal tick loop, streaming ball,
trail and winner state to browser clients over WebSocket. The browser side
owns the wallet and the contract reads; it pushes drop snapshots here.
"""

import asyncio
import json
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

import physics as _phys
from drops import (
    DrawRejected, DropSnapshot, collect_drop_scripts, load_drop_script,
    participant_slots, participants_from_list,
)
from session import RevealSession

# ── Session ─────────────────────────────────────────────────────────────────

CANVAS_WIDTH = 600
CANVAS_HEIGHT = 500

session = RevealSession(CANVAS_WIDTH, CANVAS_HEIGHT)


# ── Lifespan (startup/shutdown) ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    task = asyncio.create_task(game_loop())
    yield
    task.cancel()


app = FastAPI(lifespan=lifespan)

# ── Client state ────────────────────────────────────────────────────────────

clients: list[WebSocket] = []

# Outstanding manual draw: the browser sends "draw", submits the transaction,
# then resolves it with "winners" or "draw_failed".
pending_draw: Optional[asyncio.Future] = None
draw_task: Optional[asyncio.Task] = None

# ── Physics params (live tuning panel) ──────────────────────────────────────

PHYSICS_PARAMS = [
    ("GRAVITY",          "Gravity",        60.0, 1200.0, 20.0),
    ("RESTITUTION",      "Peg Rest.",      0.50,   0.99, 0.01),
    ("WALL_RESTITUTION", "Wall Rest.",     0.10,   1.00, 0.01),
    ("PEG_KICK",         "Peg Kick",       0.0,  120.0,  2.0),
    ("STEER_START",      "Steer From",     0.0,    1.0,  0.05),
    ("STEER_STIFFNESS",  "Steer Spring",   1.0,  200.0,  2.0),
    ("STEER_DAMPING",    "Steer Damp.",    0.0,   20.0,  0.5),
    ("BAND_DAMPING",     "Band Damp.",     0.50,   0.99, 0.01),
    ("TRAIL_FADE_RATE",  "Trail Fade",     0.1,    5.0,  0.1),
]

PARAM_DEFAULTS = {attr: getattr(_phys, attr) for attr, *_ in PHYSICS_PARAMS}

# ── Async game loop ─────────────────────────────────────────────────────────

TARGET_FPS = 60
FRAME_DT = 1.0 / TARGET_FPS


async def game_loop():
    """Main tick loop running at ~60 fps."""
    last_time = time.perf_counter()

    while True:
        now = time.perf_counter()
        dt = now - last_time
        last_time = now

        # Clamp dt to avoid spiral-of-death
        if dt > 0.05:
            dt = 0.05

        session.step(dt)

        if clients:
            frame_msg = _build_frame_message()
            dead: list[WebSocket] = []
            for ws in clients:
                try:
                    await ws.send_text(frame_msg)
                except Exception:
                    dead.append(ws)
            for ws in dead:
                if ws in clients:
                    clients.remove(ws)
        else:
            session.pending_events.clear()

        elapsed = time.perf_counter() - now
        sleep_time = FRAME_DT - elapsed
        if sleep_time > 0:
            await asyncio.sleep(sleep_time)
        else:
            await asyncio.sleep(0)


def _board_data() -> Optional[dict]:
    layout = session.layout
    if layout is None:
        return None
    return {
        "width": layout.width,
        "height": layout.height,
        "pegs": [[round(float(x), 2), round(float(y), 2)] for x, y in layout.pegs],
        "peg_radius": round(layout.peg_radius, 3),
        "ball_radius": round(layout.ball_radius, 3),
        "slot_count": layout.slot_count,
        "slot_band_top": round(layout.slot_band_top, 2),
    }


def _confetti_data(seq) -> list:
    if seq is None:
        return []
    return [[round(float(x), 1), round(float(y), 1), round(float(a), 3)]
            for x, y, _, _, a in seq.confetti]


def _build_frame_message() -> str:
    """Serialize current reveal state into a JSON frame message."""
    seq = session.sequencer
    ball_data = None
    if seq is not None and seq.ball is not None:
        b = seq.ball
        ball_data = {
            "pos": [round(float(b.position[0]), 2), round(float(b.position[1]), 2)],
            "target": b.target_slot,
            "trail": [[round(x, 1), round(y, 1), round(a, 3)] for x, y, a in b.trail[::3]],
            "settled": b.settled,
        }

    notification = None
    if seq is not None and seq.notification is not None:
        notification = {"message": seq.notification.message,
                        "alpha": round(seq.notification.alpha, 3)}

    events = list(session.pending_events)
    session.pending_events.clear()

    frame = {
        "type": "frame",
        "state": session.state.name,
        "loading": session.loading,
        "ball": ball_data,
        "highlighted": session.highlighted,
        "confetti": _confetti_data(seq),
        "events": events,
        "status": session.status_msg or (seq.status_msg if seq else ""),
    }
    if notification is not None:
        frame["notification"] = notification
    return json.dumps(frame, separators=(',', ':'))


def _drop_message() -> str:
    snap = session.snapshot
    return json.dumps({
        "type": "drop",
        "drop_id": session.drop_id,
        "status": snap.status if snap else "",
        "board": _board_data(),
        "slots": participant_slots(snap, session.highlighted) if snap else [],
    })


# ── Draw handling ───────────────────────────────────────────────────────────

async def _run_draw(account: Optional[str]) -> None:
    global pending_draw
    loop = asyncio.get_running_loop()
    pending_draw = loop.create_future()
    future = pending_draw

    async def fetch():
        return await future

    try:
        await session.request_draw(fetch, account)
    except DrawRejected as exc:
        session.status_msg = str(exc)
        print(f"[WS] draw rejected: {exc}")
    except RuntimeError as exc:
        print(f"[WS] draw failed: {exc}")
    finally:
        if pending_draw is future:
            pending_draw = None


def _observe(snapshot: DropSnapshot, participants) -> None:
    """Show `snapshot`; a different drop cancels any draw still waiting on the old one."""
    if session.reset_for_drop_identity(snapshot.drop_id) and draw_task is not None:
        draw_task.cancel()
    session.observe(snapshot, participants)


# ── Physics params helpers ──────────────────────────────────────────────────

def _get_params_data() -> list:
    """Return all physics params with current values."""
    result = []
    for attr, label, mn, mx, step in PHYSICS_PARAMS:
        result.append({
            "attr": attr, "label": label,
            "value": round(getattr(_phys, attr), 6),
            "min": mn, "max": mx, "step": step,
        })
    return result


# ── WebSocket endpoint ──────────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    global draw_task
    await ws.accept()
    clients.append(ws)

    await ws.send_text(json.dumps({
        "type": "init",
        "canvas_width": CANVAS_WIDTH,
        "canvas_height": CANVAS_HEIGHT,
        "rows": session.rows,
        "scripts": [p.name for p in collect_drop_scripts()],
    }))
    if session.snapshot is not None:
        await ws.send_text(_drop_message())

    try:
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue

            cmd = msg.get("cmd", "")
            try:
                if cmd == "view_drop":
                    _observe(DropSnapshot.from_dict(msg["drop"]),
                             participants_from_list(msg.get("participants", [])))
                    await ws.send_text(_drop_message())
                elif cmd == "draw":
                    if draw_task is not None and not draw_task.done():
                        await ws.send_text(json.dumps({"type": "error", "cmd": cmd,
                                                       "message": "Draw already in progress"}))
                    else:
                        draw_task = asyncio.create_task(_run_draw(msg.get("account")))
                elif cmd == "winners":
                    if pending_draw is not None and not pending_draw.done():
                        snapshot = DropSnapshot.from_dict(msg["drop"])
                        participants = participants_from_list(msg.get("participants", []))
                        pending_draw.set_result((snapshot, participants))
                elif cmd == "draw_failed":
                    if pending_draw is not None and not pending_draw.done():
                        pending_draw.set_exception(RuntimeError(msg.get("error", "transaction failed")))
                elif cmd == "skip":
                    session.skip()
                elif cmd == "get_slots":
                    await ws.send_text(_drop_message())
                elif cmd == "load_script":
                    scripts = collect_drop_scripts()
                    idx = int(msg.get("index", 0))
                    if 0 <= idx < len(scripts):
                        snapshot, participants = load_drop_script(str(scripts[idx]))
                        _observe(snapshot, participants)
                        await ws.send_text(_drop_message())
                elif cmd == "get_params":
                    await ws.send_text(json.dumps({
                        "type": "params",
                        "data": _get_params_data(),
                    }))
                elif cmd == "adjust_param":
                    idx = int(msg.get("index", 0))
                    direction = int(msg.get("direction", 0))
                    fine = msg.get("fine", False)
                    if 0 <= idx < len(PHYSICS_PARAMS):
                        attr, label, mn, mx, step = PHYSICS_PARAMS[idx]
                        s = step / 10.0 if fine else step
                        cur = getattr(_phys, attr)
                        new_val = max(mn, min(mx, cur + direction * s))
                        setattr(_phys, attr, new_val)
                        await ws.send_text(json.dumps({
                            "type": "param_update",
                            "index": idx,
                            "value": round(new_val, 6),
                        }))
                elif cmd == "reset_params":
                    for attr, dflt in PARAM_DEFAULTS.items():
                        setattr(_phys, attr, dflt)
                    await ws.send_text(json.dumps({
                        "type": "params",
                        "data": _get_params_data(),
                    }))
            except (KeyError, ValueError) as exc:
                print(f"[WS] {cmd}: bad message: {exc}")
                await ws.send_text(json.dumps({"type": "error", "cmd": cmd, "message": str(exc)}))
    except WebSocketDisconnect:
        pass
    finally:
        if ws in clients:
            clients.remove(ws)


# ── Static files + root route ───────────────────────────────────────────────

app.mount("/static", StaticFiles(directory="static"), name="static")


@app.get("/")
async def root():
    return FileResponse("static/index.html")


# ── Run with uvicorn ────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=False)
