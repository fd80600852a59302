"""
Plinko Reveal Visualizer -- desktop viewer (3-Tier Architecture)
Layer 3: Ursina rendering / input handling.
Layer 2: session.py (RevealSession) -> sequencer.py (RevealSequencer)
Layer 1: physics.py / board.py

Press 1-9 to load a demo drop from scripts/, Space to skip the animation,
R to clear the board.
"""

import os
import tempfile
import wave
from pathlib import Path

import numpy as np
from ursina import (
    Ursina, Entity, Text, Texture, Audio, camera, color, destroy,
    time as ursina_time,
)
from PIL import Image, ImageDraw

from drops import collect_drop_scripts, load_drop_script
from session import RevealSession

CANVAS_WIDTH = 600
CANVAS_HEIGHT = 500

# ── Layer 2: session instance ─────────────────────────────────────────────────
session = RevealSession(CANVAS_WIDTH, CANVAS_HEIGHT)

_asset_dir = tempfile.mkdtemp(prefix="plinko_reveal_")

# ──────────────────────────────────────────
# Texture generation (PIL)
# ──────────────────────────────────────────

def _make_glow_texture(rgb=(255, 200, 0), size=64):
    """Radial falloff sprite for trail particles."""
    img = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    half = size // 2
    for r in range(half, 0, -1):
        a = int(255 * (1.0 - r / half) ** 1.5)
        draw.ellipse([half - r, half - r, half + r, half + r], fill=(*rgb, a))
    return img


def _get_glow_texture():
    path = os.path.join(_asset_dir, "glow.png")
    if not os.path.exists(path):
        _make_glow_texture().save(path)
    return Texture(path)


# ──────────────────────────────────────────
# Synthesized peg click (numpy + wave)
# ──────────────────────────────────────────

def _synth_click():
    sr = 44100; dur = 0.05
    t = np.linspace(0, dur, int(sr * dur), endpoint=False)
    env = np.exp(-t * 90)
    sig = env * np.sin(2 * np.pi * 1200 * t)
    path = os.path.join(_asset_dir, "peg.wav")
    data = (np.clip(sig * 0.5, -1.0, 1.0) * 32767).astype(np.int16)
    with wave.open(path, "w") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sr)
        wf.writeframes(data.tobytes())
    return Path(path)


# ──────────────────────────────────────────
# Canvas px -> world mapping (view height = 1 unit)
# ──────────────────────────────────────────

def to_world(x: float, y: float, z: float = 0.0):
    return ((x - CANVAS_WIDTH / 2) / CANVAS_HEIGHT,
            -(y - CANVAS_HEIGHT / 2) / CANVAS_HEIGHT,
            z)


def px(length: float) -> float:
    return length / CANVAS_HEIGHT


# ──────────────────────────────────────────
# Ursina App
# ──────────────────────────────────────────

app = Ursina(borderless=False, title="Plinko Reveal", size=(900, 800))
camera.orthographic = True
camera.fov = 1.1

backdrop = Entity(model="quad", color=color.rgb32(75, 0, 130),
                  scale=(px(CANVAS_WIDTH), 1.0), z=0.1)

board_entities: list[Entity] = []
slot_entities: list[Entity] = []
trail_entities: list[Entity] = []
ball_entity = None
TRAIL_POOL = 60
CONFETTI_POOL = 60
confetti_entities: list[Entity] = []

glow_texture = _get_glow_texture()
snd_peg = Audio(_synth_click(), autoplay=False, loop=False)

info_text = Text(
    text="[1-9] Demo drop  [Space] Skip  [R] Clear",
    position=(-0.7, 0.47), scale=1.1, color=color.white,
)
status_text = Text(text="", position=(-0.7, 0.43), scale=1.0, color=color.light_gray)
notice_text = Text(text="", origin=(0, 0), position=(0, 0.1), scale=2.0, color=color.yellow)


def _clear_board() -> None:
    global ball_entity
    for e in board_entities + slot_entities + trail_entities + confetti_entities:
        destroy(e)
    board_entities.clear()
    slot_entities.clear()
    trail_entities.clear()
    confetti_entities.clear()
    if ball_entity is not None:
        destroy(ball_entity)
        ball_entity = None


def _build_board() -> None:
    global ball_entity
    _clear_board()
    layout = session.layout
    if layout is None:
        return
    for x, y in layout.pegs:
        board_entities.append(Entity(model="circle", color=color.orange,
                                     position=to_world(x, y), scale=px(layout.peg_radius * 2)))
    band_h = layout.height - layout.slot_band_top
    for i in range(layout.slot_count):
        cx = (i + 0.5) * layout.slot_width
        slot_entities.append(Entity(
            model="quad", color=color.dark_gray,
            position=to_world(cx, layout.slot_band_top + band_h / 2, 0.05),
            scale=(px(layout.slot_width - 2), px(band_h)),
        ))
        board_entities.append(Text(text=str(i + 1), origin=(0, 0), scale=0.6,
                                   position=to_world(cx, layout.height - band_h / 3, -0.01),
                                   world_space=True))
    for _ in range(TRAIL_POOL):
        trail_entities.append(Entity(model="quad", texture=glow_texture, enabled=False,
                                     scale=px(layout.ball_radius), z=-0.01))
    for _ in range(CONFETTI_POOL):
        confetti_entities.append(Entity(model="circle", color=color.orange, enabled=False,
                                        scale=px(layout.ball_radius * 2 / 3), z=-0.03))
    ball_entity = Entity(model="circle", color=color.rgb32(255, 69, 0),
                         scale=px(layout.ball_radius * 2), enabled=False, z=-0.02)


def _load_demo(index: int) -> None:
    scripts = collect_drop_scripts()
    if index >= len(scripts):
        status_text.text = f"No script at slot {index + 1}."
        return
    try:
        snapshot, participants = load_drop_script(str(scripts[index]))
    except (OSError, ValueError, KeyError) as exc:
        status_text.text = f"Script error: {exc}"
        return
    session.observe(snapshot, participants)
    info_text.text = f"Drop #{snapshot.drop_id} ({snapshot.status})  {scripts[index].name}"


def _handle_event(ev: dict) -> None:
    etype = ev.get("type")
    if etype == "board":
        _build_board()
    elif etype == "clear_balls":
        if ball_entity is not None:
            ball_entity.enabled = False
        for e in trail_entities:
            e.enabled = False
    elif etype == "spawn_ball" and ball_entity is not None:
        ball_entity.enabled = True
    elif etype == "peg_hit":
        snd_peg.play()


def _sync_confetti() -> None:
    seq = session.sequencer
    particles = seq.confetti if seq is not None else ()
    for i, e in enumerate(confetti_entities):
        if i < len(particles):
            x, y, _, _, a = particles[i]
            e.enabled = True
            e.position = to_world(x, y, -0.03)
            e.color = color.rgb32(255, int(69 + 96 * a), 0)
            e.alpha = a
        else:
            e.enabled = False


def _sync_highlights() -> None:
    winners = set(session.highlighted)
    for i, e in enumerate(slot_entities):
        e.color = color.green if i in winners else color.dark_gray


def _sync_ball() -> None:
    seq = session.sequencer
    ball = seq.ball if seq is not None else None
    if ball is None or ball_entity is None:
        if ball_entity is not None:
            ball_entity.enabled = False
        for e in trail_entities:
            e.enabled = False
        return

    ball_entity.enabled = True
    ball_entity.position = to_world(ball.position[0], ball.position[1], -0.02)

    samples = ball.trail[::max(1, len(ball.trail) // TRAIL_POOL + 1)]
    for i, e in enumerate(trail_entities):
        if i < len(samples):
            x, y, a = samples[i]
            e.enabled = True
            e.position = to_world(x, y, -0.01)
            e.alpha = a
        else:
            e.enabled = False


def input(key):
    if key.isdigit() and key != "0":
        _load_demo(int(key) - 1)
    elif key == "space":
        session.skip()
    elif key == "r":
        session.clear()
        _clear_board()
        info_text.text = "[1-9] Demo drop  [Space] Skip  [R] Clear"


def update():
    session.step(ursina_time.dt)

    for ev in session.pending_events:
        _handle_event(ev)
    session.pending_events.clear()

    _sync_ball()
    _sync_confetti()
    _sync_highlights()

    seq = session.sequencer
    status_text.text = session.status_msg or (seq.status_msg if seq else "")
    if seq is not None and seq.notification is not None:
        notice_text.text = seq.notification.message
        notice_text.alpha = seq.notification.alpha
    else:
        notice_text.text = ""


# ──────────────────────────────────────────
# Run
# ──────────────────────────────────────────

if __name__ == "__main__":
    app.run()
