"""
Billiards Web Server — browser host (FastAPI + WebSocket)

Serves the canvas client and runs the frame loop, streaming draw
commands to browser clients and taking pointer events back.
"""

import asyncio
import json
import logging
import math
import os
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from controller import BilliardsController
from layouts import DEFAULT_VARIANT
from render import render_frame
from surface import CommandSurface

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"

# ── Controller ──────────────────────────────────────────────────────────────

ctrl = BilliardsController(os.environ.get("BILLIARDS_VARIANT", DEFAULT_VARIANT))
surface = CommandSurface(ctrl.table.width, ctrl.table.height)


# ── Lifespan (startup/shutdown) ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    task = asyncio.create_task(game_loop())
    yield
    task.cancel()


app = FastAPI(lifespan=lifespan)

clients: list[WebSocket] = []

# ── Async game loop ─────────────────────────────────────────────────────────

TARGET_FPS = 60
FRAME_DT = 1.0 / TARGET_FPS


async def game_loop():
    """Main frame loop at ~60 fps. Physics advances one frame per tick."""
    while True:
        now = time.perf_counter()

        ctrl.step()

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
            ctrl.pending_events.clear()

        # Sleep to maintain target FPS
        elapsed = time.perf_counter() - now
        sleep_time = FRAME_DT - elapsed
        if sleep_time > 0:
            await asyncio.sleep(sleep_time)
        else:
            await asyncio.sleep(0)


def _build_frame_message() -> str:
    """Render the current state and serialize it into a JSON frame message."""
    render_frame(surface, ctrl)

    events = list(ctrl.pending_events)
    ctrl.pending_events.clear()
    for ev in ctrl.physics_events:
        events.append({k: (round(v, 3) if isinstance(v, float) else v) for k, v in ev.items()})

    frame = {
        "type": "frame",
        "frame": ctrl.frame_count,
        "draw": surface.flush(),
        "events": events,
        "mode": ctrl.mode,
        "status": ctrl.status_msg,
        "info": ctrl.info_msg,
    }
    return json.dumps(frame, separators=(',', ':'))


def _init_message() -> str:
    table = ctrl.table
    return json.dumps({
        "type": "init",
        "width": table.width,
        "height": table.height,
        "variant": ctrl.variant.name,
        "ball_radius": table.ball_radius,
        "pocket_radius": table.pocket_radius,
        "fps": TARGET_FPS,
    })


# ── Input handlers ──────────────────────────────────────────────────────────

def _point(msg: dict):
    x, y = float(msg.get("x", 0.0)), float(msg.get("y", 0.0))
    if not (math.isfinite(x) and math.isfinite(y)):
        raise ValueError(f"non-finite pointer position ({x}, {y})")
    return x, y


def _handle_pointer(cmd: str, msg: dict) -> None:
    try:
        x, y = _point(msg)
    except (TypeError, ValueError):
        return
    if cmd == "pointer_down":
        ctrl.pointer_down(x, y)
    elif cmd == "pointer_move":
        ctrl.pointer_move(x, y)
    else:
        ctrl.pointer_up(x, y)


def _handle_key_down(key: str) -> None:
    if key == "r":
        ctrl.reset()


# ── WebSocket endpoint ──────────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    clients.append(ws)
    logger.info("client connected (%d total)", len(clients))

    await ws.send_text(_init_message())

    try:
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            if not isinstance(msg, dict):
                continue

            cmd = msg.get("cmd", "")
            if cmd in ("pointer_down", "pointer_move", "pointer_up"):
                _handle_pointer(cmd, msg)
            elif cmd == "key_down":
                _handle_key_down(str(msg.get("key", "")).lower())
            elif cmd == "execute":
                ctrl.execute_command(msg.get("text", ""))
            elif cmd == "get_state":
                await ws.send_text(json.dumps({
                    "type": "state_json",
                    "data": ctrl.get_state_json(),
                }))
    except WebSocketDisconnect:
        pass
    finally:
        if ws in clients:
            clients.remove(ws)
        logger.info("client disconnected (%d left)", len(clients))


# ── Static files + root route ───────────────────────────────────────────────

app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")


@app.get("/")
async def root():
    return FileResponse(STATIC_DIR / "index.html")


# ── Run with uvicorn ────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=False)
