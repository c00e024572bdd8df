"""
Realtime socket endpoint
========================

WS /ws -- JSON frames ``{"event": <name>, "data": {...}}`` both ways.

Clients connect anonymously and must send ``authenticate`` within
``AUTH_TIMEOUT_SECONDS``; see ``taxitour.realtime.gateway`` for the
events understood.
"""

from __future__ import annotations

import json
import logging

import anyio
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from taxitour.domain.enums import ErrorKind
from taxitour.realtime import events
from taxitour.realtime.transport import SocketHandle

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket):
    gateway = websocket.app.state.realtime
    await websocket.accept()
    handle = SocketHandle(websocket)
    await gateway.connect(handle)
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except (json.JSONDecodeError, UnicodeDecodeError, KeyError, TypeError):
                await handle.send(
                    events.ERROR,
                    events.error_payload(ErrorKind.BAD_REQUEST, "Frames must be JSON"),
                )
                continue
            try:
                await gateway.dispatch(handle, message)
            except WebSocketDisconnect:
                raise
            except Exception:
                logger.exception("Unhandled error while handling a frame from %s", handle.sid)
    except WebSocketDisconnect:
        pass
    finally:
        # Runs while the task is being cancelled too (shutdown, client gone).
        with anyio.CancelScope(shield=True):
            await gateway.disconnect(handle)
