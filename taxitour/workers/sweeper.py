"""
Background Socket Sweeper
=========================

Runs every ``SWEEP_INTERVAL_SECONDS`` (default 30 s).

* Sockets that connected but never authenticated within
  ``AUTH_TIMEOUT_SECONDS`` are closed with 1008 (policy violation).
* Registered connections whose transport is already closed (a missed
  disconnect) are unregistered; drivers among them are announced offline.
"""

from __future__ import annotations

import asyncio
import logging

from taxitour.config import settings

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_sweeper(gateway) -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop(gateway))
    logger.info(
        "Socket sweeper started (interval=%ds, auth timeout=%ds)",
        settings.sweep_interval_seconds,
        settings.auth_timeout_seconds,
    )


async def stop_sweeper() -> None:
    global _task, _stop_event
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    _task = _stop_event = None
    logger.info("Socket sweeper stopped")


async def run_sweep_cycle(gateway) -> int:
    """Execute one sweep.  Returns the number of sockets evicted."""
    evicted = await gateway.sweep(settings.auth_timeout_seconds)
    if evicted:
        logger.info("Sweep cycle: %d socket(s) evicted", evicted)
    return evicted


# ── Internals ─────────────────────────────────────────────────────────


async def _loop(gateway) -> None:
    """Periodic loop: run a sweep then sleep."""
    assert _stop_event is not None
    stop = _stop_event
    while not stop.is_set():
        try:
            await run_sweep_cycle(gateway)
        except Exception:
            logger.exception("Unhandled error in sweep cycle")
        try:
            await asyncio.wait_for(stop.wait(), timeout=settings.sweep_interval_seconds)
            break
        except asyncio.TimeoutError:
            pass  # next cycle
