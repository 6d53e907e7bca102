"""
Heartbeat module: participant presence plus the host-side background loops.

Two loops run per process, and only in the worker that claimed the background slot:

- reconcile: drains the coordinator's change-event queue and, every
  RECONCILE_INTERVAL_SECONDS, sweeps all live rooms; each room goes through
  coordinator.reconcile() (vote-skip, auto-start). The sweep also renews the slot
  lease, and both loops stop if it was lost.
- autofill: every AUTOFILL_INTERVAL_SECONDS runs one auto-fill cycle per live room.
"""
from __future__ import annotations

import logging
import time

from flask import Flask, request

from ....engine import coordinator
from ....errors import SyncTubeError
from ....extensions import db, socketio
from ....lib.background_slots import claim_background_slot, renew_background_slot
from ....models import Room
from ...middleware import require_session

# Guard to ensure we start the loops only once per process
_background_started: bool = False
# Set once the slot lease is lost; both loops exit
_agents_stopped: bool = False
# Background slot task name shared by both loops
AGENTS_TASK = "room_agents"
# Upper bound on how long a queued change waits before reconcile sees it
EVENT_POLL_SECONDS = 0.5


def register() -> None:
    @socketio.on("room.heartbeat")
    @require_session
    def _on_room_heartbeat(code: str, participant_id: str, data: dict):
        res, rej = Room.emit(code, trigger="room.heartbeat", sid=request.sid)
        try:
            res("room.heartbeat.result", coordinator.heartbeat(code, participant_id))
        except SyncTubeError as e:
            rej(e.message, state=e.code)
        except Exception:
            logging.exception("room.heartbeat handler error (room=%s)", code)
            rej("room.heartbeat: failed to record heartbeat")


def _reconcile_rooms(codes) -> None:
    for code in codes:
        try:
            action = coordinator.reconcile(code)
            if action:
                logging.debug("reconcile: room=%s action=%s", code, action)
        except SyncTubeError as e:
            # Transient failures are retried by the next event or tick
            logging.warning("reconcile: room=%s skipped: %s", code, e.message)
        except Exception:
            db.session.rollback()
            logging.exception("reconcile: error for room %s", code)


def _reconcile_forever(app: Flask) -> None:
    """Background loop feeding coordinator.reconcile() from events and a fixed tick."""
    global _agents_stopped
    with app.app_context():
        interval = float(app.config.get("RECONCILE_INTERVAL_SECONDS", 5))
    coordinator.enable_events()
    next_tick = 0.0

    while True:
        try:
            with app.app_context():
                codes = coordinator.pending_rooms()
                if time.monotonic() >= next_tick:
                    if not renew_background_slot(app, AGENTS_TASK):
                        logging.warning("reconcile: background slot lost, stopping room agents")
                        _agents_stopped = True
                        coordinator.disable_events()
                        return
                    codes.update(coordinator.live_room_codes())
                    next_tick = time.monotonic() + interval
                _reconcile_rooms(sorted(codes))
                db.session.remove()
        except Exception:
            logging.exception("reconcile: error during cycle")
        socketio.sleep(min(EVENT_POLL_SECONDS, interval))


def _autofill_forever(app: Flask) -> None:
    """Background loop running one auto-fill cycle per live room on a fixed interval."""
    with app.app_context():
        interval = float(app.config.get("AUTOFILL_INTERVAL_SECONDS", 30))

    while not _agents_stopped:
        start_time = time.perf_counter_ns()
        try:
            with app.app_context():
                for code in coordinator.live_room_codes():
                    try:
                        coordinator.autofill_tick(code)
                    except SyncTubeError as e:
                        logging.warning("autofill: room=%s skipped cycle: %s", code, e.message)
                    except Exception:
                        db.session.rollback()
                        logging.exception("autofill: error for room %s", code)
                db.session.remove()
        except Exception:
            logging.exception("autofill: error during cycle")

        elapsed_time = time.perf_counter_ns() - start_time
        logging.debug("autofill: cycle completed in %s milliseconds", elapsed_time / 1000000)
        socketio.sleep(interval)


def start_background_tasks_if_needed(app: Flask) -> None:
    """Start the reconcile and auto-fill loops if this worker owns the background slot."""
    global _background_started
    if _background_started:
        return

    # Only one worker may act as the rooms' host-side agent, however many are running
    slot = claim_background_slot(app, task=AGENTS_TASK)
    if not slot:
        app.logger.info(
            "heartbeat: background tasks disabled in this worker (no slot claimed; BACKGROUND_TASK_SLOTS=%s)",
            app.config.get("BACKGROUND_TASK_SLOTS"),
        )
        return

    socketio.start_background_task(_reconcile_forever, app)
    socketio.start_background_task(_autofill_forever, app)
    _background_started = True
    app.logger.info("heartbeat: started reconcile and autofill loops (slot=%s)", slot)
