"""
Change signal stream (server-sent events).

Browsers subscribe to /api/events and receive one ``pantry-update`` event
per change signal, then refetch through the JSON API. A comment line is
sent every HEARTBEAT_SECONDS so proxies keep the connection open.
"""

import queue
from typing import Iterator

from flask import Blueprint, Response, current_app

from core.notification_bus import ChangeBus
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

events_bp = Blueprint("events", __name__, url_prefix="/api")

HEARTBEAT_SECONDS = 15.0


def event_stream(bus: ChangeBus, heartbeat_seconds: float = HEARTBEAT_SECONDS) -> Iterator[str]:
    """
    Yield SSE frames for every signal on bus until the client goes away.

    The subscription is registered on the first next() and removed when
    the generator is closed.
    """
    signals: "queue.Queue[None]" = queue.Queue()
    unsubscribe = bus.subscribe(lambda: signals.put(None))
    logger.debug("Event stream opened")
    try:
        yield "retry: 3000\n\n"
        while True:
            try:
                signals.get(timeout=heartbeat_seconds)
            except queue.Empty:
                yield ": heartbeat\n\n"
                continue
            # Collapse a burst into one event; the signal has no payload
            while not signals.empty():
                signals.get_nowait()
            yield f"event: {bus.signal_name}\ndata: {{}}\n\n"
    finally:
        unsubscribe()
        logger.debug("Event stream closed")


@events_bp.route("/events", methods=["GET"])
def events():
    bus = current_app.config["CHANGE_BUS"]
    return Response(
        event_stream(bus),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
