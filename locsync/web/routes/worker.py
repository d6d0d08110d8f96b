"""Worker status, control and event stream API routes."""

from __future__ import annotations

import json

from flask import Blueprint, Response, current_app, jsonify, request, stream_with_context

from locsync.logger import get_logger

worker_bp = Blueprint("worker", __name__)
logger = get_logger(__name__)

# Seconds between keep-alive comments on an idle event stream
HEARTBEAT_SECONDS = 15


def _get_worker():
    return current_app.extensions["locsync_worker"]


@worker_bp.get("/status")
def worker_status():
    """Current phase, counters, per-language rows and the last cycle report."""
    return jsonify(_get_worker().status())


@worker_bp.post("/trigger")
def trigger_cycle():
    """Request a cycle now (deferred when one is running)."""
    worker = _get_worker()
    if not worker.trigger():
        logger.warning("Trigger requested but the worker is not running")
        return jsonify({"error": "Worker is not running"}), 503

    deferred = worker.cycle_running
    logger.info(f"Cycle triggered via API (deferred={deferred})")
    return jsonify({"triggered": True, "deferred": deferred}), 202


@worker_bp.post("/cancel")
def cancel_cycle():
    """Cancel the running cycle."""
    if not _get_worker().cancel():
        return jsonify({"error": "No cycle is running"}), 409
    logger.info("Cycle cancellation requested via API")
    return jsonify({"cancelled": True}), 202


@worker_bp.get("/events")
def event_stream():
    """
    Server-sent events from the progress publisher.

    The first frame carries the current counters; afterwards every published
    event is forwarded. `max_events` ends the stream after that many events.
    """
    worker = _get_worker()
    max_events = request.args.get("max_events", type=int)
    subscription = worker.publisher.subscribe()

    def generate():
        sent = 0
        try:
            counters = json.dumps(worker.publisher.current_counters(), ensure_ascii=False, default=str)
            yield f"event: CurrentCounters\ndata: {counters}\n\n"
            while max_events is None or sent < max_events:
                event = subscription.get(timeout=HEARTBEAT_SECONDS)
                if event is None:
                    yield ": keep-alive\n\n"
                    continue
                yield event.to_sse()
                sent += 1
        finally:
            worker.publisher.unsubscribe(subscription)

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
