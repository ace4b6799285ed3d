"""HTTP control surface for LAN Sweep.

A small Flask application exposing the scan controller as a JSON API with
a server-sent event stream for progress:

    GET  /api/current-ip            this machine's address and block
    POST /api/scan                  start a scan (JSON body)
    GET  /api/scan-progress         text/event-stream of scan events
    POST /api/stop-scan             stop the running scan
    GET  /api/status                scan slot state
    GET  /api/hostname-cache        cached hostnames
    POST /api/hostname-cache/clear  forget cached hostnames
    GET  /api/command-cache         shared system command output stats
    POST /api/command-cache/clear   forget shared command output

Usage:
    from app.dependencies import create_dependencies
    from web.server import create_app

    app = create_app(create_dependencies())
    app.run(host="127.0.0.1", port=8080, threaded=True)
"""
from typing import Iterator, Optional

from flask import Flask, Response, current_app, jsonify, request

from app.dependencies import AppDependencies
from app.events import Subscription
from config import EVENTS, ConfigurationError, ScanConflictError, get_logger
from config.subprocess_cache import get_subprocess_cache
from discovery.interfaces import get_current_address
from discovery.models import ScanRequest

logger = get_logger(__name__)

DEPS_KEY = "LANSWEEP_DEPS"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
    "Access-Control-Allow-Origin": "*",
}


def _deps() -> AppDependencies:
    return current_app.config[DEPS_KEY]


def _error(message: str, status: int):
    return jsonify({"error": message}), status


def stream_events(subscription: Subscription, deps: AppDependencies,
                  keepalive: float = EVENTS.KEEPALIVE_SECONDS) -> Iterator[str]:
    """Render a subscription as text/event-stream frames.

    Ends after the terminal event. The subscription is released when the
    stream ends or the client goes away.
    """
    try:
        # Flushes the headers so clients see the stream open immediately
        yield ": connected\n\n"
        for event in subscription.events(timeout=keepalive):
            if event is None:
                yield ": keep-alive\n\n"
                continue
            yield event.to_sse()
    finally:
        deps.broadcaster.unsubscribe(subscription)
        logger.debug(f"Event stream {subscription.subscription_id} closed")


def create_app(deps: AppDependencies, keepalive: Optional[float] = None) -> Flask:
    """Create the Flask application.

    Args:
        deps: Wired application components.
        keepalive: Seconds between keep-alive comments on idle streams.

    Returns:
        Configured Flask app.
    """
    app = Flask(__name__)
    app.config[DEPS_KEY] = deps
    app.config["SSE_KEEPALIVE"] = keepalive or EVENTS.KEEPALIVE_SECONDS

    @app.route("/api/current-ip", methods=["GET"])
    def current_ip():
        return jsonify(get_current_address().to_dict())

    @app.route("/api/scan", methods=["POST"])
    def start_scan():
        body = request.get_json(silent=True)
        if body is None:
            return _error("Invalid request body", 400)
        try:
            scan_request = ScanRequest.from_dict(body)
        except ConfigurationError as e:
            logger.info(f"Rejected scan request: {e}")
            return _error(e.message, 400)

        try:
            _deps().controller.start_scan(scan_request)
        except ScanConflictError as e:
            return _error(e.message, 409)
        return jsonify({"status": "started", "request": scan_request.to_dict()})

    @app.route("/api/scan-progress", methods=["GET"])
    def scan_progress():
        deps = _deps()
        # Subscribe before the response starts so no event is missed
        subscription = deps.broadcaster.subscribe()
        stream = stream_events(subscription, deps, current_app.config["SSE_KEEPALIVE"])
        return Response(stream, mimetype="text/event-stream", headers=SSE_HEADERS)

    @app.route("/api/stop-scan", methods=["POST"])
    def stop_scan():
        stopped = _deps().controller.stop_scan()
        return jsonify({"status": "stopped" if stopped else "idle"})

    @app.route("/api/status", methods=["GET"])
    def status():
        deps = _deps()
        data = deps.controller.status()
        data["observers"] = deps.broadcaster.subscriber_count()
        data["command_cache"] = get_subprocess_cache().get_stats()
        return jsonify(data)

    @app.route("/api/hostname-cache", methods=["GET"])
    def hostname_cache():
        return jsonify(_deps().resolver.stats().to_dict())

    @app.route("/api/hostname-cache/clear", methods=["POST"])
    def clear_hostname_cache():
        _deps().resolver.clear()
        return jsonify({"status": "cleared"})

    @app.route("/api/command-cache", methods=["GET"])
    def command_cache():
        return jsonify(get_subprocess_cache().get_stats())

    @app.route("/api/command-cache/clear", methods=["POST"])
    def clear_command_cache():
        # The next ARP sweep reads the neighbor table afresh
        get_subprocess_cache().invalidate()
        return jsonify({"status": "cleared"})

    logger.info("Web application created")
    return app


def serve(deps: AppDependencies, host: str, port: int) -> None:
    """Run the development server until interrupted."""
    app = create_app(deps)
    logger.info(f"Serving on http://{host}:{port}")
    app.run(host=host, port=port, threaded=True, use_reloader=False)
