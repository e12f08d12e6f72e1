"""
REST API routes for TripWatch.

Provides JSON endpoints for:
- Latest location (live or cached, always labeled)
- Completed trips
- Engine status
- Manual refresh and lifecycle events
- Device lookup and registration
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from ...core.errors import Unauthorized

logger = logging.getLogger(__name__)

bp = Blueprint("api", __name__)


def _engine():
    return current_app.config["engine"]


@bp.route("/location")
def location():
    """
    Get the latest fetch result.

    Returns:
        JSON with points, source and as_of, or no_data before the first fetch
    """
    latest = _engine().latest
    if latest is None:
        return jsonify({
            "status": "no_data",
            "message": "No location data available yet",
        })
    return jsonify(latest.to_dict())


@bp.route("/trips")
def trips():
    """Completed trips within the retention window, newest first."""
    items = sorted(_engine().trips(), key=lambda t: t.end_time, reverse=True)
    include_points = request.args.get("points", "false").lower() == "true"

    payload = []
    for trip in items:
        data = trip.to_dict()
        if not include_points:
            data.pop("points")
        payload.append(data)
    return jsonify({"trips": payload, "count": len(payload)})


@bp.route("/status")
def status():
    """Polling mode, scheduler state and stationary detection."""
    return jsonify(_engine().status())


@bp.route("/refresh", methods=["POST"])
def refresh():
    """
    Run a Fetch Cycle now.

    Returns:
        The new result, or 409 if a cycle is already in flight or nobody is signed in
    """
    result = _engine().refresh()
    if result is None:
        return jsonify({"error": "Refresh skipped: fetch in flight or not signed in"}), 409
    return jsonify(result.to_dict())


@bp.route("/lifecycle", methods=["POST"])
def lifecycle():
    """
    Deliver an application lifecycle event.

    Accepts JSON body {"state": "foreground" | "background"}.
    """
    data = request.get_json(silent=True) or {}
    state = data.get("state")
    scheduler = _engine().scheduler

    if state == "foreground":
        scheduler.entered_foreground()
    elif state == "background":
        scheduler.entered_background()
    else:
        return jsonify({"error": "state must be 'foreground' or 'background'"}), 400

    logger.info(f"Lifecycle event via API: {state}")
    return jsonify({"status": "ok", "scheduler_state": str(scheduler.state)})


@bp.route("/wake-up", methods=["POST"])
def wake_up():
    """Ask the provider to wake the vehicle's camera."""
    result = _engine().wake_up_device()
    return jsonify({"success": result.success, "message": result.message}), (200 if result.success else 502)


@bp.route("/device", methods=["GET", "POST"])
def device():
    """
    Look up (GET) or register (POST) the account's device.

    POST accepts JSON body {"imei": ..., "name": ..., "insurer"?, "auto_year"?,
    "auto_make"?, "auto_model"?}.
    """
    engine = _engine()
    try:
        if request.method == "GET":
            lookup = engine.check_device()
            return jsonify({"has_device": lookup.has_device, "error": lookup.error})

        data = request.get_json(silent=True) or {}
        if not data.get("imei") or not data.get("name"):
            return jsonify({"error": "imei and name are required"}), 400
        details = {
            key: data[key]
            for key in ("insurer", "auto_year", "auto_make", "auto_model")
            if data.get(key) is not None
        }
        result = engine.register_device(data["imei"], data["name"], **details)
    except Unauthorized as e:
        engine.session.sign_out(e.kind)
        return jsonify({"error": str(e)}), 401

    return jsonify({"success": result.success, "message": result.message}), (200 if result.success else 400)
