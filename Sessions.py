import logging
from functools import wraps

from flask import Blueprint, jsonify, request

from dates import current_time
from errors import StorageError
from storage import get_store

logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Session-Id"

sessions_bp = Blueprint("sessions", __name__)


def session_required(f):
    """Resolve the caller's session from the X-Session-Id header and pass it on."""

    @wraps(f)
    def decorated(*args, **kwargs):
        session_id = request.headers.get(SESSION_HEADER)
        if not session_id:
            logger.error("Session id missing in request")
            return jsonify({"message": "Session id required"}), 401
        store = get_store()
        try:
            session = store.get_session(session_id)
            if session is None:
                logger.error(f"Unknown session {session_id}")
                return jsonify({"message": "Unknown session"}), 403
            store.touch_session(session_id, current_time())
        except StorageError:
            return jsonify({"message": "Storage unavailable"}), 503
        return f(session, *args, **kwargs)

    return decorated


def _session_name(data):
    name = (data.get("name") or "").strip()
    if not name:
        return None, "Name is required"
    if len(name) > 100:
        return None, "Name must be at most 100 characters"
    return name, None


@sessions_bp.route("/api/sessions", methods=["POST"])
def create_session():
    data = request.get_json(silent=True) or {}
    name, error = _session_name(data)
    if error:
        return jsonify({"message": "Invalid session data", "errors": {"name": error}}), 400
    try:
        session = get_store().create_session(name, current_time())
    except StorageError:
        return jsonify({"message": "Failed to create session"}), 503
    logger.info(f"Session {session.id} created")
    return jsonify(session.to_dict()), 201


@sessions_bp.route("/api/sessions", methods=["GET"])
def list_sessions():
    try:
        sessions = get_store().list_sessions()
    except StorageError:
        return jsonify({"message": "Failed to fetch sessions"}), 503
    return jsonify([s.to_dict() for s in sessions]), 200


@sessions_bp.route("/api/sessions/<session_id>", methods=["GET"])
def get_session(session_id):
    try:
        session = get_store().get_session(session_id)
    except StorageError:
        return jsonify({"message": "Failed to fetch session"}), 503
    if session is None:
        return jsonify({"message": "Session not found"}), 404
    return jsonify(session.to_dict()), 200


@sessions_bp.route("/api/sessions/<session_id>", methods=["PATCH"])
def update_session(session_id):
    data = request.get_json(silent=True) or {}
    name, error = _session_name(data)
    if error:
        return jsonify({"message": "Invalid session data", "errors": {"name": error}}), 400
    try:
        session = get_store().update_session(session_id, name)
    except StorageError:
        return jsonify({"message": "Failed to update session"}), 503
    if session is None:
        return jsonify({"message": "Session not found"}), 404
    return jsonify(session.to_dict()), 200


@sessions_bp.route("/api/sessions/<session_id>", methods=["DELETE"])
def delete_session(session_id):
    try:
        deleted = get_store().delete_session(session_id)
    except StorageError:
        return jsonify({"message": "Failed to delete session"}), 503
    if not deleted:
        return jsonify({"message": "Session not found"}), 404
    logger.info(f"Session {session_id} deleted with its habits")
    return jsonify({"message": "Session deleted"}), 200
