"""Triage Engine HTTP handler.

Thin Flask layer over TriageEngine. Request validation failures return
400, unknown sessions 404, and nothing below this layer ever reaches the
client as a stack trace.
"""
import logging

from flask import Flask, jsonify, request

from mindshiftr.shared.stores import NotFoundError
from mindshiftr.shared.utils import configure_pii_salt
from mindshiftr.services.intervention_service import FeedbackError
from .config import EngineConfig
from .engine import TriageEngine, TurnRequest

logger = logging.getLogger(__name__)

app = Flask(__name__)

config = EngineConfig.from_env()
configure_pii_salt(config.pii_salt)

engine = TriageEngine(config=config)


@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "healthy",
        "service": "triage-engine",
    }), 200


@app.route("/ready", methods=["GET"])
def ready():
    """Readiness check."""
    if engine is None:
        return jsonify({"status": "not_ready"}), 503
    return jsonify({
        "status": "ready",
        "lexicon_version": engine.lexicon.version,
        "catalog_version": engine.catalog.version,
    }), 200


@app.route("/chat", methods=["POST"])
def chat():
    """Run one conversational turn.

    Request Body:
        {
            "message": "I've been feeling anxious",
            "sessionId": "sess_123",
            "userId": "user_456",
            "context": {"preferences": {...}, "vitals": {...}, "culturalContext": "western"}
        }

    Response:
        StandardResponse or CrisisResponse JSON (see "isCrisis")
    """
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({"error": "Request body required"}), 400

    try:
        turn = TurnRequest.from_dict(data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    response = engine.handle_turn(turn)
    return jsonify(response.to_dict()), 200


@app.route("/feedback", methods=["POST"])
def feedback():
    """Record feedback on an intervention.

    Request Body:
        {
            "userId": "user_456",
            "interventionKey": "box_breathing",
            "outcome": {"success": true},
            "feedback": {"rating": 4}
        }

    or, for thumbs feedback:
        {"userId": "user_456", "interventionKey": "box_breathing", "thumbs": "up"}
    """
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({"error": "Request body required"}), 400

    user_id = data.get("userId")
    intervention_key = data.get("interventionKey")
    if not user_id or not intervention_key:
        return jsonify({"error": "Missing userId or interventionKey"}), 400

    try:
        thumbs = data.get("thumbs")
        if thumbs is not None:
            if thumbs not in ("up", "down"):
                return jsonify({"error": "thumbs must be 'up' or 'down'"}), 400
            record = engine.record_thumbs(user_id, intervention_key, thumbs == "up")
        else:
            outcome = data.get("outcome") or {}
            rating = (data.get("feedback") or {}).get("rating")
            if not isinstance(outcome, dict) or "success" not in outcome:
                return jsonify({"error": "Missing outcome.success"}), 400
            record = engine.record_feedback(user_id, intervention_key, bool(outcome["success"]), rating)
    except FeedbackError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.error("FEEDBACK_ERROR", extra={"error": str(e), "error_type": type(e).__name__})
        return jsonify({"error": "Failed to record feedback"}), 500

    return jsonify({"status": "recorded", "record": record.to_dict()}), 200


@app.route("/outcome", methods=["POST"])
def outcome():
    """Record an end-of-session self report.

    Request Body:
        {"userId": "user_456", "sessionId": "sess_123", "rating": 4, "engagement": 0.8}
    """
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({"error": "Request body required"}), 400

    user_id = data.get("userId")
    session_id = data.get("sessionId")
    if not user_id or not session_id:
        return jsonify({"error": "Missing userId or sessionId"}), 400

    try:
        marker = engine.record_session_outcome(
            user_id, session_id, float(data.get("rating")), float(data.get("engagement", 0.0))
        )
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"status": "recorded", "progress": marker.to_dict()}), 200


@app.route("/session/<session_id>", methods=["GET"])
def get_session(session_id: str):
    """Session summary including the crisis level."""
    try:
        info = engine.session_info(session_id)
    except NotFoundError:
        return jsonify({"error": "Session not found"}), 404
    return jsonify({"sessionId": session_id, "sessionInfo": info.to_dict()}), 200


@app.route("/session/<session_id>", methods=["DELETE"])
def close_session(session_id: str):
    """Close a session. The user's profile is kept."""
    info = engine.close_session(session_id)
    if info is None:
        return jsonify({"error": "Session not found"}), 404
    return jsonify({"sessionId": session_id, "closed": True, "sessionInfo": info.to_dict()}), 200


@app.route("/session/<session_id>/de-escalate", methods=["POST"])
def de_escalate(session_id: str):
    """Explicitly lower a session's crisis level.

    Request Body:
        {"level": 3, "reason": "Counselor follow-up completed"}
    """
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({"error": "Request body required"}), 400

    level = data.get("level")
    if isinstance(level, bool) or not isinstance(level, int):
        return jsonify({"error": "level must be an integer"}), 400

    try:
        info = engine.de_escalate_session(session_id, level, str(data.get("reason") or ""))
    except NotFoundError:
        return jsonify({"error": "Session not found"}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"sessionId": session_id, "sessionInfo": info.to_dict()}), 200


@app.route("/analytics", methods=["GET"])
def analytics():
    """Aggregate effectiveness and crisis statistics. No user identifiers."""
    return jsonify(engine.analytics_report()), 200


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.run(host="0.0.0.0", port=config.port, debug=False)
