from flask import Blueprint, request, jsonify, current_app

from climbcomp.extensions import db
from climbcomp.models import Competition, Climber, BoulderScore
from climbcomp.helpers.boulder import (
    BoulderAction,
    BoulderActionError,
    BoulderState,
    ScoreLockedError,
    apply_action,
    build_boulder_leaderboard,
    check_attempt_consistency,
    score,
    state_points,
)

boulder_bp = Blueprint("boulder", __name__)


def _leaderboard_cache():
    return current_app.extensions["leaderboard_cache"]


def _cache_key(competition_id: int) -> str:
    return f"boulder:{competition_id}"


def _boulder_context(competition_id, climber_id, boulder_number):
    """
    Resolve comp + climber for a boulder route.
    Returns (comp, climber, error_response).
    """
    comp = db.get_or_404(Competition, competition_id)
    if comp.discipline != "boulder":
        return None, None, (jsonify({"error": "Not a boulder competition"}), 400)

    climber = db.session.get(Climber, climber_id)
    if not climber or climber.competition_id != comp.id:
        return None, None, (jsonify({"error": "Climber not found in this competition"}), 404)

    if boulder_number < 1 or boulder_number > comp.total_boulders:
        return None, None, (
            jsonify({"error": f"Boulder number must be between 1 and {comp.total_boulders}"}),
            400,
        )

    return comp, climber, None


@boulder_bp.route("/api/boulder/score", methods=["POST"])
def api_boulder_score():
    """
    Stateless points calculation.

    Payload:
      {"isTop": true, "topAttempts": 3, "isZone": true, "zoneAttempts": 1}
    """
    data = request.get_json(force=True, silent=True) or {}

    try:
        top_attempts = int(data.get("topAttempts") or 0)
        zone_attempts = int(data.get("zoneAttempts") or 0)
    except (TypeError, ValueError):
        return jsonify({"error": "topAttempts and zoneAttempts must be integers"}), 400

    is_top = data.get("isTop", False)
    is_zone = data.get("isZone", False)
    if not isinstance(is_top, bool) or not isinstance(is_zone, bool):
        return jsonify({"error": "isTop and isZone must be true or false"}), 400

    try:
        check_attempt_consistency(is_top, top_attempts, is_zone, zone_attempts)
    except BoulderActionError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"score": score(is_top, top_attempts, is_zone, zone_attempts)})


@boulder_bp.route("/api/competitions/<int:competition_id>/climbers/<int:climber_id>/boulders/<int:boulder_number>")
def api_get_boulder_score(competition_id, climber_id, boulder_number):
    comp, climber, err = _boulder_context(competition_id, climber_id, boulder_number)
    if err:
        return err

    row = BoulderScore.query.filter_by(
        competition_id=comp.id,
        climber_id=climber.id,
        boulder_number=boulder_number,
    ).first()

    if not row:
        # nothing recorded yet -> empty card
        state = BoulderState()
        out = {
            "climber_id": climber.id,
            "boulder_number": boulder_number,
            "attempts": 0,
            "reached_zone": False,
            "reached_top": False,
            "zone_attempt": None,
            "top_attempt": None,
            "is_finalized": False,
            "is_disqualified": False,
        }
    else:
        state = row.to_state()
        out = row.to_dict()

    out["points"] = state_points(state)
    return jsonify(out)


@boulder_bp.route(
    "/api/competitions/<int:competition_id>/climbers/<int:climber_id>/boulders/<int:boulder_number>",
    methods=["POST"],
)
def api_boulder_action(competition_id, climber_id, boulder_number):
    """
    Apply one judge action to a climber's boulder card.

    Payload:
      {"action": "attempt" | "zone" | "top" | "finalize" | "disqualify"}

    Finalized cards only accept "disqualify" (toggle).
    """
    comp, climber, err = _boulder_context(competition_id, climber_id, boulder_number)
    if err:
        return err

    data = request.get_json(force=True, silent=True) or {}
    try:
        action = BoulderAction(data.get("action"))
    except ValueError:
        return jsonify({"error": "Action must be attempt, zone, top, finalize, or disqualify"}), 400

    row = BoulderScore.query.filter_by(
        competition_id=comp.id,
        climber_id=climber.id,
        boulder_number=boulder_number,
    ).first()

    state = row.to_state() if row else BoulderState()

    try:
        new_state = apply_action(state, action)
    except ScoreLockedError as e:
        return jsonify({"error": str(e)}), 403
    except BoulderActionError as e:
        return jsonify({"error": str(e)}), 400

    if not row:
        row = BoulderScore(
            competition_id=comp.id,
            climber_id=climber.id,
            boulder_number=boulder_number,
        )
        db.session.add(row)

    row.apply_state(new_state)
    db.session.commit()
    _leaderboard_cache().invalidate(_cache_key(comp.id))

    points = state_points(new_state)
    current_app.logger.info(
        "Boulder action comp_id=%s climber_id=%s boulder=%s action=%s points=%s",
        comp.id, climber.id, boulder_number, action.value, points,
    )

    out = row.to_dict()
    out["points"] = points
    return jsonify(out)


@boulder_bp.route("/api/competitions/<int:competition_id>/leaderboard")
def api_boulder_leaderboard(competition_id):
    """
    Boulder leaderboard, highest total first.
    Served from the leaderboard cache until the next judge action.
    """
    comp = db.get_or_404(Competition, competition_id)
    if comp.discipline != "boulder":
        return jsonify({"error": "Not a boulder competition"}), 400

    cache = _leaderboard_cache()
    key = _cache_key(comp.id)
    rows = cache.get(key)
    if rows is None:
        climbers = (
            Climber.query
            .filter_by(competition_id=comp.id)
            .order_by(Climber.bib_number.asc())
            .all()
        )
        scores = BoulderScore.query.filter_by(competition_id=comp.id).all()

        rows = build_boulder_leaderboard(
            [c.to_dict() for c in climbers],
            [s.to_dict() for s in scores],
            comp.total_boulders,
        )
        cache.set(key, rows)

    return jsonify({"competition_id": comp.id, "total_boulders": comp.total_boulders, "rows": rows})
