from flask import Blueprint, request, jsonify, current_app

from climbcomp.extensions import db
from climbcomp.models import Competition, Climber, SpeedQualificationScore, SpeedFinalsMatch
from climbcomp.helpers.speed import (
    LaneStatus,
    RunReduction,
    compute_qualification,
    rank_all,
    reduce_runs,
    resolve_classic_match,
    resolve_match,
)
from climbcomp.helpers.bracket import (
    BracketError,
    Stage,
    STAGE_ORDER,
    advance_stage,
    check_stage_open,
    generate_bracket,
    podium,
    rank_map,
    record_result,
    set_winner,
    stage_is_scored,
)

speed_bp = Blueprint("speed", __name__)

MAX_TIME = 999.99  # seconds


def _leaderboard_cache():
    return current_app.extensions["leaderboard_cache"]


def _cache_key(competition_id: int) -> str:
    return f"speed-qualification:{competition_id}"


# --- payload parsing ---

def _parse_time(data: dict, key: str):
    """None stays None; anything else must be a number in 0..999.99."""
    raw = data.get(key)
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValueError(f"{key} must be a number")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be a number")
    if value != value or value < 0 or value > MAX_TIME:
        raise ValueError(f"{key} must be between 0 and {MAX_TIME}")
    return value


def _parse_status(data: dict, key: str, default=None) -> LaneStatus:
    raw = data.get(key, default)
    try:
        return LaneStatus(raw)
    except ValueError:
        raise ValueError(f"{key} must be VALID, FALL, FALSE_START, or DNS")


def _parse_rank(data: dict, key: str):
    raw = data.get(key)
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be an integer")


def _is_unlock(data: dict) -> bool:
    """A bare {"is_finalized": false} reopens a finalized record."""
    return set(data) == {"is_finalized"} and data["is_finalized"] is False


def _speed_comp_or_error(competition_id):
    comp = db.get_or_404(Competition, competition_id)
    if comp.discipline != "speed":
        return comp, (jsonify({"error": "Not a speed competition"}), 400)
    return comp, None


def _qualification_rows(comp_id: int) -> list[SpeedQualificationScore]:
    return (
        SpeedQualificationScore.query
        .filter_by(competition_id=comp_id)
        .order_by(SpeedQualificationScore.id.asc())
        .all()
    )


def _rerank(comp_id: int) -> None:
    """Recompute ranks for the whole field after any lane edit."""
    rows = _qualification_rows(comp_id)
    by_climber = {r.climber_id: r for r in rows}
    for rec in rank_all([r.to_record() for r in rows]):
        by_climber[rec.climber_id].rank = rec.rank


def _ranks(comp_id: int) -> dict:
    return rank_map(rank_all([r.to_record() for r in _qualification_rows(comp_id)]))


def _ordered_matches(comp_id: int) -> list[SpeedFinalsMatch]:
    rows = SpeedFinalsMatch.query.filter_by(competition_id=comp_id).all()
    return sorted(rows, key=lambda m: (STAGE_ORDER[Stage(m.stage)], m.match_order))


# --- stateless calculators ---

@speed_bp.route("/api/speed/qualification", methods=["POST"])
def api_compute_qualification():
    """
    Payload:
      {"laneATime": 10.5, "laneBTime": 11.2, "laneAStatus": "VALID", "laneBStatus": "VALID"}
    """
    data = request.get_json(force=True, silent=True) or {}
    try:
        lane_a_time = _parse_time(data, "laneATime")
        lane_b_time = _parse_time(data, "laneBTime")
        lane_a_status = _parse_status(data, "laneAStatus", "VALID")
        lane_b_status = _parse_status(data, "laneBStatus", "VALID")
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    result = compute_qualification(lane_a_time, lane_b_time, lane_a_status, lane_b_status)
    return jsonify({"totalTime": result.total_time, "status": result.status.value})


@speed_bp.route("/api/speed/finals/winner", methods=["POST"])
def api_finals_winner():
    """
    Single run:
      {"timeA", "timeB", "statusA", "statusB", "climberAId", "climberBId", "rankA", "rankB"}

    Classic (two runs each):
      {"climberA": {"id", "rank", "run1Time", "run2Time", "run1Status", "run2Status"},
       "climberB": {...},
       "reduction": "best" | "total"}
    """
    data = request.get_json(force=True, silent=True) or {}

    try:
        if "climberA" in data or "climberB" in data:
            sides = []
            for key in ("climberA", "climberB"):
                side = data.get(key) or {}
                if not isinstance(side, dict):
                    raise ValueError(f"{key} must be an object")
                sides.append(
                    {
                        "id": side.get("id"),
                        "rank": _parse_rank(side, "rank"),
                        "run1_time": _parse_time(side, "run1Time"),
                        "run2_time": _parse_time(side, "run2Time"),
                        "run1_status": _parse_status(side, "run1Status", "VALID"),
                        "run2_status": _parse_status(side, "run2Status", "VALID"),
                    }
                )
            try:
                mode = RunReduction(data.get("reduction", RunReduction.BEST.value))
            except ValueError:
                raise ValueError("reduction must be best or total")
            winner = resolve_classic_match(sides[0], sides[1], mode)
        else:
            winner = resolve_match(
                _parse_time(data, "timeA"),
                _parse_time(data, "timeB"),
                _parse_status(data, "statusA", "VALID"),
                _parse_status(data, "statusB", "VALID"),
                data.get("climberAId"),
                data.get("climberBId"),
                _parse_rank(data, "rankA"),
                _parse_rank(data, "rankB"),
            )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"winnerId": winner})


# --- qualification ---

@speed_bp.route(
    "/api/speed-competitions/<int:competition_id>/qualification/<int:climber_id>",
    methods=["PUT"],
)
def api_save_qualification(competition_id, climber_id):
    """
    Save both lanes for one climber and re-rank the field.

    Payload:
      {"lane_a_time": 6.12, "lane_b_time": null,
       "lane_a_status": "VALID", "lane_b_status": "FALL",
       "is_finalized": false}
    """
    comp, err = _speed_comp_or_error(competition_id)
    if err:
        return err

    climber = db.session.get(Climber, climber_id)
    if not climber or climber.competition_id != comp.id:
        return jsonify({"error": "Climber not found in this competition"}), 404

    if comp.status == "finals":
        return jsonify(
            {"error": "Qualification is closed while a bracket exists. Delete the bracket to edit lanes."}
        ), 403

    data = request.get_json(force=True, silent=True) or {}

    row = SpeedQualificationScore.query.filter_by(
        competition_id=comp.id, climber_id=climber.id
    ).first()

    if row and row.is_finalized:
        if _is_unlock(data):
            row.is_finalized = False
            db.session.commit()
            _leaderboard_cache().invalidate(_cache_key(comp.id))
            return jsonify(row.to_dict())
        return jsonify({"error": "Score is finalized. Unlock it before editing."}), 403

    try:
        lane_a_time = _parse_time(data, "lane_a_time")
        lane_b_time = _parse_time(data, "lane_b_time")
        lane_a_status = _parse_status(data, "lane_a_status", "VALID")
        lane_b_status = _parse_status(data, "lane_b_status", "VALID")
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    if not row:
        row = SpeedQualificationScore(competition_id=comp.id, climber_id=climber.id)
        db.session.add(row)

    result = compute_qualification(lane_a_time, lane_b_time, lane_a_status, lane_b_status)

    row.lane_a_time = lane_a_time
    row.lane_b_time = lane_b_time
    row.lane_a_status = lane_a_status.value
    row.lane_b_status = lane_b_status.value
    row.total_time = result.total_time
    row.status = result.status.value
    row.is_finalized = bool(data.get("is_finalized", False))

    db.session.flush()
    _rerank(comp.id)
    db.session.commit()
    _leaderboard_cache().invalidate(_cache_key(comp.id))

    current_app.logger.info(
        "Speed qualification comp_id=%s climber_id=%s total=%s status=%s rank=%s",
        comp.id, climber.id, row.total_time, row.status, row.rank,
    )

    return jsonify(row.to_dict())


@speed_bp.route("/api/speed-competitions/<int:competition_id>/qualification")
def api_qualification_leaderboard(competition_id):
    """Ranked climbers first (rank 1 = fastest), unranked after."""
    comp, err = _speed_comp_or_error(competition_id)
    if err:
        return err

    cache = _leaderboard_cache()
    key = _cache_key(comp.id)
    rows = cache.get(key)
    if rows is None:
        scores = {s.climber_id: s for s in _qualification_rows(comp.id)}
        climbers = {c.id: c for c in Climber.query.filter_by(competition_id=comp.id).all()}

        rows = []
        for rec in rank_all([s.to_record() for s in scores.values()]):
            out = scores[rec.climber_id].to_dict()
            out.update(climbers[rec.climber_id].to_dict())
            out["climber_id"] = rec.climber_id
            out["rank"] = rec.rank
            rows.append(out)
        cache.set(key, rows)

    return jsonify({"competition_id": comp.id, "rows": rows})


# --- finals ---

@speed_bp.route("/api/speed-competitions/<int:competition_id>/generate-bracket", methods=["POST"])
def api_generate_bracket(competition_id):
    """
    Seed the finals from the qualification ranking.

    Payload: {"topCount": 8}   (2..16, defaults to DEFAULT_TOP_COUNT)
    Rejected if any match already exists for this competition.
    """
    comp, err = _speed_comp_or_error(competition_id)
    if err:
        return err

    data = request.get_json(force=True, silent=True) or {}
    top_count = data.get("topCount", current_app.config["DEFAULT_TOP_COUNT"])
    if isinstance(top_count, bool) or not isinstance(top_count, int):
        return jsonify({"error": "topCount must be an integer between 2 and 16"}), 400

    existing = SpeedFinalsMatch.query.filter_by(competition_id=comp.id).count()
    if existing > 0:
        return jsonify({"error": "Bracket already exists. Delete existing matches first."}), 400

    ranked = rank_all([r.to_record() for r in _qualification_rows(comp.id)])

    try:
        matches = generate_bracket(ranked, top_count)
    except BracketError as e:
        return jsonify({"error": f"Failed to generate bracket: {e}"}), 400

    rows = [SpeedFinalsMatch.from_match(comp.id, m) for m in matches]
    db.session.add_all(rows)
    comp.status = "finals"
    db.session.commit()

    stage = matches[0].stage.value
    current_app.logger.info(
        "Bracket generated comp_id=%s top_count=%s stage=%s matches=%s",
        comp.id, top_count, stage, len(rows),
    )

    return jsonify(
        {
            "success": True,
            "message": f"Generated {len(rows)} {stage} matches",
            "matches": [r.to_dict() for r in rows],
        }
    )


@speed_bp.route("/api/speed-competitions/<int:competition_id>/matches")
def api_list_matches(competition_id):
    comp, err = _speed_comp_or_error(competition_id)
    if err:
        return err

    rows = _ordered_matches(comp.id)
    matches = [r.to_match() for r in rows]

    stages = []
    for stage in sorted({m.stage for m in matches}, key=lambda s: s.order):
        stages.append({"stage": stage.value, "scored": stage_is_scored(matches, stage)})

    return jsonify(
        {
            "competition_id": comp.id,
            "matches": [r.to_dict() for r in rows],
            "stages": stages,
            "podium": {str(k): v for k, v in podium(matches).items()},
        }
    )


@speed_bp.route("/api/speed-competitions/<int:competition_id>/matches", methods=["DELETE"])
def api_delete_matches(competition_id):
    """Drop the whole bracket so it can be regenerated."""
    comp, err = _speed_comp_or_error(competition_id)
    if err:
        return err

    deleted = SpeedFinalsMatch.query.filter_by(competition_id=comp.id).delete()
    comp.status = "qualification"
    db.session.commit()

    current_app.logger.info("Bracket deleted comp_id=%s matches=%s", comp.id, deleted)
    return jsonify({"success": True, "deleted": deleted})


@speed_bp.route(
    "/api/speed-competitions/<int:competition_id>/matches/<int:match_id>",
    methods=["PUT"],
)
def api_save_match(competition_id, match_id):
    """
    Enter results for a finals match and recompute the winner.

    Single format:
      {"time_a", "time_b", "status_a", "status_b"}
    Classic format (competition.finals_format == "classic"):
      {"climber_a_run1_time", "climber_a_run2_time", "climber_a_run1_status", ...,
       "climber_b_run1_time", ...}
      Runs are reduced per competition.finals_reduction ("best" or "total").

    Optional: "winner_id" (manual decision when the result is undecidable),
              "is_finalized".
    BYE matches only take climber A data.
    """
    comp, err = _speed_comp_or_error(competition_id)
    if err:
        return err

    row = db.session.get(SpeedFinalsMatch, match_id)
    if not row or row.competition_id != comp.id:
        return jsonify({"error": "Match not found in this competition"}), 404

    data = request.get_json(force=True, silent=True) or {}

    if row.is_finalized:
        if _is_unlock(data):
            row.is_finalized = False
            db.session.commit()
            return jsonify(row.to_dict())
        return jsonify({"error": "Match is finalized. Unlock it before editing."}), 403

    try:
        check_stage_open([r.to_match() for r in _ordered_matches(comp.id)], Stage(row.stage))
    except BracketError as e:
        return jsonify({"error": str(e)}), 400

    match = row.to_match()
    is_bye = match.is_bye

    try:
        if comp.finals_format == "classic":
            reduction = RunReduction(comp.finals_reduction or RunReduction.BEST.value)
            runs = {}
            for side in ("a", "b"):
                for n in (1, 2):
                    runs[f"climber_{side}_run{n}_time"] = _parse_time(data, f"climber_{side}_run{n}_time")
                    runs[f"climber_{side}_run{n}_status"] = _parse_status(
                        data, f"climber_{side}_run{n}_status", "VALID"
                    )

            if is_bye:
                if runs["climber_b_run1_time"] is not None or runs["climber_b_run2_time"] is not None:
                    raise BracketError("This is a BYE match. Only climber A can save data.")
                runs["climber_b_run1_status"] = LaneStatus.DNS
                runs["climber_b_run2_status"] = LaneStatus.DNS

            summary_a = reduce_runs(
                runs["climber_a_run1_time"], runs["climber_a_run2_time"],
                runs["climber_a_run1_status"], runs["climber_a_run2_status"], reduction,
            )
            summary_b = reduce_runs(
                runs["climber_b_run1_time"], runs["climber_b_run2_time"],
                runs["climber_b_run1_status"], runs["climber_b_run2_status"], reduction,
            )

            for key, value in runs.items():
                setattr(row, key, value.value if isinstance(value, LaneStatus) else value)

            time_a, status_a = summary_a.time, LaneStatus.VALID if summary_a.is_valid else LaneStatus.DNS
            time_b, status_b = summary_b.time, LaneStatus.VALID if summary_b.is_valid else LaneStatus.DNS
        else:
            time_a = _parse_time(data, "time_a")
            time_b = _parse_time(data, "time_b")
            status_a = _parse_status(data, "status_a", "VALID")
            status_b = _parse_status(data, "status_b", "DNS" if is_bye else "VALID")
            if is_bye and (time_b is not None or status_b is not LaneStatus.DNS):
                raise BracketError("This is a BYE match. Only climber A can save data.")

        if is_bye:
            status_b = LaneStatus.DNS

        record_result(match, time_a, time_b, status_a, status_b, _ranks(comp.id))

        manual = data.get("winner_id")
        if manual is not None:
            set_winner(match, int(manual))
    except (ValueError, BracketError) as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400

    row.apply_match(match)
    if "is_finalized" in data:
        row.is_finalized = bool(data.get("is_finalized"))
    db.session.commit()

    current_app.logger.info(
        "Match saved comp_id=%s match_id=%s stage=%s winner_id=%s",
        comp.id, row.id, row.stage, row.winner_id,
    )

    return jsonify(row.to_dict())


@speed_bp.route("/api/speed-competitions/<int:competition_id>/generate-next-round", methods=["POST"])
def api_generate_next_round(competition_id):
    """
    Build the next stage once every match of the current one has a winner.

    Payload (optional): {"withdrawn": [climber_id, ...]}
    """
    comp, err = _speed_comp_or_error(competition_id)
    if err:
        return err

    data = request.get_json(force=True, silent=True) or {}
    withdrawn = data.get("withdrawn") or []
    if not isinstance(withdrawn, list):
        return jsonify({"error": "withdrawn must be a list of climber ids"}), 400

    matches = [r.to_match() for r in _ordered_matches(comp.id)]

    try:
        new_matches = advance_stage(matches, _ranks(comp.id), withdrawn=withdrawn)
    except BracketError as e:
        return jsonify({"error": f"No new matches to generate. {e}"}), 400

    rows = [SpeedFinalsMatch.from_match(comp.id, m) for m in new_matches]
    db.session.add_all(rows)
    db.session.commit()

    current_app.logger.info(
        "Next round generated comp_id=%s stages=%s",
        comp.id, ",".join(sorted({r.stage for r in rows})),
    )

    return jsonify(
        {
            "success": True,
            "message": f"Generated {len(rows)} new match(es)",
            "matches": [r.to_dict() for r in rows],
        }
    )
