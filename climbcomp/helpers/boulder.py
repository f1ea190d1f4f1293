from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

# --- Scoring constants (Kejurnas FPTI boulder format) ---

TOP_BASE_POINTS = 25.0
ZONE_BASE_POINTS = 10.0
PENALTY_PER_ATTEMPT = 0.1


class BoulderActionError(ValueError):
    """A judge action that cannot be applied to the current score."""


class ScoreLockedError(BoulderActionError):
    """The score is finalized and needs to be unlocked before editing."""


class BoulderAction(str, Enum):
    ATTEMPT = "attempt"
    ZONE = "zone"
    TOP = "top"
    FINALIZE = "finalize"
    DISQUALIFY = "disqualify"


@dataclass(frozen=True)
class BoulderState:
    attempts: int = 0
    reached_zone: bool = False
    reached_top: bool = False
    zone_attempt: Optional[int] = None
    top_attempt: Optional[int] = None
    is_finalized: bool = False
    is_disqualified: bool = False


# --- Scoring function ---

def score(is_top, top_attempts, is_zone, zone_attempts) -> float:
    """
    Points for one boulder problem.

    Top:  25.0 - (top_attempts - 1) * 0.1
    Zone: 10.0 - (zone_attempts - 1) * 0.1 (only when there is no top)
    else  0.0

    Attempt counts are attempts-to-reach, 0 meaning "not reached".
    Inputs are not validated here, see check_attempt_consistency().
    """
    if is_top and top_attempts > 0:
        return max(0.0, round(TOP_BASE_POINTS - (top_attempts - 1) * PENALTY_PER_ATTEMPT, 1))

    if is_zone and zone_attempts > 0:
        return max(0.0, round(ZONE_BASE_POINTS - (zone_attempts - 1) * PENALTY_PER_ATTEMPT, 1))

    return 0.0


def check_attempt_consistency(is_top, top_attempts, is_zone, zone_attempts) -> None:
    """
    Reject combinations a judge can't actually produce.

    Raises BoulderActionError, returns None when the record is coherent.
    """
    top_attempts = top_attempts or 0
    zone_attempts = zone_attempts or 0

    if top_attempts < 0 or zone_attempts < 0:
        raise BoulderActionError("Attempt counts can't be negative")
    if not is_top and top_attempts > 0:
        raise BoulderActionError("top_attempts set without a top")
    if not is_zone and zone_attempts > 0:
        raise BoulderActionError("zone_attempts set without a zone")
    if is_top and top_attempts == 0:
        raise BoulderActionError("Top needs the attempt it was reached on")
    if is_zone and zone_attempts == 0:
        raise BoulderActionError("Zone needs the attempt it was reached on")
    if is_top and is_zone and zone_attempts > top_attempts:
        raise BoulderActionError("Zone can't come after the top")


def state_points(state: BoulderState) -> float:
    if state.is_disqualified:
        return 0.0
    return score(
        state.reached_top,
        state.top_attempt or 0,
        state.reached_zone,
        state.zone_attempt or 0,
    )


# --- Judge actions ---

def apply_action(state: BoulderState, action: BoulderAction) -> BoulderState:
    """
    Apply one judge action and return the new state.

    A finalized score only accepts DISQUALIFY (which toggles); everything
    else must go through an unlock first.
    """
    action = BoulderAction(action)

    if state.is_finalized and action is not BoulderAction.DISQUALIFY:
        raise ScoreLockedError("Score is finalized. Unlock it before editing.")

    if action is BoulderAction.ATTEMPT:
        return replace(state, attempts=state.attempts + 1)

    if action in (BoulderAction.ZONE, BoulderAction.TOP) and state.attempts < 1:
        raise BoulderActionError("Record an attempt first")

    if action is BoulderAction.ZONE:
        if state.reached_zone:
            raise BoulderActionError("Zone already reached")
        return replace(state, reached_zone=True, zone_attempt=state.attempts)

    if action is BoulderAction.TOP:
        if state.reached_top:
            raise BoulderActionError("Top already reached")
        new = replace(
            state,
            reached_top=True,
            top_attempt=state.attempts,
            is_finalized=True,
        )
        if not state.reached_zone:
            new = replace(new, reached_zone=True, zone_attempt=state.attempts)
        return new

    if action is BoulderAction.FINALIZE:
        return replace(state, is_finalized=True)

    if action is BoulderAction.DISQUALIFY:
        if state.is_disqualified:
            # lifting a disqualification also unlocks the score
            return replace(state, is_disqualified=False, is_finalized=False)
        return BoulderState(is_finalized=True, is_disqualified=True)

    raise BoulderActionError(f"Unhandled action: {action!r}")


# --- Leaderboard ---

def build_boulder_leaderboard(climbers, scores, total_boulders: int) -> list[dict]:
    """
    climbers: iterable of dicts with id, name, bib_number, team
    scores: iterable of dicts with climber_id, boulder_number and the
            BoulderState fields

    Returns rows sorted by total points (highest first), rank = position.
    Ties keep climber input order.
    """
    by_climber: dict = {}
    for s in scores:
        by_climber.setdefault(s["climber_id"], {})[s["boulder_number"]] = s

    rows = []
    for c in climbers:
        mine = by_climber.get(c["id"], {})
        boulder_rows = []
        total = 0.0

        for n in range(1, total_boulders + 1):
            s = mine.get(n)
            state = _state_from_row(s) if s else BoulderState()
            points = state_points(state)
            total += points

            boulder_rows.append(
                {
                    "boulder_number": n,
                    "is_top": state.reached_top and not state.is_disqualified,
                    "top_attempts": state.top_attempt or 0,
                    "is_zone": state.reached_zone and not state.is_disqualified,
                    "zone_attempts": state.zone_attempt or 0,
                    "is_disqualified": state.is_disqualified,
                    "points": points,
                }
            )

        rows.append(
            {
                "id": c["id"],
                "name": c.get("name"),
                "bib_number": c.get("bib_number"),
                "team": c.get("team") or "",
                "scores": boulder_rows,
                "total_score": round(total, 1),
                "rank": 0,
            }
        )

    rows.sort(key=lambda r: r["total_score"], reverse=True)
    for i, row in enumerate(rows):
        row["rank"] = i + 1

    return rows


def _state_from_row(row: dict) -> BoulderState:
    return BoulderState(
        attempts=row.get("attempts") or 0,
        reached_zone=bool(row.get("reached_zone")),
        reached_top=bool(row.get("reached_top")),
        zone_attempt=row.get("zone_attempt"),
        top_attempt=row.get("top_attempt"),
        is_finalized=bool(row.get("is_finalized")),
        is_disqualified=bool(row.get("is_disqualified")),
    )
