"""
Speed finals bracket: seeding, BYEs and stage-to-stage advancement.

Stages run Round of 16 -> Quarter Final -> Semi Final -> Small Final / Big Final.
The entry stage depends on how many climbers go through to the finals
(2..16); the bracket is padded to the next power of two and absent seeds
hand their opponent a BYE.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from climbcomp.helpers.speed import LaneStatus, resolve_match

MIN_TOP_COUNT = 2
MAX_TOP_COUNT = 16

# unranked climbers sort after everybody when choosing lanes
UNRANKED = 999


class BracketError(ValueError):
    """Broken bracket structure: unknown climber, stage mismatch, unfinished stage."""


class Stage(str, Enum):
    ROUND_OF_16 = "Round of 16"
    QUARTER_FINAL = "Quarter Final"
    SEMI_FINAL = "Semi Final"
    SMALL_FINAL = "Small Final"
    BIG_FINAL = "Big Final"

    @property
    def order(self) -> int:
        return STAGE_ORDER[self]

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.SMALL_FINAL, Stage.BIG_FINAL)

    @property
    def next_stage(self) -> Optional["Stage"]:
        return NEXT_STAGE.get(self)


STAGE_ORDER = {
    Stage.ROUND_OF_16: 1,
    Stage.QUARTER_FINAL: 2,
    Stage.SEMI_FINAL: 3,
    Stage.SMALL_FINAL: 4,
    Stage.BIG_FINAL: 5,
}

# Semi Final feeds both finals; advance_stage() handles that split
NEXT_STAGE = {
    Stage.ROUND_OF_16: Stage.QUARTER_FINAL,
    Stage.QUARTER_FINAL: Stage.SEMI_FINAL,
    Stage.SEMI_FINAL: Stage.BIG_FINAL,
}

STAGE_BY_SIZE = {
    16: Stage.ROUND_OF_16,
    8: Stage.QUARTER_FINAL,
    4: Stage.SEMI_FINAL,
    2: Stage.BIG_FINAL,
}


@dataclass
class Match:
    stage: Stage
    order: int
    climber_a: int
    climber_b: Optional[int] = None
    time_a: Optional[float] = None
    time_b: Optional[float] = None
    status_a: LaneStatus = LaneStatus.VALID
    status_b: LaneStatus = LaneStatus.VALID
    winner_id: Optional[int] = None

    @property
    def is_bye(self) -> bool:
        return self.climber_b is None

    @property
    def loser_id(self) -> Optional[int]:
        if self.is_bye or self.winner_id is None:
            return None
        return self.climber_b if self.winner_id == self.climber_a else self.climber_a

    def to_dict(self) -> dict:
        return {
            "stage": Stage(self.stage).value,
            "order": self.order,
            "climber_a": self.climber_a,
            "climber_b": self.climber_b,
            "time_a": self.time_a,
            "time_b": self.time_b,
            "status_a": LaneStatus(self.status_a).value,
            "status_b": LaneStatus(self.status_b).value,
            "winner_id": self.winner_id,
            "is_bye": self.is_bye,
        }


# --- Seeding ---

def bracket_size(field_size: int) -> int:
    size = 2
    while size < field_size:
        size *= 2
    return size


def entry_stage(top_count: int) -> Stage:
    if not isinstance(top_count, int) or isinstance(top_count, bool):
        raise BracketError("topCount must be an integer")
    if top_count < MIN_TOP_COUNT or top_count > MAX_TOP_COUNT:
        raise BracketError(f"topCount must be between {MIN_TOP_COUNT} and {MAX_TOP_COUNT}")
    return STAGE_BY_SIZE[bracket_size(top_count)]


def seed_order(size: int) -> list[int]:
    """
    Slot order for a single-elimination bracket of `size` (power of two).

    Consecutive pairs are first-round matches: 8 -> [1, 8, 4, 5, 2, 7, 3, 6],
    so seeds 1 and 2 sit in opposite halves and can only meet in the final.
    """
    if size < 2 or size & (size - 1):
        raise BracketError(f"Bracket size must be a power of two, got {size}")

    order = [1, 2]
    while len(order) < size:
        total = len(order) * 2 + 1
        order = [s for seed in order for s in (seed, total - seed)]
    return order


def generate_bracket(ranked, top_count: int) -> list[Match]:
    """
    Seed the entry stage from a ranked qualification field.

    ranked: QualificationRecords (or anything with climber_id and rank);
            unranked entries are ignored.
    """
    entry_stage(top_count)

    qualified = sorted((r for r in ranked if r.rank is not None), key=lambda r: r.rank)
    qualified = qualified[:top_count]
    if len(qualified) < MIN_TOP_COUNT:
        raise BracketError("Need at least 2 qualified climbers to generate bracket")

    size = bracket_size(len(qualified))
    stage = STAGE_BY_SIZE[size]
    slots = seed_order(size)

    matches = []
    for i in range(0, size, 2):
        seed_a, seed_b = slots[i], slots[i + 1]
        climber_a = qualified[seed_a - 1].climber_id
        climber_b = qualified[seed_b - 1].climber_id if seed_b <= len(qualified) else None
        matches.append(_new_match(stage, i // 2 + 1, climber_a, climber_b))

    return matches


def _new_match(stage: Stage, order: int, climber_a, climber_b) -> Match:
    if climber_b is None:
        # BYE: A goes through without racing, opponent recorded as DNS
        return Match(
            stage=stage,
            order=order,
            climber_a=climber_a,
            climber_b=None,
            status_b=LaneStatus.DNS,
            winner_id=climber_a,
        )
    return Match(stage=stage, order=order, climber_a=climber_a, climber_b=climber_b)


def _seeded_match(stage: Stage, order: int, climber_ids, ranks: dict) -> Match:
    """Better qualification rank takes lane A."""
    ids = sorted(
        (c for c in climber_ids if c is not None),
        key=lambda c: ranks.get(c) if ranks.get(c) is not None else UNRANKED,
    )
    if not ids:
        raise BracketError(f"No climber left for {stage.value} match {order}")
    return _new_match(stage, order, ids[0], ids[1] if len(ids) > 1 else None)


# --- Results ---

def resolve(match: Match, ranks: Optional[dict] = None):
    ranks = ranks or {}
    if match.is_bye:
        return match.climber_a
    return resolve_match(
        match.time_a,
        match.time_b,
        match.status_a,
        match.status_b,
        match.climber_a,
        match.climber_b,
        ranks.get(match.climber_a),
        ranks.get(match.climber_b),
    )


def record_result(match: Match, time_a, time_b, status_a, status_b, ranks: Optional[dict] = None) -> Match:
    """
    Store run data on a match and recompute its winner (None = judge decides).
    """
    if match.is_bye and (time_b is not None or LaneStatus(status_b) is not LaneStatus.DNS):
        raise BracketError("This is a BYE match. Only climber A can have results.")

    match.time_a = time_a
    match.time_b = time_b
    match.status_a = LaneStatus(status_a)
    match.status_b = LaneStatus(status_b)
    match.winner_id = resolve(match, ranks)
    return match


def set_winner(match: Match, winner_id) -> Match:
    """Manual judge override for undecidable matches."""
    if winner_id not in (match.climber_a, match.climber_b) or winner_id is None:
        raise BracketError(f"Climber {winner_id} is not in {match.stage.value} match {match.order}")
    match.winner_id = winner_id
    return match


# --- Progression ---

def stage_matches(matches, stage: Stage) -> list[Match]:
    return sorted((m for m in matches if m.stage == stage), key=lambda m: m.order)


def current_stage(matches) -> Optional[Stage]:
    stages = {Stage(m.stage) for m in matches}
    if not stages:
        return None
    return max(stages, key=lambda s: s.order)


def stage_is_scored(matches, stage: Stage) -> bool:
    """True once any real (non-BYE) match in the stage has a time or a winner."""
    return any(
        m.winner_id is not None or m.time_a is not None or m.time_b is not None
        for m in stage_matches(matches, stage)
        if not m.is_bye
    )


def check_stage_open(matches, stage: Stage) -> None:
    """
    Raise BracketError if a later stage was already built from `stage`.

    Small Final and Big Final are generated together and stay open.
    """
    stage = Stage(stage)
    if stage.is_terminal:
        return
    later = sorted(
        {Stage(m.stage) for m in matches if Stage(m.stage).order > stage.order},
        key=lambda s: s.order,
    )
    if later:
        raise BracketError(
            f"{stage.value} is closed: {later[0].value} has already been generated from it"
        )


def advance_stage(matches, ranks: Optional[dict] = None, withdrawn=()) -> list[Match]:
    """
    Build the next stage from a fully decided current stage.

    Winners of matches (1, 2), (3, 4), ... meet next. After the Semi Final
    the losers go to the Small Final and the winners to the Big Final.
    A climber listed in `withdrawn` doesn't advance; their opponent gets a BYE.
    """
    ranks = ranks or {}
    withdrawn = set(withdrawn)

    stage = current_stage(matches)
    if stage is None:
        raise BracketError("No bracket generated yet")
    if stage.is_terminal:
        raise BracketError("All rounds already generated")

    current = stage_matches(matches, stage)
    expected = [i + 1 for i in range(len(current))]
    if [m.order for m in current] != expected or len(current) & (len(current) - 1):
        raise BracketError(f"{stage.value} matches are incomplete or out of order")

    done = [m for m in current if m.winner_id is not None]
    if len(done) != len(current):
        raise BracketError(
            f"Complete {stage.value} first ({len(done)}/{len(current)} matches completed)"
        )

    def advancing(climber_id):
        return climber_id if climber_id not in withdrawn else None

    if stage is Stage.SEMI_FINAL:
        if len(current) != 2:
            raise BracketError("Semi Final needs exactly 2 matches")
        new = []
        losers = [advancing(m.loser_id) for m in current]
        if any(c is not None for c in losers):
            new.append(_seeded_match(Stage.SMALL_FINAL, 1, losers, ranks))
        winners = [advancing(m.winner_id) for m in current]
        new.append(_seeded_match(Stage.BIG_FINAL, 1, winners, ranks))
        return new

    next_stage = stage.next_stage
    new = []
    for i in range(0, len(current), 2):
        pair = [advancing(m.winner_id) for m in current[i:i + 2]]
        new.append(_seeded_match(next_stage, i // 2 + 1, pair, ranks))
    return new


def podium(matches) -> dict:
    """Final placings 1-4 once the finals are decided (missing places are None)."""
    big = stage_matches(matches, Stage.BIG_FINAL)
    small = stage_matches(matches, Stage.SMALL_FINAL)
    out = {1: None, 2: None, 3: None, 4: None}
    if big:
        out[1] = big[0].winner_id
        out[2] = big[0].loser_id
    if small:
        out[3] = small[0].winner_id
        out[4] = small[0].loser_id
    return out


def rank_map(records) -> dict:
    return {r.climber_id: r.rank for r in records if r.rank is not None}
