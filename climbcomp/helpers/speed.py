"""
Speed climbing qualification ranking and finals resolution.

Qualification:
- total = lane A + lane B, rounded to 3 decimals
- FALL / FALSE_START / DNS (or a missing time) on either lane -> INVALID, unranked
- ranking ascending by total, rank 1 = fastest

Finals:
- lower time wins; one valid side wins outright
- both invalid, or an exact tie -> better qualification rank wins
- no rank data -> no winner (judge has to decide)
"""
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class LaneStatus(str, Enum):
    VALID = "VALID"
    FALL = "FALL"
    FALSE_START = "FALSE_START"
    DNS = "DNS"


class QualificationStatus(str, Enum):
    VALID = "VALID"
    INVALID = "INVALID"


class RunReduction(str, Enum):
    BEST = "best"    # lower of the two valid runs
    TOTAL = "total"  # run1 + run2, both must be valid


@dataclass(frozen=True)
class LaneResult:
    time: Optional[float] = None
    status: LaneStatus = LaneStatus.VALID


@dataclass(frozen=True)
class QualificationResult:
    total_time: Optional[float]
    status: QualificationStatus


@dataclass(frozen=True)
class QualificationRecord:
    climber_id: int
    lane_a: LaneResult
    lane_b: LaneResult
    total_time: Optional[float] = None
    status: QualificationStatus = QualificationStatus.INVALID
    rank: Optional[int] = None


@dataclass(frozen=True)
class RunSummary:
    time: Optional[float]
    status: QualificationStatus

    @property
    def is_valid(self) -> bool:
        return self.status == QualificationStatus.VALID


def parse_time(value) -> Optional[float]:
    """DB rows and JSON may hand us Decimal, str or float. NaN counts as missing."""
    if value is None:
        return None
    try:
        t = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(t):
        return None
    return t


def _lane_ok(time, status) -> bool:
    return status == LaneStatus.VALID and parse_time(time) is not None


# --- Qualification ---

def compute_qualification(lane_a_time, lane_b_time, lane_a_status, lane_b_status) -> QualificationResult:
    if not (_lane_ok(lane_a_time, lane_a_status) and _lane_ok(lane_b_time, lane_b_status)):
        return QualificationResult(total_time=None, status=QualificationStatus.INVALID)

    total = round(parse_time(lane_a_time) + parse_time(lane_b_time), 3)
    return QualificationResult(total_time=total, status=QualificationStatus.VALID)


def qualification_record(climber_id: int, lane_a: LaneResult, lane_b: LaneResult) -> QualificationRecord:
    result = compute_qualification(lane_a.time, lane_b.time, lane_a.status, lane_b.status)
    return QualificationRecord(
        climber_id=climber_id,
        lane_a=lane_a,
        lane_b=lane_b,
        total_time=result.total_time,
        status=result.status,
    )


def rank_all(records) -> list[QualificationRecord]:
    """
    Rank a qualification field.

    Valid records (status VALID with a total) come first, sorted by
    ascending total_time and ranked 1..N. Exact ties keep their input order.
    Invalid records follow unranked, also in input order.
    The input sequence is left untouched; new records are returned.
    """
    valid = []
    invalid = []
    for r in records:
        if r.status == QualificationStatus.VALID and r.total_time is not None:
            valid.append(r)
        else:
            invalid.append(r)

    valid.sort(key=lambda r: r.total_time)

    ranked = [replace(r, rank=i + 1) for i, r in enumerate(valid)]
    unranked = [replace(r, rank=None) for r in invalid]
    return ranked + unranked


# --- Finals ---

def _winner_by_rank(climber_a_id, climber_b_id, rank_a, rank_b):
    if rank_a is not None and rank_b is not None:
        if rank_a == rank_b:
            return None
        return climber_a_id if rank_a < rank_b else climber_b_id
    if rank_a is not None:
        return climber_a_id
    if rank_b is not None:
        return climber_b_id
    return None


def resolve_match(
    time_a,
    time_b,
    status_a,
    status_b,
    climber_a_id,
    climber_b_id,
    rank_a: Optional[int] = None,
    rank_b: Optional[int] = None,
):
    """
    Winner id of a head-to-head run, or None when it can't be decided.

    A side only counts as valid with status VALID *and* a time.
    """
    a_ok = _lane_ok(time_a, status_a)
    b_ok = _lane_ok(time_b, status_b)

    if not a_ok and not b_ok:
        return _winner_by_rank(climber_a_id, climber_b_id, rank_a, rank_b)

    if a_ok and not b_ok:
        return climber_a_id
    if b_ok and not a_ok:
        return climber_b_id

    ta = parse_time(time_a)
    tb = parse_time(time_b)
    if ta < tb:
        return climber_a_id
    if tb < ta:
        return climber_b_id

    # exact tie
    return _winner_by_rank(climber_a_id, climber_b_id, rank_a, rank_b)


def reduce_runs(run1_time, run2_time, run1_status=LaneStatus.VALID, run2_status=LaneStatus.VALID,
                mode: RunReduction = RunReduction.BEST) -> RunSummary:
    """
    Collapse a climber's two Classic-format runs into one comparable time.
    """
    mode = RunReduction(mode)
    run1_status = run1_status or LaneStatus.VALID
    run2_status = run2_status or LaneStatus.VALID

    times = [
        parse_time(t)
        for t, s in ((run1_time, run1_status), (run2_time, run2_status))
        if _lane_ok(t, s)
    ]

    if mode is RunReduction.TOTAL:
        if len(times) < 2:
            return RunSummary(time=None, status=QualificationStatus.INVALID)
        return RunSummary(time=round(times[0] + times[1], 3), status=QualificationStatus.VALID)

    if not times:
        return RunSummary(time=None, status=QualificationStatus.INVALID)
    return RunSummary(time=round(min(times), 3), status=QualificationStatus.VALID)


def resolve_classic_match(climber_a: dict, climber_b: dict, mode: RunReduction = RunReduction.BEST):
    """
    climber_a / climber_b: {id, rank, run1_time, run2_time, run1_status, run2_status}
    Missing statuses default to VALID.
    """
    a = reduce_runs(
        climber_a.get("run1_time"),
        climber_a.get("run2_time"),
        climber_a.get("run1_status"),
        climber_a.get("run2_status"),
        mode,
    )
    b = reduce_runs(
        climber_b.get("run1_time"),
        climber_b.get("run2_time"),
        climber_b.get("run1_status"),
        climber_b.get("run2_status"),
        mode,
    )

    return resolve_match(
        a.time,
        b.time,
        LaneStatus.VALID if a.is_valid else LaneStatus.DNS,
        LaneStatus.VALID if b.is_valid else LaneStatus.DNS,
        climber_a.get("id"),
        climber_b.get("id"),
        climber_a.get("rank"),
        climber_b.get("rank"),
    )
