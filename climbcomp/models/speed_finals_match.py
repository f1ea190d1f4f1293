from datetime import datetime
from climbcomp.extensions import db
from climbcomp.helpers.bracket import Match, Stage
from climbcomp.helpers.speed import LaneStatus

class SpeedFinalsMatch(db.Model):
    __tablename__ = "speed_finals_match"

    id = db.Column(db.Integer, primary_key=True)

    competition_id = db.Column(
        db.Integer,
        db.ForeignKey("competition.id"),
        nullable=False,
        index=True,
    )

    # "Round of 16", "Quarter Final", "Semi Final", "Small Final", "Big Final"
    stage = db.Column(db.String(20), nullable=False)
    match_order = db.Column(db.Integer, nullable=False, default=1)

    climber_a_id = db.Column(db.Integer, db.ForeignKey("climber.id"), nullable=False)
    # NULL = BYE
    climber_b_id = db.Column(db.Integer, db.ForeignKey("climber.id"), nullable=True)

    # effective time per side (single run, or reduced from the two classic runs)
    time_a = db.Column(db.Float, nullable=True)
    time_b = db.Column(db.Float, nullable=True)
    status_a = db.Column(db.String(20), nullable=False, default="VALID")
    status_b = db.Column(db.String(20), nullable=False, default="VALID")

    # classic format raw runs
    climber_a_run1_time = db.Column(db.Float, nullable=True)
    climber_a_run2_time = db.Column(db.Float, nullable=True)
    climber_a_run1_status = db.Column(db.String(20), nullable=True)
    climber_a_run2_status = db.Column(db.String(20), nullable=True)
    climber_b_run1_time = db.Column(db.Float, nullable=True)
    climber_b_run2_time = db.Column(db.Float, nullable=True)
    climber_b_run1_status = db.Column(db.String(20), nullable=True)
    climber_b_run2_status = db.Column(db.String(20), nullable=True)

    winner_id = db.Column(db.Integer, db.ForeignKey("climber.id"), nullable=True)
    is_finalized = db.Column(db.Boolean, nullable=False, default=False)

    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    @classmethod
    def from_match(cls, competition_id: int, m: Match) -> "SpeedFinalsMatch":
        return cls(
            competition_id=competition_id,
            stage=Stage(m.stage).value,
            match_order=m.order,
            climber_a_id=m.climber_a,
            climber_b_id=m.climber_b,
            time_a=m.time_a,
            time_b=m.time_b,
            status_a=LaneStatus(m.status_a).value,
            status_b=LaneStatus(m.status_b).value,
            winner_id=m.winner_id,
        )

    def to_match(self) -> Match:
        return Match(
            stage=Stage(self.stage),
            order=self.match_order,
            climber_a=self.climber_a_id,
            climber_b=self.climber_b_id,
            time_a=self.time_a,
            time_b=self.time_b,
            status_a=LaneStatus(self.status_a),
            status_b=LaneStatus(self.status_b),
            winner_id=self.winner_id,
        )

    def apply_match(self, m: Match) -> None:
        self.time_a = m.time_a
        self.time_b = m.time_b
        self.status_a = LaneStatus(m.status_a).value
        self.status_b = LaneStatus(m.status_b).value
        self.winner_id = m.winner_id

    def to_dict(self) -> dict:
        out = self.to_match().to_dict()
        out.update(
            {
                "id": self.id,
                "climber_a_run1_time": self.climber_a_run1_time,
                "climber_a_run2_time": self.climber_a_run2_time,
                "climber_a_run1_status": self.climber_a_run1_status,
                "climber_a_run2_status": self.climber_a_run2_status,
                "climber_b_run1_time": self.climber_b_run1_time,
                "climber_b_run2_time": self.climber_b_run2_time,
                "climber_b_run1_status": self.climber_b_run1_status,
                "climber_b_run2_status": self.climber_b_run2_status,
                "is_finalized": self.is_finalized,
            }
        )
        return out
