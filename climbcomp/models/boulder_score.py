from datetime import datetime
from sqlalchemy import UniqueConstraint
from climbcomp.extensions import db
from climbcomp.helpers.boulder import BoulderState

class BoulderScore(db.Model):
    __tablename__ = "boulder_score"

    id = db.Column(db.Integer, primary_key=True)

    competition_id = db.Column(
        db.Integer,
        db.ForeignKey("competition.id"),
        nullable=False,
        index=True,
    )

    climber_id = db.Column(
        db.Integer,
        db.ForeignKey("climber.id"),
        nullable=False,
        index=True,
    )

    boulder_number = db.Column(db.Integer, nullable=False)

    # running attempt counter, zone/top store the attempt they happened on
    attempts = db.Column(db.Integer, nullable=False, default=0)
    reached_zone = db.Column(db.Boolean, nullable=False, default=False)
    reached_top = db.Column(db.Boolean, nullable=False, default=False)
    zone_attempt = db.Column(db.Integer, nullable=True)
    top_attempt = db.Column(db.Integer, nullable=True)

    is_finalized = db.Column(db.Boolean, nullable=False, default=False)
    is_disqualified = db.Column(db.Boolean, nullable=False, default=False)

    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    __table_args__ = (
        UniqueConstraint(
            "competition_id",
            "climber_id",
            "boulder_number",
            name="uq_competition_climber_boulder",
        ),
    )

    climber = db.relationship("Climber")

    def to_state(self) -> BoulderState:
        return BoulderState(
            attempts=self.attempts or 0,
            reached_zone=bool(self.reached_zone),
            reached_top=bool(self.reached_top),
            zone_attempt=self.zone_attempt,
            top_attempt=self.top_attempt,
            is_finalized=bool(self.is_finalized),
            is_disqualified=bool(self.is_disqualified),
        )

    def apply_state(self, state: BoulderState) -> None:
        self.attempts = state.attempts
        self.reached_zone = state.reached_zone
        self.reached_top = state.reached_top
        self.zone_attempt = state.zone_attempt
        self.top_attempt = state.top_attempt
        self.is_finalized = state.is_finalized
        self.is_disqualified = state.is_disqualified

    def to_dict(self) -> dict:
        return {
            "climber_id": self.climber_id,
            "boulder_number": self.boulder_number,
            "attempts": self.attempts,
            "reached_zone": self.reached_zone,
            "reached_top": self.reached_top,
            "zone_attempt": self.zone_attempt,
            "top_attempt": self.top_attempt,
            "is_finalized": self.is_finalized,
            "is_disqualified": self.is_disqualified,
        }
