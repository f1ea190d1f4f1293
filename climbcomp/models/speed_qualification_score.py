from datetime import datetime
from sqlalchemy import UniqueConstraint
from climbcomp.extensions import db
from climbcomp.helpers.speed import LaneResult, QualificationRecord, QualificationStatus

class SpeedQualificationScore(db.Model):
    __tablename__ = "speed_qualification_score"

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

    lane_a_time = db.Column(db.Float, nullable=True)
    lane_b_time = db.Column(db.Float, nullable=True)
    lane_a_status = db.Column(db.String(20), nullable=False, default="VALID")
    lane_b_status = db.Column(db.String(20), nullable=False, default="VALID")

    # derived by helpers.speed, never edited directly
    total_time = db.Column(db.Float, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="INVALID")
    rank = db.Column(db.Integer, nullable=True)

    is_finalized = db.Column(db.Boolean, nullable=False, default=False)

    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    __table_args__ = (
        UniqueConstraint("competition_id", "climber_id", name="uq_speed_qual_climber"),
    )

    climber = db.relationship("Climber")

    def to_record(self) -> QualificationRecord:
        return QualificationRecord(
            climber_id=self.climber_id,
            lane_a=LaneResult(self.lane_a_time, self.lane_a_status),
            lane_b=LaneResult(self.lane_b_time, self.lane_b_status),
            total_time=self.total_time,
            status=QualificationStatus(self.status),
            rank=self.rank,
        )

    def to_dict(self) -> dict:
        return {
            "climber_id": self.climber_id,
            "lane_a_time": self.lane_a_time,
            "lane_b_time": self.lane_b_time,
            "lane_a_status": self.lane_a_status,
            "lane_b_status": self.lane_b_status,
            "total_time": self.total_time,
            "status": self.status,
            "rank": self.rank,
            "is_finalized": self.is_finalized,
        }
