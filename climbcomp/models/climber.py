from datetime import datetime
from sqlalchemy import UniqueConstraint
from climbcomp.extensions import db

class Climber(db.Model):
    __tablename__ = "climber"

    id = db.Column(db.Integer, primary_key=True)

    competition_id = db.Column(
        db.Integer,
        db.ForeignKey("competition.id"),
        nullable=False,
        index=True,
    )

    name = db.Column(db.String(255), nullable=False)
    bib_number = db.Column(db.Integer, nullable=False)
    team = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    competition = db.relationship(
        "Competition",
        back_populates="climbers",
    )

    __table_args__ = (
        UniqueConstraint("competition_id", "bib_number", name="uq_competition_bib"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "bib_number": self.bib_number,
            "team": self.team or "",
        }
