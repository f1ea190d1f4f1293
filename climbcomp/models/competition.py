from datetime import datetime
from climbcomp.extensions import db

class Competition(db.Model):
    __tablename__ = "competition"

    id = db.Column(db.Integer, primary_key=True)

    # Public-facing name, e.g. "Kejurnas Boulder Putra"
    name = db.Column(db.String(160), nullable=False)

    # "boulder" or "speed"
    discipline = db.Column(db.String(20), nullable=False, default="boulder")

    # boulder only: how many problems are on the card
    total_boulders = db.Column(db.Integer, nullable=False, default=4)

    # speed only: "single" (one run each) or "classic" (two runs each)
    finals_format = db.Column(db.String(20), nullable=False, default="single")

    # classic only: "best" (faster of the two runs) or "total" (sum of both)
    finals_reduction = db.Column(db.String(20), nullable=False, default="best")

    # speed only: "qualification" until the bracket exists, then "finals"
    status = db.Column(db.String(20), nullable=False, default="qualification")

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    climbers = db.relationship(
        "Climber",
        back_populates="competition",
        lazy=True,
    )
