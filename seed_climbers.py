# seed_climbers.py
# usage: python seed_climbers.py [count] [boulder|speed]
import sys

from dotenv import load_dotenv

load_dotenv()

from climbcomp import create_app
from climbcomp.extensions import db
from climbcomp.models import Competition, Climber


def main(num_climbers=16, discipline="speed"):
    app = create_app()
    with app.app_context():
        db.create_all()

        comp = Competition(
            name=f"Test {discipline.title()} Competition",
            discipline=discipline,
        )
        db.session.add(comp)
        db.session.flush()

        for i in range(num_climbers):
            db.session.add(
                Climber(
                    competition_id=comp.id,
                    name=f"Test Climber {i + 1}",
                    bib_number=i + 1,
                    team="Seed Team",
                )
            )

        db.session.commit()
        total = Climber.query.filter_by(competition_id=comp.id).count()
        print(f"Competition {comp.id} ({discipline}) now has {total} climbers.")


if __name__ == "__main__":
    count = int(sys.argv[1]) if len(sys.argv) > 1 else 16
    kind = sys.argv[2] if len(sys.argv) > 2 else "speed"
    main(count, kind)
