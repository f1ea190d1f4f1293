import pytest

from climbcomp import create_app
from climbcomp.extensions import db
from climbcomp.models import Competition, Climber
from climbcomp.routes import register_blueprints


@pytest.fixture
def app():
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "LEADERBOARD_CACHE_TTL": 60.0,
            "DEFAULT_TOP_COUNT": 8,
        }
    )
    register_blueprints(app)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_competition(discipline="speed", climbers=4, **kwargs):
    """Create a competition with `climbers` climbers (bib 1..n). Returns (comp_id, [climber ids])."""
    comp = Competition(name=f"Test {discipline}", discipline=discipline, **kwargs)
    db.session.add(comp)
    db.session.flush()

    ids = []
    for i in range(climbers):
        c = Climber(competition_id=comp.id, name=f"Climber {i + 1}", bib_number=i + 1)
        db.session.add(c)
        db.session.flush()
        ids.append(c.id)

    db.session.commit()
    return comp.id, ids


@pytest.fixture
def boulder_comp(app):
    return make_competition("boulder", climbers=3, total_boulders=4)


@pytest.fixture
def speed_comp(app):
    return make_competition("speed", climbers=6)


@pytest.fixture
def make_comp(app):
    return make_competition
