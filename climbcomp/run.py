import os

from dotenv import load_dotenv

load_dotenv()

from climbcomp import create_app
from climbcomp.extensions import db
from climbcomp.routes import register_blueprints

api = create_app()

# index, boulder and speed blueprints
register_blueprints(api)


def init_db():
    """Create any missing tables."""
    db.create_all()


with api.app_context():
    init_db()
    api.logger.info(
        "climbcomp ready db=%s cache_ttl=%ss",
        api.config["SQLALCHEMY_DATABASE_URI"].split("://", 1)[0],
        api.config["LEADERBOARD_CACHE_TTL"],
    )

if __name__ == "__main__":
    api.run(
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "5000")),
        debug=True,
    )
