from flask import Flask
from .config import Config
from .extensions import db
from climbcomp.helpers.leaderboard_cache import LeaderboardCache


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    db.init_app(app)

    # One cache per app; routes reach it through app.extensions
    app.extensions["leaderboard_cache"] = LeaderboardCache(
        ttl=app.config["LEADERBOARD_CACHE_TTL"]
    )

    return app
