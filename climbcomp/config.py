import os


def database_url(default="sqlite:///climbcomp.db"):
    """DATABASE_URL with Heroku-style postgres:// rewritten for SQLAlchemy 2."""
    url = os.getenv("DATABASE_URL")
    if not url:
        return default
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def _env_float(name, default):
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return float(default)


def _env_int(name, default):
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return int(default)


class Config:
    SQLALCHEMY_DATABASE_URI = database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.getenv("SECRET_KEY", "change-me-dev-secret")

    # seconds a computed leaderboard is served before being rebuilt
    LEADERBOARD_CACHE_TTL = _env_float("LEADERBOARD_CACHE_TTL", 10)

    # bracket size used when generate-bracket is called without topCount
    DEFAULT_TOP_COUNT = _env_int("DEFAULT_TOP_COUNT", 8)
