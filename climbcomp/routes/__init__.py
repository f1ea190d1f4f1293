from .index import index_bp
from .boulder import boulder_bp
from .speed import speed_bp

def register_blueprints(app):
    app.register_blueprint(index_bp)
    app.register_blueprint(boulder_bp)
    app.register_blueprint(speed_bp)
