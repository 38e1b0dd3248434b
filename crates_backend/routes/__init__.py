# routes/__init__.py
"""
Blueprint registration helper
"""


def register_blueprints(app):
    """Register all application blueprints"""
    from crates_backend.routes.health import health_bp
    from crates_backend.routes.auth import auth_bp
    from crates_backend.routes.collection import collection_bp
    from crates_backend.routes.discogs import discogs_bp
    from crates_backend.routes.spotify import spotify_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(collection_bp)
    app.register_blueprint(discogs_bp)
    app.register_blueprint(spotify_bp)
