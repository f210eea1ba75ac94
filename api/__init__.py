from flask import Flask
from flasgger import Swagger
from flask_cors import CORS
import logging

from .config import get_config
from .errors import register_error_handlers
from services.container import build_auth_components

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Token Auth API",
        "version": "1.0.0",
        "description": "Sign-up, sign-in, refresh token rotation, sign-out and password reset.",
    },
    "basePath": "/",
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def create_app(config_name: str | None = None, email_sender=None, **overrides) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    Every credential component is built here and kept on
    app.extensions["auth"]; nothing is wired through module globals.
    ``overrides`` are applied on top of the config class (tests use them
    for short TTLs).
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    app.config.update(overrides)
    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(
        app,
        resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
        supports_credentials=True,
    )

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    components = build_auth_components(app.config, email_sender=email_sender)
    app.extensions["auth"] = components

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp, url_prefix="/api/v1/auth")

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Token Auth API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
