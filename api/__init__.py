from flask import Flask
from flasgger import Swagger
from flask_cors import CORS
import logging

from .config import get_config, DEV_JWT_SECRET
from .errors import register_error_handlers
from models import storage
from utils.refresh import RefreshCoordinator
from utils.sessions import SessionStore
from utils.tokens import AuthSettings, ConfigurationError, TokenIssuer

logger = logging.getLogger(__name__)

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Channel API",
        "version": "1.0.0",
        "description": "REST API for user accounts, sessions and channel subscriptions.",
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
            "rule_filter": lambda rule: True,
            "model_filter": lambda tag: True,
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def init_auth(app: Flask) -> None:
    """
    Build the signing settings once and attach the auth components to the app.
    A missing signing key stops startup here instead of failing per request.
    """
    settings = AuthSettings.from_config(app.config)
    if app.config.get("APP_ENV") in ("prod", "production") and DEV_JWT_SECRET in (
            settings.access_secret, settings.refresh_secret):
        raise ConfigurationError("refusing to start in production with the development JWT secret")

    from .auth import access_claims_for

    issuer = TokenIssuer(settings)
    store = SessionStore(storage)
    app.extensions["token_issuer"] = issuer
    app.extensions["session_store"] = store
    app.extensions["refresh_coordinator"] = RefreshCoordinator(issuer, store, claims_for=access_claims_for)


def create_app(config_name: str | None = None, config_overrides: dict | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    config_overrides is applied on top of the selected config class (used by tests).
    """
    app = Flask(__name__)

    app.config.from_object(get_config(config_name))
    if config_overrides:
        app.config.update(config_overrides)

    # credentialed CORS (cookies) only with an explicit origin list
    origins = app.config.get("CORS_ORIGINS", "*")
    if origins == "*":
        CORS(app, resources={r"/*": {"origins": "*"}})
    else:
        CORS(app, resources={r"/*": {"origins": [o.strip() for o in origins.split(",")]}}, supports_credentials=True)
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)
    register_error_handlers(app)

    storage.configure(app.config["DATABASE_URL"], echo=app.config.get("SQL_ECHO", False))
    storage.reload()
    init_auth(app)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp
    from .subscriptions import bp as subscriptions_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/users")
    app.register_blueprint(users_bp, url_prefix="/api/v1/users")
    app.register_blueprint(subscriptions_bp, url_prefix="/api/v1/subscriptions")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Channel API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    logger.info("app created (env=%s)", app.config.get("APP_ENV"))
    return app
