from .models import db
from flask import Flask
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
import os

from .config import Config
from .errors import register_error_handlers

jwt = JWTManager()
migrate = Migrate()


def create_app(config_object=None, **overrides):
    app = Flask(__name__)

    app.config.from_object(config_object or Config)
    app.config.update(overrides)
    app.logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())

    CORS(app, origins=app.config["CORS_ORIGINS"], supports_credentials=True)
    jwt.init_app(app)
    db.init_app(app)
    migrate.init_app(app, db)
    register_error_handlers(app)

    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)
    os.makedirs(app.config["TEMP_UPLOAD_FOLDER"], exist_ok=True)

    with app.app_context():
        db.create_all()

    from .routes import api
    app.register_blueprint(api, url_prefix="/api")

    if app.config.get("ALLOW_TEST_TOKENS"):
        app.logger.warning("Test tokens are enabled; do not use this configuration in production")

    return app
