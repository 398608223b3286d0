import logging
import os

import click
from flask import Flask, jsonify
from dotenv import load_dotenv
from sqlalchemy import event
from sqlalchemy.engine import Engine

from .extensions import db, login_manager, configure_logging, ensure_schema_sqlite, seed_system_design_config
from .routes.accounts import accounts_bp
from .routes.ad_inspiration import ad_inspiration_bp
from .routes.api import api_bp, media_bp, register_error_handlers
from .routes.brand_kits import brand_kits_bp
from .routes.creations import creations_bp
from .routes.credits import credits_bp
from .routes.generate import generate_bp
from .routes.social import social_bp

logger = logging.getLogger(__name__)

# Only enable PRAGMA on SQLite connections
try:
    from sqlite3 import Connection as SQLite3Connection
except ImportError:
    SQLite3Connection = None

MAX_UPLOAD_BYTES = 5 * 1024 * 1024

ENV_KEYS = (
    "ANTHROPIC_API_KEY",
    "CLAUDE_MODEL",
    "CLAUDE_ANALYSIS_MODEL",
    "GOOGLE_API_KEY",
    "GOOGLE_CSE_ID",
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "STRIPE_PRICE_ID_STARTER",
    "STRIPE_PRICE_ID_PRO",
    "RENDER_TEMP_DIR",
    "CHROMIUM_PATH",
    "SOCIAL_PUBLISH_URL",
    "PUBLIC_BASE_URL",
)


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    if SQLite3Connection and isinstance(dbapi_connection, SQLite3Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_app(test_config=None):
    load_dotenv()
    configure_logging()

    app = Flask(__name__, instance_relative_config=True)
    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-not-secret")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL", "sqlite:///designstudio.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["MAX_CONTENT_LENGTH"] = int(os.getenv("MAX_CONTENT_LENGTH", MAX_UPLOAD_BYTES))
    app.config["MEDIA_FOLDER"] = os.getenv("MEDIA_FOLDER") or os.path.join(app.instance_path, "media")
    for key in ENV_KEYS:
        app.config[key] = os.getenv(key) or None
    if test_config:
        app.config.update(test_config)

    db.init_app(app)
    login_manager.init_app(app)

    # Blueprints
    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(accounts_bp, url_prefix="/api/auth")
    app.register_blueprint(brand_kits_bp, url_prefix="/api")
    app.register_blueprint(creations_bp, url_prefix="/api")
    app.register_blueprint(social_bp, url_prefix="/api")
    app.register_blueprint(generate_bp, url_prefix="/api")
    app.register_blueprint(ad_inspiration_bp, url_prefix="/api")
    app.register_blueprint(credits_bp, url_prefix="/api")
    app.register_blueprint(media_bp)
    register_error_handlers(app)

    @app.route("/")
    def index():
        return jsonify({"name": "designstudio", "api": "/api"})

    @app.cli.command("publish-due-posts")
    def publish_due_posts_command():
        """Publish every scheduled social post whose time has passed."""
        from .social import publish_due_posts

        posted, failed = publish_due_posts()
        click.echo(f"Published {posted} post(s), {failed} failed.")

    with app.app_context():
        db.create_all()
        ensure_schema_sqlite()
        seed_system_design_config()

    logger.info("App created (database %s)", app.config["SQLALCHEMY_DATABASE_URI"].split("://")[0])
    return app
