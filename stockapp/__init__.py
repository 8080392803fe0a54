from flask import Flask, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from config import Config

from . import models  # ensure models are registered with SQLAlchemy
from .cli import register_cli
from .extensions import db, login_manager
from .routes import (
    auth,
    borrowing,
    courses,
    dashboard,
    errors,
    purchasing,
    stock,
    stock_take,
    transactions,
)
from .utils.logging import configure_logging


def _ensure_superuser_account(admin_username: str, admin_password: str) -> None:
    """Create or update the default administrative user."""

    if not admin_username:
        return

    for attempt in range(3):
        try:
            user = models.User.query.filter_by(username=admin_username).first()
            if user is None:
                user = models.User(username=admin_username)
                db.session.add(user)

            if admin_password:
                user.set_password(admin_password)

            db.session.commit()
            return
        except IntegrityError:
            db.session.rollback()
            if attempt == 2:
                raise


def _ping_database() -> None:
    with db.engine.connect() as connection:
        connection.execute(text("SELECT 1"))


def create_app(config_override=None):
    app = Flask(__name__)

    # load configuration from environment variables
    app.config.from_object(Config)
    if config_override:
        app.config.update(config_override)

    app.config.setdefault("DATABASE_AVAILABLE", True)
    app.config.setdefault("DATABASE_ERROR", None)

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if database_uri.startswith("sqlite:///:memory:"):
        engine_options = app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {})
        connect_args = engine_options.setdefault("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        engine_options.setdefault("poolclass", StaticPool)

    configure_logging(app)

    db.init_app(app)
    login_manager.init_app(app)
    # API clients get a 401 instead of a redirect
    login_manager.login_view = None

    @login_manager.user_loader
    def load_user(user_id: str):
        if not user_id:
            return None
        try:
            return db.session.get(models.User, int(user_id))
        except (TypeError, ValueError):
            return None
        except OperationalError:
            current_app.logger.warning(
                "Skipped user lookup because the database is unavailable."
            )
            return None

    database_available = True
    database_error_message = None

    # create tables if they do not exist
    with app.app_context():
        try:
            _ping_database()
        except OperationalError as exc:
            database_available = False
            details = str(getattr(exc, "orig", exc)).strip()
            database_error_message = (
                "Unable to connect to the configured database. Start the "
                "PostgreSQL service or update the DB_URL setting, then restart "
                "the tracker."
            )
            if details:
                database_error_message += f" (Error: {details})"
            current_app.logger.error(
                "Database connection unavailable during startup: %s",
                details,
                exc_info=current_app.debug,
            )
            db.session.remove()
            db.engine.dispose()
        else:
            try:
                db.create_all()
                _ensure_superuser_account(
                    app.config.get("ADMIN_USER", "superuser"),
                    app.config.get("ADMIN_PASSWORD", "change_me"),
                )
            except SQLAlchemyError:
                database_available = False
                database_error_message = (
                    "The database schema could not be initialized. Review the logs "
                    "for details and restart once resolved."
                )
                current_app.logger.exception("Database initialization error")
                db.session.remove()

    app.config["DATABASE_AVAILABLE"] = database_available
    app.config["DATABASE_ERROR"] = database_error_message

    app.register_blueprint(errors.bp)
    app.register_blueprint(auth.bp)
    app.register_blueprint(purchasing.bp)
    app.register_blueprint(stock.bp)
    app.register_blueprint(transactions.bp)
    app.register_blueprint(borrowing.bp)
    app.register_blueprint(stock_take.bp)
    app.register_blueprint(courses.bp)
    app.register_blueprint(dashboard.bp)

    register_cli(app)

    @app.get("/health")
    def health():
        payload = {
            "status": "ok" if app.config["DATABASE_AVAILABLE"] else "degraded",
            "database": app.config["DATABASE_AVAILABLE"],
        }
        if app.config["DATABASE_ERROR"]:
            payload["error"] = app.config["DATABASE_ERROR"]
        return jsonify(payload), 200 if app.config["DATABASE_AVAILABLE"] else 503

    return app
