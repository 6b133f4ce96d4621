"""
Task Board application factory.

Configuration comes from the environment (a local .env is loaded first);
``config_overrides`` is applied last so tests can swap the database.
"""

import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_login import LoginManager

from models import db, User
from services.board_projector import DEFAULT_COLUMNS
from utils.startup_validation import BlueprintRegistry, run_startup_validation

load_dotenv()

logger = logging.getLogger(__name__)

login_manager = LoginManager()


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'success': False, 'message': 'Authentication required'}), 401


def _database_url() -> str:
    url = os.getenv("DATABASE_URL", "sqlite:///taskboard.db")
    # SQLAlchemy 1.4+ no longer accepts the legacy scheme
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def _kanban_columns() -> list:
    raw = os.getenv("KANBAN_COLUMNS", "")
    columns = [c.strip() for c in raw.split(",") if c.strip()]
    return columns or list(DEFAULT_COLUMNS)


def create_app(config_overrides: Optional[Dict[str, Any]] = None) -> Flask:
    app = Flask(__name__)

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    columns = _kanban_columns()
    app.config.update(
        SECRET_KEY=os.getenv("SESSION_SECRET", "dev-only-insecure-secret"),
        SQLALCHEMY_DATABASE_URI=_database_url(),
        SQLALCHEMY_ENGINE_OPTIONS={"pool_pre_ping": True},
        KANBAN_COLUMNS=columns,
        KANBAN_DEFAULT_COLUMN=os.getenv("KANBAN_DEFAULT_COLUMN") or columns[0],
        COLUMN_LOCK_TIMEOUT=float(os.getenv("COLUMN_LOCK_TIMEOUT", "30")),
        RUN_STARTUP_VALIDATION=os.getenv("FLASK_ENV") == "production",
    )
    if config_overrides:
        app.config.update(config_overrides)

    # Board columns must render in configured order, not alphabetically
    app.json.sort_keys = False

    if app.config["RUN_STARTUP_VALIDATION"]:
        run_startup_validation()

    db.init_app(app)
    login_manager.init_app(app)

    registry = BlueprintRegistry(app)
    registry.register('routes.api_projects', 'api_projects_bp', critical=True)
    registry.register('routes.api_tasks', 'api_tasks_bp', critical=True)
    registry.log_summary()

    logger.info(f"Task board ready: columns={columns} db={app.config['SQLALCHEMY_DATABASE_URI'].split(':', 1)[0]}")
    return app
