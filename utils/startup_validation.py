"""
Startup Validation Module

Checks run before the board starts serving:
1. Configuration validation - fail fast on missing critical settings
2. Database connectivity
3. Board column configuration
4. Blueprint loading, tracked for the startup log
"""

import os
import sys
import logging
from typing import Dict, List, Optional, Tuple, Any
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import create_engine, text

from services.task_ordering_service import MAX_STATUS_LENGTH

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a validation check."""
    name: str
    passed: bool
    message: str
    severity: str = "error"  # error, warning, info
    remediation: Optional[str] = None


@dataclass
class StartupReport:
    """Startup validation report."""
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    environment: str = "unknown"
    validations: List[ValidationResult] = field(default_factory=list)
    ready_for_production: bool = False

    def add_validation(self, result: ValidationResult):
        self.validations.append(result)

    def has_critical_failures(self) -> bool:
        return any(v.severity == "error" and not v.passed for v in self.validations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "environment": self.environment,
            "ready_for_production": self.ready_for_production,
            "validations": [
                {
                    "name": v.name,
                    "passed": v.passed,
                    "message": v.message,
                    "severity": v.severity,
                    "remediation": v.remediation
                }
                for v in self.validations
            ],
            "summary": {
                "total_validations": len(self.validations),
                "passed": sum(1 for v in self.validations if v.passed),
                "failed": sum(1 for v in self.validations if not v.passed),
            }
        }


class StartupValidator:
    """
    Validates:
    1. Required environment variables
    2. Session secret strength
    3. Database connectivity
    4. Kanban column configuration
    """

    REQUIRED_ENV_VARS = [
        ("SESSION_SECRET", "Session encryption key - CRITICAL for security"),
        ("DATABASE_URL", "SQLAlchemy database URL"),
    ]

    def __init__(self):
        self.report = StartupReport()
        self.report.environment = os.getenv("FLASK_ENV", "development")

    def is_production(self) -> bool:
        return self.report.environment == "production"

    def validate_required_env_vars(self) -> None:
        """Check all required environment variables are set."""
        for var_name, description in self.REQUIRED_ENV_VARS:
            if os.getenv(var_name):
                self.report.add_validation(ValidationResult(
                    name=f"env:{var_name}",
                    passed=True,
                    message=f"{var_name} is configured"
                ))
            else:
                self.report.add_validation(ValidationResult(
                    name=f"env:{var_name}",
                    passed=False,
                    message=f"Missing required: {var_name}",
                    remediation=f"Set {var_name} environment variable. {description}"
                ))

    def validate_database_connection(self) -> None:
        """Test database connectivity with a SELECT 1."""
        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            self.report.add_validation(ValidationResult(
                name="db:connection",
                passed=False,
                message="DATABASE_URL not configured",
                remediation="Set DATABASE_URL to a valid SQLAlchemy connection string"
            ))
            return

        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)

        try:
            engine = create_engine(database_url)
            try:
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
            finally:
                engine.dispose()

            self.report.add_validation(ValidationResult(
                name="db:connection",
                passed=True,
                message="Database connection successful"
            ))
        except Exception as e:
            self.report.add_validation(ValidationResult(
                name="db:connection",
                passed=False,
                message=f"Database connection failed: {str(e)[:100]}",
                remediation="Check DATABASE_URL and ensure the database is reachable"
            ))

    def validate_secret_key_strength(self) -> None:
        """Validate session secret key meets security requirements."""
        secret = os.getenv("SESSION_SECRET", "")

        if not secret:
            # Already reported by validate_required_env_vars
            return

        if len(secret) < 32:
            self.report.add_validation(ValidationResult(
                name="security:session_secret",
                passed=not self.is_production(),
                message=f"SESSION_SECRET too short ({len(secret)} chars, need 32+)",
                severity="error" if self.is_production() else "warning",
                remediation="Use at least 32 characters for SESSION_SECRET"
            ))
        else:
            self.report.add_validation(ValidationResult(
                name="security:session_secret",
                passed=True,
                message="SESSION_SECRET meets length requirements"
            ))

    def validate_kanban_columns(self) -> None:
        """Configured column names must be usable as task statuses."""
        raw = os.getenv("KANBAN_COLUMNS")
        if not raw:
            self.report.add_validation(ValidationResult(
                name="board:columns",
                passed=True,
                message="KANBAN_COLUMNS not set, using defaults",
                severity="info"
            ))
            return

        columns = [c.strip() for c in raw.split(",") if c.strip()]
        too_long = [c for c in columns if len(c) > MAX_STATUS_LENGTH]
        if not columns or too_long:
            self.report.add_validation(ValidationResult(
                name="board:columns",
                passed=False,
                message=f"Invalid KANBAN_COLUMNS: {raw!r}",
                remediation=f"Use a comma list of names up to {MAX_STATUS_LENGTH} characters"
            ))
            return

        default = os.getenv("KANBAN_DEFAULT_COLUMN")
        if default and default not in columns:
            self.report.add_validation(ValidationResult(
                name="board:columns",
                passed=True,
                message=f"KANBAN_DEFAULT_COLUMN {default!r} is not a configured column; first column used",
                severity="warning"
            ))
            return

        self.report.add_validation(ValidationResult(
            name="board:columns",
            passed=True,
            message=f"Board columns: {columns}"
        ))

    def run_all_validations(self) -> StartupReport:
        """Run all validation checks and return the report."""
        logger.info("=" * 60)
        logger.info("STARTUP VALIDATION")
        logger.info("=" * 60)
        logger.info(f"Environment: {self.report.environment}")

        self.validate_required_env_vars()
        self.validate_secret_key_strength()
        self.validate_database_connection()
        self.validate_kanban_columns()

        self.report.ready_for_production = not self.report.has_critical_failures()

        summary = self.report.to_dict()["summary"]
        logger.info("-" * 60)
        logger.info(f"Validations: {summary['passed']}/{summary['total_validations']} passed")

        if self.report.ready_for_production:
            logger.info("✅ READY FOR PRODUCTION")
        else:
            logger.error("❌ NOT READY FOR PRODUCTION")
            for v in self.report.validations:
                if not v.passed and v.severity == "error":
                    logger.error(f"  - {v.name}: {v.message}")
                    if v.remediation:
                        logger.error(f"    Fix: {v.remediation}")

        logger.info("=" * 60)

        return self.report

    def fail_if_not_ready(self) -> None:
        """
        Fail fast if critical validations fail in production.

        In development, log warnings but continue.
        """
        if not self.report.ready_for_production:
            if self.is_production():
                logger.critical("Application cannot start - critical configuration missing")
                sys.exit(1)
            else:
                logger.warning("Development mode: continuing despite validation failures")


class BlueprintRegistry:
    """
    Track blueprint loading for the startup log.

    Critical blueprints re-raise on failure; others are logged as degraded.
    """

    def __init__(self, app=None):
        self.app = app
        self.loaded: List[str] = []
        self.failed: List[Tuple[str, str]] = []

    def register(self, module_path: str, blueprint_name: str, url_prefix: Optional[str] = None,
                 critical: bool = False) -> bool:
        """
        Attempt to register a blueprint with proper error handling.

        Args:
            module_path: Python module path (e.g., 'routes.api_tasks')
            blueprint_name: Name of blueprint variable in module
            url_prefix: Optional URL prefix for blueprint
            critical: If True, raise exception on failure

        Returns:
            True if registered successfully, False otherwise
        """
        try:
            module = __import__(module_path, fromlist=[blueprint_name])
            blueprint = getattr(module, blueprint_name)

            if url_prefix:
                self.app.register_blueprint(blueprint, url_prefix=url_prefix)
            else:
                self.app.register_blueprint(blueprint)

            self.loaded.append(f"{module_path}.{blueprint_name}")
            self.app.logger.info(f"✅ Loaded: {module_path}.{blueprint_name}")
            return True

        except Exception as e:
            error_msg = f"{type(e).__name__}: {str(e)[:100]}"
            self.failed.append((f"{module_path}.{blueprint_name}", error_msg))

            if critical:
                self.app.logger.error(f"❌ CRITICAL - Failed to load {module_path}: {error_msg}")
                raise
            self.app.logger.warning(f"⚠️ Degraded - Failed to load {module_path}: {error_msg}")
            return False

    def get_status(self) -> Dict[str, Any]:
        """Get registration status summary."""
        return {
            "loaded_count": len(self.loaded),
            "failed_count": len(self.failed),
            "loaded": self.loaded,
            "failed": [{"name": n, "error": e} for n, e in self.failed],
            "health": "healthy" if not self.failed else "degraded"
        }

    def log_summary(self) -> None:
        self.app.logger.info(f"Blueprints loaded: {len(self.loaded)} | failed: {len(self.failed)}")
        for name, error in self.failed:
            self.app.logger.warning(f"  - {name}: {error}")


def run_startup_validation() -> StartupReport:
    """
    Run startup validation; exits the process in production when not ready.
    """
    validator = StartupValidator()
    report = validator.run_all_validations()
    validator.fail_if_not_ready()
    return report
