"""
Application startup validation and initialization.

Checks the database before serving requests and makes sure the
reservation tables exist.
"""

import logging
import sys
from typing import List, Tuple

import sqlalchemy as sa
from sqlalchemy import text

from core.config import get_settings
from core.database import engine, Base

logger = logging.getLogger(__name__)

REQUIRED_TABLES = [
    "table_configurations",
    "combined_table_configurations",
    "bookings",
    "operating_hours",
    "special_dates",
    "reservation_settings",
]


class StartupValidator:
    """Validates application startup requirements"""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def check_database_connection(self) -> bool:
        """Check database connectivity"""
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection successful")
            return True
        except sa.exc.SQLAlchemyError as e:
            self.errors.append(f"Database connection failed: {str(e)}")
            return False

    def ensure_tables(self) -> bool:
        """Create missing reservation tables"""
        # Register the models on Base.metadata
        import modules.reservations.models  # noqa: F401

        try:
            existing = set(sa.inspect(engine).get_table_names())
            missing = [t for t in REQUIRED_TABLES if t not in existing]
            if missing:
                logger.info(f"Creating missing tables: {', '.join(missing)}")
                Base.metadata.create_all(bind=engine)
            return True
        except sa.exc.SQLAlchemyError as e:
            self.errors.append(f"Could not create database tables: {str(e)}")
            return False

    def validate_all(self) -> Tuple[bool, List[str], List[str]]:
        """Run all validation checks"""
        checks = [
            ("Database Connection", self.check_database_connection),
            ("Database Tables", self.ensure_tables),
        ]

        all_passed = True
        for check_name, check_func in checks:
            logger.info(f"Running check: {check_name}")
            if not check_func():
                all_passed = False

        return all_passed, self.errors, self.warnings


def run_startup_checks():
    """Run all startup validation checks"""
    settings = get_settings()
    logger.info(f"Starting Tablewise backend ({settings.environment})")

    validator = StartupValidator()
    passed, errors, warnings = validator.validate_all()

    for warning in warnings:
        logger.warning(f"Startup warning: {warning}")
    for error in errors:
        logger.error(f"Startup error: {error}")

    if not passed and settings.is_production:
        logger.error("Cannot start in production with errors!")
        sys.exit(1)
    elif not passed:
        logger.warning("Starting in development mode despite errors")
    else:
        logger.info("All startup checks passed")

    return passed, warnings


def configure_startup_logging():
    """Configure logging for startup"""
    logging.basicConfig(
        level=get_settings().log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
