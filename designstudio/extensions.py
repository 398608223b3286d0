from __future__ import annotations

import logging
import os
from typing import Optional

from flask_login import LoginManager
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
login_manager = LoginManager()

logger = logging.getLogger(__name__)

# Columns added to existing tables after the first release, per table.
# ensure_schema_sqlite() backfills them on old SQLite files.
LATE_COLUMNS = {
    "user_creations": {
        "aspect_ratio": "TEXT",
        "favorite": "BOOLEAN NOT NULL DEFAULT 0",
        "metadata": "JSON",
        "stored_image": "VARCHAR(255)",
    },
    "brand_kits": {
        "brand_voice": "TEXT",
    },
    "credit_transactions": {
        "reference": "TEXT",
    },
}


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the process.

    Env vars:
      - LOG_LEVEL  DEBUG | INFO | WARNING | ERROR (default INFO)
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO") or "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    for noisy in ("urllib3", "httpx", "anthropic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def ensure_schema_sqlite() -> None:
    """Best-effort SQLite-only migration adding columns missing from older databases.

    No-op on Postgres, where the schema is managed outside the app.
    """
    if db.engine.url.get_backend_name() != "sqlite":
        return

    with db.engine.begin() as conn:
        for table, columns in LATE_COLUMNS.items():
            rows = conn.exec_driver_sql(f"PRAGMA table_info('{table}')").fetchall()
            if not rows:
                # table did not exist; create_all() builds it complete
                continue
            existing = {r[1] for r in rows}
            for name, ddl in columns.items():
                if name not in existing:
                    logger.info("Adding column %s.%s", table, name)
                    conn.exec_driver_sql(f"ALTER TABLE {table} ADD COLUMN {name} {ddl}")


def seed_system_design_config() -> None:
    """Create the default system design configuration when none exists."""
    from .models import DesignConfig

    exists = db.session.execute(
        db.select(DesignConfig.id).where(DesignConfig.user_id.is_(None)).limit(1)
    ).first()
    if exists:
        return
    db.session.add(
        DesignConfig(
            user_id=None,
            name="Default Config",
            num_variations=3,
            credits_per_design=1,
            active=True,
        )
    )
    db.session.commit()
    logger.info("Seeded default system design configuration")
