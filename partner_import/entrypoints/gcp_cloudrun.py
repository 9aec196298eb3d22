"""GCP Cloud Run Job entry point for the Partner Center import.

Deployed as a Cloud Run Job triggered by Cloud Scheduler.

Usage:
  python -m partner_import.entrypoints.gcp_cloudrun
"""

from __future__ import annotations

import logging
import os
import sys

from partner_import.config import load_config
from partner_import.db import Database
from partner_import.logging_config import configure_logging
from partner_import.runner import ImportRunner

logger = logging.getLogger("partner_import.cloudrun")


def main() -> None:
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))

    logger.info("Cloud Run Job started")

    config = load_config()
    db = Database(config.database)

    try:
        results = ImportRunner(config, db).run_with_tracking()
        logger.info("Import complete: %s", results)
    except Exception as exc:
        logger.error("Import failed: %s", exc, exc_info=True)
        sys.exit(1)
    finally:
        config.connector.clear_secrets()
        db.close()


if __name__ == "__main__":
    main()
