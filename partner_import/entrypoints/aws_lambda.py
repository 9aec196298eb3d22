"""AWS Lambda handler for the Partner Center import.

Deployed as a Lambda function triggered by an EventBridge schedule rule.
Each invocation runs one complete import.

Event format:
  {}                       -> run one import
  {"dry_run": true}        -> only validate connectivity parameters
"""

from __future__ import annotations

import json
import logging
import os

from partner_import.config import load_config
from partner_import.db import Database
from partner_import.errors import AuthFailure
from partner_import.logging_config import configure_logging
from partner_import.partner_center.token import TokenProvider
from partner_import.runner import ImportRunner

logger = logging.getLogger("partner_import.lambda")


def handler(event: dict, context) -> dict:
    """Lambda entry point."""
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))
    event = event or {}

    if event.get("dry_run"):
        connector = load_config(with_database=False).connector
        try:
            TokenProvider.from_config(connector).acquire(connector.authority, connector.resource)
        except AuthFailure as exc:
            logger.error("Connectivity check failed: %s", exc)
            return {"statusCode": 401, "body": json.dumps({"error": str(exc)})}
        finally:
            connector.clear_secrets()
        return {"statusCode": 200, "body": json.dumps({"authenticated": True})}

    logger.info("Lambda invoked for import")

    config = load_config()
    db = Database(config.database)

    try:
        results = ImportRunner(config, db).run_with_tracking()
        logger.info("Import complete: %s", results)
        return {
            "statusCode": 200,
            "body": json.dumps({"results": results}),
        }
    except Exception as exc:
        logger.error("Import failed: %s", exc, exc_info=True)
        return {
            "statusCode": 500,
            "body": json.dumps({"error": str(exc)}),
        }
    finally:
        config.connector.clear_secrets()
        db.close()
