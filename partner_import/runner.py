"""Runs one complete import: pull every batch and apply it to the consumer store."""

from __future__ import annotations

import json
import logging
import time
import traceback
from typing import Optional

from partner_import.config import ImportConfig
from partner_import.connector import PartnerCenterConnector
from partner_import.db import Database
from partner_import.errors import ConfigurationError
from partner_import.models import CUSTOMER, USER, ChangeEntry

logger = logging.getLogger("partner_import.runner")


class ImportRunner:
    """Drives a connector session to completion, one host-sized batch at a time."""

    CONNECTOR_NAME = "partner_center"

    def __init__(
        self,
        config: ImportConfig,
        db: Database,
        connector: Optional[PartnerCenterConnector] = None,
    ) -> None:
        if config.connector is None:
            raise ConfigurationError("Partner Center connectivity settings are required to run an import")
        self.config = config
        self.db = db
        self.connector = connector or PartnerCenterConnector()

    def run(self, run_id: Optional[str] = None) -> dict[str, int]:
        """Pull until the session reports nothing more. Returns per-kind counts."""
        counts = {CUSTOMER: 0, USER: 0, "skipped_customers": 0, "batches": 0}
        started = time.monotonic()
        session = self.connector.open_session(self.config.connector)
        try:
            more = True
            while more:
                batch = self.connector.pull(session)
                self._apply(batch.entries, run_id)
                for entry in batch.entries:
                    counts[entry.object_type] = counts.get(entry.object_type, 0) + 1
                counts["batches"] += 1
                more = batch.more
            counts["skipped_customers"] = len(session.skipped_customers)
        finally:
            self.connector.close_session(session)

        logger.info(
            "Import complete",
            extra={
                "run_id": run_id,
                "entries": counts[CUSTOMER] + counts[USER],
                "duration_s": round(time.monotonic() - started, 3),
            },
        )
        return counts

    def run_with_tracking(self) -> dict[str, int]:
        """Wrap run() with import_runs tracking."""
        run_id = self.db.record_run_start(connector=self.CONNECTOR_NAME)
        try:
            results = self.run(run_id=run_id)
            self.db.record_run_end(
                run_id=run_id,
                status="SUCCESS",
                customers_imported=results[CUSTOMER],
                users_imported=results[USER],
                customers_skipped=results["skipped_customers"],
            )
            return results
        except Exception as exc:
            self.db.record_run_end(
                run_id=run_id,
                status="FAILED",
                error_message=str(exc)[:1000],
                error_detail={"traceback": traceback.format_exc()},
            )
            logger.error("Import failed: %s", exc, extra={"run_id": run_id})
            raise

    def _apply(self, entries: list[ChangeEntry], run_id: Optional[str]) -> int:
        """Store one batch atomically."""
        if not entries:
            return 0
        rows = [
            (
                self.CONNECTOR_NAME,
                e.object_type,
                e.dn,
                e.modification_type,
                json.dumps(dict(e.attributes)),
                run_id,
            )
            for e in entries
        ]
        with self.db.transaction() as cur:
            return self.db.upsert_entries(cur, rows)
