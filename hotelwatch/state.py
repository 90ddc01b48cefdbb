"""JSON snapshot of the last observed record per check-in date."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .models import CheckinRecord, Snapshot

logger = logging.getLogger(__name__)


class StateStoreError(RuntimeError):
    """Raised when the snapshot file cannot be read or written."""


@dataclass
class SnapshotStore:
    """Reads and overwrites ``last_state.json``.

    The file maps ``YYYY/MM/DD`` to ``{"isAvailable", "price", "currency"}``
    (plus ``error`` when set); the dashboard reads the same file.
    """

    path: Path

    def load(self) -> Snapshot:
        if not self.path.exists():
            logger.info("No previous snapshot at %s; starting empty", self.path)
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StateStoreError(f"Could not read snapshot {self.path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise StateStoreError(f"Snapshot {self.path} is not a JSON object")

        snapshot: Snapshot = {}
        for date, payload in raw.items():
            if not isinstance(payload, dict):
                logger.warning("Ignoring malformed snapshot entry for %s", date)
                continue
            try:
                snapshot[date] = CheckinRecord.from_dict(date, payload)
            except (TypeError, ValueError) as exc:
                logger.warning("Ignoring malformed snapshot entry for %s: %s", date, exc)
        logger.debug("Loaded %d snapshot entries from %s", len(snapshot), self.path)
        return snapshot

    def save(self, snapshot: Snapshot) -> None:
        """Replace the snapshot file in full."""
        payload = {date: record.to_dict() for date, record in snapshot.items()}
        text = json.dumps(payload, ensure_ascii=False, indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(text + "\n")
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StateStoreError(f"Could not write snapshot {self.path}: {exc}") from exc
        logger.info("Saved snapshot with %d dates to %s", len(snapshot), self.path)
