"""Core execution workflow for hotelwatch."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .browser import PageContentProvider
from .config import MonitorConfig
from .currency import resolve_record
from .db import Database
from .diff import diff_snapshots
from .extractor import extract_record
from .models import CheckinRecord, NotificationEvent, RunSummary, Snapshot
from .notifications import (
    CompositeNotifier,
    format_digest,
    format_event_line,
    format_event_notification,
    should_send_digest,
)
from .state import SnapshotStore, StateStoreError

logger = logging.getLogger(__name__)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class HotelWatchRunner:
    """Coordinates per-date checks, persistence, diffing and notification."""

    config: MonitorConfig
    store: SnapshotStore
    provider: PageContentProvider
    notifier: Optional[CompositeNotifier] = None
    database: Optional[Database] = None
    clock: Callable[[], dt.datetime] = field(default=_utcnow)

    def init(self) -> None:
        """Initialize required persistence structures."""
        if self.database is None:
            logger.info("No history database configured; nothing to initialize")
            return
        logger.info("Initializing database at %s", self.database.path)
        self.database.initialize()

    async def run(self, dry_run: bool = False, force_digest: bool = False) -> RunSummary:
        """Execute a single monitoring cycle."""
        executed_at = self.clock().isoformat()
        logger.info(
            "Starting monitor cycle for %s (%d dates)",
            self.config.hotel_name,
            len(self.config.stay_pairs()),
        )
        try:
            previous = self.store.load()
        except StateStoreError as exc:
            self._record_failure(executed_at, exc)
            raise

        current: Snapshot = {}
        for index, (checkin, checkout) in enumerate(self.config.stay_pairs()):
            if index and self.config.request_delay_ms:
                await asyncio.sleep(self.config.request_delay_ms / 1000)
            logger.info("Checking %s ~ %s", checkin, checkout)
            record = await self._check_date(checkin, checkout)
            current[checkin] = record
            logger.info(
                "Result %s: available=%s price=%s %s%s",
                checkin,
                record.is_available,
                record.price if record.price is not None else "N/A",
                record.currency or "",
                f" error={record.error}" if record.error else "",
            )

        if not dry_run:
            try:
                self.store.save(current)
            except StateStoreError as exc:
                self._record_failure(executed_at, exc)
                raise

        events = diff_snapshots(previous, current)
        for event in events:
            logger.info("Event: %s", format_event_line(event))
        summary = RunSummary(executed_at=executed_at, snapshot=current, events=events)
        self._record_history(summary, dry_run)

        if dry_run:
            logger.info(
                "Dry run detected %d event(s); skipping persistence and notifications",
                len(events),
            )
            return summary

        summary.events_sent = await self._dispatch_events(events)

        now = self.clock()
        if force_digest or should_send_digest(self.config, now):
            logger.info("Digest window reached; sending status report")
            subject, body = format_digest(self.config, current, now)
            summary.digest_sent = await self._send(subject, body)
        return summary

    async def _check_date(self, checkin: str, checkout: str) -> CheckinRecord:
        def build_url(currency: str) -> str:
            return self.config.build_url(checkin, checkout, currency)

        def extract(content: str, currency: str) -> CheckinRecord:
            return extract_record(
                content,
                self.config.room_keywords,
                date=checkin,
                requested_currency=currency,
                min_prices=self.config.min_prices,
                max_price=self.config.max_price,
            )

        try:
            record = await resolve_record(
                self.provider,
                self.config.currency_priority(),
                build_url,
                extract,
                stabilize_ms=self.config.stabilize_ms,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Check for %s failed", checkin)
            return CheckinRecord.failed(checkin, str(exc) or type(exc).__name__)
        if record is None:
            return CheckinRecord.failed(checkin, "no currency attempted")
        return record

    async def _dispatch_events(self, events: List[NotificationEvent]) -> bool:
        rendered = format_event_notification(self.config, events)
        if rendered is None:
            logger.info("No availability or price changes detected")
            return False
        subject, body = rendered
        return await self._send(subject, body)

    async def _send(self, subject: str, body: str) -> bool:
        if self.notifier is None:
            logger.info("No notifier configured; skipping %r", subject)
            return False
        try:
            delivered = await asyncio.to_thread(self.notifier.send, subject, body)
        except Exception:  # noqa: BLE001
            logger.exception("Notification %r could not be delivered", subject)
            return False
        return bool(delivered)

    def _record_history(self, summary: RunSummary, dry_run: bool) -> None:
        if self.database is None:
            return
        note = _format_note(summary, prefix="dry-run " if dry_run else "")
        try:
            if not dry_run:
                self.database.record_snapshot(summary.executed_at, summary.snapshot)
            self.database.add_run(
                executed_at=summary.executed_at,
                status="dry_run" if dry_run else "success",
                notes=note,
            )
        except Exception:  # noqa: BLE001
            logger.exception("Failed to record run history")
            return
        logger.info("Run recorded at %s", summary.executed_at)

    def _record_failure(self, executed_at: str, exc: Exception) -> None:
        logger.error("Snapshot state failed: %s", exc)
        if self.database is None:
            return
        try:
            self.database.add_run(
                executed_at=executed_at,
                status="error",
                notes=f"state_failed: {exc}",
            )
        except Exception:  # noqa: BLE001
            logger.exception("Failed to record run history")


def _format_note(summary: RunSummary, prefix: str = "") -> str:
    """Render a concise run note summarizing the outcome."""
    return (
        f"{prefix}"
        f"dates={len(summary.snapshot)} "
        f"available={len(summary.available_dates)} "
        f"failed={len(summary.failed_dates)} "
        f"events={len(summary.events)}"
    )
