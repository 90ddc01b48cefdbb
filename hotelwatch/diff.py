"""Diff utilities for comparing availability snapshots."""

from __future__ import annotations

from typing import List, Optional

from .config import parse_date
from .models import CheckinRecord, NotificationEvent, PriceDropEvent, ReleaseEvent, Snapshot


def diff_snapshots(previous: Snapshot, current: Snapshot) -> List[NotificationEvent]:
    """Derive release and price-drop events, in ascending check-in date order."""
    events: List[NotificationEvent] = []
    for date in sorted(current, key=parse_date):
        event = _diff_record(previous.get(date), current[date])
        if event is not None:
            events.append(event)
    return events


def _diff_record(
    previous: Optional[CheckinRecord],
    current: CheckinRecord,
) -> Optional[NotificationEvent]:
    if not current.is_available:
        return None

    if previous is None or not previous.is_available:
        return ReleaseEvent(date=current.date, price=current.price, currency=current.currency)

    if (
        previous.price is not None
        and current.price is not None
        and previous.currency == current.currency
        and current.price < previous.price
    ):
        return PriceDropEvent(
            date=current.date,
            old_price=previous.price,
            new_price=current.price,
            currency=current.currency,
        )
    return None
