"""Currency resolution: retry extraction across a prioritized currency list."""

from __future__ import annotations

import enum
import logging
from typing import Callable, Optional, Sequence

from .browser import PageContentProvider
from .models import CheckinRecord

logger = logging.getLogger(__name__)

Extract = Callable[[str, str], CheckinRecord]
BuildUrl = Callable[[str], str]


class Decision(enum.Enum):
    ACCEPT = "accept"
    CONTINUE = "continue"


def judge(record: CheckinRecord, requested_currency: str) -> Decision:
    """Decide whether an attempt in ``requested_currency`` settles the date."""
    if not record.is_available:
        # An extraction failure is indeterminate and worth another rendering;
        # a sold-out room is sold out in every currency.
        return Decision.CONTINUE if record.error else Decision.ACCEPT
    if record.price is not None and record.currency == requested_currency:
        return Decision.ACCEPT
    return Decision.CONTINUE


async def resolve_record(
    provider: PageContentProvider,
    currencies: Sequence[str],
    build_url: BuildUrl,
    extract: Extract,
    *,
    stabilize_ms: int = 0,
) -> Optional[CheckinRecord]:
    """Run attempts in ``currencies`` order until one is accepted.

    ``build_url(currency)`` gives the results page for one currency and
    ``extract(content, currency)`` turns its content into a record. When all
    currencies are exhausted the last record obtained is returned, even if it
    still lacks a price. A failing attempt propagates only while no record has
    been obtained; after that it ends resolution with the last record.
    """
    record: Optional[CheckinRecord] = None
    for currency in currencies:
        try:
            attempt = await _attempt(provider, build_url, extract, currency, stabilize_ms)
        except Exception as exc:  # noqa: BLE001
            if record is None:
                raise
            logger.warning(
                "Attempt %s failed (%s); keeping result from earlier attempt", currency, exc
            )
            return record
        record = attempt

        decision = judge(record, currency)
        logger.info(
            "Attempt %s: available=%s price=%s %s -> %s",
            currency,
            record.is_available,
            record.price,
            record.currency or "",
            decision.value,
        )
        if decision is Decision.ACCEPT:
            return record

    logger.info("Currency list exhausted; keeping last result")
    return record


async def _attempt(
    provider: PageContentProvider,
    build_url: BuildUrl,
    extract: Extract,
    currency: str,
    stabilize_ms: int,
) -> CheckinRecord:
    await provider.navigate(build_url(currency))
    if stabilize_ms:
        await provider.wait_stable(stabilize_ms)
    record = extract(await provider.content(), currency)
    if _priced_elsewhere(record, currency):
        record = await _retry_with_switch(provider, extract, currency, record)
    return record


def _priced_elsewhere(record: CheckinRecord, currency: str) -> bool:
    return (
        record.is_available
        and record.price is not None
        and record.currency != currency
    )


async def _retry_with_switch(
    provider: PageContentProvider,
    extract: Extract,
    currency: str,
    record: CheckinRecord,
) -> CheckinRecord:
    """Try the site's currency menu once; any failure keeps ``record``."""
    try:
        switched = await provider.switch_currency(currency)
        if not switched:
            return record
        retried = extract(await provider.content(), currency)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Currency switch to %s failed: %s", currency, exc)
        return record
    if judge(retried, currency) is Decision.ACCEPT:
        return retried
    return record
