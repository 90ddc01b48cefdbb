"""Extraction of availability and price from a rendered results page.

The booking site renders one card per room category with no stable
identifiers, so the extractor works on text: it picks the smallest element
that mentions the tracked room and carries either an availability marker or
a price, decides availability from the markers found there, and ranks every
currency-tagged number inside it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag

from .models import (
    JPY,
    MIN_PLAUSIBLE_PRICES,
    SUPPORTED_CURRENCIES,
    TWD,
    USD,
    CheckinRecord,
    MatchCandidate,
)

logger = logging.getLogger(__name__)

MAX_PLAUSIBLE_PRICE = 1_000_000

AVAILABLE_MARKERS = (
    r"残り\s*\d*\s*室",
    r"空室あり",
    r"予約する",
    r"選択する",
    r"剩餘\s*\d*\s*間",
    r"尚有空房",
    r"可預訂",
    r"立即預訂",
    r"選擇",
    r"\d+\s+rooms?\s+left",
    r"only\s+\d+\s+left",
    r"book\s+now",
    r"\bselect\b",
)
SOLD_OUT_MARKERS = (
    r"満室",
    r"空室なし",
    r"滿房",
    r"客滿",
    r"已售完",
    r"sold\s*out",
    r"no\s+vacancy",
    r"fully\s+booked",
    r"no\s+rooms?\s+available",
)

_AVAILABLE_RE = re.compile("|".join(AVAILABLE_MARKERS), re.IGNORECASE)
_SOLD_OUT_RE = re.compile("|".join(SOLD_OUT_MARKERS), re.IGNORECASE)
_CURRENCY_SYMBOL_RE = re.compile(r"NT\$|US\$|[¥￥$円元]|\b(?:JPY|TWD|USD)\b", re.IGNORECASE)

_SKIPPED_TAGS = ["script", "style", "noscript", "template", "head"]
_AMOUNT = r"(?<![\d,.])(?P<amount>\d{1,3}(?:,\d{3})+|\d+)"


@dataclass(frozen=True)
class PriceMatcher:
    """One currency-tagged number pattern.

    ``currency`` is fixed for symbol patterns; ISO-code patterns leave it as
    ``None`` and read the code from the ``code`` group instead.
    """

    name: str
    pattern: re.Pattern
    currency: Optional[str]
    confidence: int

    def candidates(self, text: str) -> Iterator[MatchCandidate]:
        for match in self.pattern.finditer(text):
            value = int(match.group("amount").replace(",", ""))
            currency = self.currency or match.group("code").upper()
            yield MatchCandidate(value=value, currency=currency, confidence=self.confidence)


PRICE_MATCHERS: Tuple[PriceMatcher, ...] = (
    PriceMatcher("iso-prefix", re.compile(rf"\b(?P<code>JPY|TWD|USD)\s*{_AMOUNT}", re.IGNORECASE), None, 3),
    PriceMatcher("iso-suffix", re.compile(rf"{_AMOUNT}\s*(?P<code>JPY|TWD|USD)\b", re.IGNORECASE), None, 3),
    PriceMatcher("nt-dollar", re.compile(rf"NT\$\s*{_AMOUNT}", re.IGNORECASE), TWD, 3),
    PriceMatcher("us-dollar", re.compile(rf"US\$\s*{_AMOUNT}", re.IGNORECASE), USD, 3),
    PriceMatcher("yen-prefix", re.compile(rf"[¥￥]\s*{_AMOUNT}"), JPY, 2),
    PriceMatcher("yen-suffix", re.compile(rf"{_AMOUNT}\s*円"), JPY, 2),
    PriceMatcher("yuan-suffix", re.compile(rf"{_AMOUNT}\s*元"), TWD, 1),
    PriceMatcher("bare-dollar", re.compile(rf"(?<![A-Za-z])\$\s*{_AMOUNT}"), USD, 1),
)


def extract_record(
    content: str,
    keywords: Sequence[str],
    *,
    date: str,
    requested_currency: str,
    year_sentinel: Optional[int] = None,
    min_prices: Mapping[str, int] = MIN_PLAUSIBLE_PRICES,
    max_price: int = MAX_PLAUSIBLE_PRICE,
) -> CheckinRecord:
    """Build a CheckinRecord for ``date`` from rendered page ``content``.

    When no region mentions one of ``keywords`` next to a marker or a price,
    the record is returned unavailable with ``error`` set. ``year_sentinel``
    defaults to the check-in year so the year printed on the page is never
    mistaken for a price.
    """
    if year_sentinel is None:
        year_sentinel = int(date[:4])

    soup = BeautifulSoup(content or "", "html.parser")
    for tag in soup(_SKIPPED_TAGS):
        if not tag.decomposed:
            tag.decompose()

    region = find_room_region(soup, keywords)
    if region is None:
        logger.info("No region for %s matched room keywords", date)
        return CheckinRecord.failed(
            date, f"room not found for keywords: {', '.join(keywords)}"
        )

    region_text = element_text(region)
    logger.debug("Room region for %s: %s", date, region_text[:200])

    is_available, signal = classify_availability(region_text)
    if signal == "none":
        return CheckinRecord.failed(date, "no availability signal in room region")

    candidates = [
        candidate
        for candidate in scan_candidates(region)
        if is_plausible(candidate, year_sentinel, min_prices, max_price)
    ]
    ranked = rank_candidates(candidates, requested_currency)
    logger.debug("Price candidates for %s (%s): %s", date, requested_currency, ranked)

    best = ranked[0] if ranked else None
    return CheckinRecord(
        date=date,
        is_available=is_available,
        price=best.value if best else None,
        currency=best.currency if best else None,
    )


def element_text(element: Tag) -> str:
    return " ".join(element.get_text(" ", strip=True).split())


def find_room_region(soup: BeautifulSoup, keywords: Sequence[str]) -> Optional[Tag]:
    """Return the smallest element holding a keyword plus a marker or price."""
    folded = [keyword.casefold() for keyword in keywords if keyword]
    best: Optional[Tag] = None
    best_length = 0
    for element in _walk(soup):
        text = element_text(element)
        if not text or (best is not None and len(text) >= best_length):
            continue
        lowered = text.casefold()
        if not any(keyword in lowered for keyword in folded):
            continue
        if not (_has_marker(text) or _has_tagged_number(text)):
            continue
        best, best_length = element, len(text)
    return best


def classify_availability(text: str) -> Tuple[bool, str]:
    """Decide availability from region text.

    Available markers win over sold-out markers; a bare currency symbol is a
    weak positive when neither kind of marker is present.
    """
    if _AVAILABLE_RE.search(text):
        return True, "available"
    if _SOLD_OUT_RE.search(text):
        return False, "sold_out"
    if _CURRENCY_SYMBOL_RE.search(text):
        return True, "currency"
    return False, "none"


def scan_candidates(region: Tag) -> List[MatchCandidate]:
    """Collect unique price candidates from ``region`` and its descendants."""
    seen = set()
    found: List[MatchCandidate] = []
    for element in _walk(region):
        text = element_text(element)
        for matcher in PRICE_MATCHERS:
            for candidate in matcher.candidates(text):
                if candidate not in seen:
                    seen.add(candidate)
                    found.append(candidate)
    return found


def is_plausible(
    candidate: MatchCandidate,
    year_sentinel: Optional[int],
    min_prices: Mapping[str, int] = MIN_PLAUSIBLE_PRICES,
    max_price: int = MAX_PLAUSIBLE_PRICE,
) -> bool:
    """Reject the year sentinel and values outside the per-currency bounds."""
    if candidate.value == year_sentinel:
        return False
    min_price = min_prices.get(
        candidate.currency, MIN_PLAUSIBLE_PRICES.get(candidate.currency, 0)
    )
    return min_price < candidate.value < max_price


def rank_candidates(
    candidates: Iterable[MatchCandidate],
    requested_currency: str,
) -> List[MatchCandidate]:
    """Order candidates best-first.

    Candidates in the requested currency come first, cheapest first. Other
    currencies follow, grouped by matcher confidence and currency, again
    cheapest first, since amounts are not comparable across currencies.
    """

    def key(candidate: MatchCandidate) -> Tuple[int, int, int, int]:
        if candidate.currency == requested_currency:
            return (0, 0, 0, candidate.value)
        return (
            1,
            -candidate.confidence,
            SUPPORTED_CURRENCIES.index(candidate.currency),
            candidate.value,
        )

    return sorted(candidates, key=key)


def _walk(root: Tag) -> Iterator[Tag]:
    yield root
    yield from root.find_all(True)


def _has_marker(text: str) -> bool:
    return bool(_AVAILABLE_RE.search(text) or _SOLD_OUT_RE.search(text))


def _has_tagged_number(text: str) -> bool:
    return any(True for matcher in PRICE_MATCHERS for _ in matcher.candidates(text))
