"""Core data models for hotelwatch."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

JPY = "JPY"
TWD = "TWD"
USD = "USD"
SUPPORTED_CURRENCIES = (JPY, TWD, USD)

CURRENCY_SYMBOLS = {
    JPY: "¥",
    TWD: "NT$",
    USD: "US$",
}

# Exclusive lower bounds for a room rate; anything at or below is a badge or fee.
MIN_PLAUSIBLE_PRICES = {
    JPY: 500,
    TWD: 500,
    USD: 20,
}


@dataclass(frozen=True)
class CheckinRecord:
    """Availability and price observed for a single check-in date."""

    date: str
    is_available: bool
    price: Optional[int] = None
    currency: Optional[str] = None
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if self.price is not None and self.currency is None:
            raise ValueError(f"price without currency for {self.date}")
        if self.currency is not None and self.currency not in SUPPORTED_CURRENCIES:
            raise ValueError(f"unsupported currency {self.currency!r}")

    @classmethod
    def failed(cls, date: str, error: str) -> "CheckinRecord":
        return cls(date=date, is_available=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the camelCase keys the dashboard reads."""
        payload: Dict[str, Any] = {
            "isAvailable": self.is_available,
            "price": self.price,
            "currency": self.currency,
        }
        if self.error:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_dict(cls, date: str, payload: Dict[str, Any]) -> "CheckinRecord":
        price = payload.get("price")
        currency = payload.get("currency")
        if price is not None:
            price = int(price)
        if currency not in SUPPORTED_CURRENCIES:
            currency = None
        if currency is None:
            # Legacy state files stored bare prices without a currency tag.
            price = None
        return cls(
            date=date,
            is_available=bool(payload.get("isAvailable", False)),
            price=price,
            currency=currency,
            error=payload.get("error") or None,
        )


Snapshot = Dict[str, CheckinRecord]


@dataclass(frozen=True)
class MatchCandidate:
    """A currency-tagged number found inside a room region."""

    value: int
    currency: str
    confidence: int


@dataclass(frozen=True)
class ReleaseEvent:
    """A room became bookable for a date that previously was not."""

    date: str
    price: Optional[int]
    currency: Optional[str]


@dataclass(frozen=True)
class PriceDropEvent:
    """A still-available room got cheaper in the same currency."""

    date: str
    old_price: int
    new_price: int
    currency: str


NotificationEvent = Union[ReleaseEvent, PriceDropEvent]


@dataclass
class RunSummary:
    """Aggregated result returned by a monitoring cycle."""

    executed_at: str
    snapshot: Snapshot
    events: List[NotificationEvent] = field(default_factory=list)
    events_sent: bool = False
    digest_sent: bool = False

    @property
    def failed_dates(self) -> List[str]:
        return [date for date, record in self.snapshot.items() if record.error]

    @property
    def available_dates(self) -> List[str]:
        return [date for date, record in self.snapshot.items() if record.is_available]
