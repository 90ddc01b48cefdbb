"""Monitor configuration loaded once at process start."""

from __future__ import annotations

import datetime as dt
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import parse_qs, urlencode, urlparse

from .models import MIN_PLAUSIBLE_PRICES, SUPPORTED_CURRENCIES, TWD

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.json"
DEFAULT_STATE_PATH = "last_state.json"
DEFAULT_DATABASE_URL = "sqlite:///hotel_monitor.db"
BOOKING_RESULT_URL = "https://reserve.daiwaroynet.jp/booking/result"

DEFAULT_ROOM_KEYWORDS = (
    "4名",
    "4人",
    "四人",
    "4 Guests",
    "Quadruple",
    "フォース",
)

_DATE_PATTERN = re.compile(r"^\s*(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})\s*$")


class ConfigError(ValueError):
    """Raised when the monitor configuration is missing or invalid."""


def normalize_date(value: str) -> str:
    """Return ``value`` in canonical ``YYYY/MM/DD`` form."""
    match = _DATE_PATTERN.match(str(value))
    if not match:
        raise ConfigError(f"Invalid check-in date {value!r}; expected YYYY/MM/DD")
    year, month, day = (int(part) for part in match.groups())
    try:
        parsed = dt.date(year, month, day)
    except ValueError as exc:
        raise ConfigError(f"Invalid check-in date {value!r}: {exc}") from exc
    return parsed.strftime("%Y/%m/%d")


def parse_date(value: str) -> dt.date:
    return dt.datetime.strptime(value, "%Y/%m/%d").date()


@dataclass(frozen=True)
class MonitorConfig:
    """Immutable run configuration shared by runner, notifier and stores."""

    hotel_name: str
    hotel_code: str
    checkin_dates: Tuple[str, ...]
    room_keywords: Tuple[str, ...] = DEFAULT_ROOM_KEYWORDS
    adults: int = 4
    currency: str = TWD
    booking_url: str = BOOKING_RESULT_URL
    recipient: str = ""
    gmail_user: str = ""
    gmail_app_password: str = ""
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    slack_webhook: str = ""
    state_path: Path = field(default_factory=lambda: Path(DEFAULT_STATE_PATH))
    database_url: str = DEFAULT_DATABASE_URL
    navigation_timeout_ms: int = 60_000
    stabilize_ms: int = 8_000
    request_delay_ms: int = 2_000
    min_prices: Mapping[str, int] = field(default_factory=lambda: dict(MIN_PLAUSIBLE_PRICES))
    max_price: int = 1_000_000
    report_timezone: str = "Asia/Taipei"
    report_hours: Tuple[int, ...] = (6, 18)
    report_window_minutes: int = 30

    def __post_init__(self) -> None:
        if len(self.checkin_dates) < 2:
            raise ConfigError(
                "At least two check-in dates are required; the last one is only the checkout boundary"
            )
        if self.currency not in SUPPORTED_CURRENCIES:
            raise ConfigError(
                f"Unsupported currency {self.currency!r}; choose one of {', '.join(SUPPORTED_CURRENCIES)}"
            )
        if not self.room_keywords:
            raise ConfigError("roomKeywords must not be empty")
        if self.adults < 1:
            raise ConfigError("adults must be a positive integer")

    def stay_pairs(self) -> List[Tuple[str, str]]:
        """Return (checkin, checkout) pairs; the final date is never queried."""
        return list(zip(self.checkin_dates[:-1], self.checkin_dates[1:]))

    def currency_priority(self) -> List[str]:
        return [self.currency] + [
            code for code in SUPPORTED_CURRENCIES if code != self.currency
        ]

    def build_url(self, checkin: str, checkout: str, currency: str) -> str:
        rooms = json.dumps([{"adults": self.adults}], separators=(",", ":"))
        query = urlencode(
            [
                ("code", self.hotel_code),
                ("checkin", checkin),
                ("checkout", checkout),
                ("type", "rooms"),
                ("is_day_use", "false"),
                ("rooms", rooms),
                ("order", "recommended"),
                ("is_including_occupied", "false"),
                ("mcp_currency", currency),
            ]
        )
        return f"{self.booking_url}?{query}"


def load_config(
    path: str | Path | None = None,
    env: Optional[Mapping[str, str]] = None,
) -> MonitorConfig:
    """Read ``config.json`` plus environment overrides into a MonitorConfig."""
    env = os.environ if env is None else env
    config_path = Path(path or env.get("CONFIG_PATH") or DEFAULT_CONFIG_PATH)
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"Configuration file not found: {config_path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Configuration file {config_path} is not valid JSON: {exc}") from exc

    logger.debug("Loaded configuration from %s", config_path)
    return config_from_dict(raw, env=env)


def config_from_dict(
    raw: Dict[str, Any],
    env: Optional[Mapping[str, str]] = None,
) -> MonitorConfig:
    env = {} if env is None else env
    hotel = raw.get("hotel") or {}
    monitoring = raw.get("monitoring") or {}
    notification = raw.get("notification") or {}

    hotel_url = (hotel.get("url") or "").strip()
    code = (hotel.get("code") or "").strip() or _code_from_url(hotel_url)
    if not code:
        raise ConfigError("hotel.code is required (or a hotel.url carrying ?code=)")

    dates = tuple(normalize_date(value) for value in monitoring.get("checkinDates") or [])
    keywords = tuple(
        keyword.strip()
        for keyword in monitoring.get("roomKeywords") or DEFAULT_ROOM_KEYWORDS
        if keyword and keyword.strip()
    )

    try:
        adults = int(monitoring.get("adults", 4))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"adults must be an integer: {exc}") from exc

    try:
        smtp_port = int(env.get("SMTP_PORT") or 587)
    except ValueError as exc:
        raise ConfigError(f"SMTP_PORT must be an integer: {exc}") from exc

    recipient = (env.get("MAIL_TO") or notification.get("email") or "").strip()

    return MonitorConfig(
        hotel_name=(hotel.get("name") or "").strip() or code,
        hotel_code=code,
        checkin_dates=dates,
        room_keywords=keywords,
        adults=adults,
        currency=str(monitoring.get("currency") or TWD).upper(),
        booking_url=_booking_base(hotel_url),
        recipient=recipient,
        gmail_user=(env.get("GMAIL_USER") or "").strip(),
        gmail_app_password=(env.get("GMAIL_APP_PASSWORD") or "").strip(),
        smtp_host=(env.get("SMTP_HOST") or "smtp.gmail.com").strip(),
        smtp_port=smtp_port,
        slack_webhook=(env.get("SLACK_WEBHOOK") or "").strip(),
        state_path=Path(env.get("STATE_FILE") or DEFAULT_STATE_PATH),
        database_url=env.get("DATABASE_URL") or DEFAULT_DATABASE_URL,
    )


def _code_from_url(url: str) -> str:
    if not url:
        return ""
    values = parse_qs(urlparse(url).query).get("code") or [""]
    return values[0].strip()


def _booking_base(url: str) -> str:
    if not url:
        return BOOKING_RESULT_URL
    parsed = urlparse(url)
    path = parsed.path.rstrip("/")
    if not parsed.scheme or not parsed.netloc or not path.endswith("/booking/result"):
        # hotel.url may point at the hotel's landing page rather than the search.
        return BOOKING_RESULT_URL
    return f"{parsed.scheme}://{parsed.netloc}{path}"
