"""Notification helpers for delivering availability changes and digests."""

from __future__ import annotations

import datetime as dt
import logging
import smtplib
from dataclasses import dataclass
from email.mime.text import MIMEText
from typing import Iterable, List, Optional, Protocol, Tuple
from zoneinfo import ZoneInfo

import requests

from .config import MonitorConfig
from .models import (
    CURRENCY_SYMBOLS,
    NotificationEvent,
    PriceDropEvent,
    ReleaseEvent,
    Snapshot,
)

logger = logging.getLogger(__name__)

UNKNOWN_PRICE = "未知"


class Notifier(Protocol):
    """Protocol defining the notifier contract."""

    def send(self, subject: str, body: str) -> None:
        ...


@dataclass
class EmailNotifier:
    """Send plain-text mail through an SMTP server with STARTTLS (Gmail by default)."""

    username: str
    password: str
    recipient: str
    host: str = "smtp.gmail.com"
    port: int = 587
    timeout: int = 30

    def send(self, subject: str, body: str) -> None:
        message = MIMEText(body, "plain", "utf-8")
        message["Subject"] = subject
        message["From"] = f"Hotel Monitor <{self.username}>"
        message["To"] = self.recipient
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            server.starttls()
            server.login(self.username, self.password)
            server.send_message(message)


@dataclass
class SlackNotifier:
    """Send messages to Slack via Incoming Webhook."""

    webhook_url: str
    timeout: int = 10

    def send(self, subject: str, body: str) -> None:
        payload = {"text": f"*{subject}*\n{body}"}
        response = requests.post(
            self.webhook_url,
            json=payload,
            timeout=self.timeout,
        )
        response.raise_for_status()


@dataclass
class CompositeNotifier:
    """Fan-out notifier that forwards messages to multiple channels."""

    notifiers: List[Notifier]

    def send(self, subject: str, body: str) -> bool:
        """Deliver to every channel; True when at least one succeeded."""
        delivered = False
        for notifier in self.notifiers:
            try:
                notifier.send(subject, body)
            except Exception:  # noqa: BLE001
                logger.exception("Failed to deliver notification via %s", type(notifier).__name__)
            else:
                delivered = True
                logger.info("Delivered %r via %s", subject, type(notifier).__name__)
        return delivered


def build_notifier(config: MonitorConfig) -> CompositeNotifier | None:
    """Construct a notifier from the configured channels."""
    notifiers: list[Notifier] = []

    if config.gmail_user and config.gmail_app_password and config.recipient:
        notifiers.append(
            EmailNotifier(
                username=config.gmail_user,
                password=config.gmail_app_password,
                recipient=config.recipient,
                host=config.smtp_host,
                port=config.smtp_port,
            )
        )
    elif config.gmail_user or config.gmail_app_password or config.recipient:
        logger.warning("Mail settings are incomplete; e-mail notifications disabled")

    if config.slack_webhook:
        notifiers.append(SlackNotifier(webhook_url=config.slack_webhook))

    if not notifiers:
        return None
    return CompositeNotifier(notifiers=notifiers)


def format_price(price: Optional[int], currency: Optional[str]) -> str:
    if price is None:
        return UNKNOWN_PRICE
    symbol = CURRENCY_SYMBOLS.get(currency or "", "")
    return f"{symbol}{price:,}"


def format_event_line(event: NotificationEvent) -> str:
    if isinstance(event, ReleaseEvent):
        return f"【空房釋出】{event.date} 價格：{format_price(event.price, event.currency)}"
    if isinstance(event, PriceDropEvent):
        return (
            f"【價格下降】{event.date} "
            f"{format_price(event.old_price, event.currency)} → "
            f"{format_price(event.new_price, event.currency)}"
        )
    raise TypeError(f"Unsupported event {event!r}")


def format_event_notification(
    config: MonitorConfig,
    events: Iterable[NotificationEvent],
) -> Tuple[str, str] | None:
    """Render events into a (subject, body) pair, or None when there are none."""
    lines = [format_event_line(event) for event in events]
    if not lines:
        return None
    subject = f"【{config.hotel_name}】{config.adults}人房 房況 / 價格變動通知"
    return subject, "\n".join(lines)


def format_digest(
    config: MonitorConfig,
    snapshot: Snapshot,
    now: dt.datetime,
) -> Tuple[str, str]:
    """Render the scheduled status report for every monitored date."""
    local_now = now.astimezone(ZoneInfo(config.report_timezone))
    hours = "、".join(f"{hour:02d}:00" for hour in config.report_hours)
    lines = [
        f"【定時報告】{local_now:%Y/%m/%d %H:%M} ({config.report_timezone})",
        "",
        f"=== {config.hotel_name} {config.adults}人房 房況報告 ===",
        "",
    ]
    for date, record in snapshot.items():
        status = "✅ 有空房" if record.is_available else "❌ 滿房"
        line = f"{date}: {status} | 價格: {format_price(record.price, record.currency)}"
        if record.error:
            line += f" (錯誤: {record.error})"
        lines.append(line)
    lines.extend(
        [
            "",
            f"此為定時報告，每天 {hours} 自動發送。",
            "若有空房釋出或價格下降，將立即另外通知。",
        ]
    )
    subject = f"【定時報告】{config.hotel_name} {config.adults}人房 房況"
    return subject, "\n".join(lines)


def should_send_digest(config: MonitorConfig, now: dt.datetime) -> bool:
    """True when ``now`` falls inside a reporting window in the report timezone."""
    local_now = now.astimezone(ZoneInfo(config.report_timezone))
    return (
        local_now.hour in config.report_hours
        and local_now.minute < config.report_window_minutes
    )


__all__ = [
    "CompositeNotifier",
    "EmailNotifier",
    "Notifier",
    "SlackNotifier",
    "build_notifier",
    "format_digest",
    "format_event_line",
    "format_event_notification",
    "format_price",
    "should_send_digest",
]
