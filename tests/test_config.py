import json
from pathlib import Path
from urllib.parse import parse_qs, urlparse

import pytest

from hotelwatch.config import (
    BOOKING_RESULT_URL,
    ConfigError,
    MonitorConfig,
    config_from_dict,
    load_config,
    normalize_date,
)

RAW_CONFIG = {
    "hotel": {
        "name": "盛岡站前大和魯內飯店",
        "url": "https://reserve.daiwaroynet.jp/booking/result?code=5871f907",
        "code": "",
    },
    "monitoring": {
        "checkinDates": ["2026/04/17", "2026-4-18", "2026.04.19"],
        "roomKeywords": ["4名", " 四人房 ", ""],
        "adults": "4",
        "currency": "jpy",
    },
    "schedule": {"cron": "*/30 * * * *"},
    "notification": {"email": "owner@example.com"},
}


def test_normalize_date_accepts_common_separators():
    assert normalize_date("2026/04/17") == "2026/04/17"
    assert normalize_date("2026-4-7") == "2026/04/07"
    assert normalize_date(" 2026.12.31 ") == "2026/12/31"


@pytest.mark.parametrize("value", ["2026/13/01", "20260417", "tomorrow"])
def test_normalize_date_rejects_invalid_dates(value):
    with pytest.raises(ConfigError):
        normalize_date(value)


def test_config_from_dict_normalizes_dashboard_payload():
    config = config_from_dict(RAW_CONFIG, env={})

    assert config.hotel_name == "盛岡站前大和魯內飯店"
    assert config.hotel_code == "5871f907"
    assert config.checkin_dates == ("2026/04/17", "2026/04/18", "2026/04/19")
    assert config.room_keywords == ("4名", "四人房")
    assert config.adults == 4
    assert config.currency == "JPY"
    assert config.recipient == "owner@example.com"
    assert config.booking_url == "https://reserve.daiwaroynet.jp/booking/result"


def test_environment_supplies_secrets_and_overrides():
    env = {
        "MAIL_TO": "other@example.com",
        "GMAIL_USER": "me@gmail.com",
        "GMAIL_APP_PASSWORD": "app-pass",
        "SLACK_WEBHOOK": "https://hooks.slack.com/services/test",
        "STATE_FILE": "data/state.json",
        "DATABASE_URL": "sqlite:///data/history.db",
    }

    config = config_from_dict(RAW_CONFIG, env=env)

    assert config.recipient == "other@example.com"
    assert config.gmail_user == "me@gmail.com"
    assert config.gmail_app_password == "app-pass"
    assert config.slack_webhook == "https://hooks.slack.com/services/test"
    assert config.state_path == Path("data/state.json")
    assert config.database_url == "sqlite:///data/history.db"


def test_landing_page_url_falls_back_to_default_booking_url():
    raw = dict(RAW_CONFIG, hotel={"name": "H", "url": "https://www.daiwaroynet.jp/morioka/", "code": "xyz"})

    config = config_from_dict(raw, env={})

    assert config.hotel_code == "xyz"
    assert config.booking_url == BOOKING_RESULT_URL


def test_missing_code_is_rejected():
    raw = dict(RAW_CONFIG, hotel={"name": "H", "url": "", "code": ""})

    with pytest.raises(ConfigError):
        config_from_dict(raw, env={})


def test_unsupported_currency_is_rejected():
    raw = dict(RAW_CONFIG, monitoring=dict(RAW_CONFIG["monitoring"], currency="EUR"))

    with pytest.raises(ConfigError):
        config_from_dict(raw, env={})


def test_single_date_is_rejected():
    with pytest.raises(ConfigError):
        MonitorConfig(hotel_name="H", hotel_code="c", checkin_dates=("2026/04/17",))


def test_stay_pairs_skip_the_final_date():
    config = config_from_dict(RAW_CONFIG, env={})

    assert config.stay_pairs() == [
        ("2026/04/17", "2026/04/18"),
        ("2026/04/18", "2026/04/19"),
    ]


def test_currency_priority_starts_with_display_currency():
    config = config_from_dict(RAW_CONFIG, env={})

    assert config.currency_priority() == ["JPY", "TWD", "USD"]
    usd = MonitorConfig(hotel_name="H", hotel_code="c", checkin_dates=("2026/04/17", "2026/04/18"), currency="USD")
    assert usd.currency_priority() == ["USD", "JPY", "TWD"]


def test_build_url_carries_search_parameters():
    config = config_from_dict(RAW_CONFIG, env={})

    url = config.build_url("2026/04/17", "2026/04/18", "TWD")

    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == config.booking_url
    assert query["code"] == ["5871f907"]
    assert query["checkin"] == ["2026/04/17"]
    assert query["checkout"] == ["2026/04/18"]
    assert query["mcp_currency"] == ["TWD"]
    assert json.loads(query["rooms"][0]) == [{"adults": 4}]


def test_load_config_reads_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(RAW_CONFIG, ensure_ascii=False), encoding="utf-8")

    config = load_config(path, env={})

    assert config.hotel_code == "5871f907"


def test_load_config_reports_missing_and_malformed_files(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.json", env={})

    broken = tmp_path / "broken.json"
    broken.write_text("{", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(broken, env={})


def test_smtp_port_must_be_numeric():
    assert config_from_dict(RAW_CONFIG, env={"SMTP_PORT": "465"}).smtp_port == 465

    with pytest.raises(ConfigError):
        config_from_dict(RAW_CONFIG, env={"SMTP_PORT": "tls"})


def test_price_floors_are_per_currency():
    config = config_from_dict(RAW_CONFIG, env={})

    assert config.min_prices == {"JPY": 500, "TWD": 500, "USD": 20}
