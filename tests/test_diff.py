from hotelwatch.diff import diff_snapshots
from hotelwatch.models import CheckinRecord, PriceDropEvent, ReleaseEvent


def record(date, available, price=None, currency=None, error=None):
    return CheckinRecord(
        date=date,
        is_available=available,
        price=price,
        currency=currency,
        error=error,
    )


def test_release_when_room_becomes_available():
    previous = {"2026/04/17": record("2026/04/17", False)}
    current = {"2026/04/17": record("2026/04/17", True, 6800, "TWD")}

    assert diff_snapshots(previous, current) == [
        ReleaseEvent(date="2026/04/17", price=6800, currency="TWD")
    ]


def test_release_on_first_observation():
    current = {"2026/04/19": record("2026/04/19", True)}

    assert diff_snapshots({}, current) == [
        ReleaseEvent(date="2026/04/19", price=None, currency=None)
    ]


def test_price_drop_in_same_currency():
    previous = {"2026/04/18": record("2026/04/18", True, 9000, "JPY")}
    current = {"2026/04/18": record("2026/04/18", True, 8500, "JPY")}

    assert diff_snapshots(previous, current) == [
        PriceDropEvent(date="2026/04/18", old_price=9000, new_price=8500, currency="JPY")
    ]


def test_price_increase_and_equal_price_are_silent():
    previous = {
        "2026/04/18": record("2026/04/18", True, 9000, "JPY"),
        "2026/04/19": record("2026/04/19", True, 9000, "JPY"),
    }
    current = {
        "2026/04/18": record("2026/04/18", True, 9500, "JPY"),
        "2026/04/19": record("2026/04/19", True, 9000, "JPY"),
    }

    assert diff_snapshots(previous, current) == []


def test_currency_mismatch_is_not_compared():
    previous = {"2026/04/18": record("2026/04/18", True, 9000, "JPY")}
    current = {"2026/04/18": record("2026/04/18", True, 6800, "TWD")}

    assert diff_snapshots(previous, current) == []


def test_missing_price_on_either_side_is_silent():
    previous = {
        "2026/04/18": record("2026/04/18", True),
        "2026/04/19": record("2026/04/19", True, 9000, "JPY"),
    }
    current = {
        "2026/04/18": record("2026/04/18", True, 5000, "JPY"),
        "2026/04/19": record("2026/04/19", True),
    }

    assert diff_snapshots(previous, current) == []


def test_sell_out_and_continued_unavailability_are_silent():
    previous = {
        "2026/04/17": record("2026/04/17", True, 6800, "TWD"),
        "2026/04/18": record("2026/04/18", False),
    }
    current = {
        "2026/04/17": record("2026/04/17", False),
        "2026/04/18": record("2026/04/18", False, error="room not found"),
    }

    assert diff_snapshots(previous, current) == []


def test_events_are_sorted_by_date_and_deterministic():
    previous = {"2026/04/20": record("2026/04/20", True, 7000, "TWD")}
    current = {
        "2026/04/21": record("2026/04/21", True, 6500, "TWD"),
        "2026/04/20": record("2026/04/20", True, 6000, "TWD"),
        "2026/04/17": record("2026/04/17", True, 6800, "TWD"),
    }

    events = diff_snapshots(previous, current)

    assert [event.date for event in events] == ["2026/04/17", "2026/04/20", "2026/04/21"]
    assert isinstance(events[1], PriceDropEvent)
    assert diff_snapshots(previous, current) == events


def test_dates_only_in_previous_are_ignored():
    previous = {"2026/04/16": record("2026/04/16", False)}
    current = {"2026/04/17": record("2026/04/17", False)}

    assert diff_snapshots(previous, current) == []
