from datetime import datetime, timezone

import pytest

from logbook_metrics.metrics import build_metrics, days_between, isoformat_utc
from logbook_metrics.pilots import aggregate_pilots
from logbook_metrics.rows import parse_flights, read_csv_rows


@pytest.fixture
def pilots(logbook_csv):
    return aggregate_pilots(parse_flights(read_csv_rows(logbook_csv)).entries)


def test_summary_matches_pilot_sums(pilots, now):
    document = build_metrics(pilots, now=now)

    assert document["summary"] == {"totalFlights": 3, "totalHours": 4.5}
    assert document["summary"]["totalFlights"] == sum(p["totalFlights"] for p in pilots)
    assert document["summary"]["totalHours"] == pytest.approx(sum(p["totalHours"] for p in pilots))
    assert [p["name"] for p in document["pilots"]] == ["Jane Doe", "John Smith"]


def test_valid_summary_passes_through(pilots, now):
    explicit = {"totalFlights": 99, "totalHours": 123.4}
    document = build_metrics(pilots, now=now, summary=explicit)
    assert document["summary"] == explicit


def test_malformed_summary_is_recomputed(pilots, now):
    document = build_metrics(pilots, now=now, summary={"totalFlights": "many"})
    assert document["summary"] == {"totalFlights": 3, "totalHours": 4.5}


def test_fleet_totals(pilots, now):
    totals = build_metrics(pilots, now=now)["totals"]
    assert totals == {
        "flights": 3,
        "totalHours": 4.5,
        "picHours": 1.5,
        "sicHours": 1.0,
        "dualHours": 0.0,
        "nightHours": 0.5,
        "ifrHours": 0.5,
        "approaches": 0,
        "dayLandings": 4,
        "nightLandings": 1,
    }


def test_rolling_windows_include_the_boundary_day(pilots):
    # Flights on 04-01, 04-09 and 04-10; 04-08 is exactly 7 days back from 04-15
    document = build_metrics(pilots, now=datetime(2024, 4, 15, 23, 59, tzinfo=timezone.utc))
    assert document["rollingTotals"] == {"last7Days": 2.5, "last30Days": 4.5, "last90Days": 4.5}

    document = build_metrics(pilots, now=datetime(2024, 4, 8, tzinfo=timezone.utc))
    # Flights after "now" fall outside every window
    assert document["rollingTotals"] == {"last7Days": 2.0, "last30Days": 2.0, "last90Days": 2.0}

    document = build_metrics(pilots, now=datetime(2024, 4, 16, tzinfo=timezone.utc))
    assert document["rollingTotals"]["last7Days"] == 2.5
    document = build_metrics(pilots, now=datetime(2024, 4, 17, tzinfo=timezone.utc))
    assert document["rollingTotals"]["last7Days"] == 1.0


def test_by_aircraft(pilots, now):
    by_aircraft = build_metrics(pilots, now=now)["byAircraft"]
    assert by_aircraft == {
        "C172": {"flights": 2, "hours": 2.5, "picHours": 1.5, "nightHours": 0.5},
        "PA28": {"flights": 1, "hours": 2.0, "picHours": 0.0, "nightHours": 0.0},
    }
    assert sum(entry["flights"] for entry in by_aircraft.values()) == 3


def test_flights_without_aircraft_are_grouped_as_unknown(now):
    pilots = [{
        "id": "jane_doe",
        "name": "Jane Doe",
        "totalFlights": 2,
        "totalHours": 2.0,
        "flights": [
            {"date": "2024-04-01", "hours": 1.0},
            {"date": "2024-04-02", "hours": 1.0, "aircraft": ""},
        ],
    }]
    assert build_metrics(pilots, now=now)["byAircraft"] == {
        "Unknown": {"flights": 2, "hours": 2.0, "picHours": 0.0, "nightHours": 0.0},
    }


def test_by_month_sorted_and_skips_undated_flights(now):
    pilots = [{
        "id": "jane_doe",
        "name": "Jane Doe",
        "flights": [
            {"date": "2024-03-05", "hours": 1.0},
            {"date": "2023-12-31", "hours": 0.5},
            {"date": "2024-03-20", "hours": 2.0},
            {"date": "garbage", "hours": 4.0},
        ],
    }]
    assert build_metrics(pilots, now=now)["byMonth"] == [
        {"month": "2023-12", "flights": 1, "hours": 0.5},
        {"month": "2024-03", "flights": 2, "hours": 3.0},
    ]


def test_recency(pilots):
    recency = build_metrics(pilots, now=datetime(2024, 4, 15, 8, tzinfo=timezone.utc))["recency"]
    assert recency == {"latestFlightDate": "2024-04-10", "daysSinceLastFlight": 5, "stale": True}

    recency = build_metrics(pilots, now=datetime(2024, 4, 10, 22, tzinfo=timezone.utc))["recency"]
    assert recency["daysSinceLastFlight"] == 0
    assert recency["stale"] is False


def test_empty_pilot_list(now):
    document = build_metrics([], now=now)

    assert document["summary"] == {"totalFlights": 0, "totalHours": 0.0}
    assert document["recency"] == {"latestFlightDate": None, "daysSinceLastFlight": None, "stale": True}
    assert document["rollingTotals"] == {"last7Days": 0.0, "last30Days": 0.0, "last90Days": 0.0}
    assert document["byAircraft"] == {}
    assert document["byMonth"] == []
    assert document["totals"]["flights"] == 0


def test_source_block_and_timestamps(pilots, now):
    issues = [{"rowNumber": 6, "errors": ["hours: Expected a non-negative number"]}]
    document = build_metrics(
        pilots, now=now, issues=issues, source_url="https://example.test/log.csv",
        total_rows=5, skipped=1, invalid=1,
    )

    assert document["source"] == {
        "url": "https://example.test/log.csv",
        "rows": {"total": 5, "valid": 3, "invalid": 1, "skipped": 1},
    }
    assert document["issues"] == issues
    assert document["generatedAt"] == "2024-04-15T12:00:00.000Z"
    assert document["updatedAt"] == document["generatedAt"]


def test_days_between():
    today = datetime(2024, 4, 15).date()
    assert days_between(today, "2024-04-08") == 7
    assert days_between(today, "2024-04-16") == -1
    assert days_between(today, "") is None


def test_isoformat_utc_treats_naive_times_as_utc():
    assert isoformat_utc(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05.000Z"
