from datetime import date

import pytest

from tailorpos.models import DailyStat
from tailorpos.services.reporting_service import (
    ALL_TIME_START,
    ReportError,
    period_range,
    record_daily_sale,
    report,
    report_for_period,
)


@pytest.fixture
def stats(db_session):
    for key, sales, cost, orders in [
        ("2026-03-01", 1000, 400, 2),
        ("2026-03-02", 500, 500, 1),
        ("2026-03-10", 300, 0, 3),
    ]:
        db_session.add(DailyStat(date=key, total_sales_cents=sales, total_cost_cents=cost, order_count=orders))
    db_session.commit()


def test_record_daily_sale_inserts_then_increments(db_session):
    day = date(2026, 4, 5)
    record_daily_sale(day, 200, 120)
    record_daily_sale(day, 100, 30)
    db_session.commit()
    db_session.expire_all()

    stat = db_session.get(DailyStat, "2026-04-05")
    assert (stat.total_sales_cents, stat.total_cost_cents, stat.order_count) == (300, 150, 2)


def test_report_sums_inclusive_range(stats):
    result = report("2026-03-01", "2026-03-02")
    assert result["total_sales_cents"] == 1500
    assert result["total_cost_cents"] == 900
    assert result["net_profit_cents"] == 600
    assert result["profit_margin_pct"] == 40.0
    assert result["order_count"] == 3
    assert result["avg_order_value_cents"] == 500
    assert [d["date"] for d in result["days"]] == ["2026-03-01", "2026-03-02"]


def test_report_accepts_dates(stats):
    result = report(date(2026, 3, 2), date(2026, 3, 31))
    assert result["total_sales_cents"] == 800
    assert result["profit_margin_pct"] == 37.5
    assert result["avg_order_value_cents"] == 200


def test_margin_is_not_rounded(db_session):
    db_session.add(DailyStat(date="2026-06-01", total_sales_cents=30000, total_cost_cents=10000, order_count=1))
    db_session.commit()

    result = report("2026-06-01", "2026-06-01")
    assert result["profit_margin_pct"] == (30000 - 10000) / 30000 * 100
    assert result["profit_margin_pct"] != 66.7


@pytest.mark.parametrize("sales,orders,expected", [
    (5, 2, 3),
    (25, 10, 3),
    (7, 3, 2),
    (8, 3, 3),
])
def test_avg_order_value_rounds_halves_up(db_session, sales, orders, expected):
    db_session.add(DailyStat(date="2026-06-02", total_sales_cents=sales, total_cost_cents=0, order_count=orders))
    db_session.commit()

    assert report("2026-06-02", "2026-06-02")["avg_order_value_cents"] == expected


def test_empty_range_has_zero_margin(stats):
    result = report("2025-01-01", "2025-12-31")
    assert result["total_sales_cents"] == 0
    assert result["profit_margin_pct"] == 0
    assert result["avg_order_value_cents"] == 0
    assert result["days"] == []


@pytest.mark.parametrize("start,end", [
    ("2026-03-10", "2026-03-01"),
    ("03/01/2026", "2026-03-02"),
    ("", "2026-03-02"),
    (None, "2026-03-02"),
])
def test_bad_ranges(db_session, start, end):
    with pytest.raises(ReportError):
        report(start, end)


@pytest.mark.parametrize("period,expected_start", [
    ("today", date(2026, 3, 11)),
    ("week", date(2026, 3, 8)),  # Wednesday -> previous Sunday
    ("month", date(2026, 3, 1)),
    ("year", date(2026, 1, 1)),
    ("all", ALL_TIME_START),
])
def test_period_range(period, expected_start):
    today = date(2026, 3, 11)
    assert period_range(period, today) == (expected_start, today)


def test_week_starting_on_sunday_is_a_single_day():
    sunday = date(2026, 3, 8)
    assert period_range("week", sunday) == (sunday, sunday)


def test_unknown_period():
    with pytest.raises(ReportError):
        period_range("fortnight", date(2026, 3, 11))


def test_report_for_period(stats):
    result = report_for_period("month", today=date(2026, 3, 11))
    assert result["period"] == "month"
    assert result["start"] == "2026-03-01"
    assert result["total_sales_cents"] == 1800
