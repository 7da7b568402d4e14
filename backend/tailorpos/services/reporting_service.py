# Overview: Daily sales aggregates and the date-range profit report built on them.

from __future__ import annotations

from datetime import date, timedelta

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DailyStat
from ..time_utils import business_today, date_key, parse_date_key
from ..validation import ConflictError, ValidationError


class ReportError(ValidationError):
    """Raised for bad report parameters."""


REPORT_PERIODS = ("today", "week", "month", "year", "all")
ALL_TIME_START = date(2020, 1, 1)


def record_daily_sale(day: date, total_cents: int, cost_cents: int) -> None:
    """
    Merge-increment the DailyStat row of `day` inside the caller's transaction.

    Insert-if-missing races surface as ConflictError; the caller's retry loop
    re-runs the unit and takes the increment path.
    """
    key = date_key(day)
    stmt = (
        update(DailyStat)
        .where(DailyStat.date == key)
        .values(
            total_sales_cents=DailyStat.total_sales_cents + total_cents,
            total_cost_cents=DailyStat.total_cost_cents + cost_cents,
            order_count=DailyStat.order_count + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if db.session.execute(stmt).rowcount:
        return

    db.session.add(DailyStat(
        date=key,
        total_sales_cents=total_cents,
        total_cost_cents=cost_cents,
        order_count=1,
    ))
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise ConflictError(f"Daily stats for {key} were initialised concurrently") from exc


def _as_date(value, field: str) -> date:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ReportError(f"{field} is required (YYYY-MM-DD)")
    try:
        return parse_date_key(value)
    except ValueError:
        raise ReportError(f"{field} must be a date in YYYY-MM-DD format", details={field: value})


def period_range(period: str, today: date | None = None) -> tuple[date, date]:
    """
    Quick-filter ranges ending today. Weeks start on Sunday; "all" starts at
    the first business year on record.
    """
    today = today or business_today()
    if period == "today":
        return today, today
    if period == "week":
        # date.weekday(): Monday=0 ... Sunday=6
        return today - timedelta(days=(today.weekday() + 1) % 7), today
    if period == "month":
        return today.replace(day=1), today
    if period == "year":
        return today.replace(month=1, day=1), today
    if period == "all":
        return ALL_TIME_START, today
    raise ReportError(f"period must be one of: {', '.join(REPORT_PERIODS)}")


def report(start, end) -> dict:
    """
    Sum DailyStat rows with start <= date <= end (inclusive; YYYY-MM-DD keys
    compare in calendar order as strings).

    profit_margin_pct is left unrounded and is 0 when there were no sales.
    avg_order_value_cents is whole cents with halves rounded up, 0 when there
    were no orders.
    """
    start_day = _as_date(start, "start")
    end_day = _as_date(end, "end")
    if start_day > end_day:
        raise ReportError("start must be on or before end", details={"start": date_key(start_day), "end": date_key(end_day)})

    rows = (
        db.session.query(DailyStat)
        .filter(DailyStat.date >= date_key(start_day), DailyStat.date <= date_key(end_day))
        .order_by(DailyStat.date.asc())
        .all()
    )

    total_sales = sum(r.total_sales_cents for r in rows)
    total_cost = sum(r.total_cost_cents for r in rows)
    order_count = sum(r.order_count for r in rows)
    net_profit = total_sales - total_cost

    margin = net_profit / total_sales * 100 if total_sales else 0
    avg_order = (2 * total_sales + order_count) // (2 * order_count) if order_count else 0

    return {
        "start": date_key(start_day),
        "end": date_key(end_day),
        "total_sales_cents": total_sales,
        "total_cost_cents": total_cost,
        "net_profit_cents": net_profit,
        "profit_margin_pct": margin,
        "order_count": order_count,
        "avg_order_value_cents": avg_order,
        "days": [r.to_dict() for r in rows],
    }


def report_for_period(period: str, today: date | None = None) -> dict:
    start, end = period_range(period, today)
    result = report(start, end)
    result["period"] = period
    return result
