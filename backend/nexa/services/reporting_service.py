# Overview: Read-only aggregates for the dashboard and sales reports.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import AccountReceivable, Product, Sale, SaleItem
from ..time_utils import parse_iso_datetime, to_utc_z, utcnow
from .finance_service import summarize


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        raise ReportError("start/end must be ISO-8601 datetimes")
    return start_dt, end_dt


def dashboard(now: datetime | None = None) -> dict:
    """
    Today's sales, month-to-date cash flow, low stock and open receivables.

    Day and month boundaries are UTC.
    """
    now = now or utcnow()
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    month_start = day_start.replace(day=1)

    sales_today = db.session.query(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.total_cents), 0),
    ).filter(Sale.created_at >= day_start, Sale.created_at < day_start + timedelta(days=1)).one()

    low_stock_count = (
        db.session.query(func.count(Product.id))
        .filter(Product.is_active.is_(True), Product.stock_qty <= Product.min_stock)
        .scalar()
    )

    receivables_open = db.session.query(
        func.count(AccountReceivable.id),
        func.coalesce(func.sum(AccountReceivable.amount_cents), 0),
    ).filter(AccountReceivable.status == "pending").one()

    month = summarize(start=month_start, end=now)

    return {
        "generated_at": to_utc_z(now),
        "sales_today": {
            "count": int(sales_today[0] or 0),
            "total_cents": int(sales_today[1] or 0),
        },
        "month": month,
        "low_stock_count": int(low_stock_count or 0),
        "receivables_pending": {
            "count": int(receivables_open[0] or 0),
            "total_cents": int(receivables_open[1] or 0),
        },
    }


def sales_report(*, start: str | None, end: str | None, group_by: str = "day") -> dict:
    start_dt, end_dt = _parse_range(start, end)

    if group_by == "day":
        period_expr = func.strftime("%Y-%m-%d", Sale.created_at)
    elif group_by == "month":
        period_expr = func.strftime("%Y-%m", Sale.created_at)
    else:
        raise ReportError("group_by must be day or month")

    query = db.session.query(
        period_expr.label("period"),
        func.count(Sale.id).label("sales_count"),
        func.coalesce(func.sum(Sale.total_cents), 0).label("total_cents"),
        func.coalesce(func.sum(Sale.discount_cents), 0).label("discount_cents"),
    )
    if start_dt:
        query = query.filter(Sale.created_at >= start_dt)
    if end_dt:
        query = query.filter(Sale.created_at <= end_dt)

    rows = query.group_by("period").order_by("period").all()
    return {
        "group_by": group_by,
        "start": to_utc_z(start_dt) if start_dt else None,
        "end": to_utc_z(end_dt) if end_dt else None,
        "rows": [
            {
                "period": row.period,
                "sales_count": int(row.sales_count or 0),
                "total_cents": int(row.total_cents or 0),
                "discount_cents": int(row.discount_cents or 0),
            }
            for row in rows
        ],
    }


def top_products(*, limit: int = 10) -> list[dict]:
    rows = (
        db.session.query(
            SaleItem.product_name,
            func.sum(SaleItem.quantity).label("quantity"),
            func.sum(SaleItem.total_cents).label("total_cents"),
        )
        .group_by(SaleItem.product_name)
        .order_by(func.sum(SaleItem.total_cents).desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "product_name": row.product_name,
            "quantity": int(row.quantity or 0),
            "total_cents": int(row.total_cents or 0),
        }
        for row in rows
    ]
