"""Read-only sales reports over paid orders."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from shared.core import get_logger
from storefront.domain.errors import InvalidRequest
from storefront.domain.models import to_money, utcnow
from storefront.infrastructure.repositories import OrderRepository
from .schemas import AverageTicket, BuyerSummary, RevenueReport

logger = get_logger(__name__)


def _month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    if not 1 <= month <= 12:
        raise InvalidRequest(f"Month must be between 1 and 12, got {month}", {"field": "month"})
    if not 1 <= year <= 9999:
        raise InvalidRequest(f"Invalid year {year}", {"field": "year"})
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class ReportService:
    def __init__(self, db: Session):
        self.orders = OrderRepository(db)

    def top_buyers(self, limit: int = 5) -> list[BuyerSummary]:
        logger.info(f"Building top {limit} buyers report")
        return [
            BuyerSummary(
                user_id=row.id,
                name=row.name,
                email=row.email,
                order_count=row.order_count,
                total_spent=to_money(row.total_spent),
            )
            for row in self.orders.top_buyers(limit)
        ]

    def average_ticket_by_user(self) -> list[AverageTicket]:
        logger.info("Building average ticket report")
        return [
            AverageTicket(
                user_id=row.id,
                name=row.name,
                email=row.email,
                order_count=row.order_count,
                average_ticket=to_money(Decimal(row.total_spent) / row.order_count),
                total_spent=to_money(row.total_spent),
            )
            for row in self.orders.average_ticket_by_user()
        ]

    def revenue_for_month(self, year: int, month: int) -> RevenueReport:
        start, end = _month_bounds(year, month)
        logger.info(f"Computing revenue for {year}-{month:02d}")
        total = self.orders.revenue_between(start, end, end_inclusive=False)
        return RevenueReport(period=f"{year}-{month:02d}", start=start, end=end, total_revenue=to_money(total))

    def revenue_current_month(self, now: Optional[datetime] = None) -> RevenueReport:
        now = now or utcnow()
        return self.revenue_for_month(now.year, now.month)

    def revenue_between(self, start: datetime, end: datetime) -> RevenueReport:
        start, end = _naive_utc(start), _naive_utc(end)
        if start > end:
            raise InvalidRequest("Start must not be after end", {"field": "start"})
        logger.info(f"Computing revenue between {start} and {end}")
        total = self.orders.revenue_between(start, end)
        return RevenueReport(period="custom", start=start, end=end, total_revenue=to_money(total))
