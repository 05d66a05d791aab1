from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.dependencies import require_admin
from storefront.application.report_service import ReportService
from storefront.application.schemas import AverageTicket, BuyerSummary, RevenueReport
from storefront.infrastructure.db import get_db

router = APIRouter(prefix="/reports", tags=["reports"], dependencies=[Depends(require_admin)])


@router.get("/top-buyers", response_model=list[BuyerSummary])
def top_buyers(limit: int = Query(5, ge=1, le=100), db: Session = Depends(get_db)):
    """Users with the most paid orders, ties broken by amount spent."""
    return ReportService(db).top_buyers(limit)


@router.get("/average-ticket", response_model=list[AverageTicket])
def average_ticket(db: Session = Depends(get_db)):
    return ReportService(db).average_ticket_by_user()


@router.get("/revenue/current-month", response_model=RevenueReport)
def revenue_current_month(db: Session = Depends(get_db)):
    return ReportService(db).revenue_current_month()


@router.get("/revenue/month", response_model=RevenueReport)
def revenue_for_month(year: int = Query(...), month: int = Query(...), db: Session = Depends(get_db)):
    return ReportService(db).revenue_for_month(year, month)


@router.get("/revenue/period", response_model=RevenueReport)
def revenue_for_period(start: datetime = Query(...), end: datetime = Query(...), db: Session = Depends(get_db)):
    return ReportService(db).revenue_between(start, end)
