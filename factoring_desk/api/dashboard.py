"""
Dashboard endpoints: headline metrics, chart breakdown and collection lists
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends

from .system import FactoringSystem, get_factoring_system
from .schemas import (
    parse_date, metrics_response, chart_response, due_this_week_response, past_due_response
)
from ..schedule import DateRange, this_week_range, next_week_range
from ..classifier import loans_due_this_week, past_due_loans
from ..reporting import aggregate_dashboard_metrics, dashboard_chart


router = APIRouter()


def date_range_from_query(date_from: Optional[str], date_to: Optional[str]) -> Optional[DateRange]:
    """Build a DateRange from optional ISO query parameters"""
    try:
        start, end = parse_date(date_from), parse_date(date_to)
        if start is None and end is None:
            return None
        return DateRange(start=start, end=end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _today(today: Optional[str]):
    try:
        return parse_date(today)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _metrics(system: FactoringSystem, date_range, today):
    return aggregate_dashboard_metrics(
        system.loan_manager.list_loans(),
        system.payment_manager.list_payments(),
        date_range=date_range,
        today=today,
        grace_period_days=system.grace_period_days
    )


@router.get("/metrics")
async def get_dashboard_metrics(
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    today: Optional[str] = None,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Outstanding, past due, collected, active loans and due this week"""
    metrics = _metrics(system, date_range_from_query(date_from, date_to), _today(today))
    return metrics_response(metrics)


@router.get("/chart")
async def get_dashboard_chart(
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    today: Optional[str] = None,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Portfolio breakdown segments"""
    metrics = _metrics(system, date_range_from_query(date_from, date_to), _today(today))
    return {"segments": chart_response(dashboard_chart(metrics))}


@router.get("/due-this-week")
async def get_loans_due_this_week(
    today: Optional[str] = None,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Active loans with installments due this week, earliest first"""
    reference = _today(today)
    week = this_week_range(reference)
    groups = loans_due_this_week(
        system.loan_manager.list_loans(),
        system.directory_manager.list_clients(),
        today=reference,
        grace_period_days=system.grace_period_days
    )
    return {
        "week_start": week.start.isoformat(),
        "week_end": week.end.isoformat(),
        "loans": [due_this_week_response(group) for group in groups],
        "count": len(groups)
    }


@router.get("/past-due")
async def get_past_due_loans(
    today: Optional[str] = None,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Active loans with missed installments, most days past due first"""
    groups = past_due_loans(
        system.loan_manager.list_loans(),
        system.directory_manager.list_clients(),
        today=_today(today),
        grace_period_days=system.grace_period_days
    )
    return {"loans": [past_due_response(group) for group in groups], "count": len(groups)}


@router.get("/weeks")
async def get_week_ranges(today: Optional[str] = None):
    """Monday-Friday ranges for this week and next"""
    reference = _today(today)
    current, following = this_week_range(reference), next_week_range(reference)
    return {
        "this_week": {"start": current.start.isoformat(), "end": current.end.isoformat()},
        "next_week": {"start": following.start.isoformat(), "end": following.end.isoformat()}
    }
