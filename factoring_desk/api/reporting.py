"""
Reporting endpoints
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends

from .system import FactoringSystem, get_factoring_system
from .schemas import company_summary_response
from .dashboard import date_range_from_query
from ..reporting import CompanySummaryFilter, summarize_by_company


router = APIRouter()


@router.get("/company-summary")
async def get_company_summary(
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    client_id: Optional[str] = None,
    sister_company_id: Optional[str] = None,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Paid, overdue and fee totals per company"""
    directory = system.directory_manager

    client_name = None
    if client_id:
        client = directory.get_client(client_id)
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")
        client_name = client.name

    company_name = None
    if sister_company_id:
        company = directory.get_sister_company(sister_company_id)
        if not company:
            raise HTTPException(status_code=404, detail="Sister company not found")
        company_name = company.name

    summaries = summarize_by_company(
        system.loan_manager.list_loans(),
        system.payment_manager.list_payments(),
        directory.list_sister_companies(),
        CompanySummaryFilter(
            date_range=date_range_from_query(date_from, date_to),
            client_name=client_name,
            company_name=company_name
        )
    )
    return {
        "companies": [company_summary_response(summary) for summary in summaries],
        "count": len(summaries)
    }
