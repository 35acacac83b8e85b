"""
Client and sister company endpoints
"""

from fastapi import APIRouter, HTTPException, Depends, status

from .system import FactoringSystem, get_factoring_system
from .schemas import (
    CreateClientRequest, UpdateClientRequest,
    CreateSisterCompanyRequest, UpdateSisterCompanyRequest,
    client_response, sister_company_response, drop_none
)


clients_router = APIRouter()
sister_companies_router = APIRouter()


@clients_router.post("", status_code=status.HTTP_201_CREATED)
async def create_client(
    request: CreateClientRequest,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Create a client"""
    try:
        client = system.directory_manager.create_client(
            name=request.name,
            email=request.email,
            phone=request.phone,
            address=request.address,
            account_executive=request.account_executive
        )
        return client_response(client)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@clients_router.get("")
async def list_clients(system: FactoringSystem = Depends(get_factoring_system)):
    """List clients"""
    clients = system.directory_manager.list_clients()
    return {"clients": [client_response(c) for c in clients], "count": len(clients)}


@clients_router.get("/{client_id}")
async def get_client(
    client_id: str,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Get a client"""
    client = system.directory_manager.get_client(client_id)
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    return client_response(client)


@clients_router.patch("/{client_id}")
async def update_client(
    client_id: str,
    request: UpdateClientRequest,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Update a client"""
    if not system.directory_manager.get_client(client_id):
        raise HTTPException(status_code=404, detail="Client not found")
    try:
        client = system.directory_manager.update_client(client_id, **drop_none(request.model_dump()))
        return client_response(client)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@clients_router.delete("/{client_id}")
async def delete_client(
    client_id: str,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Delete a client"""
    if not system.directory_manager.delete_client(client_id):
        raise HTTPException(status_code=404, detail="Client not found")
    return {"message": "Client deleted successfully"}


@sister_companies_router.post("", status_code=status.HTTP_201_CREATED)
async def create_sister_company(
    request: CreateSisterCompanyRequest,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Create a sister company"""
    try:
        company = system.directory_manager.create_sister_company(
            name=request.name,
            email=request.email,
            phone=request.phone
        )
        return sister_company_response(company)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@sister_companies_router.get("")
async def list_sister_companies(system: FactoringSystem = Depends(get_factoring_system)):
    """List sister companies"""
    companies = system.directory_manager.list_sister_companies()
    return {
        "sister_companies": [sister_company_response(c) for c in companies],
        "count": len(companies)
    }


@sister_companies_router.get("/{company_id}")
async def get_sister_company(
    company_id: str,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Get a sister company"""
    company = system.directory_manager.get_sister_company(company_id)
    if not company:
        raise HTTPException(status_code=404, detail="Sister company not found")
    return sister_company_response(company)


@sister_companies_router.patch("/{company_id}")
async def update_sister_company(
    company_id: str,
    request: UpdateSisterCompanyRequest,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Update a sister company"""
    if not system.directory_manager.get_sister_company(company_id):
        raise HTTPException(status_code=404, detail="Sister company not found")
    try:
        company = system.directory_manager.update_sister_company(
            company_id, **drop_none(request.model_dump())
        )
        return sister_company_response(company)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@sister_companies_router.delete("/{company_id}")
async def delete_sister_company(
    company_id: str,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Delete a sister company"""
    if not system.directory_manager.delete_sister_company(company_id):
        raise HTTPException(status_code=404, detail="Sister company not found")
    return {"message": "Sister company deleted successfully"}
