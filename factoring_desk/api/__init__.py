"""
Factoring Desk API Application Factory
"""

from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .system import FactoringSystem, get_factoring_system
from .loans import router as loans_router
from .payments import router as payments_router
from .directory import clients_router, sister_companies_router
from .users import router as users_router
from .dashboard import router as dashboard_router
from .reporting import router as reporting_router
from .. import __version__
from ..config import get_config
from ..logging_config import setup_logging


def create_app(system: Optional[FactoringSystem] = None) -> FastAPI:
    """
    Create and configure the FastAPI application

    Args:
        system: Components to serve; the module-level system when None
    """
    app = FastAPI(
        title="Factoring Desk API",
        description="Collections back office for weekly-installment factoring loans",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if system is not None:
        app.dependency_overrides[get_factoring_system] = lambda: system

    # Include routers
    app.include_router(loans_router, prefix="/loans", tags=["Loans"])
    app.include_router(payments_router, prefix="/payments", tags=["Payments"])
    app.include_router(clients_router, prefix="/clients", tags=["Clients"])
    app.include_router(sister_companies_router, prefix="/sister-companies", tags=["Sister Companies"])
    app.include_router(users_router, prefix="/users", tags=["Users"])
    app.include_router(dashboard_router, prefix="/dashboard", tags=["Dashboard"])
    app.include_router(reporting_router, prefix="/reports", tags=["Reports"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "factoring_desk_api",
            "version": __version__
        }

    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Factoring Desk API",
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "loans": "/loans",
                "payments": "/payments",
                "clients": "/clients",
                "sister-companies": "/sister-companies",
                "users": "/users",
                "dashboard": "/dashboard",
                "reports": "/reports",
            }
        }

    return app


app = create_app()


def run_server(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Run the FastAPI server with uvicorn"""
    settings = get_config()
    setup_logging()
    uvicorn.run(
        "factoring_desk.api:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=debug,
        workers=None if debug else settings.api_workers,
        log_level=settings.log_level.lower()
    )
