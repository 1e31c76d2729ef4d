"""
Personal Finance API Application Factory
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import FinanceConfig, get_config
from ..errors import FinanceError
from ..logging_config import get_logger
from ..system import FinanceSystem
from .users import router as users_router
from .accounts import router as accounts_router
from .categories import router as categories_router
from .debtors import router as debtors_router
from .debts import router as debts_router
from .transactions import router as transactions_router
from .subscriptions import router as subscriptions_router


logger = get_logger("finance_core.api")


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(FinanceError)
    async def finance_error_handler(request: Request, exc: FinanceError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        messages = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
        return JSONResponse(status_code=400, content={"detail": "; ".join(messages)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app(system: Optional[FinanceSystem] = None, config: Optional[FinanceConfig] = None) -> FastAPI:
    """
    Create and configure the FastAPI application

    Args:
        system: Finance system to serve; built from configuration when omitted
        config: Configuration used when building the system

    Returns:
        FastAPI application with the system on app.state.system
    """
    system = system or FinanceSystem(config=config or get_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        system.start()
        yield
        system.subscription_processor.stop()

    app = FastAPI(
        title="Personal Finance API",
        description="Personal bookkeeping: accounts, transactions, installment plans, subscriptions and debts",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.system = system

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    app.include_router(users_router, prefix="/api/users", tags=["Users"])
    app.include_router(accounts_router, prefix="/api/accounts", tags=["Accounts"])
    app.include_router(categories_router, prefix="/api/categories", tags=["Categories"])
    app.include_router(debtors_router, prefix="/api/debtors", tags=["Debtors"])
    app.include_router(debts_router, prefix="/api/debts", tags=["Debts"])
    app.include_router(transactions_router, prefix="/api/transactions", tags=["Transactions"])
    app.include_router(subscriptions_router, prefix="/api/subscriptions", tags=["Subscriptions"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "finance_api",
            "version": __version__
        }

    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Personal Finance API",
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "users": "/api/users",
                "accounts": "/api/accounts",
                "categories": "/api/categories",
                "debtors": "/api/debtors",
                "debts": "/api/debts",
                "transactions": "/api/transactions",
                "subscriptions": "/api/subscriptions"
            }
        }

    return app
