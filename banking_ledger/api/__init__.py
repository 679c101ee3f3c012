"""
Banking Ledger API Application Factory
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from .. import __version__
from ..config import get_config
from ..errors import BankingError, ErrorKind, InsufficientFundsError
from ..logging_config import get_logger
from ..system import BankingSystem
from .accounts import router as accounts_router
from .alerts import router as alerts_router
from .transactions import router as transactions_router


STATUS_BY_KIND = {
    ErrorKind.INVALID_AMOUNT: 400,
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.ACCOUNT_NOT_FOUND: 404,
    ErrorKind.DUPLICATE_ACCOUNT: 409,
    ErrorKind.ACCOUNT_CLOSED: 409,
    ErrorKind.INSUFFICIENT_FUNDS: 422,
    ErrorKind.PERSISTENCE_UNAVAILABLE: 503,
}


def create_app(system: Optional[BankingSystem] = None) -> FastAPI:
    """
    Create and configure the FastAPI application

    Args:
        system: Ledger core to serve. When omitted one is built from the
            global configuration. Serving the app (lifespan) starts the
            balance monitor and shuts the system down on exit.
    """
    system = system or BankingSystem()
    logger = get_logger("banking_ledger.api")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        system.start()
        try:
            yield
        finally:
            system.shutdown()

    app = FastAPI(
        title="Banking Ledger API",
        description="Account ledger with deposits, withdrawals, transfers and balance alerts",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.banking_system = system

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BankingError)
    async def banking_error_handler(request: Request, exc: BankingError):
        status_code = STATUS_BY_KIND.get(exc.kind, 400)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        elif isinstance(exc, InsufficientFundsError):
            logger.info(f"{request.method} {request.url.path} declined: {exc}")
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    app.include_router(accounts_router, prefix="/accounts", tags=["Accounts"])
    app.include_router(transactions_router, prefix="/transactions", tags=["Transactions"])
    app.include_router(alerts_router, prefix="/alerts", tags=["Alerts"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "banking_ledger_api",
            "version": __version__,
            "accounts": system.account_store.count(),
            "monitoring": system.alert_monitor.is_running,
        }

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the FastAPI server"""
    config = get_config()
    uvicorn.run(
        create_app(BankingSystem(config)),
        host=host or config.api_host,
        port=port or config.api_port,
        log_level=config.log_level.lower()
    )
