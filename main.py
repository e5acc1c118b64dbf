from fastapi import APIRouter, FastAPI, HTTPException, Header, Request, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from typing import List, Optional
import logging
import structlog
import time
from contextlib import asynccontextmanager

from models import (
    Account,
    AccountCreateRequest,
    ErrorResponse,
    HealthResponse,
    StatementByDateResponse,
    StatementDateRequest,
    StatementEntry,
    StatementOperationRequest,
    StatementResponse,
    WithdrawResponse,
)
from services import LedgerService, get_ledger_service
from repositories import AccountRepository, get_account_repository
from config import Settings, get_settings


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

    if settings.log_format == "text":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


settings = get_settings()
configure_logging(settings)

logger = structlog.get_logger()


# Rate limiting
def mutation_rate_limit() -> str:
    return f"{get_settings().rate_limit_per_minute}/minute"


limiter = Limiter(key_func=get_remote_address)

# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Account Ledger API")
    yield
    # Shutdown
    logger.info("Shutting down Account Ledger API")

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="In-memory account and statement ledger keyed by CPF",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=settings.allowed_methods,
    allow_headers=settings.allowed_headers,
)

# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        client_ip=request.client.host if request.client else None
    )

    response = await call_next(request)

    process_time = time.time() - start_time
    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time=round(process_time, 4)
    )

    return response

# Dependency injection
def get_service(
    account_repo: AccountRepository = Depends(get_account_repository)
) -> LedgerService:
    return get_ledger_service(account_repo)


async def get_current_account(
    cpf: Optional[str] = Header(None),
    service: LedgerService = Depends(get_service)
) -> Account:
    """Resolve the account named by the ``cpf`` header or reject with 401."""
    return await service.resolve_account(cpf)


router = APIRouter(prefix="/account", tags=["account"])


@router.post(
    "/create",
    response_model=Account,
    summary="Create Account",
    responses={400: {"model": ErrorResponse, "description": "Account email or cpf already exists"}}
)
@limiter.limit(mutation_rate_limit)
async def create_account(
    request: Request,
    account_request: AccountCreateRequest,
    service: LedgerService = Depends(get_service)
):
    return await service.create_account(account_request)


@router.get("", response_model=List[Account], include_in_schema=False)
@router.get("/", response_model=List[Account], summary="List Accounts")
async def list_accounts(service: LedgerService = Depends(get_service)):
    return await service.list_accounts()


@router.get(
    "/statement",
    response_model=StatementResponse,
    summary="Get Statement",
    responses={401: {"model": ErrorResponse, "description": "Account not found"}}
)
async def get_statement(
    account: Account = Depends(get_current_account),
    service: LedgerService = Depends(get_service)
):
    return await service.get_statement(account)


@router.post(
    "/statement",
    response_model=StatementByDateResponse,
    summary="Get Statement By Date",
    description="Entries recorded on the given date, with the balance of the whole statement",
    responses={401: {"model": ErrorResponse, "description": "Account not found"}}
)
async def get_statement_by_date(
    date_request: StatementDateRequest,
    account: Account = Depends(get_current_account),
    service: LedgerService = Depends(get_service)
):
    return await service.get_statement_by_date(account, date_request.date)


@router.post(
    "/statement/deposit",
    response_model=StatementEntry,
    summary="Deposit",
    responses={401: {"model": ErrorResponse, "description": "Account not found"}}
)
@limiter.limit(mutation_rate_limit)
async def deposit(
    request: Request,
    operation: StatementOperationRequest,
    account: Account = Depends(get_current_account),
    service: LedgerService = Depends(get_service)
):
    return await service.deposit(account, operation)


@router.post(
    "/statement/withdraw",
    response_model=WithdrawResponse,
    summary="Withdraw",
    responses={
        400: {"model": ErrorResponse, "description": "You don't have enough balance"},
        401: {"model": ErrorResponse, "description": "Account not found"}
    }
)
@limiter.limit(mutation_rate_limit)
async def withdraw(
    request: Request,
    operation: StatementOperationRequest,
    account: Account = Depends(get_current_account),
    service: LedgerService = Depends(get_service)
):
    return await service.withdraw(account, operation)


# Not behind get_current_account: the handler resolves the account itself
# and answers 400 instead of 401.
@router.delete(
    "/statement/delete/{id}",
    response_class=Response,
    summary="Delete Statement Entry",
    responses={400: {"model": ErrorResponse, "description": "Account not found"}}
)
@limiter.limit(mutation_rate_limit)
async def delete_statement_entry(
    request: Request,
    id: str,
    cpf: Optional[str] = Header(None),
    service: LedgerService = Depends(get_service)
):
    await service.delete_statement_entry(cpf, id)
    return Response(status_code=200)


app.include_router(router)


# Health check endpoint
@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Check API health and get ledger statistics"
)
async def health_check(account_repo: AccountRepository = Depends(get_account_repository)):
    try:
        accounts_count = await account_repo.get_accounts_count()
        entries_count = await account_repo.get_entries_count()

        return HealthResponse(
            status="healthy",
            accounts_count=accounts_count,
            statement_entries_count=entries_count
        )
    except Exception as e:
        logger.error("Health check failed", error=str(e))
        raise HTTPException(
            status_code=500,
            detail="Health check failed"
        )

# Global exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None)
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    message = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    logger.warning("Request validation failed", url=str(request.url), error=message)
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(error=message).model_dump()
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        error=str(exc),
        url=str(request.url),
        method=request.method,
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="Internal server error").model_dump()
    )

# Root endpoint
@app.get("/", include_in_schema=False)
async def root():
    return {"message": settings.app_name, "docs": "/docs"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
