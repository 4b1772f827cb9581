import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mangum import Mangum

from accounts.api import router as accounts_router
from core.config import get_settings
from core.errors import (
    AlreadyProcessedError,
    DependencyFailureError,
    DuplicateError,
    ForbiddenError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidReferenceError,
    LedgerIntegrityError,
    NotFoundError,
    ServiceError,
    UnauthorizedError,
)
from core.logging_config import configure_logging
from ledger.api import router as ledger_router
from redemptions.api import router as redemptions_router
from referrals.api import router as referrals_router
from withdrawals.api import router as withdrawals_router

logger = structlog.get_logger()

STATUS_CODES = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    AlreadyProcessedError: status.HTTP_409_CONFLICT,
    DuplicateError: status.HTTP_409_CONFLICT,
    InsufficientFundsError: status.HTTP_400_BAD_REQUEST,
    InvalidAmountError: status.HTTP_400_BAD_REQUEST,
    InvalidReferenceError: status.HTTP_400_BAD_REQUEST,
    UnauthorizedError: status.HTTP_401_UNAUTHORIZED,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    DependencyFailureError: status.HTTP_502_BAD_GATEWAY,
    LedgerIntegrityError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

settings = get_settings()
configure_logging(settings)

app = FastAPI(
    title="Gift Card Rewards API",
    description="Gift card redemptions, referral bonuses and withdrawals backed by a balance ledger",
    version="1.0.0",
    debug=settings.debug,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    status_code = STATUS_CODES.get(type(exc), status.HTTP_400_BAD_REQUEST)
    error = exc.to_dict()
    if status_code >= 500:
        logger.error("Request failed", path=request.url.path, kind=exc.kind, error=exc.message)
        if settings.is_production:
            error["message"] = "The request could not be completed"
    else:
        logger.info("Request rejected", path=request.url.path, kind=exc.kind)
    return JSONResponse(status_code=status_code, content={"error": error})


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "giftcard-rewards"}


app.include_router(accounts_router)
app.include_router(ledger_router)
app.include_router(referrals_router)
app.include_router(redemptions_router)
app.include_router(withdrawals_router)

handler = Mangum(app)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
