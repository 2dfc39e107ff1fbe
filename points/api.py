import logging
import time
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .logger import setup_logger
from .models import AddTransactionRequest, SpendRequest, Transaction, QueueEntry, ErrorResponse
from .service import (
    PointsService, PointsServiceError, MalformedInputError, InternalInconsistencyError,
)

log = logging.getLogger(__name__)


def _error(status_code: int, kind: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": kind, "detail": detail})


def create_app(service: Optional[PointsService] = None) -> FastAPI:
    settings = get_settings()
    setup_logger()
    points_service = service or PointsService()

    app = FastAPI(
        title="Points Ledger API",
        description="Points ledger that spends payer credits oldest first without letting any payer go negative",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        log.info(
            "%s %s -> %d in %.1fms",
            request.method, request.url.path, response.status_code,
            (time.perf_counter() - start) * 1000,
        )
        return response

    @app.exception_handler(RequestValidationError)
    async def malformed_input(request: Request, exc: RequestValidationError):
        return _error(status.HTTP_400_BAD_REQUEST, MalformedInputError.kind, str(exc.errors()))

    @app.exception_handler(PointsServiceError)
    async def rejected(request: Request, exc: PointsServiceError):
        return _error(status.HTTP_400_BAD_REQUEST, exc.kind, str(exc))

    @app.exception_handler(InternalInconsistencyError)
    async def inconsistent(request: Request, exc: InternalInconsistencyError):
        log.error("internal inconsistency on %s %s", request.method, request.url.path, exc_info=exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.kind, str(exc))

    error_responses = {400: {"model": ErrorResponse}}

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": settings.service_name}

    @app.post(
        "/add-transaction", response_model=Transaction, status_code=status.HTTP_201_CREATED,
        responses=error_responses, tags=["Transactions"],
    )
    def add_transaction(request: AddTransactionRequest) -> Transaction:
        try:
            transaction = request.to_transaction()
        except ValueError as e:
            raise MalformedInputError(str(e)) from e
        return points_service.add_transaction(transaction)

    @app.post("/spend", response_model=dict[str, int], responses=error_responses, tags=["Transactions"])
    def spend(request: SpendRequest) -> dict[str, int]:
        return points_service.spend(request.points)

    @app.get("/balance", response_model=dict[str, int], tags=["Balances"])
    def get_balances() -> dict[str, int]:
        return points_service.balances()

    @app.get("/balance/{payer}", response_model=dict[str, int], tags=["Balances"])
    def get_payer_balance(payer: str) -> dict[str, int]:
        return points_service.balance(payer)

    @app.get("/check", response_model=dict[str, list[Transaction]], tags=["Diagnostics"])
    def check_ledger() -> dict[str, list[Transaction]]:
        return {
            payer: list(transactions)
            for payer, transactions in points_service.ledger_snapshot().items()
        }

    @app.get("/queue", response_model=list[QueueEntry], tags=["Diagnostics"])
    def check_queue() -> list[QueueEntry]:
        return points_service.queue_entries()

    @app.get("/queue/drain", response_model=list[QueueEntry], tags=["Diagnostics"])
    def drain_queue() -> list[QueueEntry]:
        return points_service.queue_ordered()

    return app


app = create_app()


def main() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
