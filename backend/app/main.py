# backend/app/main.py

import asyncio
import logging

from fastapi import FastAPI, Request, status
from sqlalchemy.exc import TimeoutError as SA_TimeoutError
from sqlalchemy.exc import OperationalError
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models  # noqa: F401  (registers tables on Base.metadata)
from .api import api_home_size_dispute
from .core.config import settings
from .core.observability import setup_logging
from .database import get_db_session
from .services.home_size_disputes import expire_stale
from .utils.errors import DisputeError

# Configure logging before creating any loggers
setup_logging()
logger = logging.getLogger(__name__)


# Always use ORJSONResponse for JSON payloads to ensure consistent, fast
# serialization across all endpoints.
app = FastAPI(title="Cleaning Home Size Disputes API", default_response_class=ORJSONResponse)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials="*" not in settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.info("CORS origins set to: %s", settings.CORS_ORIGINS)


@app.middleware("http")
async def catch_exceptions(request: Request, call_next):
    """Return JSON responses for HTTP errors and log them."""
    try:
        response = await call_next(request)
    except StarletteHTTPException as exc:  # return the original status and detail
        logger.error(
            "HTTP error %s at %s: %s", exc.status_code, request.url.path, exc.detail
        )
        response = ORJSONResponse(
            status_code=exc.status_code, content={"detail": exc.detail}
        )
    except SA_TimeoutError as exc:  # DB pool timeout -> 503 to reduce retry storms
        logger.error("DB timeout at %s: %s", request.url.path, str(exc))
        response = ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Database busy, please retry"},
        )
    except Exception as exc:  # pragma: no cover - generic handler
        logger.exception("Unhandled error: %s", exc)
        response = ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error"},
        )
    return response


@app.exception_handler(DisputeError)
async def dispute_exception_handler(request: Request, exc: DisputeError):
    """Render dispute failures in the shared {message, field_errors} envelope."""
    http_exc = exc.to_http()
    return ORJSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return validation errors with details and log them for debugging."""
    errors = exc.errors()
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    field_errors = {
        ".".join(str(part) for part in err.get("loc", ()) if part != "body"): err.get("msg", "invalid")
        for err in errors
    }
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": {"message": "Invalid request", "field_errors": field_errors}},
    )


@app.get("/healthz", tags=["health"])
async def healthz():
    return {"status": "ok"}


api_prefix = settings.API_V1_STR  # usually something like "/api/v1"

app.include_router(
    api_home_size_dispute.router,
    prefix=f"{api_prefix}/dispute",
    tags=["home-size-disputes"],
)


def run_expiry_sweep() -> list[int]:
    """Expire every lapsed pending_homeowner dispute once.

    Separated from the scheduler loop so the logic can be unit tested.
    """
    with get_db_session() as db:
        return expire_stale(db)


async def expire_disputes_loop() -> None:
    """Periodically expire disputes whose homeowner window has elapsed."""
    interval = settings.DISPUTE_EXPIRY_SWEEP_SECONDS
    while True:
        await asyncio.sleep(interval)
        # Retry with backoff on transient DB failures
        delay = 5
        max_retries = 5
        for attempt in range(max_retries):
            try:
                expired = await asyncio.to_thread(run_expiry_sweep)
                if expired:
                    logger.info("Expiry sweep closed %d disputes", len(expired))
                break
            except OperationalError as exc:  # pragma: no cover - transient DB outage
                logger.warning("Expiry sweep failed (attempt %d): %s", attempt + 1, exc)
                if attempt < max_retries - 1:
                    await asyncio.sleep(delay)
                    delay = min(delay * 2, 60)
                    continue
                # Give up for this cycle; try again next tick
                break
            except Exception:  # pragma: no cover - log and keep the loop alive
                logger.exception("Expiry sweep crashed")
                break


@app.on_event("startup")
async def start_background_tasks() -> None:
    """Launch background maintenance tasks."""
    if settings.DISPUTE_EXPIRY_SWEEP_SECONDS > 0:
        asyncio.create_task(expire_disputes_loop())
    else:
        logger.info("Dispute expiry sweep disabled; relying on lazy expiry")


@app.get("/")
async def root():
    return {"message": "Welcome to the Cleaning Home Size Disputes API"}
