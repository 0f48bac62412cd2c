import logging
import uuid
import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

import services.broadcaster as broadcaster_svc
import services.lightning as lightning_svc
from config import ALLOWED_ORIGINS, BROADCAST_RELAYS, LOG_LEVEL, PROFILE_RELAYS, RATE_LIMIT_ENABLED
from core.errors import ResolutionError
from db.connection import close_db, init_db
from routers import high_fives, payments, public

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="High Fives")
app.state.limiter = high_fives.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIDMiddleware)


@app.exception_handler(ResolutionError)
async def resolution_error_handler(request: Request, exc: ResolutionError):
    logger.info(f"Resolution failed ({exc.kind.value}): {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind.value, "detail": exc.message},
    )


app.include_router(public.router)
app.include_router(payments.router)
app.include_router(high_fives.router)


@app.on_event("startup")
async def startup() -> None:
    lightning_svc.http_client = httpx.AsyncClient(timeout=30.0)
    await init_db()
    broadcaster_svc.broadcast_queue = broadcaster_svc.create_broadcast_queue()
    broadcaster_svc.broadcast_queue.start()
    logger.info(
        f"High Fives started: {len(PROFILE_RELAYS)} profile relays, "
        f"{len(BROADCAST_RELAYS)} broadcast relays, rate limiting {'on' if RATE_LIMIT_ENABLED else 'off'}"
    )


@app.on_event("shutdown")
async def shutdown() -> None:
    if broadcaster_svc.broadcast_queue:
        await broadcaster_svc.broadcast_queue.stop()
        broadcaster_svc.broadcast_queue = None
    if lightning_svc.http_client:
        await lightning_svc.http_client.aclose()
        lightning_svc.http_client = None
    await close_db()


if __name__ == "__main__":
    import uvicorn

    logger.info("Starting High Fives server...")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info",
    )

    logger.info("Server stopped gracefully")
