import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.api.v1.api import api_router
from backend.app.core.config import settings
from backend.app.core.exceptions import KasirError
from backend.app.core.logging import configure_logging
from backend.app.middleware.language import LanguageMiddleware

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Kasir POS")

# ─── CORS: restrict to configured origins ────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "Accept", "Accept-Language"],
    expose_headers=["Content-Disposition"],
)

# ─── Custom middleware (outermost executes first) ─────────────────────────────
app.add_middleware(LanguageMiddleware)


# ─── Error notifications ──────────────────────────────────────────────────────
@app.exception_handler(KasirError)
def kasir_error_handler(request: Request, exc: KasirError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    else:
        logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


@app.get("/health", include_in_schema=False)
def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(api_router)
