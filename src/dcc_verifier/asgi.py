"""
FastAPI + Uvicorn ASGI application exposing the verifier over HTTP.

Endpoints:
  - POST /verify   scanned QR text → verification report
  - GET  /keys     identifiers of the loaded trusted keys
  - GET  /health   liveness (503 when startup failed)
  - GET  /info     application metadata

The key store is loaded once at startup from DCC_KEYS__PATH and is
read-only afterwards, so requests share it without locking.

Entry point: uvicorn dcc_verifier.asgi:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import structlog
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from railway import LoggingExecutionContext

from dcc_verifier import __version__
from dcc_verifier.adapters.key_store import InMemoryKeyStore
from dcc_verifier.config import VerifierSettings
from dcc_verifier.domain.display import report_to_dict
from dcc_verifier.main import configure_structlog
from dcc_verifier.pipeline import inspect_certificate

# ─────────────────────── Global State ───────────────────────
# Set during app startup, read by the request handlers.

_settings: VerifierSettings | None = None
_key_store: InMemoryKeyStore | None = None
_error_message: str | None = None
log = structlog.get_logger()


class VerifyRequest(BaseModel):
    qr: str = Field(description="Scanned QR text, including the HC1: prefix")
    now: datetime | None = Field(default=None, description="Evaluate at this instant instead of now")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Startup: load settings and the key store.
    A missing or unreadable key file is recorded, not fatal, so /health
    can report it.
    """
    global _settings, _key_store, _error_message

    _settings, _key_store, _error_message = None, None, None
    log.info("asgi.startup")

    try:
        settings = VerifierSettings()
    except Exception as e:
        _error_message = f"Configuration error: {e}"
        log.error("asgi.startup_error", error=_error_message)
        raise

    configure_structlog(settings.log_level)
    _settings = settings

    if settings.keys.path is None:
        log.warning("asgi.no_key_store")
    else:
        result = InMemoryKeyStore.from_file(settings.keys.path)
        if result.is_success():
            _key_store = result.value()
        else:
            _error_message = result.error().message

    log.info(
        "asgi.startup_complete",
        version=__version__,
        keys_loaded=len(_key_store) if _key_store is not None else 0,
        grace_period_days=settings.grace_period_days,
    )

    yield

    log.info("asgi.shutdown")


# ─────────────────────── FastAPI Application ───────────────────────

app = FastAPI(
    title="dcc-verifier",
    description="Digital COVID Certificate decoder and signature verifier",
    version=__version__,
    lifespan=lifespan,
)


def _unavailable() -> JSONResponse:
    reason = _error_message or "no key store configured (set DCC_KEYS__PATH)"
    return JSONResponse(status_code=503, content={"status": "unavailable", "reason": reason})


@app.post("/verify")
async def verify(request: VerifyRequest) -> JSONResponse:
    """
    Decode, verify and evaluate one certificate.

    Returns 200 with the report, 400 when the text cannot be decoded
    (error_kind names the failing stage's error), 503 when no key store
    is loaded.
    """
    if _key_store is None or _settings is None:
        return _unavailable()

    settings = _settings
    key_store = _key_store
    result = await asyncio.to_thread(
        LoggingExecutionContext(operation="verify").execute,
        lambda: inspect_certificate(
            request.qr.strip(),
            key_store,
            now=request.now,
            scheme_prefix=settings.scheme_prefix,
            grace=settings.grace_period,
        ),
    )

    if result.is_success():
        return JSONResponse(status_code=200, content=report_to_dict(result.value()))

    failure = result.error()
    kind = type(failure.exception).__name__ if failure.exception else failure.code.value
    log.info("verify.rejected", kind=kind)
    return JSONResponse(
        status_code=400,
        content={
            "status": "rejected",
            "error_kind": kind,
            "error_code": failure.code.value,
            "message": failure.message,
        },
    )


@app.get("/keys")
async def keys() -> JSONResponse:
    """Loaded key identifiers, as hex and base64."""
    if _key_store is None:
        return _unavailable()
    identifiers = _key_store.list_identifiers()
    return JSONResponse(
        status_code=200,
        content={
            "count": len(identifiers),
            "keys": [
                {"hex": kid.hex(), "base64": base64.b64encode(kid).decode("ascii")}
                for kid in identifiers
            ],
        },
    )


@app.get("/health")
async def health() -> JSONResponse:
    """Liveness check: 503 if the key file configured at startup failed to load."""
    if _error_message:
        log.warning("health.check_failed", error=_error_message)
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "error": _error_message},
        )
    return JSONResponse(
        status_code=200,
        content={"status": "healthy", "keys_loaded": _key_store is not None},
    )


@app.get("/info")
async def info() -> dict[str, Any]:
    """Application metadata, for debugging and monitoring."""
    return {
        "name": "dcc-verifier",
        "version": __version__,
        "keys_loaded": len(_key_store) if _key_store is not None else 0,
        "scheme_prefix": _settings.scheme_prefix if _settings is not None else None,
        "grace_period_days": _settings.grace_period_days if _settings is not None else None,
        "has_error": _error_message is not None,
    }


if __name__ == "__main__":
    # For local testing: python -m uvicorn dcc_verifier.asgi:app --reload
    import uvicorn

    uvicorn.run(
        "dcc_verifier.asgi:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info",
    )
