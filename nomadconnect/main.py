from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from nomadconnect.core.config import STORE_BACKEND
from nomadconnect.core.errors import CoreError
from nomadconnect.core.logging import setup_logging
from nomadconnect.repository.provider import configure_repository, is_configured
from nomadconnect.schemas.errors import ErrorResponse
from nomadconnect.api.router import api_router

setup_logging()
logger.info("Starting Nomad Connect core")


app = FastAPI(
    title="Nomad Connect Core",
    version="0.1.0"
)

# Radar, swipes, chat requests, usage, compatibility
app.include_router(api_router)


@app.on_event("startup")
def on_startup():
    # tests may have installed a backend already
    if not is_configured():
        configure_repository(STORE_BACKEND)


@app.get("/health")
def health():
    logger.debug("Health check hit")
    return {"status": "ok"}


@app.exception_handler(CoreError)
def core_error_handler(request: Request, exc: CoreError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.status_code} {exc.detail}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.detail}")

    payload = ErrorResponse(error=exc.error, detail=exc.detail).model_dump(exclude_none=True)
    payload.update(exc.extras())
    return JSONResponse(status_code=exc.status_code, content=payload)


@app.exception_handler(RequestValidationError)
def validation_exception_handler(_: Request, exc: RequestValidationError):
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc", [])
        if len(loc) > 1:
            field = ".".join(str(part) for part in loc[1:])
            field_errors.setdefault(field, []).append(err.get("msg", "Invalid value"))
    payload = ErrorResponse(
        error="Invalid Input",
        detail="Invalid input data",
        field_errors=field_errors or None,
    )
    return JSONResponse(status_code=400, content=payload.model_dump(exclude_none=True))
