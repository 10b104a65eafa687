#!/usr/bin/env python3
"""Proficiency Exam - registration, payment, test delivery and scoring API"""

import asyncio
import time
from contextlib import asynccontextmanager, suppress

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from proficiency_exam.auth.token_issuer import ensure_secure_random
from proficiency_exam.config import config
from proficiency_exam.errors import ExamError, ValidationError
from proficiency_exam.logging_config import get_logger, setup_logging
from proficiency_exam.models.database import engine
from proficiency_exam.routers.accounts import router as accounts_router
from proficiency_exam.routers.health import health
from proficiency_exam.routers.payments import router as payments_router
from proficiency_exam.routers.test_answers import router as test_answers_router
from proficiency_exam.routers.test_sessions import router as test_sessions_router
from proficiency_exam.routers.users import router as users_router
from proficiency_exam.services.expiry_sweeper import run_expiry_sweeper
from proficiency_exam.services.paystack_service import check_sandbox_allowed

# Configure logging (INFO -> stdout, WARNING/ERROR -> stderr)
setup_logging()
logger = get_logger(__name__)

# Tokens are unsafe without a secure random source; refuse to start
ensure_secure_random()
check_sandbox_allowed(config["payment_sandbox_mode"], config["environment"])


@asynccontextmanager
async def lifespan(app: FastAPI):
    interval = config["sweep_interval_seconds"]
    sweeper = None
    if interval > 0:
        sweeper = asyncio.create_task(run_expiry_sweeper(engine, interval))

    yield

    if sweeper:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper


# Create FastAPI app
app = FastAPI(
    title="Proficiency Exam",
    description="Language proficiency exam API - registration, payment-gated test sessions, scoring and certificates",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(ExamError)
async def exam_error_handler(request: Request, exc: ExamError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()
    ]
    error = ValidationError(details=jsonable_encoder(details))
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.middleware("http")
async def log_request_timing(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(
        f"{request.method} {request.url.path} {response.status_code} in {elapsed_ms:.0f}ms"
    )
    return response


# Include routers
app.include_router(health)
app.include_router(accounts_router)
app.include_router(users_router)
app.include_router(test_sessions_router)
app.include_router(test_answers_router)
app.include_router(payments_router)


if __name__ == "__main__":
    port = config["port"]
    logger.info(f"Starting Proficiency Exam API on 0.0.0.0:{port}")
    logger.info(f"Health check available at /health")

    try:
        uvicorn.run(
            app, host="0.0.0.0", port=port, log_level=config["log_level"].lower()
        )
    except Exception as e:
        logger.error(f"Failed to start server: {e}")
        raise
