import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request

# Load .env before importing modules that read configuration at import time.
load_dotenv(override=True)

from app.responses import error  # noqa: E402
from app.routes import admin, auth, blog, flights, health, pages, portfolio  # noqa: E402
from app.security import apply_security_headers  # noqa: E402
from core.database import delete_expired_sessions, init_db  # noqa: E402

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
log = logging.getLogger("site.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    removed = delete_expired_sessions()
    if removed:
        log.info("Removed %s expired session(s)", removed)
    yield


app = FastAPI(title="Personal Site", lifespan=lifespan)


app.include_router(pages.router)
app.include_router(blog.router)
app.include_router(portfolio.router)
app.include_router(flights.router)
app.include_router(flights.airports_router)
app.include_router(admin.router)
app.include_router(auth.router)
app.include_router(health.router)


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error(500, "Internal server error")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    log.info(
        "%s %s -> %s (%.1f ms)",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
    )
    return response


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    apply_security_headers(response)
    return response
