import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import appointments, calendar, cron, email, settings as settings_routes, slots
from app.core.config import settings, _ENV_FILE
from app.core.db import async_database_url, async_session_maker, init_db
from app.services.notification_service import register_notification_handlers
from app.services.reminder_service import send_reminders_for_tomorrow

if os.getenv("ENV") != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)

REMINDER_INTERVAL_SECONDS = 24 * 60 * 60  # 24 hours


async def _run_reminders() -> None:
    """Send tomorrow's reminders; failures are logged and retried on the next run."""
    try:
        async with async_session_maker() as session:
            summary = await send_reminders_for_tomorrow(session)
            if summary.total:
                logger.info("Reminder run: %d sent, %d failed for %s", summary.sent, summary.failed, summary.date)
    except Exception as e:
        logger.exception("Reminder run failed: %s", e)


async def _reminder_loop() -> None:
    while True:
        await asyncio.sleep(REMINDER_INTERVAL_SECONDS)
        await _run_reminders()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
    if async_database_url.startswith("sqlite"):
        # Local sqlite database: no migrations, create tables directly
        await init_db()
    register_notification_handlers()
    if not settings.email_enabled:
        logger.warning("Email: NOT configured. Set SMTP_HOST, SMTP_USER, SMTP_PASSWORD and FROM_EMAIL in %s", _ENV_FILE)
    task = None
    if settings.reminder_loop_enabled:
        logger.info("Reminder loop enabled (every 24h)")
        task = asyncio.create_task(_reminder_loop())
    yield
    if task:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


app = FastAPI(
    title="Pet Care Schedule API",
    description="Backend for pet grooming appointments: admin calendar, slot blocking, bookings, reminders",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(calendar.router, prefix="/api/v1")
app.include_router(slots.router, prefix="/api/v1")
app.include_router(appointments.router, prefix="/api/v1")
app.include_router(settings_routes.router, prefix="/api/v1")
app.include_router(cron.router, prefix="/api/v1")
app.include_router(email.router, prefix="/api/v1")


def _cors_headers(origin: str | None) -> dict[str, str]:
    """Add CORS headers to error responses so the browser doesn't block them."""
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Authorization, Content-Type",
    }
    if origin and origin in settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = origin
    elif settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = settings.cors_origins_list[0]
    return headers


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return actual error in JSON; include CORS so 500 responses are not blocked by browser."""
    origin = request.headers.get("origin")
    headers = _cors_headers(origin)
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=headers,
        )
    logger.exception("Unhandled exception: %s", exc)
    detail = f"{type(exc).__name__}: {str(exc)}"
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
        headers=headers,
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
