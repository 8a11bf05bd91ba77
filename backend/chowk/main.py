import logging
import sqlite3
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chowk.config import settings
from chowk.database import init_db
from chowk.routers import admin, applications, dashboard, jobs, messages
from chowk.services.notification_service import build_transport, dispatcher

logger = logging.getLogger("chowk")


def _check_integrity():
    conn = sqlite3.connect(str(settings.db_path))
    try:
        result = conn.execute("PRAGMA integrity_check").fetchone()
    finally:
        conn.close()
    if result and result[0] == "ok":
        logger.info("Database integrity check passed.")
    else:
        logger.error("DATABASE INTEGRITY CHECK FAILED: %s", result)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # Startup: schema, migrations, integrity check, outbound queue
    try:
        init_db(settings.db_path)
        _check_integrity()
    except sqlite3.Error as exc:
        logger.error("Could not run startup migration/integrity check: %s", exc)
    dispatcher.transport = build_transport()
    dispatcher.start()
    logger.info("notification dispatcher started (%s)", type(dispatcher.transport).__name__)
    yield
    # Shutdown: anything still queued is dropped
    status = dispatcher.status()
    if status["queue_length"]:
        logger.warning("shutting down with %d undelivered message(s)", status["queue_length"])
    await dispatcher.stop()


app = FastAPI(
    title="Chowk",
    description="Chat-first daily-wage labour marketplace",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    # Admin dashboard dev server only.
    allow_origins=[
        "http://127.0.0.1:3000",
        "http://localhost:3000",
    ],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(messages.router, prefix=settings.api_prefix)
app.include_router(admin.router, prefix=settings.api_prefix)
app.include_router(jobs.router, prefix=settings.api_prefix)
app.include_router(applications.router, prefix=settings.api_prefix)
app.include_router(dashboard.router, prefix=settings.api_prefix)


@app.get("/health")
async def health():
    return {"status": "ok", "version": "0.1.0", "queue": dispatcher.status()}
