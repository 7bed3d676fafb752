from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from farealert.api import health, pipeline, tracking
from farealert.scheduler import start_scheduler, stop_scheduler
from farealert.config import get_settings
from farealert.database import engine, Base
import farealert.models  # noqa: F401  (registers tables on Base.metadata)

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting farealert")

    if settings.database_url.startswith("sqlite"):
        logger.info("SQLite detected - creating tables if needed")
        Base.metadata.create_all(bind=engine)

    if settings.scheduler_enabled:
        try:
            start_scheduler()
            logger.info("✅ APScheduler started")
        except Exception as e:
            logger.error(f"❌ Scheduler startup failed: {e}")

    yield

    logger.info("🛑 Shutting down farealert")
    try:
        stop_scheduler()
    except Exception as e:
        logger.error(f"❌ Shutdown error: {e}")


app = FastAPI(
    title="farealert",
    description="Airfare price monitoring and deal alert pipeline",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["health"])
app.include_router(pipeline.router, prefix="/api/pipeline", tags=["pipeline"])
app.include_router(tracking.router, prefix="/track", tags=["tracking"])


@app.get("/ping")
async def ping():
    return {"status": "ok"}


def run():
    import uvicorn
    uvicorn.run("farealert.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
