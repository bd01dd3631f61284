import logging
from contextlib import asynccontextmanager

import uvicorn

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware
from timekeeper.cron_jobs import scheduler
from timekeeper.routers import attendance, insights, reports
from timekeeper.utils.app_utils import break_watcher, get_store
from timekeeper.config import settings

PROD_MODE = settings.PRODUCTION_MODE

logging.basicConfig(
    level=logging.INFO,  # Set the logging level to INFO
    format='%(asctime)s - %(levelname)s - %(message)s',  # Log format
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await get_store().ensure_indexes()
    await break_watcher.resume()
    scheduler.start()
    logger.info("Break suggestion scheduler started")
    yield
    scheduler.shutdown(wait=False)


app = FastAPI(title=settings.PROJECT_TITLE, lifespan=lifespan)

app.include_router(attendance.router, prefix="/attendance", tags=["attendance"])
app.include_router(reports.router, prefix="/reports", tags=["reports"])
app.include_router(insights.router, prefix="/insights", tags=["insights"])

# Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins = [
        "http://localhost:3000",
        "http://localhost:8081",
        "http://127.0.0.1:5173",
        ],
    allow_credentials = True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def index():
    return {"message": "Hello Timekeeper"}


if __name__ == "__main__":
    if PROD_MODE == True:
    # Run Uvicorn without reload in production
        uvicorn.run("timekeeper.main:app", host="0.0.0.0", port=11000, reload=False)

    else:
        # Run Uvicorn with reload=True in development mode
        uvicorn.run("timekeeper.main:app", host="0.0.0.0", port=11000, reload=True)
