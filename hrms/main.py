from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
import logging

from hrms.config import settings
from hrms.database import db
from hrms.services.scheduler import scheduler
from hrms.api import auth, requests, admin, workflows, notifications, dashboard

# Setup Logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    db.connect()
    # Only one instance per deployment should run the background jobs.
    if settings.SCHEDULER_ENABLED:
        await scheduler.start()
    else:
        logger.info("Scheduler disabled for this instance")
    yield
    await scheduler.stop()
    db.close()

app = FastAPI(
    title="HRMS Approval API",
    description="Request approval workflow, SLA monitoring and attendance automation",
    version="1.0.0",
    lifespan=lifespan
)

# CORS Config
origins = [
    settings.FRONTEND_URL,
    "http://localhost:8000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Router Registration
app.include_router(auth.router)
app.include_router(requests.router)
app.include_router(admin.router)
app.include_router(workflows.router)
app.include_router(notifications.router)
app.include_router(dashboard.router)

# Health Check
@app.get("/health")
async def health_check():
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "scheduler_running": scheduler.is_running,
    }

if __name__ == "__main__":
    uvicorn.run("hrms.main:app", host="0.0.0.0", port=8000, reload=True)
