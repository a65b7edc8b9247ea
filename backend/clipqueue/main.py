from contextlib import asynccontextmanager

from fastapi import FastAPI
from clipqueue.core.db import init_db
from clipqueue.core.logging_config import configure_logging
from clipqueue.api.v1 import jobs, webhooks, health
from clipqueue.core.config import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()
    yield


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

@app.get("/")
def read_root():
    return {"message": "Welcome to clipqueue API"}

app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])
app.include_router(webhooks.router, prefix="/api/webhooks", tags=["webhooks"])
