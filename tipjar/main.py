from __future__ import annotations

from contextlib import asynccontextmanager

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI

# Import all models to populate Base.metadata
from tipjar.db.base import import_models

from tipjar.api.v1.router import router as api_router
from tipjar.core.logging import setup_logging

import_models()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()

    yield


app = FastAPI(title="Tipjar API", lifespan=lifespan)

app.include_router(api_router, prefix="/api/v1")
