import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from database import init_db
from errors import register_error_handlers
from api.brokers import router as brokers_router
from api.deals import router as deals_router
from api.merchants import router as merchants_router
from api.underwriting import router as underwriting_router
from utils.log import configure_logging

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("%s started (database=%s)", settings.app_name, "sqlite" if settings.is_sqlite else "postgresql")
    yield


app = FastAPI(
    title=settings.app_name,
    description="Merchant cash advance deal workflow, offer calculation and underwriting decisions",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(merchants_router)
app.include_router(brokers_router)
app.include_router(deals_router)
app.include_router(underwriting_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
