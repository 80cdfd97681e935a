import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import SQLModel

from tailor_intake.api import intake, orders, presets
from tailor_intake.config import CORS_ORIGINS, LOG_LEVEL
from tailor_intake.db.session import get_engine

# table registration for create_all
from tailor_intake.models import order as _order_models  # noqa: F401
from tailor_intake.models import preset as _preset_models  # noqa: F401

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    SQLModel.metadata.create_all(get_engine())
    logger.info("Database tables ensured")
    yield


app = FastAPI(title="Tailor Order Intake", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(presets.router, prefix="/presets", tags=["presets"])
app.include_router(orders.router, prefix="/orders", tags=["orders"])
app.include_router(intake.router, prefix="/intake", tags=["intake"])


@app.get("/")
async def root():
    return {"status": "ok", "service": "tailor-order-intake"}


if __name__ == "__main__":
    import os
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
