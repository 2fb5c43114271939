"""FastAPI application exposing the Toast POS integration."""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from fastapi import FastAPI

from restaurant_intel.api.routes.toast import router as toast_router
from restaurant_intel.config.toast_settings import load_toast_credentials
from restaurant_intel.services.toast_client import ToastPOSClient

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    credentials = load_toast_credentials()
    logger.info(
        "Toast client configured for %s (timezone %s)",
        credentials.base_url,
        credentials.timezone,
    )
    async with ToastPOSClient(credentials) as client:
        app.state.toast_client = client
        yield
    app.state.toast_client = None


app = FastAPI(title="Restaurant Intelligence", lifespan=lifespan)

app.include_router(toast_router)


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("restaurant_intel.main:app", host="127.0.0.1", port=8000, reload=True)
