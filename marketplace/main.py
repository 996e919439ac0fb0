from fastapi import FastAPI

from marketplace.api.v1.router import router as v1_router
from marketplace.core.logging import configure_logging
from marketplace.core.telemetry import setup_telemetry

configure_logging()

app = FastAPI(title="Property Marketplace API", version="0.1.0")

setup_telemetry(app)
app.include_router(v1_router)
