from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.routes.bus_counts import router as bus_counts_router
from app.api.v1.routes.health import router as health_router
from app.api.v1.routes.route_details import router as route_details_router
from app.core.config import get_settings
from app.core.logging_setup import configure_logging_if_needed

configure_logging_if_needed(get_settings().log_level)

app = FastAPI(title="BusWatch API")

# Dev-friendly CORS policy: allow all origins/methods/headers so the frontend can call the API directly.
# Tighten this for production.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, prefix="/v1")
app.include_router(bus_counts_router, prefix="/v1")
app.include_router(route_details_router, prefix="/v1")
