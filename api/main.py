"""FastAPI service for the tutoring calendar."""
from __future__ import annotations

import logging
import os
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from api.dependencies import ALLOWED_ORIGINS, get_environment_info, get_settings  # noqa: E402
from api.routers import calendar_router  # noqa: E402

logging.basicConfig(
    level=os.getenv("TCAL_LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Tutoring Calendar API",
    version="0.1.0",
    description="Calendar of tutoring shifts, tutor availability and student requests.",
)

origins = [origin for origin in ALLOWED_ORIGINS if origin]

if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(calendar_router, prefix="/calendar", tags=["calendar"])


@app.get("/health")
def health_check() -> dict:
    """Health check endpoint with service configuration status."""
    settings = get_settings()
    env, dev_bypass = get_environment_info()

    services = {
        "store": "file" if settings.force_file_store else "firestore",
        "teams": "configured" if settings.meeting_access_token else "not_configured",
    }

    return {
        "status": "ok",
        "time": datetime.now(timezone.utc).isoformat(),
        "environment": env,
        "devAuthBypass": dev_bypass,
        "services": services,
    }
