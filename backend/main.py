"""
EduRank — CBC results, rankings and report analytics.
FastAPI backend entry point.
"""

import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment before modules read their settings
load_dotenv()

from core.app_logger import setup_logging  # noqa: E402
from routes.upload import router as upload_router  # noqa: E402
from routes.clean import router as clean_router  # noqa: E402
from routes.analyze import router as analyze_router  # noqa: E402

logger = setup_logging()

SCHOOL_NAME = os.getenv("SCHOOL_NAME", "My School")
DEFAULT_SUBJECT_LEVEL = os.getenv("DEFAULT_SUBJECT_LEVEL") or None
# Comma-separated allowed origins, e.g. http://localhost:5173,https://app.example.com
raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
ALLOWED_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]

app = FastAPI(
    title="EduRank API",
    description=(
        "CBC competency bands, averages, class/stream rankings and report "
        "advice computed over posted score records."
    ),
    version="1.0.0",
)

# CORS for the frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route modules
app.include_router(upload_router, prefix="/api/upload", tags=["Upload"])
app.include_router(clean_router, prefix="/api/clean", tags=["Cleaning"])
app.include_router(analyze_router, prefix="/api/analyze", tags=["Analytics"])

logger.info("EduRank API ready for %s", SCHOOL_NAME)


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "school_name": SCHOOL_NAME,
    }


@app.get("/api/config")
async def get_config():
    """Return server configuration to the frontend."""
    return {
        "school_name": SCHOOL_NAME,
        "default_subject_level": DEFAULT_SUBJECT_LEVEL,
    }
