from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import os
import logging

from app.supabase_client import get_supabase
from app import (
    client_alert_routes,
    companies_csv_routes,
    company_lookup_routes,
    document_analysis_routes,
    scheduler_routes,
    system_routes,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Practice Manager API",
    description="Client deadlines, reminders, document checks and Companies House data for an accountancy practice",
    version="1.0.0"
)

allowed_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]

extra_origins = os.environ.get("CORS_ORIGINS", "")
if extra_origins:
    allowed_origins.extend([o.strip() for o in extra_origins.split(",") if o.strip()])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Log startup information."""
    port = os.environ.get("PORT", "8000")
    logger.info(f"Practice Manager API starting on port {port}")
    logger.info(f"Supabase connected: {get_supabase() is not None}")
    logger.info(f"Companies House lookup: {'Configured' if os.environ.get('COMPANIES_HOUSE_API_KEY') else 'NOT CONFIGURED - set COMPANIES_HOUSE_API_KEY'}")
    logger.info(f"SendGrid: {'Configured' if os.environ.get('SENDGRID_API_KEY') else 'NOT CONFIGURED - set SENDGRID_API_KEY'}")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Practice Manager API",
        "version": system_routes.API_VERSION,
        "docs": "/docs",
        "health": "/api/system/health"
    }


# Register Routers
app.include_router(companies_csv_routes.admin_router)
app.include_router(companies_csv_routes.router)
app.include_router(company_lookup_routes.router)
app.include_router(client_alert_routes.router)
app.include_router(scheduler_routes.router)
app.include_router(document_analysis_routes.router)
app.include_router(system_routes.router)
