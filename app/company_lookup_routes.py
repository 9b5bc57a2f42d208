"""
Company Lookup Route

Server-side proxy to the Companies House public data API so the API key never
reaches the browser.
"""

import os
import logging

import requests
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.auth_permissions import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["company-lookup"])

COMPANIES_HOUSE_API_URL = "https://api.company-information.service.gov.uk"
TIMEOUT_SECS = 15


@router.get("/company-lookup")
async def company_lookup(
    companyNumber: str = Query(None),
    user: dict = Depends(get_current_user),
):
    """Return the Companies House company profile for a company number."""
    if not companyNumber:
        return JSONResponse(status_code=400, content={"error": "Company number is required"})

    api_key = os.environ.get("COMPANIES_HOUSE_API_KEY")
    if not api_key:
        logger.error("Companies House API key not configured on the server.")
        return JSONResponse(status_code=500, content={"error": "API integration not configured"})

    url = f"{COMPANIES_HOUSE_API_URL}/company/{companyNumber.strip()}"

    try:
        response = requests.get(url, auth=(api_key, ""), timeout=TIMEOUT_SECS)
    except requests.exceptions.RequestException as e:
        logger.error(f"Exception calling Companies House for {companyNumber}: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error while fetching company details", "details": str(e)},
        )

    if not response.ok:
        try:
            error_body = response.json()
        except ValueError:
            error_body = {"message": f"Error from Companies House: {response.status_code} {response.reason}"}
        logger.error(f"Error fetching from Companies House API: {response.status_code} {error_body}")
        return JSONResponse(
            status_code=response.status_code,
            content={
                "error": error_body.get("message") or "Failed to fetch company details from Companies House",
                "details": error_body,
            },
        )

    return response.json()
