"""
Document Analysis Route
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from app.auth_permissions import get_current_user
from app.document_analysis import (
    AnalysisSaveError,
    ClientNotFoundError,
    run_document_analysis,
)
from app.schemas import AnalyzeDocumentsRequest
from app.supabase_client import get_supabase

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["document-analysis"])


@router.post("/analyze-documents")
async def analyze_documents(
    data: AnalyzeDocumentsRequest,
    user: dict = Depends(get_current_user),
):
    """Assess a client's uploaded documents, or answer a question about them."""
    supabase = get_supabase()
    if not supabase:
        raise HTTPException(status_code=503, detail="Database not available")

    logger.info(f"Document analysis for client {data.clientId} requested by {user['id']}")

    try:
        analysis = run_document_analysis(
            supabase,
            data.clientId,
            analysis_type=data.analysisType,
            custom_question=data.customQuestion,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ClientNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AnalysisSaveError as e:
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": str(e), "analysis": e.analysis.model_dump()},
        )
    except Exception as e:
        logger.error(f"Document analysis failed for client {data.clientId}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {"success": True, "analysis": analysis.model_dump()}
