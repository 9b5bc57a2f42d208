"""
Document Sufficiency Analysis

Gathers everything a client has uploaded to storage, turns it into text and
asks Gemini whether the paperwork is complete enough for the year-end work
(full analysis) or answers a free-form question about it.
"""

import io
import os
import json
import logging
import re
from datetime import datetime, timezone
from typing import Callable, List, Optional

import pandas as pd
from google import genai
from google.genai import types

from app.schemas import AnalysisType, DocumentAnalysis

logger = logging.getLogger(__name__)

DOCUMENT_CATEGORIES = ["bankStatements", "receipts", "payrollSummaries", "other"]
PLACEHOLDER_FILE = ".emptyFolderPlaceholder"
CSV_PREVIEW_RECORDS = 10
MAX_CONTENT_LENGTH_FOR_AI = 30000
NO_DOCUMENTS_NOTE = "No documents found in storage for analysis."

_STATUS_LINE = re.compile(r"^Status:\s*(Good|Okay|Missing)", re.IGNORECASE | re.MULTILINE)

FULL_ANALYSIS_PROMPT = """You are an expert accounting assistant. Your primary task is to rigorously assess if a client has provided the necessary documents for standard accounting procedures. You will be given client details (their name, a checklist of generally required documents, key deadlines like 'Next Accounts Due Date', and a 'Shareable Document Upload Link') and the content of the files they have uploaded.

Focus on:
1. Relevance: does the content of each file genuinely correspond to accounting documents such as bank statements, receipts, payroll summaries or invoices? A file named "bank_statement.jpg" containing a random image is NOT a valid bank statement.
2. Completeness: cross-reference the uploaded files with the "Required Documents Checklist". A missing required type, or a file that looks irrelevant for that type, is a deficiency.
3. Actionable feedback: clearly state what is missing or needs clarification.

Statuses:
* Good: every document marked "Required" appears to be present and its content looks relevant.
* Okay: some required documents are present and relevant, but others are missing or questionable. Say which.
* Missing: critically required documents are absent, nothing was uploaded, or the uploads are clearly irrelevant to accounting.

If content cannot be verified (for example the text says '[Unsupported file type ...]'), do not assume a file is correct from its name or folder. State the limitation; unverifiable required documents lead to "Okay" or "Missing", never "Good".

You may draft a short client reminder using the Client Name, relevant deadlines and the Shareable Document Upload Link when it helps.

Provide your output STRICTLY in the following format:
Status: [Good/Okay/Missing]
Explanation: [Your detailed explanation and recommendations. Mark any drafted message clearly.]"""

QUESTION_PROMPT = """You are an AI assistant. You have access to client information including their name, key deadlines (like 'Next Accounts Due Date') and a 'Shareable Document Upload Link', plus extracted content from their uploaded documents.
Answer the user's specific question directly and concisely.
If the question asks you to draft a message or reminder for the client, use the client's name, the relevant deadline and include the Shareable Document Upload Link. Keep the tone professional and helpful.
If the documents do not contain the answer, or information is missing for a draft, say so clearly."""


class DocumentAnalysisError(RuntimeError):
    """The model could not be called."""


class ClientNotFoundError(LookupError):
    pass


class AnalysisSaveError(RuntimeError):
    """The model answered but the client row could not be updated."""

    def __init__(self, message: str, analysis: DocumentAnalysis):
        super().__init__(message)
        self.analysis = analysis


# =============================================================================
# STORAGE
# =============================================================================

def client_files_bucket() -> str:
    return os.environ.get("CLIENT_FILES_BUCKET", "client-files")


def list_client_files(supabase, client_id: str, bucket: Optional[str] = None) -> List[str]:
    """Paths of every uploaded file for a client, across all categories."""
    bucket = bucket or client_files_bucket()
    file_paths = []

    for category in DOCUMENT_CATEGORIES:
        category_path = f"clients/{client_id}/{category}/"
        try:
            files = supabase.storage.from_(bucket).list(
                category_path,
                {"limit": 500, "offset": 0, "sortBy": {"column": "name", "order": "asc"}},
            )
        except Exception as e:
            logger.error(f"Error listing files in category {category_path}: {e}")
            continue

        for item in files or []:
            if item.get("name") and item["name"] != PLACEHOLDER_FILE:
                file_paths.append(f"{category_path}{item['name']}")

    logger.info(f"Found {len(file_paths)} files for client {client_id}.")
    return file_paths


def extract_text_from_file(content: bytes, file_path: str) -> str:
    """Text the model can read for one file."""
    if not file_path.lower().endswith(".csv"):
        logger.info(f"Skipping unsupported file type: {file_path}")
        return "[Unsupported file type for text extraction]"

    try:
        df = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False, encoding="utf-8-sig")
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError, ValueError) as e:
        logger.error(f"CSV parsing error for {file_path}: {e}")
        return f"[CSV parsing failed: {e}]"

    records = df.to_dict("records")
    if len(records) > CSV_PREVIEW_RECORDS:
        return (
            f"[TRUNCATED CSV DATA - Showing first {CSV_PREVIEW_RECORDS} records out of {len(records)}]\n"
            + json.dumps(records[:CSV_PREVIEW_RECORDS], indent=2)
        )
    return json.dumps(records, indent=2)


def collect_document_text(supabase, file_paths: List[str], bucket: Optional[str] = None) -> str:
    bucket = bucket or client_files_bucket()
    sections = []

    for path in file_paths:
        try:
            data = supabase.storage.from_(bucket).download(path)
        except Exception as e:
            logger.error(f"Error downloading {path}: {e}")
            text = f"[Error downloading: {e}]"
        else:
            text = extract_text_from_file(data, path) if data else "[Could not retrieve data]"
        sections.append(f"\n--- Start of {path} ---\n{text}\n--- End of {path} ---\n")

    combined = "".join(sections)
    if not combined.strip():
        combined = "[No text could be extracted from any documents.]"

    if len(combined) > MAX_CONTENT_LENGTH_FOR_AI:
        combined = combined[:MAX_CONTENT_LENGTH_FOR_AI] + "\n\n[CONTENT TRUNCATED DUE TO OVERALL LENGTH LIMIT]"
        logger.info(f"Truncated document text to {len(combined)} characters for the prompt.")
    return combined


# =============================================================================
# PROMPTS / MODEL
# =============================================================================

def client_info_for_prompt(client: dict) -> str:
    base_url = os.environ.get("NEXT_PUBLIC_BASE_URL", "YOUR_SITE_BASE_URL")
    token = client.get("shareable_link_token")
    shareable_link = f"{base_url}/share/{token}" if token else "Not available"
    required = client.get("requiredDocuments") or {}
    services = ", ".join(client.get("services") or []) or "N/A"

    def yes_no(key: str) -> str:
        return "Yes" if required.get(key) else "No"

    return (
        f"Client Name: {client.get('client_name')}\n"
        f"Company Name: {client.get('company_name') or 'N/A'}\n"
        f"Services Provided: {services}\n"
        f"Next Accounts Due Date: {client.get('next_accounts_due') or 'Not set'}\n"
        f"Shareable Document Upload Link: {shareable_link}\n"
        f"Required Documents Checklist Status in DB:\n"
        f"  Bank Statements Required: {yes_no('bankStatements')}\n"
        f"  Receipts Required: {yes_no('receipts')}\n"
        f"  Payroll Summaries Required: {yes_no('payrollSummaries')}"
    )


def generate_analysis(system_prompt: str, user_prompt: str) -> str:
    """Call Gemini and return the text of the answer."""
    api_key = os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_CLOUD_API_KEY")
    if not api_key:
        raise DocumentAnalysisError("GEMINI_API_KEY is not set in server environment variables.")

    client = genai.Client(api_key=api_key)
    response = client.models.generate_content(
        model=os.environ.get("GEMINI_MODEL", "gemini-2.0-flash"),
        contents=user_prompt,
        config=types.GenerateContentConfig(
            system_instruction=system_prompt,
            temperature=0.2,
        ),
    )
    return response.text or "No response from AI."


def parse_status(message: str) -> DocumentAnalysis:
    """Split 'Status: X' from the explanation. Falls back to Okay."""
    match = _STATUS_LINE.search(message)
    if not match:
        logger.warning("Could not parse 'Status: ...' from AI response for full_analysis.")
        return DocumentAnalysis(status="Okay", notes=message)

    status = match.group(1).capitalize()
    notes = (message[:match.start()] + message[match.end():]).strip()
    return DocumentAnalysis(status=status, notes=notes)


# =============================================================================
# ENTRY POINT
# =============================================================================

def run_document_analysis(
    supabase,
    client_id: str,
    analysis_type: AnalysisType = AnalysisType.FULL_ANALYSIS,
    custom_question: Optional[str] = None,
    generate: Callable[[str, str], str] = generate_analysis,
) -> DocumentAnalysis:
    """
    Analyze a client's uploaded documents and store the result on the client.

    Raises ClientNotFoundError, ValueError (question without text),
    DocumentAnalysisError and AnalysisSaveError.
    """
    question = (custom_question or "").strip()
    if analysis_type == AnalysisType.QUESTION and not question:
        raise ValueError('customQuestion is required for analysisType "question".')

    result = supabase.table("clients").select("*").eq("id", client_id).execute()
    if not result.data:
        raise ClientNotFoundError(f"Client with ID {client_id} not found.")
    client = result.data[0]
    logger.info(f"Analyzing documents for client {client.get('client_name')} ({analysis_type.value})")

    file_paths = list_client_files(supabase, client_id)
    now = datetime.now(timezone.utc).isoformat()

    if not file_paths:
        if analysis_type == AnalysisType.FULL_ANALYSIS:
            logger.info(f"No files found for client {client_id} during full_analysis.")
            supabase.table("clients").update({
                "ai_document_status": "Missing",
                "ai_document_notes": NO_DOCUMENTS_NOTE,
                "last_ai_analysis_at": now,
            }).eq("id", client_id).execute()
            return DocumentAnalysis(status="Missing", notes="No documents found for analysis.")
        document_text = "[No documents found in storage for this client.]"
    else:
        document_text = collect_document_text(supabase, file_paths)

    client_info = client_info_for_prompt(client)

    if analysis_type == AnalysisType.QUESTION:
        user_prompt = (
            f"Client Information:\n{client_info}\n\n"
            f"Extracted Content from Uploaded Document(s):\n{document_text}\n\n"
            f"User's Specific Question: {question}\n\n"
            "Please provide a direct answer to the user's question or perform the requested task."
        )
        answer = generate(QUESTION_PROMPT, user_prompt)
        separator = (
            f"\n\n---\n**User Question (answered on {datetime.now().strftime('%d/%m/%Y, %H:%M:%S')}):** "
            f"{question}\n**AI Answer:**\n"
        )
        update = {"ai_document_notes": (client.get("ai_document_notes") or "") + separator + answer}
        analysis = DocumentAnalysis(status=client.get("ai_document_status"), notes=answer)
    else:
        user_prompt = (
            f"Client Information:\n{client_info}\n\n"
            f"Extracted Content from Uploaded Document(s):\n{document_text}\n\n"
            "Please provide your analysis (Status and Explanation)."
        )
        analysis = parse_status(generate(FULL_ANALYSIS_PROMPT, user_prompt))
        update = {
            "ai_document_status": analysis.status,
            "ai_document_notes": analysis.notes,
            "last_ai_analysis_at": now,
        }

    try:
        supabase.table("clients").update(update).eq("id", client_id).execute()
    except Exception as e:
        logger.error(f"Error updating client {client_id} with AI analysis: {e}")
        raise AnalysisSaveError("AI analysis complete, but failed to save to DB.", analysis)

    logger.info(f"Updated client {client_id} with AI analysis.")
    return analysis
