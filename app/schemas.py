from typing import List, Dict, Any, Optional
from enum import Enum
from pydantic import BaseModel, Field

# =============================================================================
# CLIENT ALERTS
# =============================================================================

class NotificationPreference(str, Enum):
    DRAFT_FOR_TEAM = "DRAFT_FOR_TEAM"
    SEND_DIRECT_TO_CLIENT = "SEND_DIRECT_TO_CLIENT"


class AlertType(str, Enum):
    """Alert types the analyzer knows how to resolve a due date for."""
    NEXT_ACCOUNTS_DUE = "NEXT_ACCOUNTS_DUE"
    NEXT_CONFIRMATION_STATEMENT_DUE = "NEXT_CONFIRMATION_STATEMENT_DUE"
    NEXT_VAT_DUE = "NEXT_VAT_DUE"
    CORPORATION_TAX_DEADLINE = "CORPORATION_TAX_DEADLINE"
    CLIENT_TASK = "CLIENT_TASK"


class ReminderSchedule(BaseModel):
    id: Optional[str] = None  # Present for existing schedules on update
    days_before_due: int = Field(..., ge=0)
    alert_message: Optional[str] = None  # None: use the parent alert message
    is_active: bool = True


class CreateClientAlertRequest(BaseModel):
    client_id: str = Field(..., min_length=1)
    alert_type: str = Field(..., min_length=1)
    alert_message: str = Field(..., min_length=1)
    days_before_due: int = Field(..., ge=0)
    notification_preference: NotificationPreference
    is_active: bool = True
    source_task_id: Optional[str] = None
    use_multi_schedule: bool = False
    reminder_schedules: List[ReminderSchedule] = Field(default_factory=list)


class UpdateClientAlertRequest(BaseModel):
    client_id: Optional[str] = None
    alert_type: Optional[str] = None
    alert_message: Optional[str] = None
    days_before_due: Optional[int] = Field(default=None, ge=0)
    notification_preference: Optional[NotificationPreference] = None
    is_active: Optional[bool] = None
    source_task_id: Optional[str] = None
    use_multi_schedule: Optional[bool] = None
    reminder_schedules: Optional[List[ReminderSchedule]] = None


class ToggleActiveRequest(BaseModel):
    is_active: bool


class AlertAnalyzerSummary(BaseModel):
    message: str
    processed: int = 0
    errors: int = 0
    skipped: int = 0

# =============================================================================
# STORAGE EVENTS
# =============================================================================

class StorageObjectRecord(BaseModel):
    """The storage.objects row carried by a database webhook."""
    name: str = Field(..., min_length=1)
    bucket_id: str = Field(..., min_length=1)
    metadata: Optional[Dict[str, Any]] = None

# =============================================================================
# DOCUMENT ANALYSIS
# =============================================================================

class AnalysisType(str, Enum):
    FULL_ANALYSIS = "full_analysis"
    QUESTION = "question"


class AnalyzeDocumentsRequest(BaseModel):
    clientId: str = Field(..., min_length=1)
    analysisType: AnalysisType = AnalysisType.FULL_ANALYSIS
    customQuestion: Optional[str] = None


class DocumentAnalysis(BaseModel):
    status: Optional[str] = None
    notes: str = ""
