from datetime import datetime
from typing import Optional, List, Dict, Any, Literal, Union
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict, field_validator

from spendguard.models.enums import AnomalyType, AnomalyStatus, Severity
from spendguard.services.severity import normalize_severity


class EvidenceBase(BaseModel):
    """Evidence is stored as a plain JSON object with camelCase keys."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"kind"})


class DuplicateEvidence(EvidenceBase):
    kind: Literal["DUPLICATE_TRANSACTION"] = "DUPLICATE_TRANSACTION"
    duplicate_of: str = Field(..., alias="duplicateOf")


class OddTimeEvidence(EvidenceBase):
    kind: Literal["ODD_TIME_PATTERN"] = "ODD_TIME_PATTERN"
    hour: int


class SpikeEvidence(EvidenceBase):
    kind: Literal["SPENDING_SPIKE"] = "SPENDING_SPIKE"
    average: float
    current: float
    threshold: float
    percentage: float


class CategoryOveruseEvidence(EvidenceBase):
    kind: Literal["CATEGORY_OVERUSE"] = "CATEGORY_OVERUSE"
    category_total: float = Field(..., alias="categoryTotal")
    total_monthly: float = Field(..., alias="totalMonthly")
    percentage: float


class SilentLeakEvidence(EvidenceBase):
    kind: Literal["SILENT_LEAK"] = "SILENT_LEAK"
    period: str = "30 Days"
    count: int
    total_amount: float = Field(..., alias="totalAmount")


class BudgetExceededEvidence(EvidenceBase):
    kind: Literal["BUDGET_EXCEEDED"] = "BUDGET_EXCEEDED"
    budget_name: str = Field(..., alias="budgetName")
    budget_limit: float = Field(..., alias="budgetLimit")
    current_spend: float = Field(..., alias="currentSpend")
    exceeded_by: float = Field(..., alias="exceededBy")


class AiEvidence(EvidenceBase):
    kind: Literal["AI_DETECTED_IRREGULARITY"] = "AI_DETECTED_IRREGULARITY"
    ai_confidence: float = Field(..., alias="aiConfidence")
    provider: Optional[str] = None


class PreventiveEvidence(EvidenceBase):
    kind: Literal["PREVENTIVE_WARNING"] = "PREVENTIVE_WARNING"
    note: str = ""


Evidence = Union[
    DuplicateEvidence,
    OddTimeEvidence,
    SpikeEvidence,
    CategoryOveruseEvidence,
    SilentLeakEvidence,
    BudgetExceededEvidence,
    AiEvidence,
    PreventiveEvidence,
]


class Finding(BaseModel):
    """What a single detector reports before the orchestrator stamps it."""
    anomaly_type: AnomalyType
    severity: Severity
    explanation: str
    evidence: Evidence

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize(cls, value):
        return normalize_severity(value)


class AnomalyDraft(Finding):
    """Anomaly record ready to be appended by the persistence adapter."""
    user_id: UUID
    transaction_id: Optional[UUID] = None
    status: AnomalyStatus = AnomalyStatus.PENDING
    detected_at: datetime

    def to_record(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "transaction_id": self.transaction_id,
            "anomaly_type": self.anomaly_type.value,
            "severity": self.severity.value,
            "status": self.status.value,
            "explanation": self.explanation,
            "evidence": self.evidence.to_json(),
            "resolution_note": "",
            "detected_at": self.detected_at,
        }


class ClassificationResult(BaseModel):
    """Normalized answer from the external classifier."""
    model_config = ConfigDict(populate_by_name=True)

    is_anomaly: bool = Field(..., alias="isAnomaly")
    severity: Severity = Severity.MEDIUM
    explanation: str = ""
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    provider: Optional[str] = None

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize(cls, value):
        return normalize_severity(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value):
        if value is None:
            return 0.0
        value = float(value)
        # Some models answer on a 0-100 scale
        if value > 1.0:
            value = value / 100.0
        return min(max(value, 0.0), 1.0)


class AnomalyResponse(BaseModel):
    """Serialized view of a persisted anomaly."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    transaction_id: Optional[UUID] = None
    anomaly_type: AnomalyType
    severity: Severity
    status: AnomalyStatus
    explanation: str
    evidence: Dict[str, Any] = Field(default_factory=dict)
    resolution_note: str = ""
    detected_at: datetime
    resolved_at: Optional[datetime] = None


class SecurityDashboard(BaseModel):
    health_score: int = Field(..., ge=0, le=100)
    stats: Dict[str, int]
    recent_alerts: List[AnomalyResponse]
    recent_logs: List[Dict[str, Any]]
