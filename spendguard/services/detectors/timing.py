from datetime import datetime
from typing import Optional
from uuid import UUID

from spendguard.config import DetectionConfig
from spendguard.models.enums import AnomalyType, Severity
from spendguard.schemas.anomaly import Finding, OddTimeEvidence


class OddTimeDetector:
    """Flags transactions made in the small hours (2 AM to 5 AM by default)."""

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()

    def is_odd_hour(self, moment: datetime) -> bool:
        return self.config.odd_hour_start <= moment.hour < self.config.odd_hour_end

    def detect(self, transaction, user_id: UUID, now: datetime) -> Optional[Finding]:
        if not self.is_odd_hour(transaction.transaction_date):
            return None
        return Finding(
            anomaly_type=AnomalyType.ODD_TIME_PATTERN,
            severity=Severity.MEDIUM,
            explanation=(
                f"Transaction occurred during unusual hours "
                f"({self.config.odd_hour_start} AM - {self.config.odd_hour_end} AM)."
            ),
            evidence=OddTimeEvidence(hour=transaction.transaction_date.hour),
        )
