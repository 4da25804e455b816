import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from rapidfuzz.distance import Levenshtein

from spendguard.config import DetectionConfig
from spendguard.models.enums import AnomalyType, Severity
from spendguard.repositories import TransactionRepository
from spendguard.schemas.anomaly import DuplicateEvidence, Finding

logger = logging.getLogger(__name__)

SHORT_TITLE_LENGTH = 5


def normalize_title(title: Optional[str]) -> str:
    return (title or "").lower().strip()


def allowed_edits(title: str) -> int:
    """One typo for titles under five characters, two for longer ones."""
    return 1 if len(title) < SHORT_TITLE_LENGTH else 2


def titles_match(target: str, candidate: str) -> bool:
    target, candidate = normalize_title(target), normalize_title(candidate)
    if target == candidate:
        return True
    limit = allowed_edits(target)
    return Levenshtein.distance(target, candidate, score_cutoff=limit) <= limit


class DuplicateDetector:
    """Same owner, same amount, near-identical title within a short window."""

    def __init__(self, transactions: TransactionRepository, config: Optional[DetectionConfig] = None):
        self.transactions = transactions
        self.config = config or DetectionConfig()

    def find_duplicate(self, transaction, user_id: UUID):
        since = transaction.transaction_date - timedelta(minutes=self.config.duplicate_window_minutes)
        candidates = self.transactions.find_recent_same_amount(
            user_id, transaction.amount, since, exclude_id=transaction.id
        )
        logger.debug(f"Found {len(candidates)} potential duplicate candidates")
        if not candidates:
            return None

        for candidate in candidates:
            if titles_match(transaction.title, candidate.title):
                logger.info(f"Duplicate found: '{transaction.title}' ~= '{candidate.title}'")
                return candidate
        return None

    def detect(self, transaction, user_id: UUID, now: datetime) -> Optional[Finding]:
        match = self.find_duplicate(transaction, user_id)
        if match is None:
            return None
        return Finding(
            anomaly_type=AnomalyType.DUPLICATE_TRANSACTION,
            severity=Severity.MEDIUM,
            explanation="This appears to be a duplicate transaction.",
            evidence=DuplicateEvidence(duplicate_of=str(match.id)),
        )
