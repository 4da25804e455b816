"""
Detection orchestrator.

Runs every deterministic detector against a freshly written transaction,
optionally asks the classification gateway for a second opinion, stamps the
findings with one shared detection time and appends them as a single batch.
Detection is a side effect of writing a transaction: nothing in here raises
to the caller.
"""
import logging
from typing import Callable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from spendguard.config import DetectionConfig, EngineConfig
from spendguard.core.exceptions import PersistenceError
from spendguard.core.timeutils import utcnow
from spendguard.models.enums import AnomalyType
from spendguard.repositories import (
    AnomalyStore,
    BudgetRepository,
    SqlBudgetRepository,
    SqlTransactionRepository,
    TransactionRepository,
)
from spendguard.schemas.anomaly import AiEvidence, AnomalyDraft, Finding
from spendguard.services.classification_service import ClassificationGateway
from spendguard.services.detectors.budgets import BudgetExceededDetector
from spendguard.services.detectors.duplicates import DuplicateDetector
from spendguard.services.detectors.spending import (
    CategoryOveruseDetector,
    SilentLeakDetector,
    SpendingSpikeDetector,
)
from spendguard.services.detectors.timing import OddTimeDetector

logger = logging.getLogger(__name__)


class DetectionService:
    """Service for detecting anomalies in a single transaction as it is written."""

    def __init__(
        self,
        db: Optional[Session] = None,
        gateway: Optional[ClassificationGateway] = None,
        config: Optional[DetectionConfig] = None,
        transactions: Optional[TransactionRepository] = None,
        budgets: Optional[BudgetRepository] = None,
        store: Optional[AnomalyStore] = None,
        clock: Callable = utcnow,
    ):
        self.db = db
        self.config = config or DetectionConfig()
        self.transactions = transactions or SqlTransactionRepository(db)
        self.budgets = budgets or SqlBudgetRepository(db)
        self.store = store or AnomalyStore(db)
        self.gateway = gateway
        self.clock = clock
        self.detectors = [
            DuplicateDetector(self.transactions, self.config),
            OddTimeDetector(self.config),
            SpendingSpikeDetector(self.transactions, self.config),
            CategoryOveruseDetector(self.transactions, self.config),
            SilentLeakDetector(self.transactions, self.config),
            BudgetExceededDetector(self.transactions, self.budgets, self.config),
        ]

    @classmethod
    def from_config(cls, db: Session, cfg: Optional[EngineConfig] = None) -> "DetectionService":
        cfg = cfg or EngineConfig()
        return cls(db, gateway=ClassificationGateway.from_config(cfg), config=cfg.detection)

    def run_detection(self, transaction, user_id: UUID) -> List[AnomalyDraft]:
        """Check a transaction for every anomaly type and persist what was found.

        Returns the anomalies found whether or not they could be persisted.
        """
        logger.info(f"Checking transaction for anomalies: {transaction.title} ({transaction.amount})")
        now = self.clock()

        # collecting
        findings = self._collect(transaction, user_id, now)

        # classification decision and merge
        ai_finding = self._classify(transaction, findings)
        if ai_finding is not None and not any(
            f.anomaly_type == AnomalyType.AI_DETECTED_IRREGULARITY for f in findings
        ):
            findings.append(ai_finding)

        drafts = [
            AnomalyDraft(
                **finding.model_dump(exclude={"evidence"}),
                evidence=finding.evidence,
                user_id=user_id,
                transaction_id=transaction.id,
                detected_at=now,
            )
            for finding in findings
        ]

        # persisting
        if drafts:
            self._persist(drafts)
        else:
            logger.info("No anomalies found")
        return drafts

    # Hook name used by the transaction write workflow
    check_transaction = run_detection

    def _collect(self, transaction, user_id: UUID, now) -> List[Finding]:
        findings: List[Finding] = []
        for detector in self.detectors:
            name = type(detector).__name__
            try:
                finding = detector.detect(transaction, user_id, now)
            except Exception as e:
                logger.error(f"{name} failed, treating as no finding: {e}", exc_info=True)
                self._recover_session()
                continue
            if finding is not None:
                logger.info(f"{name} flagged {finding.anomaly_type.value} ({finding.severity.value})")
                findings.append(finding)
        return findings

    def _classify(self, transaction, findings: Sequence[Finding]) -> Optional[Finding]:
        if self.gateway is None or not self.gateway.is_available():
            logger.debug("Skipping AI analysis, no classification providers")
            return None

        should_run, reason = self.gateway.should_classify(transaction, rule_fired=bool(findings))
        if not should_run:
            logger.debug("Skipping AI analysis, nothing suspicious")
            return None

        logger.info(f"Requesting AI analysis ({reason})")
        try:
            result = self.gateway.classify(transaction, signals=[f.anomaly_type.value for f in findings])
        except Exception as e:
            # classify is not supposed to raise; a bug there must not cost the rule findings
            logger.error(f"AI anomaly detection failed: {e}", exc_info=True)
            return None

        if result is None or not result.is_anomaly:
            return None
        return Finding(
            anomaly_type=AnomalyType.AI_DETECTED_IRREGULARITY,
            severity=result.severity,
            explanation=result.explanation or "Flagged by automated review.",
            evidence=AiEvidence(ai_confidence=result.confidence, provider=result.provider),
        )

    def _persist(self, drafts: List[AnomalyDraft]) -> None:
        logger.info(f"Saving {len(drafts)} anomalies to database")
        try:
            self.store.append_batch(drafts)
        except PersistenceError as e:
            logger.error(f"Anomalies not persisted: {e}")
        except Exception as e:
            logger.error(f"Unexpected error persisting anomalies: {e}", exc_info=True)

    def _recover_session(self) -> None:
        # A failed query leaves the session unusable for the detectors that follow
        if self.db is None:
            return
        try:
            self.db.rollback()
        except Exception as e:
            logger.warning(f"Session rollback failed: {e}")
