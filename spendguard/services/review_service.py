import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import case, desc, func
from sqlalchemy.orm import Session

from spendguard.core.database import SessionLocal
from spendguard.core.exceptions import AnomalyNotFoundError, InvalidReviewActionError
from spendguard.core.timeutils import utcnow
from spendguard.models.anomaly import Anomaly
from spendguard.models.enums import AnomalyStatus, AuditAction, AuditResource, Severity
from spendguard.repositories import AuditLogStore
from spendguard.schemas.anomaly import AnomalyResponse, SecurityDashboard

logger = logging.getLogger(__name__)

REVIEW_ACTIONS = {AnomalyStatus.REVIEWED, AnomalyStatus.DISMISSED, AnomalyStatus.CONFIRMED}

# Health score deductions per open anomaly
SEVERITY_DEDUCTIONS = {Severity.HIGH.value: 15, Severity.MEDIUM.value: 5, Severity.LOW.value: 2}

_SEVERITY_RANK = case(
    (Anomaly.severity == Severity.HIGH.value, 3),
    (Anomaly.severity == Severity.MEDIUM.value, 2),
    else_=1,
)


class ReviewService:
    """Human-in-the-loop handling of detected anomalies."""

    def __init__(self, db: Session = None):
        self.db = db or SessionLocal()
        self.audit = AuditLogStore(self.db)

    def list_anomalies(self, user_id: UUID, status: Optional[str] = None, severity: Optional[str] = None,
                       limit: int = 50, offset: int = 0) -> List[AnomalyResponse]:
        """Get anomalies with optional filtering."""
        query = self.db.query(Anomaly).filter(Anomaly.user_id == user_id)
        if status:
            query = query.filter(Anomaly.status == status.upper())
        if severity:
            query = query.filter(Anomaly.severity == severity.upper())
        anomalies = query.order_by(desc(Anomaly.detected_at)).offset(offset).limit(limit).all()
        return [AnomalyResponse.model_validate(a) for a in anomalies]

    def resolve_anomaly(self, anomaly_id: UUID, user_id: UUID, action: str,
                        resolution_note: str = "") -> AnomalyResponse:
        """Move an anomaly out of PENDING and record who did it in the audit trail."""
        if isinstance(action, AnomalyStatus):
            action = action.value
        try:
            new_status = AnomalyStatus(str(action).upper())
        except ValueError:
            new_status = None
        if new_status not in REVIEW_ACTIONS:
            raise InvalidReviewActionError(
                f"Action must be one of {sorted(s.value for s in REVIEW_ACTIONS)}, got '{action}'"
            )

        anomaly = self.db.query(Anomaly).filter(
            Anomaly.id == anomaly_id, Anomaly.user_id == user_id
        ).first()
        if anomaly is None:
            raise AnomalyNotFoundError(f"Anomaly {anomaly_id} not found")

        old_status = anomaly.status
        try:
            anomaly.status = new_status.value
            anomaly.resolution_note = resolution_note or ""
            anomaly.resolved_at = utcnow()
            self.audit.append(
                user_id=user_id,
                action=(AuditAction.ANOMALY_DISMISSED if new_status == AnomalyStatus.DISMISSED
                        else AuditAction.ANOMALY_RESOLVED).value,
                resource=AuditResource.ANOMALY.value,
                resource_id=anomaly.id,
                details={
                    "before": {"status": old_status},
                    "after": {"status": new_status.value, "resolutionNote": anomaly.resolution_note},
                },
                commit=False,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Anomaly {anomaly_id} moved {old_status} -> {new_status.value}")
        return AnomalyResponse.model_validate(anomaly)

    def health_score(self, user_id: UUID) -> int:
        """Start at 100 and deduct per open anomaly by severity."""
        rows = self.db.query(Anomaly.severity, func.count(Anomaly.id)).filter(
            Anomaly.user_id == user_id,
            Anomaly.status.in_([AnomalyStatus.PENDING.value, AnomalyStatus.CONFIRMED.value]),
        ).group_by(Anomaly.severity).all()

        deduction = sum(SEVERITY_DEDUCTIONS.get(severity, 2) * count for severity, count in rows)
        return max(0, 100 - deduction)

    def security_dashboard(self, user_id: UUID) -> SecurityDashboard:
        total = self.db.query(func.count(Anomaly.id)).filter(Anomaly.user_id == user_id).scalar() or 0
        pending = self.db.query(func.count(Anomaly.id)).filter(
            Anomaly.user_id == user_id, Anomaly.status == AnomalyStatus.PENDING.value
        ).scalar() or 0

        # High -> Low, newest first
        recent_alerts = self.db.query(Anomaly).filter(
            Anomaly.user_id == user_id, Anomaly.status == AnomalyStatus.PENDING.value
        ).order_by(desc(_SEVERITY_RANK), desc(Anomaly.detected_at)).limit(5).all()

        recent_logs = self.audit.recent(user_id, limit=10)

        return SecurityDashboard(
            health_score=self.health_score(user_id),
            stats={"total": int(total), "pending": int(pending), "resolved": int(total - pending)},
            recent_alerts=[AnomalyResponse.model_validate(a) for a in recent_alerts],
            recent_logs=[self._log_to_dict(log) for log in recent_logs],
        )

    def _log_to_dict(self, log) -> Dict[str, Any]:
        return {
            "id": str(log.id),
            "action": log.action,
            "resource": log.resource,
            "resource_id": str(log.resource_id) if log.resource_id else None,
            "details": log.details,
            "timestamp": log.timestamp.isoformat(),
        }
