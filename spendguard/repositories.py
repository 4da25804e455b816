"""
Read and write adapters between the detection engine and the database.

Detectors only see the read protocols, so they can be exercised against any
store. The SQLAlchemy implementations below are the production ones.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple
from uuid import UUID

from sqlalchemy import and_, case, func, or_, true
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from spendguard.core.exceptions import PersistenceError
from spendguard.core.timeutils import utcnow
from spendguard.models.anomaly import Anomaly
from spendguard.models.audit_log import AuditLog
from spendguard.models.budget import Budget
from spendguard.models.transaction import Transaction
from spendguard.schemas.anomaly import AnomalyDraft

logger = logging.getLogger(__name__)


class TransactionRepository(Protocol):
    def find_recent_same_amount(self, user_id: UUID, amount: float, since: datetime,
                                exclude_id: Optional[UUID]) -> List[Transaction]:
        ...

    def amounts_since(self, user_id: UUID, since: datetime, exclude_id: Optional[UUID]) -> List[float]:
        ...

    def monthly_totals(self, user_id: UUID, since: datetime, category: str) -> Optional[Tuple[float, float]]:
        ...

    def recurring_small(self, user_id: UUID, title: str, since: datetime, max_amount: float,
                        exclude_id: Optional[UUID]) -> Tuple[int, float]:
        ...

    def category_spend(self, user_id: UUID, category: Optional[str], start: datetime, end: datetime) -> float:
        ...


class BudgetRepository(Protocol):
    def find_active_covering(self, user_id: UUID, category: str, moment: datetime,
                             all_categories: str) -> List[Budget]:
        ...


class SqlTransactionRepository:
    """Transaction queries used by the detectors. Pure reads."""

    def __init__(self, db: Session):
        self.db = db

    def _not_self(self, exclude_id: Optional[UUID]):
        return Transaction.id != exclude_id if exclude_id is not None else true()

    def find_recent_same_amount(self, user_id: UUID, amount: float, since: datetime,
                                exclude_id: Optional[UUID]) -> List[Transaction]:
        # No upper bound on the date, a late clock must still match
        return self.db.query(Transaction).filter(
            and_(Transaction.user_id == user_id,
                 Transaction.amount == amount,
                 Transaction.transaction_date >= since,
                 self._not_self(exclude_id))
        ).order_by(Transaction.transaction_date.desc()).all()

    def amounts_since(self, user_id: UUID, since: datetime, exclude_id: Optional[UUID]) -> List[float]:
        rows = self.db.query(Transaction.amount).filter(
            and_(Transaction.user_id == user_id,
                 Transaction.transaction_date >= since,
                 self._not_self(exclude_id))
        ).all()
        return [float(amount) for (amount,) in rows]

    def monthly_totals(self, user_id: UUID, since: datetime, category: str) -> Optional[Tuple[float, float]]:
        """Return (total, category_total) since the given date, or None with no rows."""
        row = self.db.query(
            func.count(Transaction.id),
            func.sum(Transaction.amount),
            func.sum(
                case((func.lower(Transaction.category) == (category or "").lower(), Transaction.amount), else_=0)
            ),
        ).filter(
            and_(Transaction.user_id == user_id,
                 Transaction.transaction_date >= since)
        ).one()

        count, total, category_total = row
        if not count:
            return None
        return float(total or 0), float(category_total or 0)

    def recurring_small(self, user_id: UUID, title: str, since: datetime, max_amount: float,
                        exclude_id: Optional[UUID]) -> Tuple[int, float]:
        count, total = self.db.query(
            func.count(Transaction.id),
            func.sum(Transaction.amount),
        ).filter(
            and_(Transaction.user_id == user_id,
                 Transaction.transaction_date >= since,
                 func.lower(Transaction.title) == (title or "").lower(),
                 Transaction.amount <= max_amount,
                 self._not_self(exclude_id))
        ).one()
        return int(count or 0), float(total or 0)

    def category_spend(self, user_id: UUID, category: Optional[str], start: datetime, end: datetime) -> float:
        """Sum of spend in [start, end], inclusive. category=None sums every category."""
        query = self.db.query(func.sum(Transaction.amount)).filter(
            and_(Transaction.user_id == user_id,
                 Transaction.transaction_date >= start,
                 Transaction.transaction_date <= end)
        )
        if category is not None:
            query = query.filter(func.lower(Transaction.category) == category.lower())
        return float(query.scalar() or 0)


class SqlBudgetRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_active_covering(self, user_id: UUID, category: str, moment: datetime,
                             all_categories: str) -> List[Budget]:
        return self.db.query(Budget).filter(
            and_(Budget.user_id == user_id,
                 Budget.is_active.is_(True),
                 Budget.start_date <= moment,
                 Budget.end_date >= moment,
                 or_(func.lower(Budget.category) == (category or "").lower(),
                     func.lower(Budget.category) == (all_categories or "").lower()))
        ).order_by(Budget.created_at.desc()).all()


class AnomalyStore:
    """Appends anomaly batches. All-or-nothing per batch."""

    def __init__(self, db: Session):
        self.db = db

    def append_batch(self, drafts: Sequence[AnomalyDraft]) -> List[Anomaly]:
        if not drafts:
            return []
        records = [Anomaly(**draft.to_record()) for draft in drafts]
        try:
            self.db.add_all(records)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to persist {len(records)} anomalies: {e}") from e
        return records


class AuditLogStore:
    """Append-only access to the audit trail."""

    def __init__(self, db: Session):
        self.db = db

    def append(self, user_id: UUID, action: str, resource: str, resource_id: Optional[UUID] = None,
               details: Optional[Dict[str, Any]] = None, commit: bool = True) -> AuditLog:
        entry = AuditLog(
            user_id=user_id,
            action=action,
            resource=resource,
            resource_id=resource_id,
            details=details or {},
            timestamp=utcnow(),
        )
        self.db.add(entry)
        if commit:
            self.db.commit()
        return entry

    def recent(self, user_id: UUID, limit: int = 10) -> List[AuditLog]:
        return self.db.query(AuditLog).filter(AuditLog.user_id == user_id).order_by(
            AuditLog.timestamp.desc()
        ).limit(limit).all()
