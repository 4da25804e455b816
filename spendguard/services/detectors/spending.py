"""
Statistical detectors over a rolling window of the owner's history.

- SpendingSpikeDetector: amount vs. trailing 30-day mean
- CategoryOveruseDetector: one category's share of month-to-date spend
- SilentLeakDetector: small charges repeating under the same title
"""
import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

import numpy as np

from spendguard.config import DetectionConfig
from spendguard.core.timeutils import start_of_month
from spendguard.models.enums import AnomalyType, Severity
from spendguard.repositories import TransactionRepository
from spendguard.schemas.anomaly import (
    CategoryOveruseEvidence,
    Finding,
    SilentLeakEvidence,
    SpikeEvidence,
)

logger = logging.getLogger(__name__)


class SpendingSpikeDetector:
    def __init__(self, transactions: TransactionRepository, config: Optional[DetectionConfig] = None):
        self.transactions = transactions
        self.config = config or DetectionConfig()

    def trailing_average(self, transaction, user_id: UUID, now: datetime) -> Optional[float]:
        since = now - timedelta(days=self.config.lookback_days)
        amounts = self.transactions.amounts_since(user_id, since, exclude_id=transaction.id)
        if not amounts:
            return None
        average = float(np.mean(np.array(amounts, dtype=float)))
        # An empty or broken baseline would flag everything
        if not np.isfinite(average) or average <= 0:
            return None
        return average

    def detect(self, transaction, user_id: UUID, now: datetime) -> Optional[Finding]:
        average = self.trailing_average(transaction, user_id, now)
        if average is None:
            return None

        amount = float(transaction.amount)
        threshold = average * self.config.spike_multiplier
        if amount <= threshold:
            return None

        percentage = (amount - average) / average * 100
        logger.info(f"Spending spike: {amount:.2f} vs 30-day average {average:.2f}")
        return Finding(
            anomaly_type=AnomalyType.SPENDING_SPIKE,
            severity=Severity.HIGH,
            explanation=f"Transaction is {round(percentage)}% higher than your 30-day average.",
            evidence=SpikeEvidence(average=average, current=amount, threshold=threshold, percentage=percentage),
        )


class CategoryOveruseDetector:
    def __init__(self, transactions: TransactionRepository, config: Optional[DetectionConfig] = None):
        self.transactions = transactions
        self.config = config or DetectionConfig()

    def detect(self, transaction, user_id: UUID, now: datetime) -> Optional[Finding]:
        totals = self.transactions.monthly_totals(user_id, start_of_month(now), transaction.category)
        if totals is None:
            return None

        # The candidate is already stored, so both totals count it twice
        amount = float(transaction.amount)
        total, category_total = totals
        new_total = total + amount
        new_category_total = category_total + amount
        if new_total <= 0:
            return None

        percentage = new_category_total * 100 / new_total
        if percentage <= self.config.overuse_share_percent or new_total <= self.config.overuse_min_monthly_total:
            return None

        return Finding(
            anomaly_type=AnomalyType.CATEGORY_OVERUSE,
            severity=Severity.MEDIUM,
            explanation=(
                f"Spending in '{transaction.category}' is {round(percentage)}% of your total monthly spend."
            ),
            evidence=CategoryOveruseEvidence(
                category_total=new_category_total,
                total_monthly=new_total,
                percentage=percentage,
            ),
        )


class SilentLeakDetector:
    """Preventive signal for forgotten subscriptions and similar small repeats."""

    def __init__(self, transactions: TransactionRepository, config: Optional[DetectionConfig] = None):
        self.transactions = transactions
        self.config = config or DetectionConfig()

    def detect(self, transaction, user_id: UUID, now: datetime) -> Optional[Finding]:
        amount = float(transaction.amount)
        if amount > self.config.silent_leak_max_amount:
            return None

        since = now - timedelta(days=self.config.lookback_days)
        prior_count, prior_total = self.transactions.recurring_small(
            user_id, transaction.title, since, self.config.silent_leak_max_amount, exclude_id=transaction.id
        )
        if prior_count < self.config.silent_leak_min_prior:
            return None

        count = prior_count + 1
        return Finding(
            anomaly_type=AnomalyType.SILENT_LEAK,
            severity=Severity.LOW,
            explanation=(
                f"Preventive Warning: {count} small transactions to '{transaction.title}' "
                f"detected in last {self.config.lookback_days} days."
            ),
            evidence=SilentLeakEvidence(
                period=f"{self.config.lookback_days} Days",
                count=count,
                total_amount=prior_total + amount,
            ),
        )
