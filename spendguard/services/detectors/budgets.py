import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from spendguard.config import DetectionConfig
from spendguard.models.enums import AnomalyType, Severity
from spendguard.repositories import BudgetRepository, TransactionRepository
from spendguard.schemas.anomaly import BudgetExceededEvidence, Finding

logger = logging.getLogger(__name__)


class BudgetExceededDetector:
    """Flags the first active budget covering now whose period spend is over its limit."""

    def __init__(self, transactions: TransactionRepository, budgets: BudgetRepository,
                 config: Optional[DetectionConfig] = None):
        self.transactions = transactions
        self.budgets = budgets
        self.config = config or DetectionConfig()

    def detect(self, transaction, user_id: UUID, now: datetime) -> Optional[Finding]:
        sentinel = self.config.all_categories_sentinel
        budgets = self.budgets.find_active_covering(user_id, transaction.category, now, sentinel)
        if not budgets:
            logger.debug(f"No active budgets covering '{transaction.category}'")
            return None

        for budget in budgets:
            # A 'total' budget is measured against spend in every category
            category = None if (budget.category or "").lower() == sentinel.lower() else transaction.category
            current_spend = self.transactions.category_spend(user_id, category, budget.start_date, budget.end_date)
            limit = float(budget.amount)
            logger.debug(f"Budget '{budget.name}': spend {current_spend:.2f} of {limit:.2f}")

            if current_spend > limit:
                logger.info(f"Budget '{budget.name}' exceeded by {current_spend - limit:.2f}")
                return Finding(
                    anomaly_type=AnomalyType.BUDGET_EXCEEDED,
                    severity=Severity.HIGH,
                    explanation=f"Transaction exceeds your '{budget.name}' budget limit.",
                    evidence=BudgetExceededEvidence(
                        budget_name=budget.name,
                        budget_limit=limit,
                        current_spend=current_spend,
                        exceeded_by=current_spend - limit,
                    ),
                )
        return None
