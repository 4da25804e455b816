from datetime import datetime, timedelta

import pytest

from spendguard.models.enums import AnomalyType, Severity
from spendguard.repositories import SqlBudgetRepository, SqlTransactionRepository
from spendguard.services.detection_service import DetectionService
from spendguard.services.detectors.budgets import BudgetExceededDetector


@pytest.fixture
def detector(db):
    return BudgetExceededDetector(SqlTransactionRepository(db), SqlBudgetRepository(db))


def test_flags_spend_over_limit(detector, make_budget, make_transaction, user_id, now):
    make_budget(amount=500.0, category="food", name="Groceries")
    make_transaction(amount=300.0, category="food", when=now - timedelta(days=3))
    candidate = make_transaction(amount=201.0, category="food", when=now)

    finding = detector.detect(candidate, user_id, now)

    assert finding is not None
    assert finding.anomaly_type is AnomalyType.BUDGET_EXCEEDED
    assert finding.severity is Severity.HIGH
    assert finding.evidence.to_json() == {
        "budgetName": "Groceries",
        "budgetLimit": 500.0,
        "currentSpend": 501.0,
        "exceededBy": 1.0,
    }


def test_spend_equal_to_limit_is_fine(detector, make_budget, make_transaction, user_id, now):
    make_budget(amount=500.0, category="food")
    make_transaction(amount=300.0, category="food", when=now - timedelta(days=3))
    candidate = make_transaction(amount=200.0, category="food", when=now)

    assert detector.detect(candidate, user_id, now) is None


def test_category_match_ignores_case(detector, make_budget, make_transaction, user_id, now):
    make_budget(amount=100.0, category="Food")
    candidate = make_transaction(amount=150.0, category="FOOD", when=now)

    assert detector.detect(candidate, user_id, now) is not None


def test_other_categories_do_not_count(detector, make_budget, make_transaction, user_id, now):
    make_budget(amount=500.0, category="food")
    make_transaction(amount=450.0, category="transport", when=now - timedelta(days=1))
    candidate = make_transaction(amount=100.0, category="food", when=now)

    assert detector.detect(candidate, user_id, now) is None


def test_total_budget_sums_every_category(detector, make_budget, make_transaction, user_id, now):
    make_budget(amount=600.0, category="total", name="Everything")
    make_transaction(amount=300.0, category="food", when=now - timedelta(days=1))
    candidate = make_transaction(amount=301.0, category="transport", when=now)

    finding = detector.detect(candidate, user_id, now)

    assert finding is not None
    assert finding.evidence.budget_name == "Everything"
    assert finding.evidence.current_spend == pytest.approx(601.0)


def test_inactive_budget_is_ignored(detector, make_budget, make_transaction, user_id, now):
    make_budget(amount=10.0, category="food", is_active=False)
    candidate = make_transaction(amount=100.0, category="food", when=now)

    assert detector.detect(candidate, user_id, now) is None


def test_expired_budget_is_ignored(detector, make_budget, make_transaction, user_id, now):
    make_budget(amount=10.0, category="food", start=datetime(2026, 2, 1), end=datetime(2026, 3, 1))
    candidate = make_transaction(amount=100.0, category="food", when=now)

    assert detector.detect(candidate, user_id, now) is None


def test_spend_outside_budget_period_is_ignored(detector, make_budget, make_transaction, user_id, now):
    make_budget(amount=500.0, category="food")
    make_transaction(amount=900.0, category="food", when=datetime(2026, 2, 20))
    candidate = make_transaction(amount=100.0, category="food", when=now)

    assert detector.detect(candidate, user_id, now) is None


class TestOverlappingBudgets:

    @pytest.fixture
    def budgets(self, make_budget, now):
        return {
            "big": make_budget(amount=5000.0, category="food", name="Big", created_at=now - timedelta(days=3)),
            "small": make_budget(amount=100.0, category="food", name="Small", created_at=now - timedelta(hours=1)),
            "total": make_budget(amount=50.0, category="total", name="Tot", created_at=now - timedelta(days=2)),
        }

    def test_newest_breached_budget_is_reported(self, detector, budgets, make_transaction, user_id, now):
        candidate = make_transaction(amount=150.0, category="food", when=now)

        finding = detector.detect(candidate, user_id, now)

        assert finding.evidence.to_json() == {
            "budgetName": "Small",
            "budgetLimit": 100.0,
            "currentSpend": 150.0,
            "exceededBy": 50.0,
        }

    def test_unbreached_budgets_are_skipped(self, detector, make_budget, make_transaction, user_id, now):
        make_budget(amount=5000.0, category="food", name="Big", created_at=now - timedelta(hours=1))
        make_budget(amount=100.0, category="food", name="Small", created_at=now - timedelta(days=1))
        candidate = make_transaction(amount=150.0, category="food", when=now)

        assert detector.detect(candidate, user_id, now).evidence.budget_name == "Small"

    def test_total_budget_wins_when_newest(self, detector, make_budget, make_transaction, user_id, now):
        make_budget(amount=100.0, category="food", name="Small", created_at=now - timedelta(days=1))
        make_budget(amount=200.0, category="total", name="Tot", created_at=now - timedelta(hours=1))
        make_transaction(amount=80.0, category="transport", when=now - timedelta(days=1))
        candidate = make_transaction(amount=150.0, category="food", when=now)

        finding = detector.detect(candidate, user_id, now)

        assert finding.evidence.budget_name == "Tot"
        assert finding.evidence.current_spend == pytest.approx(230.0)

    def test_one_budget_anomaly_per_run(self, db, clock, budgets, make_transaction, user_id, now):
        candidate = make_transaction(amount=150.0, category="food", when=now)

        drafts = DetectionService(db, clock=clock).run_detection(candidate, user_id)

        budget_drafts = [d for d in drafts if d.anomaly_type is AnomalyType.BUDGET_EXCEEDED]
        assert len(budget_drafts) == 1
        assert budget_drafts[0].evidence.budget_name == "Small"


@pytest.mark.parametrize("sentinel", ["Total", "TOTAL"])
def test_total_sentinel_ignores_case(detector, make_budget, make_transaction, user_id, now, sentinel):
    make_budget(amount=100.0, category=sentinel, name="Everything")
    make_transaction(amount=60.0, category="transport", when=now - timedelta(days=1))
    candidate = make_transaction(amount=60.0, category="food", when=now)

    finding = detector.detect(candidate, user_id, now)

    assert finding is not None
    assert finding.evidence.current_spend == pytest.approx(120.0)
