"""
Run anomaly detection from the command line.

Either checks one transaction by id, or re-scans a user's recent transactions
(useful after changing thresholds). With --dry-run nothing is persisted.
"""
from __future__ import annotations
import os, sys, json, logging
from datetime import timedelta
from typing import Any, Dict, List
from uuid import UUID

from dotenv import load_dotenv
from tqdm import tqdm

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Load .env before the engine is created from DATABASE_URL
load_dotenv()

from spendguard.config import EngineConfig
from spendguard.core.database import SessionLocal
from spendguard.core.timeutils import utcnow
from spendguard.models.transaction import Transaction
from spendguard.repositories import AnomalyStore
from spendguard.services.detection_service import DetectionService

logger = logging.getLogger(__name__)


class _DryRunStore(AnomalyStore):
    def append_batch(self, drafts):
        logger.info(f"[dry-run] would persist {len(drafts)} anomalies")
        return []


def _summarize(transaction: Transaction, drafts) -> Dict[str, Any]:
    return {
        "transaction_id": str(transaction.id),
        "title": transaction.title,
        "amount": transaction.amount,
        "anomalies": [
            {"type": d.anomaly_type.value, "severity": d.severity.value, "explanation": d.explanation,
             "evidence": d.evidence.to_json()}
            for d in drafts
        ],
    }


def run(transaction_id: str = None, user_id: str = None, days: int = 7, dry_run: bool = False) -> List[Dict[str, Any]]:
    cfg = EngineConfig()
    db = SessionLocal()
    try:
        service = DetectionService.from_config(db, cfg)
        if dry_run:
            service.store = _DryRunStore(db)

        if transaction_id:
            transactions = db.query(Transaction).filter(Transaction.id == UUID(transaction_id)).all()
        else:
            since = utcnow() - timedelta(days=days)
            transactions = db.query(Transaction).filter(
                Transaction.user_id == UUID(user_id),
                Transaction.transaction_date >= since,
            ).order_by(Transaction.transaction_date).all()

        if not transactions:
            logger.warning("No transactions matched")
            return []

        results = []
        for transaction in tqdm(transactions, desc="Checking transactions"):
            drafts = service.run_detection(transaction, transaction.user_id)
            results.append(_summarize(transaction, drafts))
        return results
    finally:
        db.close()


def main():
    import argparse
    parser = argparse.ArgumentParser(description="Transaction anomaly detection")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--transaction", default=None, help="Transaction id to check")
    target.add_argument("--user", default=None, help="Re-scan this user's recent transactions")
    parser.add_argument("--days", type=int, default=7, help="Look-back for --user")
    parser.add_argument("--dry-run", action="store_true", help="Detect but do not persist")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    results = run(transaction_id=args.transaction, user_id=args.user, days=args.days, dry_run=args.dry_run)
    flagged = [r for r in results if r["anomalies"]]
    print(json.dumps(flagged, indent=2, ensure_ascii=False, default=str))
    logger.info(f"{len(flagged)} of {len(results)} transactions flagged")

if __name__ == "__main__":
    main()
