from __future__ import annotations
import math
from typing import Dict, Optional

from spendguard.schemas.anomaly import ClassificationResult


class ClassificationCache:
    """Process-local cache of classifier answers.

    Keys group transactions by category and a coarse amount bucket, so 520
    and 560 in the same category share one answer. A new key that would push
    the cache past its capacity clears it wholesale first. Not thread-safe;
    a racing writer only costs an extra provider call.
    """

    def __init__(self, capacity: int = 1000, bucket_size: float = 100.0):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.bucket_size = bucket_size
        self._entries: Dict[str, ClassificationResult] = {}
        self.hits = 0
        self.misses = 0

    def key_for(self, category: str, amount: float) -> str:
        bucket = int(math.floor(float(amount) / self.bucket_size) * self.bucket_size)
        return f"{(category or '').lower()}:{bucket}"

    def get(self, category: str, amount: float) -> Optional[ClassificationResult]:
        result = self._entries.get(self.key_for(category, amount))
        if result is None:
            self.misses += 1
        else:
            self.hits += 1
        return result

    def put(self, category: str, amount: float, result: ClassificationResult) -> None:
        key = self.key_for(category, amount)
        if key not in self._entries and len(self._entries) >= self.capacity:
            self._entries.clear()
        self._entries[key] = result

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
