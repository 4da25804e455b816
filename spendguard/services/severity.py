from typing import Any

from spendguard.models.enums import Severity

# Labels external classifiers tend to invent, mapped onto the closed scale
_HIGH_ALIASES = {"CRITICAL", "SEVERE", "URGENT", "EXTREME"}
_LOW_ALIASES = {"INFO", "NOTE", "WARNING", "MINOR"}


def normalize_severity(raw: Any) -> Severity:
    """Map any severity label onto LOW, MEDIUM or HIGH.

    Canonical values pass through (case-insensitive), known aliases are
    mapped, and everything else, including None and the empty string,
    becomes MEDIUM.
    """
    if isinstance(raw, Severity):
        return raw
    if not raw:
        return Severity.MEDIUM

    label = str(raw).strip().upper()
    if label in Severity.__members__:
        return Severity[label]
    if label in _HIGH_ALIASES:
        return Severity.HIGH
    if label in _LOW_ALIASES:
        return Severity.LOW
    return Severity.MEDIUM
