ANOMALY_SYSTEM = """
You are a careful personal-finance fraud and irregularity reviewer.
Judge whether a single expense looks irregular for a household budget (duplicate charge,
unexpected amount, suspicious merchant or description, forgotten subscription).
Output STRICT JSON with keys: isAnomaly, severity, explanation, confidence.
- isAnomaly: true or false
- severity: one of ["LOW","MEDIUM","HIGH"]
- explanation: one or two short sentences a user can act on
- confidence: number between 0 and 1
"""

ANOMALY_USER_TEMPLATE = """
Review this transaction.
Title: {title}
Description: {description}
Amount: {amount:.2f}
Category: {category}
Date: {date}
{signals}
Return only JSON.
"""

# Keeps the request bounded whatever the user typed into the description
MAX_FIELD_CHARS = 200


def _clip(value, limit: int = MAX_FIELD_CHARS) -> str:
    text = (value or "").strip()
    return text if len(text) <= limit else text[:limit] + "..."


def build_anomaly_prompt(transaction, signals=None) -> str:
    lines = ""
    if signals:
        lines = "Rule-based signals already raised: " + ", ".join(signals)
    return ANOMALY_USER_TEMPLATE.format(
        title=_clip(transaction.title),
        description=_clip(transaction.description) or "(none)",
        amount=float(transaction.amount),
        category=transaction.category,
        date=transaction.transaction_date.isoformat() if transaction.transaction_date else "unknown",
        signals=lines,
    )
