import enum


class TransactionCategory(str, enum.Enum):
    FOOD = "food"
    TRANSPORTATION = "transportation"
    UTILITIES = "utilities"
    ENTERTAINMENT = "entertainment"
    HEALTHCARE = "healthcare"
    SHOPPING = "shopping"
    EDUCATION = "education"
    TRAVEL = "travel"
    INSURANCE = "insurance"
    HOUSING = "housing"
    PERSONAL = "personal"
    BUSINESS = "business"
    OTHER = "other"


class BudgetPeriod(str, enum.Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class AnomalyType(str, enum.Enum):
    DUPLICATE_TRANSACTION = "DUPLICATE_TRANSACTION"
    ODD_TIME_PATTERN = "ODD_TIME_PATTERN"
    SPENDING_SPIKE = "SPENDING_SPIKE"
    CATEGORY_OVERUSE = "CATEGORY_OVERUSE"
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"
    SILENT_LEAK = "SILENT_LEAK"
    PREVENTIVE_WARNING = "PREVENTIVE_WARNING"
    AI_DETECTED_IRREGULARITY = "AI_DETECTED_IRREGULARITY"


class Severity(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class AnomalyStatus(str, enum.Enum):
    PENDING = "PENDING"
    REVIEWED = "REVIEWED"
    DISMISSED = "DISMISSED"
    CONFIRMED = "CONFIRMED"


class AuditAction(str, enum.Enum):
    EXPENSE_CREATE = "EXPENSE_CREATE"
    EXPENSE_UPDATE = "EXPENSE_UPDATE"
    EXPENSE_DELETE = "EXPENSE_DELETE"
    INCOME_CREATE = "INCOME_CREATE"
    INCOME_UPDATE = "INCOME_UPDATE"
    INCOME_DELETE = "INCOME_DELETE"
    ANOMALY_DETECTED = "ANOMALY_DETECTED"
    ANOMALY_RESOLVED = "ANOMALY_RESOLVED"
    ANOMALY_DISMISSED = "ANOMALY_DISMISSED"
    SYSTEM_EVENT = "SYSTEM_EVENT"


class AuditResource(str, enum.Enum):
    EXPENSE = "Expense"
    INCOME = "Income"
    BUDGET = "Budget"
    ANOMALY = "Anomaly"
    USER = "User"
    SYSTEM = "System"
