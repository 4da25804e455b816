import uuid
from sqlalchemy import Column, DateTime, Float, String, Text, Boolean, Integer, func, Index
from sqlalchemy.dialects.postgresql import UUID
from spendguard.core.database import Base

class Budget(Base):
    """Spending limit for one category (or 'total') over one covering period"""
    __tablename__ = "budgets"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    category = Column(String, nullable=False)  # TransactionCategory value or 'total'
    amount = Column(Float, nullable=False)  # the limit
    period = Column(String, nullable=False, default="monthly")  # weekly, monthly, yearly
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    alert_threshold = Column(Integer, default=80)  # percent
    is_active = Column(Boolean, default=True)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_budget_user_category', 'user_id', 'category'),
        Index('idx_budget_user_active', 'user_id', 'is_active'),
    )
