import uuid
from sqlalchemy import Column, DateTime, Float, String, Text, func, Index
from sqlalchemy.dialects.postgresql import UUID
from spendguard.core.database import Base

class Transaction(Base):
    """Expense written by the CRUD layer. Read-only to the detection engine."""
    __tablename__ = "transactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Float, nullable=False)  # always positive
    category = Column(String, nullable=False, index=True)  # TransactionCategory value
    transaction_date = Column(DateTime, nullable=False, index=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Indexes for the detector queries
    __table_args__ = (
        Index('idx_transaction_user_date', 'user_id', 'transaction_date'),
        Index('idx_transaction_user_amount', 'user_id', 'amount'),
    )
