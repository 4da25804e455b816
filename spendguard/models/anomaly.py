import uuid
from sqlalchemy import Column, String, DateTime, Text, JSON, func, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from spendguard.core.database import Base

class Anomaly(Base):
    __tablename__ = "anomalies"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    transaction_id = Column(UUID(as_uuid=True), nullable=True, index=True)  # triggering transaction
    anomaly_type = Column(String, nullable=False)  # AnomalyType value
    severity = Column(String, nullable=False)  # LOW, MEDIUM, HIGH
    status = Column(String, nullable=False, default="PENDING")  # PENDING, REVIEWED, DISMISSED, CONFIRMED
    explanation = Column(Text, nullable=False)
    evidence = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)
    resolution_note = Column(Text, nullable=False, default="")
    detected_at = Column(DateTime, default=func.now())
    resolved_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('idx_anomaly_user_status', 'user_id', 'status'),
    )
