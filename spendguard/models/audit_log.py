import uuid
from sqlalchemy import Column, String, DateTime, JSON, event, func
from sqlalchemy.dialects.postgresql import UUID, JSONB
from spendguard.core.database import Base
from spendguard.core.exceptions import AuditLogImmutableError

class AuditLog(Base):
    """Append-only trail of user and system actions"""
    __tablename__ = "audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)  # actor
    action = Column(String, nullable=False)  # AuditAction value
    resource = Column(String, nullable=False)  # AuditResource value
    resource_id = Column(UUID(as_uuid=True), nullable=True)  # absent for global system events
    details = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)
    timestamp = Column(DateTime, nullable=False, default=func.now())


@event.listens_for(AuditLog, "before_update")
def _reject_update(mapper, connection, target):
    raise AuditLogImmutableError("Audit logs are immutable and cannot be updated.")


@event.listens_for(AuditLog, "before_delete")
def _reject_delete(mapper, connection, target):
    raise AuditLogImmutableError("Audit logs are immutable and cannot be deleted.")
