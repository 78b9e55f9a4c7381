import uuid
from datetime import datetime, timezone
from e2e_runner.extensions import db


class AuditEntry(db.Model):
    __tablename__ = "audit_entries"

    audit_id = db.Column(db.UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    actor = db.Column(db.String(255), nullable=False)
    action = db.Column(db.String(64), nullable=False)
    target_type = db.Column(db.String(64), nullable=False)
    target_id = db.Column(db.String(64), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self):
        return {
            "audit_id": str(self.audit_id),
            "actor": self.actor,
            "action": self.action,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
