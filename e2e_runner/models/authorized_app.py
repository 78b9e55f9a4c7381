"""
AuthorizedApp Model
An API key scoped to a realm. Type: admin | device
Revoked by setting deleted_at (soft delete); the row itself is kept.
"""

import enum
import uuid
from datetime import datetime, timezone
from e2e_runner.extensions import db


class APIKeyType(str, enum.Enum):
    ADMIN = "admin"
    DEVICE = "device"


class AuthorizedApp(db.Model):
    __tablename__ = "authorized_apps"

    app_id = db.Column(db.UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    realm_id = db.Column(db.UUID(as_uuid=True), db.ForeignKey("realms.realm_id"), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    api_key_type = db.Column(
        db.Enum("admin", "device", name="api_key_type"),
        nullable=False
    )
    # HMAC digest of the key; the plaintext key is only known at creation time
    api_key = db.Column(db.String(128), unique=True, nullable=False)
    api_key_preview = db.Column(db.String(8), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def disable(self, now=None):
        self.deleted_at = now or datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "app_id":          str(self.app_id),
            "realm_id":        str(self.realm_id),
            "name":            self.name,
            "api_key_type":    self.api_key_type,
            "api_key_preview": self.api_key_preview,
            "created_at":      self.created_at.isoformat() if self.created_at else None,
            "deleted_at":      self.deleted_at.isoformat() if self.deleted_at else None,
        }
