"""
Realm Model
A tenant boundary for API keys. The e2e runner finds or creates one fixed realm.
"""

import uuid
from datetime import datetime, timezone
from e2e_runner.extensions import db

MAX_NAME_LENGTH = 100
MAX_REGION_CODE_LENGTH = 10


class Realm(db.Model):
    __tablename__ = "realms"

    realm_id = db.Column(db.UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(MAX_NAME_LENGTH), unique=True, nullable=False)
    region_code = db.Column(db.String(MAX_REGION_CODE_LENGTH), nullable=False, default="")
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    apps = db.relationship("AuthorizedApp", backref=db.backref("realm", lazy=True), lazy=True)

    def validate(self):
        """Returns a list of human readable problems; empty when the realm is valid."""
        errors = []
        name = (self.name or "").strip()
        if not name:
            errors.append("name cannot be blank")
        elif len(name) > MAX_NAME_LENGTH:
            errors.append(f"name must be at most {MAX_NAME_LENGTH} characters")

        region_code = (self.region_code or "").strip()
        if not region_code:
            errors.append("region code cannot be blank")
        elif len(region_code) > MAX_REGION_CODE_LENGTH:
            errors.append(f"region code must be at most {MAX_REGION_CODE_LENGTH} characters")
        return errors

    def error_messages(self):
        return "; ".join(self.validate())

    def to_dict(self):
        return {
            "realm_id": str(self.realm_id),
            "name": self.name,
            "region_code": self.region_code,
        }

    def __repr__(self):
        return f"<Realm name={self.name!r} region_code={self.region_code!r}>"
