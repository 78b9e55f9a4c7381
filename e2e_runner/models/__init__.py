from e2e_runner.models.realm import Realm
from e2e_runner.models.authorized_app import AuthorizedApp, APIKeyType
from e2e_runner.models.audit_entry import AuditEntry

__all__ = ["Realm", "AuthorizedApp", "APIKeyType", "AuditEntry"]
