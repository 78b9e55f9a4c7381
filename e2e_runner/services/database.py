"""
Database Service
Thin facade over the Flask-SQLAlchemy session with exactly the realm and
API key operations the runner needs. Every save writes an audit entry.
"""

import hashlib
import hmac
import logging
import secrets

from sqlalchemy import inspect, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from e2e_runner.errors import ConflictError, E2ERunnerError, NotFoundError, ValidationError
from e2e_runner.extensions import db
from e2e_runner.models import AuditEntry, AuthorizedApp, Realm

logger = logging.getLogger(__name__)

# Actor recorded on audit entries for changes made by this service
SYSTEM = "System"

API_KEY_PREVIEW_LENGTH = 6


class Database:
    """
    Owns one app context (and so one session) between open() and close().
    Must be opened and closed on the same thread.
    """

    def __init__(self, app, api_key_hmac):
        self.app = app
        self._api_key_hmac = api_key_hmac.encode("utf-8")
        self._ctx = None

    def open(self):
        if self._ctx is not None:
            raise E2ERunnerError("database is already open")

        ctx = self.app.app_context()
        ctx.push()
        try:
            db.session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            db.session.remove()
            ctx.pop()
            raise E2ERunnerError(f"failed to connect to database: {e}") from e
        self._ctx = ctx
        logger.debug("database opened")

    def close(self):
        if self._ctx is None:
            return
        try:
            db.session.remove()
        finally:
            self._ctx.pop()
            self._ctx = None
        logger.debug("database closed")

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc_info):
        self.close()

    # --- Realms -----------------------------------------------------------

    def find_realm_by_name(self, name):
        realm = Realm.query.filter_by(name=name).first()
        if not realm:
            raise NotFoundError(f"realm {name!r} not found")
        return realm

    def save_realm(self, realm, actor):
        errors = realm.validate()
        if errors:
            raise ValidationError(f"invalid realm {realm!r}", errors)
        self._save(realm, actor, "realm", lambda r: r.realm_id)

    # --- Authorized apps --------------------------------------------------

    def hash_api_key(self, api_key):
        return hmac.new(self._api_key_hmac, api_key.encode("utf-8"), hashlib.sha256).hexdigest()

    def create_authorized_app(self, realm, app, actor):
        """
        Generates a new API key for app inside realm and saves it.
        Returns the plaintext key; only its digest is stored.
        """
        api_key = secrets.token_urlsafe(32)
        app.realm_id = realm.realm_id
        app.api_key = self.hash_api_key(api_key)
        app.api_key_preview = api_key[:API_KEY_PREVIEW_LENGTH]

        if not (app.name or "").strip():
            raise ValidationError("invalid authorized app", ["name cannot be blank"])

        self._save(app, actor, "authorized_app", lambda a: a.app_id)
        return api_key

    def find_authorized_app_by_api_key(self, api_key):
        app = AuthorizedApp.query.filter_by(api_key=self.hash_api_key(api_key)).first()
        if not app:
            raise NotFoundError("authorized app not found for API key")
        return app

    def save_authorized_app(self, app, actor):
        self._save(app, actor, "authorized_app", lambda a: a.app_id)

    # --- Internals --------------------------------------------------------

    def _save(self, record, actor, target_type, target_id):
        action = "updated" if inspect(record).has_identity else "created"
        try:
            db.session.add(record)
            db.session.flush()
            db.session.add(AuditEntry(
                actor=actor,
                action=action,
                target_type=target_type,
                target_id=str(target_id(record)),
            ))
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            raise ConflictError(f"{target_type} conflicts with an existing record: {e.orig}") from e
        except SQLAlchemyError as e:
            db.session.rollback()
            raise E2ERunnerError(f"failed to save {target_type}: {e}") from e
