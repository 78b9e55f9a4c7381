"""
Provisioner Service
Finds or creates the e2e test realm and mints one admin and one device API key.
"""

import hashlib
import logging
import secrets

from e2e_runner.errors import ConflictError, E2ERunnerError, NotFoundError, ProvisioningError, ValidationError
from e2e_runner.models import APIKeyType, AuthorizedApp, Realm
from e2e_runner.services.database import SYSTEM

logger = logging.getLogger(__name__)

REALM_NAME = "e2e-test-realm"
REALM_REGION_CODE = "e2e-test"
ADMIN_KEY_NAME = "e2e-admin-key."
DEVICE_KEY_NAME = "e2e-device-key."

RANDOM_BYTES = 512


def random_suffix():
    """Returns a 64 character hex string: sha256 over 512 random bytes."""
    try:
        b = secrets.token_bytes(RANDOM_BYTES)
    except (OSError, NotImplementedError) as e:
        raise ProvisioningError(f"failed to create suffix string for API keys: {e}") from e
    return hashlib.sha256(b).hexdigest()


def find_or_create_realm(db, name, region_code):
    try:
        return db.find_realm_by_name(name)
    except NotFoundError:
        pass

    realm = Realm(name=name, region_code=region_code)
    try:
        db.save_realm(realm, SYSTEM)
    except ConflictError:
        # Another runner created it between our lookup and save
        logger.info("realm %r was created concurrently, reusing it", name)
        try:
            return db.find_realm_by_name(name)
        except NotFoundError as e:
            raise ProvisioningError(f"failed to create realm {realm!r}: {e}") from e
    except ValidationError as e:
        raise ProvisioningError(f"failed to create realm {realm!r}: {'; '.join(e.errors)}") from e
    except E2ERunnerError as e:
        raise ProvisioningError(f"failed to create realm {realm!r}: {e}: {realm.error_messages()}") from e

    logger.info("created realm %r", name)
    return realm


def provision(db, realm_name=REALM_NAME, region_code=REALM_REGION_CODE, on_created=None):
    """
    Creates the admin and device API keys, returns (admin_key, device_key).

    on_created(api_key, label) is called as soon as each key exists so the
    caller can register its revocation before the next step can fail.
    Raises ProvisioningError.
    """
    try:
        realm = find_or_create_realm(db, realm_name, region_code)
    except ProvisioningError:
        raise
    except E2ERunnerError as e:
        raise ProvisioningError(f"error when finding the realm {realm_name!r}: {e}") from e

    suffix = random_suffix()

    keys = []
    for label, prefix, key_type in (
        ("admin", ADMIN_KEY_NAME, APIKeyType.ADMIN),
        ("device", DEVICE_KEY_NAME, APIKeyType.DEVICE),
    ):
        app = AuthorizedApp(name=prefix + suffix, api_key_type=key_type.value)
        try:
            api_key = db.create_authorized_app(realm, app, SYSTEM)
        except E2ERunnerError as e:
            raise ProvisioningError(f"error trying to create a new {label} API key: {e}") from e

        logger.debug("created %s API key %s", label, app.name)
        if on_created is not None:
            on_created(api_key, label)
        keys.append(api_key)

    return keys[0], keys[1]
