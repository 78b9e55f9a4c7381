"""
End-to-end Service
Runs one issue -> verify -> certificate flow against a verification server:
    1. admin API issues a code (optionally revised with a second issue)
    2. API server exchanges the code for a verification token
    3. API server exchanges the token + exposure key HMAC for a certificate
"""

import base64
import hashlib
import hmac
import logging
import secrets
import time
from datetime import datetime, timedelta, timezone

import requests

from e2e_runner.errors import EndToEndError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"

TEST_TYPE_CONFIRMED = "confirmed"
TEST_TYPE_LIKELY = "likely"

EXPOSURE_KEY_COUNT = 3
EXPOSURE_KEY_LENGTH = 16
# 10 minute intervals in a day
ROLLING_PERIOD = 144
INTERVAL_SECONDS = 600


def _post(session, step, url, api_key, payload, timeout):
    try:
        response = session.post(
            url,
            json=payload,
            headers={API_KEY_HEADER: api_key, "Accept": "application/json"},
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise EndToEndError(step, f"request to {url} failed: {e}") from e

    try:
        data = response.json()
    except ValueError:
        data = {}

    if response.status_code >= 400:
        detail = data.get("error") if isinstance(data, dict) else None
        raise EndToEndError(step, f"{response.status_code} from {url}: {detail or response.text}")
    if not isinstance(data, dict):
        raise EndToEndError(step, f"unexpected response body from {url}")
    if data.get("error"):
        raise EndToEndError(step, data["error"])
    return data


def _symptom_date(now=None):
    now = now or datetime.now(timezone.utc)
    return (now - timedelta(days=2)).strftime("%Y-%m-%d")


def generate_exposure_keys(count=EXPOSURE_KEY_COUNT, now=None):
    """Random temporary exposure keys, one per day ending yesterday."""
    now = now or time.time()
    today = int(now // INTERVAL_SECONDS) // ROLLING_PERIOD * ROLLING_PERIOD
    keys = []
    for day in range(1, count + 1):
        keys.append({
            "key": base64.b64encode(secrets.token_bytes(EXPOSURE_KEY_LENGTH)).decode("ascii"),
            "rollingStartNumber": today - day * ROLLING_PERIOD,
            "rollingPeriod": ROLLING_PERIOD,
        })
    return keys


def exposure_key_hmac(secret, keys):
    """
    HMAC-SHA256 over the sorted "key.start.period" strings joined by commas,
    base64 encoded.
    """
    parts = sorted(f"{k['key']}.{k['rollingStartNumber']}.{k['rollingPeriod']}" for k in keys)
    digest = hmac.new(secret, ",".join(parts).encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def issue_code(session, config, test_type, uuid=None):
    payload = {
        "testType": test_type,
        "symptomDate": _symptom_date(),
        "tzOffset": 0,
    }
    if uuid:
        payload["uuid"] = uuid
    data = _post(
        session,
        "issue",
        f"{config.verification_admin_api_server}/api/issue",
        config.verification_admin_api_key,
        payload,
        config.request_timeout,
    )
    if not data.get("code"):
        raise EndToEndError("issue", "response did not contain a code")
    return data


def run_end_to_end(config, session=None):
    """
    Executes the workflow with the keys in config; raises EndToEndError.
    With config.do_revise the first code is issued as "likely" and then
    revised to "confirmed" before verification.
    """
    own_session = session is None
    session = session or requests.Session()
    try:
        if config.do_revise:
            first = issue_code(session, config, TEST_TYPE_LIKELY)
            if not first.get("uuid"):
                raise EndToEndError("issue", "response did not contain a uuid")
            logger.debug("issued likely code %s, revising", first["uuid"])
            issued = issue_code(session, config, TEST_TYPE_CONFIRMED, uuid=first["uuid"])
            if issued["code"] == first["code"]:
                raise EndToEndError("revise", "revised issue returned the original code")
        else:
            issued = issue_code(session, config, TEST_TYPE_CONFIRMED)

        verified = _post(
            session,
            "verify",
            f"{config.verification_api_server}/api/verify",
            config.verification_api_server_key,
            {"code": issued["code"], "accept": [TEST_TYPE_CONFIRMED, TEST_TYPE_LIKELY]},
            config.request_timeout,
        )
        token = verified.get("token")
        if not token:
            raise EndToEndError("verify", "response did not contain a token")
        if verified.get("testtype") != TEST_TYPE_CONFIRMED:
            raise EndToEndError(
                "verify", f"expected test type {TEST_TYPE_CONFIRMED!r}, got {verified.get('testtype')!r}"
            )

        secret = secrets.token_bytes(32)
        certificate = _post(
            session,
            "certificate",
            f"{config.verification_api_server}/api/certificate",
            config.verification_api_server_key,
            {"token": token, "ekeyhmac": exposure_key_hmac(secret, generate_exposure_keys())},
            config.request_timeout,
        )
        if not certificate.get("certificate"):
            raise EndToEndError("certificate", "response did not contain a certificate")
        logger.info("end to end run succeeded (revise=%s)", config.do_revise)
    finally:
        if own_session:
            session.close()
