import json
import logging
from pathlib import Path

import firebase_admin
from firebase_admin import auth, credentials, firestore

from config import BASE_DIR, Settings

logger = logging.getLogger(__name__)


def _service_account(settings: Settings):
    """Certificate from the configured service account, or None for Application Default Credentials."""
    if settings.firebase_service_account_json:
        try:
            info = json.loads(settings.firebase_service_account_json)
        except ValueError as exc:
            raise ValueError(f"Unable to parse FIREBASE_SERVICE_ACCOUNT_JSON: {exc}") from exc
        if not isinstance(info, dict):
            raise ValueError("FIREBASE_SERVICE_ACCOUNT_JSON is not a valid JSON object.")
        return credentials.Certificate(info)

    if settings.firebase_service_account_file:
        path = Path(settings.firebase_service_account_file)
        if not path.is_absolute():
            path = BASE_DIR / path
        if not path.exists():
            raise ValueError(f"Service account file not found: {path}")
        return credentials.Certificate(str(path))

    return None


def firebase_ready(settings: Settings) -> tuple[bool, str]:
    if firebase_admin._apps:  # type: ignore[attr-defined]
        return True, ""

    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    try:
        firebase_admin.initialize_app(_service_account(settings), options)
    except Exception as exc:  # noqa: BLE001
        return False, f"Firebase is not configured: {exc}"
    logger.info("Firebase app initialised (%s)", credential_source(settings))
    return True, ""


def credential_source(settings: Settings) -> str:
    if settings.firebase_service_account_json:
        return "service_account_json"
    if settings.firebase_service_account_file:
        return "service_account_file"
    return "adc"


def firestore_client(settings: Settings):
    ok, reason = firebase_ready(settings)
    if not ok:
        raise RuntimeError(reason)
    return firestore.client()


def verify_caller(id_token: str) -> str | None:
    """Return the uid behind a Firebase ID token, or None when it does not verify.

    The default Firebase app must already be initialised.
    """
    if not id_token:
        return None
    try:
        decoded = auth.verify_id_token(id_token)
    except (ValueError, auth.InvalidIdTokenError, auth.ExpiredIdTokenError, auth.RevokedIdTokenError) as exc:
        logger.warning("Rejected ID token: %s", exc)
        return None
    return decoded.get("uid")
