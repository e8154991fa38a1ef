import hashlib
import logging
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

DATA_KEY_LABEL = "endangered_data_key"


class CallableError(Exception):
    status = "INTERNAL"
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": {"status": self.status, "message": self.message}}


class Unauthenticated(CallableError):
    status = "UNAUTHENTICATED"
    http_status = 401


class PermissionDenied(CallableError):
    status = "PERMISSION_DENIED"
    http_status = 403


class Internal(CallableError):
    status = "INTERNAL"
    http_status = 500


def derive_data_key(secret: str) -> str:
    return hashlib.sha256((secret + DATA_KEY_LABEL).encode("utf-8")).hexdigest()[:32]


def issue_data_key(uid: str | None, profiles, secret: str, now: datetime | None = None) -> dict:
    logger.info("getDataKey called by user: %s", uid)
    if not uid:
        raise Unauthenticated("User must be authenticated")

    try:
        profile = profiles.get_by_id(uid)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Profile lookup failed for %s", uid)
        raise Internal("Internal server error") from exc

    if profile is None:
        raise PermissionDenied("User profile not found")
    if profile.get("role") != "admin":
        logger.warning("Non-admin %s (role=%s) asked for the data key", uid, profile.get("role"))
        raise PermissionDenied("Only admins can access encryption keys")
    if not secret:
        logger.error("ENCRYPTION_ADMIN_KEY is not configured")
        raise Internal("Admin encryption key not configured.")

    issued_at = now or datetime.now(timezone.utc)
    logger.info("Encryption key generated for user: %s", uid)
    return {"key": derive_data_key(secret), "timestamp": issued_at.isoformat(), "userId": uid}
