import logging

from firebase_admin import messaging
from flask import Flask, jsonify, request
from flask_cors import CORS

from assistant import APOLOGY_REPLY, OpenAIChatClient, query_agent
from config import Settings, load_settings
from diagnostics import ping, send_test_notification
from firebase_client import credential_source, firebase_ready, firestore_client, verify_caller
from key_issuer import CallableError, Internal, Unauthenticated, issue_data_key
from notifier import notify_new_event
from repositories import Repositories, firestore_repositories

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _callable_data() -> dict:
    body = request.get_json(silent=True) or {}
    if not isinstance(body, dict):
        return {}
    data = body.get("data", body)
    return data if isinstance(data, dict) else {}


def _bearer_token() -> str:
    header = request.headers.get("Authorization", "").strip()
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return ""


def create_app(
    settings: Settings | None = None,
    repos: Repositories | None = None,
    send=None,
    llm=None,
    verify=None,
) -> Flask:
    if settings is None:
        settings = load_settings()
        configure_logging(settings.log_level)
    app = Flask(__name__)
    CORS(app, resources={r"/*": {"origins": settings.allowed_origins}})

    def _fcm_send(msg: messaging.Message) -> str:
        ok, reason = firebase_ready(settings)
        if not ok:
            raise RuntimeError(reason)
        return messaging.send(msg)

    send = send or _fcm_send
    llm = llm or OpenAIChatClient(
        settings.openai_api_key, settings.openai_model, timeout=settings.openai_timeout_seconds
    )
    def _firebase_verify(id_token: str) -> str | None:
        if not id_token:
            return None
        ok, reason = firebase_ready(settings)
        if not ok:
            logger.error("Cannot verify ID tokens: %s", reason)
            raise Internal("Internal server error")
        return verify_caller(id_token)

    verify = verify or _firebase_verify
    state = {"repos": repos}

    def _repos() -> Repositories:
        if state["repos"] is None:
            state["repos"] = firestore_repositories(firestore_client(settings))
        return state["repos"]

    def _is_authorized_admin(request_token: str) -> bool:
        if not settings.admin_api_token:
            # Open when not configured (local/dev use).
            return True
        return request_token == settings.admin_api_token

    @app.errorhandler(CallableError)
    def _callable_error(exc: CallableError):
        return jsonify(exc.to_dict()), exc.http_status

    @app.post("/getDataKey")
    def get_data_key():
        uid = verify(_bearer_token())
        if not uid:
            raise Unauthenticated("User must be authenticated")
        try:
            profiles = _repos().profiles
        except Exception as exc:  # noqa: BLE001
            logger.exception("Firestore is unavailable")
            raise Internal("Internal server error") from exc
        result = issue_data_key(uid, profiles, settings.encryption_admin_key)
        return jsonify({"result": result})

    @app.post("/triggers/events/<event_id>")
    def new_event_notification(event_id: str):
        admin_token = request.headers.get("X-Admin-Token", "").strip()
        if not _is_authorized_admin(admin_token):
            return jsonify({"error": "Unauthorized"}), 401

        body = request.get_json(silent=True) or {}
        data = body.get("data") if isinstance(body, dict) else None
        message_id = notify_new_event(event_id, data if isinstance(data, dict) else None, send, settings.notify_topic)
        return jsonify({"eventId": event_id, "messageId": message_id})

    @app.post("/queryAgent")
    def query_agent_route():
        try:
            repositories = _repos()
        except Exception:  # noqa: BLE001
            logger.exception("Firestore is unavailable")
            return jsonify({"result": {"reply": APOLOGY_REPLY}})
        result = query_agent(_callable_data(), repositories, llm, max_tokens=settings.openai_max_tokens)
        return jsonify({"result": result})

    @app.post("/testFCM")
    def test_fcm():
        return jsonify({"result": send_test_notification(send, settings.notify_topic)})

    @app.post("/helloWorld")
    def hello_world():
        return jsonify({"result": ping()})

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.get("/api/firebase/status")
    def firebase_status():
        ok, reason = firebase_ready(settings)
        return jsonify(
            {
                "ready": ok,
                "reason": reason,
                "project_id": settings.firebase_project_id,
                "credential_source": credential_source(settings),
            }
        )

    return app


if __name__ == "__main__":
    settings = load_settings()
    configure_logging(settings.log_level)
    create_app(settings).run(host="0.0.0.0", port=settings.port, debug=settings.debug)
