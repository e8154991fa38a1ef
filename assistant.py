import json
import logging
from datetime import datetime

import requests

from context_builder import build_context
from repositories import Repositories

logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"

DEFAULT_PROMPT = "Hello, how can you help me?"

QUOTA_REPLY = (
    "AI service is currently unavailable due to billing issues. "
    "Please check your OpenAI account billing settings."
)
BUSY_REPLY = "AI service is busy right now. Please try again in a moment."
CONFIG_REPLY = "AI service configuration error. Please contact administrator."
FALLBACK_PREFIX = "I'm currently having issues with my AI service. Here are the latest readings: "
APOLOGY_REPLY = "Sorry, I'm having trouble responding right now. Please try again later."


class LLMError(Exception):
    def __init__(self, status: int | None, code: str | None = None, message: str = ""):
        super().__init__(message or f"LLM request failed (status={status}, code={code})")
        self.status = status
        self.code = code


class OpenAIChatClient:
    def __init__(self, api_key: str, model: str = "gpt-4o-mini", timeout: int = 30, session=None):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    def complete(self, system: str, user: str, max_tokens: int = 600) -> str:
        if not self.api_key:
            raise LLMError(401, "missing_api_key", "OPENAI_KEY is not configured.")
        try:
            response = self.session.post(
                OPENAI_CHAT_URL,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.model,
                    "messages": [
                        {"role": "system", "content": system},
                        {"role": "user", "content": user},
                    ],
                    "max_tokens": max_tokens,
                },
                timeout=self.timeout,
            )
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise LLMError(None, None, str(exc)) from exc

        if not response.ok:
            err = payload.get("error") if isinstance(payload, dict) else None
            if isinstance(err, dict):
                raise LLMError(response.status_code, err.get("code"), str(err.get("message") or ""))
            raise LLMError(response.status_code, None, f"OpenAI request failed with status {response.status_code}.")

        choices = payload.get("choices") or []
        if not choices:
            raise LLMError(response.status_code, None, "OpenAI returned no choices.")
        message = choices[0].get("message") if isinstance(choices[0], dict) else {}
        content = message.get("content") if isinstance(message, dict) else ""
        reply = str(content or "").strip()
        if not reply:
            raise LLMError(response.status_code, None, "OpenAI returned empty content.")
        return reply


def fallback_reply(readings_repo, device_id: str | None) -> str:
    filters = {"deviceId": device_id} if device_id else None
    try:
        rows = readings_repo.query_recent(filters, 1 if device_id else 3)
    except Exception:  # noqa: BLE001
        logger.exception("Fallback readings query also failed")
        return APOLOGY_REPLY
    if not rows:
        return APOLOGY_REPLY

    readings = [
        {
            "device": row.get("deviceId") or "unknown",
            "temperature": row.get("temperature") or row.get("temp") or "unknown",
            "humidity": row.get("humidity") or "unknown",
            "soilMoisture": row.get("soilMoisture") or row.get("moisture") or "unknown",
        }
        for row in rows
    ]
    return FALLBACK_PREFIX + json.dumps(readings, separators=(",", ":"), ensure_ascii=False, default=str)


def handle_error(exc: Exception, readings_repo, device_id: str | None) -> str:
    if isinstance(exc, LLMError):
        if exc.status == 429:
            return QUOTA_REPLY if exc.code == "insufficient_quota" else BUSY_REPLY
        if exc.status == 401:
            return CONFIG_REPLY
    return fallback_reply(readings_repo, device_id)


def query_agent(
    payload: dict | None,
    repos: Repositories,
    llm: OpenAIChatClient,
    max_tokens: int = 600,
    now: datetime | None = None,
) -> dict:
    payload = payload or {}
    prompt = str(payload.get("prompt") or DEFAULT_PROMPT)
    device_id = payload.get("deviceId") or None
    time_range = str(payload.get("timeRange") or "latest")

    try:
        context = build_context(repos.readings, repos.devices, repos.events, device_id, time_range, now)
        if context.short_circuited:
            return {"reply": context.reply}
        reply = llm.complete(system=context.text, user=prompt, max_tokens=max_tokens)
        logger.info("AI response generated")
        return {"reply": reply}
    except Exception as exc:  # noqa: BLE001
        logger.error("Error querying assistant: %s", exc)
        return {"reply": handle_error(exc, repos.readings, device_id)}
