from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

API_URL = "https://api.telegram.org"


class TelegramApiError(RuntimeError):
    pass


def _log_before_sleep(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome is not None else None
    logger.warning(
        "Telegram API call failed (attempt %s, %s), retrying",
        retry_state.attempt_number,
        type(exc).__name__ if exc is not None else "unknown",
    )


class TelegramClient:
    """Минимальный клиент Bot API: только то, что нужно боту записи."""

    def __init__(
        self,
        *,
        bot_token: str,
        retry_attempts: int = 3,
        timeout_seconds: float = 20.0,
        http: httpx.Client | None = None,
    ) -> None:
        self._base_url = f"{API_URL}/bot{bot_token}"
        self._retry_attempts = retry_attempts
        self._timeout_seconds = timeout_seconds
        self._http = http or httpx.Client(timeout=timeout_seconds)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> TelegramClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _call(self, method: str, payload: dict[str, Any], *, timeout: float | None = None) -> Any:
        retrying = Retrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=4),
            retry=retry_if_exception_type(httpx.TransportError),
            before_sleep=_log_before_sleep,
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                r = self._http.post(
                    f"{self._base_url}/{method}",
                    json=payload,
                    timeout=timeout or self._timeout_seconds,
                )
        r.raise_for_status()
        data = r.json()
        if not data.get("ok", False):
            raise TelegramApiError(f"Telegram API error in {method}: {data}")
        return data.get("result")

    def get_updates(self, *, offset: int | None = None, timeout_seconds: int = 60) -> list[dict[str, Any]]:
        payload: dict[str, Any] = {
            "timeout": timeout_seconds,
            "allowed_updates": ["message", "callback_query"],
        }
        if offset is not None:
            payload["offset"] = offset
        # HTTP timeout must outlive the long poll.
        return self._call("getUpdates", payload, timeout=timeout_seconds + 10) or []

    def send_message(self, *, chat_id: int | str, text: str, reply_markup: dict[str, Any] | None = None) -> None:
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        self._call("sendMessage", payload)

    def answer_callback_query(self, *, callback_query_id: str, text: str = "") -> None:
        payload: dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text
        self._call("answerCallbackQuery", payload)
