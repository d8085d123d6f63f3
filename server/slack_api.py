# slack_api.py
"""
Thin Slack Web API client built on requests.

Every method posts JSON to https://slack.com/api/<method> with the bot token.
Slack answers HTTP 200 even for failures, so the "ok" flag is checked and a
SlackApiError raised when it is false.
"""

from __future__ import annotations

import logging

import requests

logger = logging.getLogger(__name__)

SLACK_API_URL = "https://slack.com/api"


class SlackApiError(Exception):
    def __init__(self, method: str, error: str):
        super().__init__(f"{method} failed: {error}")
        self.method = method
        self.error = error


class SlackClient:
    def __init__(self, token: str, timeout: float = 5.0):
        self.token = token
        self.timeout = timeout

    def call(self, method: str, payload: dict | None = None, timeout: float | None = None) -> dict:
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json; charset=utf-8",
        }
        resp = requests.post(
            f"{SLACK_API_URL}/{method}",
            headers=headers,
            json=payload or {},
            timeout=timeout or self.timeout,
        )
        j = resp.json()
        logger.debug("%s status=%s ok=%s error=%s", method, resp.status_code, j.get("ok"), j.get("error"))
        if not j.get("ok"):
            raise SlackApiError(method, j.get("error") or f"http_{resp.status_code}")
        return j

    def open_view(self, trigger_id: str, view: dict) -> dict:
        """
        views.open. Slack's trigger_id expires after 3 seconds, so use a
        short timeout.
        """
        return self.call("views.open", {"trigger_id": trigger_id, "view": view}, timeout=2.5)

    def post_message(self, channel: str, text: str, blocks: list[dict] | None = None) -> dict:
        payload = {"channel": channel, "text": text}
        if blocks:
            payload["blocks"] = blocks
        return self.call("chat.postMessage", payload)

    def schedule_message(self, channel: str, post_at: int, text: str) -> dict:
        return self.call("chat.scheduleMessage", {"channel": channel, "post_at": post_at, "text": text})

    def auth_test(self) -> dict:
        return self.call("auth.test")
