# notion.py
"""Records learning sessions as Notion pages under a parent page."""

from __future__ import annotations

import logging
from datetime import datetime

import requests

from config import Settings
from learning import LearningSubmission

logger = logging.getLogger(__name__)

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"


class NotionError(Exception):
    pass


class NotionClient:
    def __init__(self, settings: Settings, timeout: float = 10.0):
        self.api_key = settings.notion_api_key
        self.parent_page_id = settings.notion_parent_page_id
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.parent_page_id)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Notion-Version": NOTION_VERSION,
            "Content-Type": "application/json",
        }

    def _check(self, resp: requests.Response, what: str) -> dict:
        if resp.status_code != 200:
            raise NotionError(f"{what} returned {resp.status_code}: {resp.text[:200]}")
        return resp.json()

    def create_learning_page(self, sub: LearningSubmission, start_at: datetime) -> dict | None:
        if not self.configured:
            logger.info("Notion not configured, skipping page for %r", sub.title)
            return None

        lines = [
            f"Presenter: <@{sub.presenter}>",
            f"\nDate: {sub.day} {start_at:%H:%M}",
            f"\nDescription: {sub.description}" if sub.description else "",
            f"\nResource: {sub.resource}" if sub.resource else "",
        ]
        rich_text = [{"type": "text", "text": {"content": line}} for line in lines if line]

        payload = {
            "parent": {"page_id": self.parent_page_id},
            "properties": {"title": {"title": [{"text": {"content": sub.title}}]}},
            "children": [{"object": "block", "type": "paragraph", "paragraph": {"rich_text": rich_text}}],
        }
        resp = requests.post(f"{NOTION_API_URL}/pages", headers=self._headers(), json=payload, timeout=self.timeout)
        page = self._check(resp, "pages.create")
        logger.info("Created Notion page %s", page.get("id"))
        return page

    def ping(self) -> dict:
        if not self.configured:
            raise NotionError("NOTION_API_KEY or NOTION_PARENT_PAGE_ID is not set")
        resp = requests.get(
            f"{NOTION_API_URL}/pages/{self.parent_page_id}", headers=self._headers(), timeout=self.timeout
        )
        return self._check(resp, "pages.retrieve")
