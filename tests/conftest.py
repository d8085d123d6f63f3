"""
Shared fixtures: settings with a known signing secret, a BotContext whose
integration clients are mocks, an inline background runner, and helpers to
build signed Slack requests and modal submission payloads.

No test talks to the network.
"""

from __future__ import annotations

import json
import time
import urllib.parse
from datetime import datetime, time as dt_time
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest

from app import create_app
from config import Settings
from core_slack import BotContext
from google_calendar import GoogleCalendar
from notion import NotionClient
from slack_api import SlackClient
from slack_auth import SIGNATURE_HEADER, TIMESTAMP_HEADER, sign

SECRET = "s3cret"
PARIS = ZoneInfo("Europe/Paris")
NOW = datetime(2030, 1, 10, 9, 0, tzinfo=PARIS)
MEET_LINK = "https://meet.google.com/abc-defg-hij"


def inline_runner(work, on_error):
    """Runs the 'background' work synchronously so tests can assert on it."""
    try:
        work()
    except Exception as exc:
        on_error(exc)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        slack_signing_secret=SECRET,
        slack_bot_token="xoxb-test",
        learning_channel_id="CLEARN",
        timezone="Europe/Paris",
        default_start_time=dt_time(12, 0),
        duration_minutes=60,
        reminder_hours=24,
        reminder_minutes=0,
        same_day_reminder_time=dt_time(11, 0),
        gcal_client_id="cid",
        gcal_client_secret="csecret",
        gcal_redirect_uri="http://localhost:4000/google/oauth/callback",
        gcal_refresh_token="1//refresh",
        gcal_calendar_id="primary",
        notion_api_key="secret_notion",
        notion_parent_page_id="page123",
        admin_token="admin-token",
    )


@pytest.fixture
def ctx(settings) -> BotContext:
    slack = MagicMock(spec=SlackClient)
    slack.post_message.return_value = {"ok": True}
    slack.schedule_message.return_value = {"ok": True}
    slack.open_view.return_value = {"ok": True}

    calendar = MagicMock(spec=GoogleCalendar)
    calendar.configured = True
    calendar.create_event.return_value = {"id": "evt1", "hangoutLink": MEET_LINK}

    notion = MagicMock(spec=NotionClient)
    notion.create_learning_page.return_value = {"id": "notion-page"}

    return BotContext(
        settings=settings,
        slack=slack,
        calendar=calendar,
        notion=notion,
        runner=inline_runner,
        now=lambda: NOW,
    )


@pytest.fixture
def client(ctx):
    return create_app(context=ctx).test_client()


def signed_headers(body: bytes, secret: str = SECRET, timestamp: int | None = None) -> dict:
    ts = int(time.time()) if timestamp is None else timestamp
    return {
        TIMESTAMP_HEADER: str(ts),
        SIGNATURE_HEADER: sign(secret, ts, body),
        "Content-Type": "application/x-www-form-urlencoded",
    }


def form_body(**fields) -> bytes:
    return urllib.parse.urlencode(fields).encode("utf-8")


def submission_payload(
    title="Flask 101",
    day="2030-01-15",
    start="14:30",
    desc="Intro to Flask",
    resource="https://flask.palletsprojects.com",
    user="U_SUBMITTER",
    presenter="U_PRESENTER",
) -> dict:
    return {
        "type": "view_submission",
        "user": {"id": user, "name": "ada"},
        "view": {
            "callback_id": "learning_form",
            "private_metadata": json.dumps({"channel_id": "C_ORIGIN"}),
            "state": {
                "values": {
                    "who_block": {"who_input": {"type": "users_select", "selected_user": presenter}},
                    "what_block": {"what_input": {"type": "plain_text_input", "value": title}},
                    "when_block": {"when_input": {"type": "datepicker", "selected_date": day}},
                    "time_block": {"time_input": {"type": "timepicker", "selected_time": start}},
                    "desc_block": {"desc_input": {"type": "plain_text_input", "value": desc}},
                    "res_block": {"res_input": {"type": "plain_text_input", "value": resource}},
                }
            },
        },
    }
