# learning.py
"""
The learning-session submission: extraction from a modal's state values,
validation, and the start datetime in the configured timezone.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

# block_id / action_id pairs used by the modal (see messages.build_learning_modal)
WHO = ("who_block", "who_input")
WHAT = ("what_block", "what_input")
WHEN = ("when_block", "when_input")
TIME = ("time_block", "time_input")
DESC = ("desc_block", "desc_input")
RESOURCE = ("res_block", "res_input")

_URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


@dataclass(frozen=True)
class LearningSubmission:
    submitted_by: str
    presenter: str
    title: str
    day: str            # YYYY-MM-DD from the datepicker
    start_time: str     # HH:MM from the timepicker, may be ""
    description: str = ""
    resource: str = ""

    def start_at(self, tz: ZoneInfo, default_time: time) -> datetime:
        """Aware start datetime; falls back to default_time when no time was picked."""
        t = time.fromisoformat(self.start_time) if self.start_time else default_time
        return datetime.combine(date.fromisoformat(self.day), t, tzinfo=tz)


def _dig(obj, *keys) -> dict:
    """Walk nested dicts, yielding {} wherever a level is missing or not a dict."""
    for key in keys:
        obj = obj.get(key) if isinstance(obj, dict) else None
    return obj if isinstance(obj, dict) else {}


def _text(values: dict, ids: tuple[str, str], key: str = "value") -> str:
    value = _dig(values, *ids).get(key)
    return value.strip() if isinstance(value, str) else ""


def extract_submission(payload: dict) -> LearningSubmission:
    """Pull the learning fields out of a view_submission payload."""
    values = _dig(payload, "view", "state", "values")
    user_id = _dig(payload, "user").get("id")
    return LearningSubmission(
        submitted_by=user_id if isinstance(user_id, str) else "",
        presenter=_text(values, WHO, "selected_user"),
        title=_text(values, WHAT),
        day=_text(values, WHEN, "selected_date"),
        start_time=_text(values, TIME, "selected_time"),
        description=_text(values, DESC),
        resource=_text(values, RESOURCE),
    )


def validate_submission(sub: LearningSubmission) -> dict[str, str]:
    """
    Returns {block_id: message} for every invalid field. Slack shows these
    inline and keeps the modal open.
    """
    errors = {}
    if not sub.title:
        errors[WHAT[0]] = "A title is required"
    if not sub.day:
        errors[WHEN[0]] = "A date is required"
    else:
        try:
            date.fromisoformat(sub.day)
        except ValueError:
            errors[WHEN[0]] = "Invalid date"
    if sub.start_time and not _TIME_RE.match(sub.start_time):
        errors[TIME[0]] = "Invalid time (HH:MM)"
    if sub.resource and not _URL_RE.match(sub.resource):
        errors[RESOURCE[0]] = "Invalid URL (http/https)"
    return errors
