# messages.py
"""Block Kit payloads and message copy for the learning bot."""

from __future__ import annotations

import json
from datetime import datetime, time

from learning import DESC, RESOURCE, TIME, WHAT, WHEN, WHO, LearningSubmission

LEARNING_CALLBACK_ID = "learning_form"


def _plain(text: str) -> dict:
    return {"type": "plain_text", "text": text}


def _input(ids: tuple[str, str], label: str, element: dict, optional: bool = False) -> dict:
    block_id, action_id = ids
    block = {
        "type": "input",
        "block_id": block_id,
        "label": _plain(label),
        "element": {**element, "action_id": action_id},
    }
    if optional:
        block["optional"] = True
    return block


def build_learning_modal(channel_id: str, default_time: time) -> dict:
    """The /learning form. channel_id is carried through private_metadata."""
    return {
        "type": "modal",
        "callback_id": LEARNING_CALLBACK_ID,
        "private_metadata": json.dumps({"channel_id": channel_id}),
        "title": _plain("Learning"),
        "submit": _plain("Save"),
        "close": _plain("Cancel"),
        "blocks": [
            _input(WHO, "Presenter", {"type": "users_select", "placeholder": _plain("Pick someone")}),
            _input(WHAT, "Title", {"type": "plain_text_input", "placeholder": _plain("e.g. Flask + Slack API")}),
            _input(WHEN, "Day", {"type": "datepicker", "placeholder": _plain("Pick a date")}),
            _input(
                TIME,
                "Start time",
                {"type": "timepicker", "initial_time": default_time.strftime("%H:%M")},
                optional=True,
            ),
            _input(
                DESC,
                "Description",
                {"type": "plain_text_input", "multiline": True, "placeholder": _plain("A few lines…")},
                optional=True,
            ),
            _input(RESOURCE, "Resource (URL)", {"type": "plain_text_input", "placeholder": _plain("https://…")},
                   optional=True),
        ],
    }


def build_recap_blocks(sub: LearningSubmission, start_at: datetime, meet_link: str | None = None) -> list[dict]:
    fields = [
        {"type": "mrkdwn", "text": f"*Presenter:*\n<@{sub.presenter}>"},
        {"type": "mrkdwn", "text": f"*Date:*\n{sub.day} {start_at:%H:%M}"},
        {"type": "mrkdwn", "text": f"*Topic:*\n{sub.title}"},
    ]
    blocks = [
        {"type": "header", "text": _plain("New learning session")},
        {"type": "section", "fields": fields},
    ]
    if sub.description:
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": f"*Description:*\n{sub.description}"}})
    if sub.resource:
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": f"*Resource:*\n{sub.resource}"}})
    if meet_link:
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": f"*Video call:*\n<{meet_link}|Join>"}})
    blocks.append({"type": "context", "elements": [{"type": "mrkdwn", "text": f"Added by <@{sub.submitted_by}>"}]})
    return blocks


def recap_text(sub: LearningSubmission) -> str:
    return f"Learning: {sub.title}"


def offset_reminder_text(sub: LearningSubmission) -> str:
    return f"Reminder: the learning session “{sub.title}” starts soon.\nPresenter: <@{sub.presenter}>"


def same_day_reminder_text(sub: LearningSubmission, start_at: datetime) -> str:
    return (
        f"Reminder: the learning session “{sub.title}” is today at {start_at:%H:%M}.\n"
        f"Presenter: <@{sub.presenter}>"
    )


def calendar_description(sub: LearningSubmission) -> str:
    parts = [sub.description, f"Resource: {sub.resource}" if sub.resource else ""]
    return "\n\n".join(p for p in parts if p)


# ---------- Notices sent to the user by DM ----------

MISSING_CHANNEL_NOTICE = "Configuration missing: LEARNING_CHANNEL_ID is not set on the server."
MODAL_FAILED_NOTICE = "Couldn’t open the learning form just now. Please try `/learning` again."
SUBMISSION_FAILED_NOTICE = "Your learning session “{title}” could not be fully published. The error has been logged."
CALENDAR_FAILED_NOTICE = "The learning session “{title}” was posted, but the calendar event could not be created."
REMINDER_FAILED_NOTICE = "The learning session “{title}” was posted, but {count} reminder(s) could not be scheduled."
