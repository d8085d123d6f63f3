# app.py
"""
Flask app for the learning bot.
- Presents HTTP routes for Slack to hit.
- Every Slack route sits behind @require_slack_signature, which verifies the
  raw body and hands the parsed form to the view via flask.g.
- Delegates to core_slack.* handlers and converts their tuples to responses.
"""

from __future__ import annotations

import logging

from dotenv import load_dotenv
from flask import Flask, current_app, g, make_response
from werkzeug.exceptions import InternalServerError

from config import Settings
from core_slack import BotContext, handle_command, handle_interactive
from debug_routes import bp as debug_bp
from slack_auth import EXTENSION_KEY, SlackRequestVerifier, require_slack_signature

logger = logging.getLogger(__name__)


def _to_response(result: tuple[int, dict, str]):
    status, headers, body = result
    resp = make_response(body, status)
    for k, v in headers.items():
        resp.headers[k] = v
    return resp


@require_slack_signature
def slack_commands():
    """Slash command endpoint (/ping, /learning)."""
    return _to_response(handle_command(g.slack_request.form, current_app.extensions["learning_bot"]))


@require_slack_signature
def slack_interactions():
    """
    Slack sends interactive events (like modal submissions) here.
    """
    return _to_response(handle_interactive(g.slack_request.form, current_app.extensions["learning_bot"]))


def _internal_error(exc):
    logger.error("Unhandled error: %r", getattr(exc, "original_exception", exc))
    return make_response("Internal Server Error", 500, {"Content-Type": "text/plain; charset=utf-8"})


def create_app(settings: Settings | None = None, context: BotContext | None = None) -> Flask:
    if context is None:
        if settings is None:
            load_dotenv()
            settings = Settings.from_env()
        context = BotContext.from_settings(settings)
    settings = context.settings

    if not settings.slack_signing_secret:
        logger.error("SLACK_SIGNING_SECRET is not set: every Slack request will be rejected")

    app = Flask(__name__)
    app.extensions[EXTENSION_KEY] = SlackRequestVerifier(settings.slack_signing_secret)
    app.extensions["learning_bot"] = context

    app.add_url_rule("/slack/commands", view_func=slack_commands, methods=["POST"])
    app.add_url_rule("/slack/interactions", view_func=slack_interactions, methods=["POST"])
    app.register_blueprint(debug_bp)
    app.register_error_handler(InternalServerError, _internal_error)
    return app


if __name__ == "__main__":
    # Load .env for local development, then expose with ngrok so Slack can reach it.
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = Settings.from_env()
    create_app(settings).run(port=settings.port)
