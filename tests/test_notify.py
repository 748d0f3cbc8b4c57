"""
Unit tests for the notify module.

Tests cover message formatting, delivery through the Telegram Bot API and
the startup connectivity check.
"""

from unittest.mock import Mock

import pytest
import requests

from exam_watcher.items import FeedKind, Item
from exam_watcher.notify import (
    TELEGRAM_API_BASE,
    DeliveryError,
    StartupConnectivityError,
    TelegramNotifier,
    escape_markdown,
    format_message,
)


# =============================================================================
# Test Data Fixtures
# =============================================================================


@pytest.fixture
def notification_item():
    return Item(
        content="Time table for B.Sc 5th semester",
        publish_date="19/10/2026",
        attachment_link="https://exams.example.edu/pdf/timetable.pdf",
        feed_kind=FeedKind.NOTIFICATIONS,
    )


@pytest.fixture
def result_item():
    return Item(
        content="B.Sc 4th semester results",
        publish_date="19/10/2026",
        feed_kind=FeedKind.RESULTS,
    )


def make_response(status_code=200, json_data=None, json_error=False):
    response = Mock()
    response.status_code = status_code
    if json_error:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = json_data if json_data is not None else {}
    return response


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def notifier(session):
    return TelegramNotifier("123:abc", "@examchannel", session=session)


# =============================================================================
# Formatting
# =============================================================================


class TestFormatMessage:
    """Tests for channel message formatting."""

    def test_notification_layout(self, notification_item):
        """Test the full notification message text."""
        message = format_message(notification_item)

        assert message == (
            "🔔 *NEW EXAM NOTIFICATION* 🔔\n"
            "\n"
            "📅 *Published on:* 19/10/2026\n"
            "\n"
            "Time table for B.Sc 5th semester\n"
            "\n"
            "📎 [Download PDF](https://exams.example.edu/pdf/timetable.pdf)"
        )

    def test_result_title(self, result_item):
        """Test that result items use the result title."""
        message = format_message(result_item)

        assert message.startswith("📊 *NEW EXAM RESULT* 📊")

    def test_no_link_line_without_attachment(self, result_item):
        """Test that the link line is omitted when there is no attachment."""
        message = format_message(result_item)

        assert "Download PDF" not in message
        assert message.endswith("B.Sc 4th semester results")

    def test_markdown_characters_escaped(self):
        """Test that listing text cannot break the Markdown entities."""
        item = Item(
            content="B_Sc *special* [notice] `code`",
            publish_date="19_10_2026",
            attachment_link="https://exams.example.edu/pdf/b_sc.pdf",
            feed_kind=FeedKind.NOTIFICATIONS,
        )

        message = format_message(item)

        assert "B\\_Sc \\*special\\* \\[notice] \\`code\\`" in message
        assert "📅 *Published on:* 19\\_10\\_2026" in message
        assert message.endswith("📎 [Download PDF](https://exams.example.edu/pdf/b_sc.pdf)")

    def test_escape_markdown_leaves_plain_text(self):
        assert escape_markdown("B.Sc 5th semester (2026)") == "B.Sc 5th semester (2026)"


# =============================================================================
# Delivery
# =============================================================================


class TestDeliver:
    """Tests for sending item messages."""

    def test_successful_delivery(self, notifier, session, notification_item):
        """Test that a message is posted with the expected payload."""
        session.post.return_value = make_response(
            200, {"ok": True, "result": {"message_id": 42}}
        )

        notifier.deliver(notification_item)

        session.post.assert_called_once()
        args, kwargs = session.post.call_args
        assert args[0] == f"{TELEGRAM_API_BASE}/bot123:abc/sendMessage"
        assert kwargs["json"] == {
            "chat_id": "@examchannel",
            "text": format_message(notification_item),
            "parse_mode": "Markdown",
            "disable_web_page_preview": False,
        }
        assert kwargs["timeout"] == 30

    def test_send_message_returns_result(self, notifier, session):
        session.post.return_value = make_response(
            200, {"ok": True, "result": {"message_id": 42}}
        )

        assert notifier.send_message("hello") == {"message_id": 42}

    def test_rate_limited(self, notifier, session, notification_item):
        """Test that a 429 reply raises DeliveryError with the retry hint."""
        session.post.return_value = make_response(
            429,
            {
                "ok": False,
                "error_code": 429,
                "description": "Too Many Requests: retry after 17",
                "parameters": {"retry_after": 17},
            },
        )

        with pytest.raises(DeliveryError) as exc_info:
            notifier.deliver(notification_item)

        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after == 17

    def test_bad_request(self, notifier, session, notification_item):
        """Test that API errors carry Telegram's description."""
        session.post.return_value = make_response(
            400,
            {"ok": False, "error_code": 400, "description": "Bad Request: chat not found"},
        )

        with pytest.raises(DeliveryError, match="chat not found") as exc_info:
            notifier.deliver(notification_item)

        assert exc_info.value.status_code == 400

    def test_error_without_json_body(self, notifier, session, notification_item):
        session.post.return_value = make_response(502, json_error=True)

        with pytest.raises(DeliveryError, match="HTTP 502"):
            notifier.deliver(notification_item)

    def test_ok_false_with_200(self, notifier, session, notification_item):
        session.post.return_value = make_response(
            200, {"ok": False, "description": "something odd"}
        )

        with pytest.raises(DeliveryError, match="something odd"):
            notifier.deliver(notification_item)

    def test_timeout(self, notifier, session, notification_item):
        session.post.side_effect = requests.exceptions.Timeout()

        with pytest.raises(DeliveryError, match="timeout"):
            notifier.deliver(notification_item)

    def test_network_error(self, notifier, session, notification_item):
        session.post.side_effect = requests.exceptions.ConnectionError("down")

        with pytest.raises(DeliveryError, match="request failed"):
            notifier.deliver(notification_item)

    def test_no_retry_on_failure(self, notifier, session, notification_item):
        """Test that a failed send is attempted exactly once."""
        session.post.return_value = make_response(500, {"description": "Internal"})

        with pytest.raises(DeliveryError):
            notifier.deliver(notification_item)

        assert session.post.call_count == 1

    def test_null_body_with_200(self, notifier, session, notification_item):
        """Test that a non-object JSON reply is reported as DeliveryError."""
        response = make_response(200)
        response.json.return_value = None
        session.post.return_value = response

        with pytest.raises(DeliveryError, match="invalid response") as exc_info:
            notifier.deliver(notification_item)

        assert exc_info.value.status_code == 200

    def test_list_body_with_200(self, notifier, session, notification_item):
        response = make_response(200)
        response.json.return_value = ["ok"]
        session.post.return_value = response

        with pytest.raises(DeliveryError):
            notifier.deliver(notification_item)


# =============================================================================
# Connectivity
# =============================================================================


class TestCheckConnection:
    """Tests for the startup connectivity check."""

    def test_connected(self, notifier, session):
        session.get.return_value = make_response(
            200, {"ok": True, "result": {"username": "exam_bot"}}
        )

        assert notifier.check_connection() == "exam_bot"
        args, _ = session.get.call_args
        assert args[0] == f"{TELEGRAM_API_BASE}/bot123:abc/getMe"

    def test_invalid_token(self, notifier, session):
        session.get.return_value = make_response(
            401, {"ok": False, "description": "Unauthorized"}
        )

        with pytest.raises(StartupConnectivityError, match="Unauthorized"):
            notifier.check_connection()

    def test_unreachable(self, notifier, session):
        session.get.side_effect = requests.exceptions.ConnectionError("no route")

        with pytest.raises(StartupConnectivityError, match="Failed to connect"):
            notifier.check_connection()

    def test_invalid_body(self, notifier, session):
        session.get.return_value = make_response(200, json_error=True)

        with pytest.raises(StartupConnectivityError):
            notifier.check_connection()

    def test_null_body(self, notifier, session):
        """Test that a null getMe reply fails the startup check."""
        response = make_response(200)
        response.json.return_value = None
        session.get.return_value = response

        with pytest.raises(StartupConnectivityError, match="invalid getMe"):
            notifier.check_connection()

    def test_non_object_result(self, notifier, session):
        session.get.return_value = make_response(200, {"ok": True, "result": "exam_bot"})

        with pytest.raises(StartupConnectivityError):
            notifier.check_connection()


def test_close_releases_session(notifier, session):
    notifier.close()

    session.close.assert_called_once()


def test_repr_hides_token(notifier):
    assert "123:abc" not in repr(notifier)
