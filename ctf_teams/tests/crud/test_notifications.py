import json

import httpx

from ctf_teams.services.notifications import NotificationDispatcher, NotificationKind


def test_posts_payload_to_webhook():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(204)

    dispatcher = NotificationDispatcher("http://hooks.test/notify", transport=httpx.MockTransport(handler))

    assert dispatcher.notify(NotificationKind.INVITATION_SENT, [3, None, 3, 1], {"team_id": 7}) is True
    assert seen == [{"kind": "invitation.sent", "recipients": [1, 3], "payload": {"team_id": 7}}]


def test_server_error_is_swallowed():
    dispatcher = NotificationDispatcher(
        "http://hooks.test/notify", transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )
    assert dispatcher.notify(NotificationKind.TEAM_DISBANDED, [1]) is False


def test_timeout_is_swallowed():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    dispatcher = NotificationDispatcher("http://hooks.test/notify", transport=httpx.MockTransport(handler))
    assert dispatcher.notify(NotificationKind.TEAM_DISBANDED, [1]) is False


def test_without_webhook_only_logs(caplog):
    dispatcher = NotificationDispatcher(webhook_url=None)
    with caplog.at_level("INFO", logger="CTFTeams.Notifications"):
        assert dispatcher.notify(NotificationKind.JOIN_REQUEST_APPROVED, [5]) is True
    assert "join_request.approved" in caplog.text


def test_no_recipients_is_noop():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("must not be called")

    dispatcher = NotificationDispatcher("http://hooks.test/notify", transport=httpx.MockTransport(handler))
    assert dispatcher.notify(NotificationKind.JOIN_REQUEST_SUBMITTED, [None]) is True
