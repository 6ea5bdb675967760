"""Tests for HttpCaptureAdapter against a mocked capture source.

WHY: The HTTP adapter maps a browser-side scraper's JSON onto the core
dataclasses and its failure modes onto CaptureMissError (not rendered
yet) and CaptureSourceError (broken). The recorder's retry behaviour
depends on that mapping being right.

HOW: httpx.MockTransport serves canned responses per path; no network
is used. Async calls are driven with asyncio.run().
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from caption_reconciler.capture.adapter import CaptureMissError, CaptureSourceError
from caption_reconciler.capture.http_adapter import HttpCaptureAdapter
from caption_reconciler.core.session import MeetingInfo
from caption_reconciler.core.timestamps import TimestampTag


def _transport(routes):
    def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)
    return httpx.MockTransport(handler)


def _fetch(routes, method: str):
    async def scenario():
        async with HttpCaptureAdapter("http://capture.test", transport=_transport(routes)) as source:
            return await getattr(source, method)()
    return asyncio.run(scenario())


class TestFetch:

    def test_captions_bare_list(self):
        rows = _fetch({"/captions": [{"speaker": "Hetz, Doron", "text": "Hi there"}]}, "fetch_captions")
        assert len(rows) == 1
        assert rows[0].speaker == "Hetz, Doron"
        assert rows[0].text == "Hi there"

    def test_captions_wrapped_list(self):
        rows = _fetch({"/captions": {"captions": [{"speaker": "A", "text": "x"}, "junk"]}}, "fetch_captions")
        assert [row.text for row in rows] == ["x"]

    def test_chat_parses_time(self):
        messages = _fetch(
            {"/chat": [{"sender": "Lopez, Ana", "message": "deck?", "time": "10:05 AM"}]},
            "fetch_chat",
        )
        assert messages[0].sent_at == TimestampTag(10, 5)
        assert messages[0].message == "deck?"

    def test_meeting(self):
        meeting = _fetch({"/meeting": {"title": "Weekly Sync", "meeting_id": "123 456"}}, "fetch_meeting")
        assert meeting == MeetingInfo("Weekly Sync", "123 456", "")

    def test_meeting_without_title_uses_default(self):
        assert _fetch({"/meeting": {}}, "fetch_meeting").title == "Subject"

    def test_attendees(self):
        names = _fetch({"/attendees": {"attendees": ["Hetz, Doron", "", "Ana Lopez"]}}, "fetch_attendees")
        assert names == ["Hetz, Doron", "Ana Lopez"]


class TestErrors:

    def test_not_rendered_is_a_miss(self):
        with pytest.raises(CaptureMissError):
            _fetch({}, "fetch_captions")
        with pytest.raises(CaptureMissError):
            _fetch({"/chat": httpx.Response(204)}, "fetch_chat")

    def test_server_error(self):
        with pytest.raises(CaptureSourceError) as exc_info:
            _fetch({"/captions": httpx.Response(500, text="boom")}, "fetch_captions")
        assert exc_info.value.status_code == 500

    def test_malformed_json(self):
        with pytest.raises(CaptureSourceError):
            _fetch({"/captions": httpx.Response(200, text="not json")}, "fetch_captions")

    def test_unexpected_shape(self):
        with pytest.raises(CaptureSourceError):
            _fetch({"/captions": {"captions": "nope"}}, "fetch_captions")

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async def scenario():
            async with HttpCaptureAdapter("http://capture.test", transport=httpx.MockTransport(handler)) as source:
                await source.fetch_captions()

        with pytest.raises(CaptureSourceError):
            asyncio.run(scenario())

    def test_requires_context_manager(self):
        with pytest.raises(RuntimeError, match="async context manager"):
            asyncio.run(HttpCaptureAdapter("http://capture.test").fetch_captions())
