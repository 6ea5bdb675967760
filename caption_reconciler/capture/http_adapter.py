"""Async HTTP adapter for a browser-side caption scraper.

WHY: The live caption panel lives in a browser. A small scraper running
there exposes what it sees as JSON; this adapter polls it so the engine,
store and exporters can run as an ordinary Python process.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. HttpCaptureAdapter is
an async context manager. Enter it to open the connection pool, exit to
close it. Each fetch method GETs one endpoint and parses the JSON into
the core dataclasses.

RULES:
- Always use the async context manager (async with HttpCaptureAdapter(...) as source:)
- Endpoints: GET /captions, /chat, /meeting, /attendees
- 404 or 204 → CaptureMissError (element not rendered yet)
- Other non-2xx, transport errors and malformed JSON → CaptureSourceError
- Payloads may be a bare list or an object wrapping the list under the
  endpoint name ({"captions": [...]})
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx

from caption_reconciler.capture.adapter import CaptureAdapter, CaptureMissError, CaptureSourceError
from caption_reconciler.config import CAPTURE_SOURCE_URL, DEFAULT_MEETING_TITLE
from caption_reconciler.core.ir import CaptionFragment, ChatMessage
from caption_reconciler.core.session import MeetingInfo
from caption_reconciler.core.timestamps import TimestampTag

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_S = 5.0


class HttpCaptureAdapter(CaptureAdapter):
    """Poll a JSON capture source over HTTP.

    RULES:
    - base_url defaults to CAPTURE_SOURCE_URL from config
    - transport may be injected (httpx.MockTransport in tests)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = _DEFAULT_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = (base_url or CAPTURE_SOURCE_URL).rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> HttpCaptureAdapter:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        )
        return self

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "HttpCaptureAdapter must be used as an async context manager: "
                "async with HttpCaptureAdapter() as source: ..."
            )
        return self._client

    async def _get_json(self, path: str) -> Any:
        client = self._ensure_client()
        try:
            resp = await client.get(path)
        except httpx.HTTPError as exc:
            raise CaptureSourceError("Capture source unreachable: {}".format(exc)) from exc

        if resp.status_code in (204, 404):
            raise CaptureMissError("{} not available".format(path))
        if resp.status_code != 200:
            raise CaptureSourceError(
                "Capture source error {} on {}: {}".format(resp.status_code, path, resp.text),
                status_code=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError as exc:
            raise CaptureSourceError("Malformed JSON from {}: {}".format(path, exc)) from exc

    async def _get_list(self, path: str, key: str) -> List[Any]:
        data = await self._get_json(path)
        if isinstance(data, dict):
            data = data.get(key, [])
        if not isinstance(data, list):
            raise CaptureSourceError("Expected a list from {}".format(path))
        return data

    async def fetch_captions(self) -> List[CaptionFragment]:
        rows = await self._get_list("/captions", "captions")
        return [
            CaptionFragment(speaker=str(row.get("speaker") or ""), text=str(row.get("text") or ""))
            for row in rows
            if isinstance(row, dict)
        ]

    async def fetch_chat(self) -> List[ChatMessage]:
        rows = await self._get_list("/chat", "chat")
        messages = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            messages.append(ChatMessage(
                sender=str(row.get("sender") or ""),
                message=str(row.get("message") or ""),
                sent_at=TimestampTag.parse(str(row.get("time") or "")),
            ))
        return messages

    async def fetch_meeting(self) -> Optional[MeetingInfo]:
        data = await self._get_json("/meeting")
        if not isinstance(data, dict):
            return None
        return MeetingInfo(
            title=str(data.get("title") or DEFAULT_MEETING_TITLE),
            meeting_id=str(data.get("meeting_id") or ""),
            organizer=str(data.get("organizer") or ""),
        )

    async def fetch_attendees(self) -> List[str]:
        names = await self._get_list("/attendees", "attendees")
        return [str(name) for name in names if name]
