"""Phoenix Channels(v2 JSON 직렬화) 전송 계층.

프레임 형식: [join_ref, ref, topic, event, payload]
소켓 수신/송신/heartbeat는 백그라운드 task에서 돌고, 결과는 모두 post()로 세션 큐에 넣는다.
SyncClient는 join/leave/push만 동기로 호출한다.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from collections.abc import Callable
from typing import Any

import httpx
from httpx_ws import AsyncWebSocketSession, WebSocketDisconnect, WebSocketUpgradeError, aconnect_ws

from flymap.core.config import settings
from flymap.core.exceptions import ChannelConnectionError, ProtocolError
from flymap.sync.events import (
    LEAVE_REASON,
    ChannelClosed,
    ChannelErrored,
    ChannelMessage,
    JoinFailed,
    JoinSucceeded,
    SyncEvent,
    TransportOpened,
)

logger = logging.getLogger(__name__)

PROTOCOL_VSN = "2.0.0"
HEARTBEAT_INTERVAL_SECONDS = 30.0
PHOENIX_TOPIC = "phoenix"


def encode_frame(
    join_ref: str | None, ref: str | None, topic: str, event: str, payload: dict[str, Any]
) -> str:
    return json.dumps([join_ref, ref, topic, event, payload], separators=(",", ":"))


def decode_frame(raw: str | bytes, topic: str, join_ref: str | None) -> SyncEvent | None:
    """수신 프레임을 세션 이벤트로 변환한다.

    다른 토픽(heartbeat 응답 등), 이전 join의 프레임, push 응답은 None.
    형식이 깨진 프레임은 ProtocolError.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ProtocolError(f"JSON 파싱 실패: {exc}") from exc

    if not isinstance(data, list) or len(data) != 5:
        raise ProtocolError(f"Phoenix v2 프레임이 아닙니다: {data!r}")

    frame_join_ref, ref, frame_topic, event, payload = data
    if frame_topic != topic:
        return None
    if frame_join_ref is not None and join_ref is not None and frame_join_ref != join_ref:
        logger.debug("이전 join의 프레임 무시: join_ref=%s", frame_join_ref)
        return None
    if not isinstance(event, str):
        raise ProtocolError(f"이벤트 이름이 문자열이 아닙니다: {event!r}")

    if event == "phx_reply":
        if ref is None or ref != join_ref:
            return None
        payload = payload if isinstance(payload, dict) else {}
        response = payload.get("response")
        response = response if isinstance(response, dict) else {}
        if payload.get("status") == "ok":
            return JoinSucceeded(response=response)
        return JoinFailed(reason=str(response.get("reason") or payload.get("status") or "join_error"))
    if event == "phx_error":
        return ChannelErrored()
    if event == "phx_close":
        return ChannelClosed()
    return ChannelMessage(event=event, payload=payload)


def to_http_url(url: str) -> str:
    """ws://, wss://를 httpx가 받는 http://, https://로 바꾸고 vsn 파라미터를 붙인다."""
    if url.startswith("wss://"):
        url = "https://" + url[len("wss://") :]
    elif url.startswith("ws://"):
        url = "http://" + url[len("ws://") :]
    return str(httpx.URL(url).copy_merge_params({"vsn": PROTOCOL_VSN}))


class PhoenixChannelTransport:
    """채널 하나에 대한 소켓 연결. join()마다 새 소켓을 연다."""

    def __init__(
        self,
        post: Callable[[SyncEvent], None],
        url: str | None = None,
        params: dict[str, str] | None = None,
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
        timeout_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._post = post
        self.url = url if url is not None else settings.channel_url
        self.params = dict(params or {})
        self.heartbeat_interval = heartbeat_interval
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.http_timeout_seconds
        )
        self._client = client

        self._refs = itertools.count(1)
        self._topic: str | None = None
        self._join_ref: str | None = None
        self._outbox: asyncio.Queue[str | None] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._leaving = False

    def is_available(self) -> bool:
        return bool(self.url)

    def _next_ref(self) -> str:
        return str(next(self._refs))

    def join(self, topic: str) -> None:
        self._stop_task()
        self._topic = topic
        self._join_ref = self._next_ref()
        self._leaving = False
        self._outbox = asyncio.Queue()
        self._outbox.put_nowait(encode_frame(self._join_ref, self._join_ref, topic, "phx_join", {}))
        self._task = asyncio.get_running_loop().create_task(self._run(topic))

    def leave(self) -> None:
        if self._task is None or self._task.done() or self._topic is None:
            return
        self._leaving = True
        self._outbox.put_nowait(
            encode_frame(self._join_ref, self._next_ref(), self._topic, "phx_leave", {})
        )
        self._outbox.put_nowait(None)

    def push(self, event: str, payload: dict[str, Any]) -> None:
        if self._topic is None:
            logger.warning("join 전 push 무시: %s", event)
            return
        self._outbox.put_nowait(
            encode_frame(self._join_ref, self._next_ref(), self._topic, event, payload)
        )

    def _stop_task(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self, topic: str) -> None:
        url = to_http_url(self.url)
        if self.params:
            url = str(httpx.URL(url).copy_merge_params(self.params))
        owns_client = self._client is None
        client = self._client or httpx.AsyncClient(timeout=self.timeout_seconds)
        try:
            async with aconnect_ws(url, client) as ws:
                logger.info("채널 소켓 연결: %s", url)
                self._post(TransportOpened())
                await self._serve(ws, topic)
        except asyncio.CancelledError:
            raise
        except (WebSocketDisconnect, WebSocketUpgradeError, httpx.HTTPError, OSError) as exc:
            if self._leaving:
                self._post(ChannelClosed(reason=LEAVE_REASON))
            else:
                error = ChannelConnectionError(f"채널 소켓 오류: {exc}", reason=type(exc).__name__)
                logger.error(error.message)
                self._post(ChannelErrored(reason=error.reason or "channel_error"))
        except Exception as exc:
            logger.exception("채널 소켓 처리 중 예기치 않은 오류")
            self._post(ChannelErrored(reason=type(exc).__name__))
        finally:
            if owns_client:
                await client.aclose()

    async def _serve(self, ws: AsyncWebSocketSession, topic: str) -> None:
        reader = asyncio.create_task(self._reader(ws, topic))
        tasks = [reader, asyncio.create_task(self._writer(ws)), asyncio.create_task(self._heartbeat())]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        for task in done:
            task.result()

        # reader가 끝났다면 종료 이벤트는 이미 post됨
        if reader not in done and self._leaving:
            self._post(ChannelClosed(reason=LEAVE_REASON))

    async def _reader(self, ws: AsyncWebSocketSession, topic: str) -> None:
        while True:
            raw = await ws.receive_text()
            try:
                event = decode_frame(raw, topic, self._join_ref)
            except ProtocolError as exc:
                logger.warning("프레임 버림: %s", exc.message)
                continue
            if event is None:
                continue
            self._post(event)
            if isinstance(event, (ChannelErrored, ChannelClosed)):
                return

    async def _writer(self, ws: AsyncWebSocketSession) -> None:
        while True:
            frame = await self._outbox.get()
            if frame is None:
                return
            await ws.send_text(frame)

    async def _heartbeat(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            self._outbox.put_nowait(
                encode_frame(None, self._next_ref(), PHOENIX_TOPIC, "heartbeat", {})
            )
