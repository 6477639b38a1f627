"""asyncio 기반 지도 동기화 세션.

전송 계층 콜백과 재연결 타이머는 이벤트를 큐에 넣기만 하고, run() 루프 하나가
큐에서 꺼낸 순서대로 SyncClient.dispatch()를 호출한다. 같은 세션 안에서 이벤트
처리가 서로 끼어들지 않는다.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from flymap.data.models import ConnectionState, FallbackNotice
from flymap.data.regions import RegionDirectory
from flymap.sync.client import (
    ChannelTransport,
    ReconnectPolicy,
    SessionConfig,
    SyncClient,
    TimerHandle,
)
from flymap.sync.events import Mount, SyncEvent, Teardown
from flymap.ui.svg_document import SvgMapDocument

logger = logging.getLogger(__name__)

TransportFactory = Callable[[Callable[[SyncEvent], None]], ChannelTransport]


class AsyncioScheduler:
    """loop.call_later 래퍼. 반환되는 TimerHandle은 asyncio.TimerHandle 그대로다."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class MapSession:
    """지도 인스턴스 하나의 동기화 세션 (큐 + 클라이언트 + 전송 계층)."""

    def __init__(
        self,
        config: SessionConfig,
        transport_factory: TransportFactory,
        document: SvgMapDocument | None,
        directory: RegionDirectory | None = None,
        on_fallback: Callable[[FallbackNotice], None] | None = None,
        policy: ReconnectPolicy | None = None,
        **client_options: Any,
    ) -> None:
        self.queue: asyncio.Queue[SyncEvent] = asyncio.Queue()
        self.transport = transport_factory(self.post)
        self.client = SyncClient(
            config,
            self.transport,
            AsyncioScheduler(),
            document,
            directory=directory,
            on_fallback=on_fallback,
            post=self.post,
            policy=policy,
            **client_options,
        )

    def post(self, event: SyncEvent) -> None:
        """스레드 안전하지 않음. 세션 루프와 같은 이벤트 루프에서만 호출한다."""
        self.queue.put_nowait(event)

    def mount(self) -> None:
        self.post(Mount())

    def teardown(self) -> None:
        self.post(Teardown())

    @property
    def state(self) -> ConnectionState:
        return self.client.state

    async def run(self) -> None:
        """Teardown을 처리할 때까지 이벤트를 하나씩 처리한다."""
        logger.debug("세션 루프 시작: %s", self.client.config.channel_topic)
        while True:
            event = await self.queue.get()
            try:
                self.client.dispatch(event)
            finally:
                self.queue.task_done()
            if isinstance(event, Teardown):
                break
        logger.debug("세션 루프 종료: %s", self.client.config.channel_topic)

    async def drain(self) -> None:
        """지금까지 큐에 들어간 이벤트가 모두 처리될 때까지 기다린다."""
        await self.queue.join()
