"""asyncio 세션 루프 테스트 (가짜 전송 계층, 실제 이벤트 루프)."""

from __future__ import annotations

import asyncio

from flymap.data.models import ConnectionState
from flymap.sync.client import ReconnectPolicy, SessionConfig
from flymap.sync.events import ChannelErrored, ChannelMessage, JoinSucceeded
from flymap.sync.session import MapSession
from flymap.ui.svg_document import SvgMapDocument
from fakes import SAMPLE_GROUPS, FakeTransport


def _make_session(document: SvgMapDocument, transports: list[FakeTransport], **kwargs) -> MapSession:
    def factory(post):
        transport = FakeTransport(post=post)
        transports.append(transport)
        return transport

    config = SessionConfig(channel_topic="map:test", initial_state={"markerGroups": SAMPLE_GROUPS})
    return MapSession(config, factory, document, **kwargs)


def test_session_processes_events_in_order() -> None:
    async def scenario() -> None:
        document = SvgMapDocument()
        transports: list[FakeTransport] = []
        session = _make_session(document, transports)
        runner = asyncio.create_task(session.run())

        session.mount()
        session.post(JoinSucceeded())
        session.post(ChannelMessage("marker_add", {"group_id": "edge", "marker": "nrt"}))
        session.post(ChannelMessage("marker_remove", {"group_id": "prod", "marker_id": "prod-0"}))
        await session.drain()

        assert session.state is ConnectionState.JOINED
        assert transports[0].joins == ["map:test"]
        assert [c.get("id") for c in document.marker_layer] == ["prod-1", "edge-0", "edge-1"]

        session.teardown()
        await asyncio.wait_for(runner, timeout=1)
        assert transports[0].leaves == 1

    asyncio.run(scenario())


def test_session_reconnects_with_real_timer() -> None:
    async def scenario() -> None:
        document = SvgMapDocument()
        transports: list[FakeTransport] = []
        session = _make_session(
            document,
            transports,
            policy=ReconnectPolicy(max_attempts=3, base_delay=0.01, max_delay=0.05),
        )
        runner = asyncio.create_task(session.run())

        session.mount()
        session.post(JoinSucceeded())
        session.post(ChannelErrored())
        await session.drain()
        assert session.state is ConnectionState.ERROR

        await asyncio.sleep(0.05)
        await session.drain()
        assert session.state is ConnectionState.CONNECTING
        assert transports[0].joins == ["map:test", "map:test"]

        session.teardown()
        await asyncio.wait_for(runner, timeout=1)

    asyncio.run(scenario())


def test_session_falls_back_after_repeated_failures() -> None:
    notices = []

    async def scenario() -> None:
        document = SvgMapDocument()
        transports: list[FakeTransport] = []
        session = _make_session(
            document,
            transports,
            on_fallback=notices.append,
            policy=ReconnectPolicy(max_attempts=2, base_delay=0.01, max_delay=0.01),
        )
        runner = asyncio.create_task(session.run())

        session.mount()
        session.post(ChannelErrored())
        await session.drain()
        await asyncio.sleep(0.03)
        await session.drain()
        session.post(ChannelErrored())
        await session.drain()

        assert session.state is ConnectionState.FALLBACK
        assert list(document.marker_layer) == []

        session.teardown()
        await asyncio.wait_for(runner, timeout=1)

    asyncio.run(scenario())
    assert len(notices) == 1
