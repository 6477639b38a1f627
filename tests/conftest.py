from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from flymap.data.models import FallbackNotice
from flymap.data.nodes import MarkerNormalizer
from flymap.data.regions import RegionDirectory
from flymap.sync.client import ReconnectPolicy, SessionConfig, SyncClient
from flymap.ui.markers import MarkerConfig, MarkerRenderer
from flymap.ui.svg_document import SvgMapDocument
from fakes import FIXED_NOW_MS, SAMPLE_GROUPS, FakeTransport, ManualScheduler


@pytest.fixture
def directory() -> RegionDirectory:
    return RegionDirectory()


@pytest.fixture
def normalizer(directory: RegionDirectory) -> MarkerNormalizer:
    return MarkerNormalizer(directory)


@pytest.fixture
def document() -> SvgMapDocument:
    return SvgMapDocument()


@pytest.fixture
def renderer(document: SvgMapDocument, normalizer: MarkerNormalizer) -> MarkerRenderer:
    return MarkerRenderer(document, MarkerConfig(), normalizer)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def notices() -> list[FallbackNotice]:
    return []


@pytest.fixture
def make_client(
    transport: FakeTransport,
    scheduler: ManualScheduler,
    document: SvgMapDocument,
    directory: RegionDirectory,
    notices: list[FallbackNotice],
) -> Callable[..., SyncClient]:
    def _make(
        groups: list[dict[str, Any]] | None = None,
        progressive_enhancement: bool = False,
        doc: SvgMapDocument | None = document,
        topic: str = "map:test",
    ) -> SyncClient:
        config = SessionConfig(
            channel_topic=topic,
            initial_state={"markerGroups": SAMPLE_GROUPS[:1] if groups is None else groups},
            progressive_enhancement=progressive_enhancement,
        )
        return SyncClient(
            config,
            transport,
            scheduler,
            doc,
            directory=directory,
            on_fallback=notices.append,
            policy=ReconnectPolicy(max_attempts=5, base_delay=1.0, max_delay=30.0),
            marker_config=MarkerConfig(),
            clock=lambda: FIXED_NOW_MS,
        )

    return _make
