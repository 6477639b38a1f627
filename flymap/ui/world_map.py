"""서버 측 정적 SVG 세계 지도.

실시간 동기화가 불가능하거나 fallback된 경우 호스트가 그대로 보여주는 출력이다.
클라이언트 렌더러와 같은 투영(flymap.data.geo)과 MarkerRenderer를 쓰므로
같은 입력이면 마커 좌표가 일치한다.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from flymap.core.config import settings
from flymap.data.geo import project, project_lat_lng
from flymap.data.models import DEFAULT_VIEWPORT, MarkerGroup, Viewport, WireMarkerGroup
from flymap.data.nodes import MarkerNormalizer
from flymap.data.regions import RegionDirectory
from flymap.ui.components import map_theme
from flymap.ui.markers import MarkerConfig, MarkerRenderer
from flymap.ui.svg_document import SvgMapDocument

logger = logging.getLogger(__name__)

# 위아래 빈 영역을 잘라낸 표시 영역
MAP_VIEW_BOX = "0 10 800 320"
_MAP_TOP = 10
_MAP_HEIGHT = 320
_GRATICULE_STEP = 30

_BASE_CSS = """
svg circle { pointer-events: none; }
.region-text-group text {
  opacity: 0; stroke: none; fill: var(--neutral-text-color);
  transition: opacity 0.2s; pointer-events: none; user-select: none;
}
.region-text-group.active text { opacity: 1; }
.region-group circle {
  stroke: transparent; fill: var(--neutral-marker-color);
  stroke-width: 8; pointer-events: all; opacity: var(--marker-opacity);
}
.marker-group.static circle { opacity: var(--marker-opacity); }
"""


def _map_css(colours: Mapping[str, str], region_codes: Iterable[str]) -> str:
    variables = (
        "svg {\n"
        f"  --marker-opacity: {settings.marker_opacity:g};\n"
        f"  --hover-opacity: {settings.hover_opacity:g};\n"
        f"  --neutral-marker-color: {colours.get('neutral_marker', '#6b7280')};\n"
        f"  --neutral-text-color: {colours.get('neutral_text', '#374151')};\n"
        "}\n"
    )
    hover_rules = "\n".join(
        f".region-{code}:hover ~ .text-{code} text {{ opacity: 1; }}" for code in region_codes
    )
    border = colours.get("border", "#0f172a")
    hover = (
        ".region-group:hover circle {"
        f" stroke: {border}; fill: {border}; opacity: var(--hover-opacity); }}"
    )
    return variables + _BASE_CSS + hover_rules + "\n" + hover


def _graticule_path(viewport: Viewport) -> str:
    """경위선(30도 간격) path 데이터"""
    segments: list[str] = []
    for lng in range(-180, 181, _GRATICULE_STEP):
        top = project_lat_lng(90, lng, viewport)
        bottom = project_lat_lng(-90, lng, viewport)
        segments.append(f"M {top.x:g} {top.y:g} V {bottom.y:g}")
    for lat in range(-90, 91, _GRATICULE_STEP):
        left = project_lat_lng(lat, -180, viewport)
        right = project_lat_lng(lat, 180, viewport)
        segments.append(f"M {left.x:g} {left.y:g} H {right.x:g}")
    return " ".join(segments)


def _draw_background(document: SvgMapDocument, colours: Mapping[str, str], viewport: Viewport) -> None:
    layer = document.marker_layer
    index = list(document.root).index(layer)
    base = document.append(document.root, "g", {"id": f"{document.map_id}-base"}, index=index)
    document.append(
        base,
        "rect",
        {
            "x": f"{viewport.min_x:g}",
            "y": f"{viewport.min_y:g}",
            "width": f"{viewport.width:g}",
            "height": f"{viewport.height:g}",
            "fill": colours.get("ocean", "#aaaaaa"),
        },
    )
    document.append(
        base,
        "path",
        {
            "d": _graticule_path(viewport),
            "stroke": colours.get("land", "#888888"),
            "stroke-width": "0.5",
            "fill": "none",
        },
    )
    border = colours.get("border", "#0f172a")
    right = viewport.max_x - 0.5
    document.append(
        base,
        "path",
        {"d": f"M {viewport.min_x + 1:g} {_MAP_TOP + 0.5:g} H {right:g}", "stroke": border, "stroke-width": "1"},
    )
    document.append(
        base,
        "path",
        {
            "d": f"M {viewport.min_x + 1:g} {_MAP_TOP + _MAP_HEIGHT - 1:g} H {right:g}",
            "stroke": border,
            "stroke-width": "1",
        },
    )


def _draw_regions(
    document: SvgMapDocument, directory: RegionDirectory, viewport: Viewport, radius: float
) -> None:
    index = list(document.root).index(document.marker_layer)
    regions = document.append(
        document.root, "g", {"id": f"{document.map_id}-regions"}, index=index
    )
    # 지역 코드 라벨은 마커 위에 오도록 마지막에 그린다
    labels = document.append(document.root, "g", {"id": f"{document.map_id}-region-labels"})
    for entry in directory:
        pos = project(entry.point, viewport)
        group = document.append(
            regions,
            "g",
            {"class": f"region-group region-{entry.code}", "id": f"region-{entry.code}"},
        )
        document.append(group, "circle", {"cx": f"{pos.x:g}", "cy": f"{pos.y:g}", "r": f"{radius:g}"})

        text_group = document.append(
            labels,
            "g",
            {"class": f"region-text-group text-{entry.code}", "id": f"region-text-{entry.code}"},
        )
        text = document.append(
            text_group,
            "text",
            {"x": f"{pos.x:g}", "y": f"{pos.y - 8:g}", "text-anchor": "middle", "font-size": "20"},
        )
        text.text = entry.code


def build_world_map(
    marker_groups: Iterable[MarkerGroup | WireMarkerGroup | Mapping[str, Any]] = (),
    theme: str | Mapping[str, str] | None = None,
    map_id: str = "fly-region-map",
    show_regions: bool | None = None,
    viewport: Viewport = DEFAULT_VIEWPORT,
    directory: RegionDirectory | None = None,
) -> SvgMapDocument:
    """정적 지도 문서를 만든다. 잘못된 마커는 건너뛰고 나머지를 그린다."""
    directory = directory or RegionDirectory()
    colours = map_theme(theme)
    show_regions = settings.show_regions_default if show_regions is None else show_regions

    document = SvgMapDocument(map_id=map_id, view_box=MAP_VIEW_BOX)
    css = document.append(document.root, "style", index=list(document.root).index(document.visibility_style))
    css.text = _map_css(colours, directory.codes() if show_regions else [])
    _draw_background(document, colours, viewport)
    if show_regions:
        _draw_regions(document, directory, viewport, settings.region_marker_radius)

    renderer = MarkerRenderer(document, MarkerConfig.from_settings(), MarkerNormalizer(directory))
    renderer.apply_theme(colours)
    handles = renderer.create_markers_from_groups(marker_groups, viewport)
    logger.debug("정적 지도 %s: 마커 %d개", map_id, len(handles))
    return document


def render_world_map(
    marker_groups: Iterable[MarkerGroup | WireMarkerGroup | Mapping[str, Any]] = (),
    theme: str | Mapping[str, str] | None = None,
    map_id: str = "fly-region-map",
    show_regions: bool | None = None,
    viewport: Viewport = DEFAULT_VIEWPORT,
    directory: RegionDirectory | None = None,
) -> str:
    """정적 지도 SVG 문자열"""
    return build_world_map(
        marker_groups, theme, map_id, show_regions, viewport, directory
    ).to_string()
