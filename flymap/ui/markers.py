"""마커 렌더러: SVG 마커 생성/갱신/삭제와 glow, pulse/fade 애니메이션 관리.

모든 연산은 동기이며 최종 시각 상태 기준으로 멱등이다.
- create_marker: 같은 id가 이미 있으면 교체한다 (중복 요소 없음)
- update_marker: 요소를 다시 만들지 않고 속성만 바꾼다
- 애니메이션 종류가 바뀌면 기존 <animate>를 모두 지운 뒤 새로 붙인다
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any
from xml.etree import ElementTree as ET

from pydantic import ValidationError

from flymap.core.config import Settings, settings
from flymap.data.geo import project
from flymap.data.models import (
    DEFAULT_VIEWPORT,
    CanonicalMarker,
    MarkerGroup,
    StyleMap,
    Viewport,
    WireMarkerGroup,
)
from flymap.data.nodes import MarkerNormalizer, process_marker_group
from flymap.ui.components import normalize_style
from flymap.ui.svg_document import SvgMapDocument

logger = logging.getLogger(__name__)

# "_" 자체도 escape 대상이어야 서로 다른 id가 같은 결과로 겹치지 않는다
_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9-]")

MarkerHandle = ET.Element


@dataclass(frozen=True)
class MarkerConfig:
    """렌더링 상수. 기본값은 settings에서 가져와 생성 시점에 고정한다."""

    default_radius: float = 8
    marker_opacity: float = 1.0
    pulse_duration: str = "2s"
    fade_duration: str = "2s"
    pulse_size_delta: float = 2
    pulse_repeat_count: int = 2
    opacity_range: tuple[float, float] = (0.5, 1.0)

    @classmethod
    def from_settings(cls, s: Settings = settings) -> MarkerConfig:
        return cls(
            default_radius=s.default_marker_radius,
            marker_opacity=s.marker_opacity,
            pulse_duration=s.pulse_duration,
            fade_duration=s.fade_duration,
            pulse_size_delta=s.pulse_size_delta,
            pulse_repeat_count=s.pulse_repeat_count,
            opacity_range=s.animation_opacity_range,
        )


def sanitize_id(value: str) -> str:
    """CSS 클래스/요소 id로 쓸 수 있는 문자열. 안전하지 않은 문자는 '_' + 6자리 hex."""
    return _UNSAFE_ID_CHARS.sub(lambda m: f"_{ord(m.group()):06x}", value)


def gradient_id(marker_id: str) -> str:
    return f"glow-gradient-{sanitize_id(marker_id)}"


def group_class(group_id: str) -> str:
    return f"group-{sanitize_id(group_id)}"


def _fmt(value: float) -> str:
    return f"{value:g}"


def _marker_class(animation: str, group_id: str | None) -> str:
    base = "marker-group static" if animation == "none" else "marker-group animated"
    return f"{base} {group_class(group_id)}" if group_id else base


class MarkerRenderer:
    """SvgMapDocument 위에서 마커를 관리한다. 지도 인스턴스마다 하나씩 만든다."""

    def __init__(
        self,
        document: SvgMapDocument,
        config: MarkerConfig | None = None,
        normalizer: MarkerNormalizer | None = None,
    ) -> None:
        self.document = document
        self.config = config or MarkerConfig.from_settings()
        self.normalizer = normalizer

    # -- 애니메이션 -----------------------------------------------------------

    def pulse_values(self, radius: float) -> str:
        return f"{_fmt(radius)};{_fmt(radius + self.config.pulse_size_delta)};{_fmt(radius)}"

    def fade_values(self) -> str:
        low, high = self.config.opacity_range
        return f"{_fmt(low)};{_fmt(high)};{_fmt(low)}"

    def _add_animation(self, circle: ET.Element, animation: str, radius: float) -> None:
        if animation == "pulse":
            self.document.append(
                circle,
                "animate",
                {
                    "attributeName": "r",
                    "values": self.pulse_values(radius),
                    "dur": self.config.pulse_duration,
                    "repeatCount": str(self.config.pulse_repeat_count),
                },
            )
        elif animation == "fade":
            self.document.append(
                circle,
                "animate",
                {
                    "attributeName": "opacity",
                    "values": self.fade_values(),
                    "dur": self.config.fade_duration,
                    "repeatCount": "indefinite",
                },
            )

    @staticmethod
    def current_animation(circle: ET.Element) -> str:
        for anim in circle.iter("animate"):
            name = anim.get("attributeName")
            if name == "r":
                return "pulse"
            if name == "opacity":
                return "fade"
        return "none"

    # -- glow ---------------------------------------------------------------

    def ensure_glow_gradient(self, marker_id: str, colour: str) -> ET.Element:
        """마커 id별 radial gradient. 이미 있으면 색만 맞추고 재사용한다."""
        gid = gradient_id(marker_id)
        existing = self.document.get_element_by_id(gid)
        if existing is not None:
            for stop in existing.iter("stop"):
                stop.set("stop-color", colour)
            return existing

        gradient = self.document.append(
            self.document.defs,
            "radialGradient",
            {"id": gid, "cx": "50%", "cy": "50%", "r": "50%", "fx": "50%", "fy": "50%"},
        )
        for offset, opacity in (("60%", "1"), ("80%", "0.6"), ("100%", "0.2")):
            self.document.append(
                gradient,
                "stop",
                {"offset": offset, "stop-color": colour, "stop-opacity": opacity},
            )
        return gradient

    def _remove_glow_gradient(self, marker_id: str) -> None:
        gradient = self.document.get_element_by_id(gradient_id(marker_id))
        if gradient is not None:
            self.document.remove(gradient)

    # -- 마커 CRUD ------------------------------------------------------------

    def create_marker(
        self,
        marker_id: str,
        style: StyleMap | Mapping[str, Any] | None,
        x: float,
        y: float,
        extra_attributes: Mapping[str, str] | None = None,
        group_id: str | None = None,
    ) -> MarkerHandle:
        style = normalize_style(style)
        existing = self.document.get_element_by_id(marker_id)
        if existing is not None:
            self.remove_marker(marker_id)

        group = self.document.append(
            self.document.marker_layer,
            "g",
            {"id": marker_id, "class": _marker_class(style.animation, group_id)},
        )
        if group_id:
            group.set("data-group-id", group_id)
        for key, value in (extra_attributes or {}).items():
            group.set(key, str(value))

        fill = f"url(#{gradient_id(marker_id)})" if style.glow else style.colour
        circle = self.document.append(
            group,
            "circle",
            {"cx": _fmt(x), "cy": _fmt(y), "r": _fmt(style.size), "stroke": "none", "fill": fill},
        )
        self._add_animation(circle, style.animation, style.size)

        if style.glow:
            self.ensure_glow_gradient(marker_id, style.colour)
        return group

    def update_marker(
        self,
        marker_id: str,
        x: float | None = None,
        y: float | None = None,
        style: StyleMap | Mapping[str, Any] | None = None,
    ) -> bool:
        """위치/색/크기/애니메이션을 제자리에서 갱신. 모르는 id면 False (오류 아님)."""
        group = self.document.get_element_by_id(marker_id)
        if group is None:
            return False
        circle = group.find("circle")
        if circle is None:
            return False

        if x is not None:
            circle.set("cx", _fmt(x))
        if y is not None:
            circle.set("cy", _fmt(y))

        if style is None:
            return True
        changes = style.model_dump() if isinstance(style, StyleMap) else dict(style)

        size = changes.get("size")
        radius = float(size) if size is not None else float(circle.get("r", self.config.default_radius))
        colour = changes.get("colour", changes.get("color"))
        if "glow" in changes:
            glow = bool(changes["glow"])
        else:
            glow = circle.get("fill", "").startswith("url(")

        if colour is not None or "glow" in changes:
            if colour is None:
                gradient = self.document.get_element_by_id(gradient_id(marker_id))
                stop = gradient.find("stop") if gradient is not None else None
                colour = stop.get("stop-color") if stop is not None else circle.get("fill", "")
            if glow:
                self.ensure_glow_gradient(marker_id, colour)
                circle.set("fill", f"url(#{gradient_id(marker_id)})")
            else:
                self._remove_glow_gradient(marker_id)
                circle.set("fill", colour)

        if size is not None:
            circle.set("r", _fmt(radius))

        current = self.current_animation(circle)
        wanted = changes.get("animation", current) or "none"
        if wanted != current:
            # 종류가 바뀌면 이전 애니메이션을 먼저 모두 지운다
            self.document.remove_children(circle, "animate")
            self._add_animation(circle, wanted, radius)
            group_id = group.get("data-group-id")
            group.set("class", _marker_class(wanted, group_id))
        elif size is not None and current == "pulse":
            for anim in circle.iter("animate"):
                if anim.get("attributeName") == "r":
                    anim.set("values", self.pulse_values(radius))
        return True

    def remove_marker(self, marker_id: str) -> bool:
        group = self.document.get_element_by_id(marker_id)
        if group is None:
            return False
        self.document.remove(group)
        self._remove_glow_gradient(marker_id)
        return True

    def clear(self) -> int:
        ids = [child.get("id") for child in list(self.document.marker_layer)]
        removed = 0
        for marker_id in ids:
            if marker_id and self.remove_marker(marker_id):
                removed += 1
        return removed

    # -- 그룹 ---------------------------------------------------------------

    def _effective_style(self, group: MarkerGroup, marker: CanonicalMarker) -> StyleMap:
        if marker.style_override is not None:
            return marker.style_override
        if marker.style_key is not None:
            return normalize_style(marker.style_key)
        return group.style

    def create_group_marker(
        self, group: MarkerGroup, marker: CanonicalMarker, viewport: Viewport = DEFAULT_VIEWPORT
    ) -> MarkerHandle:
        pos = project(marker.point, viewport)
        attrs: dict[str, str] = {"data-group": sanitize_id(group.label)}
        if marker.label:
            attrs["data-label"] = marker.label
        if marker.region:
            attrs["data-region"] = marker.region
        return self.create_marker(
            marker.id, self._effective_style(group, marker), pos.x, pos.y, attrs, group_id=group.id
        )

    def create_markers_from_groups(
        self,
        groups: Iterable[MarkerGroup | WireMarkerGroup | Mapping[str, Any]],
        viewport: Viewport | None = None,
    ) -> list[MarkerHandle]:
        """그룹별 마커를 한 번에 생성.

        정규화 전 그룹(WireMarkerGroup/매핑)은 여기서 정규화하며, 실패한 마커는
        건너뛰고 로그만 남긴다. 배치 전체를 중단하지 않는다.
        """
        viewport = viewport or DEFAULT_VIEWPORT
        handles: list[MarkerHandle] = []

        for raw_group in groups:
            if isinstance(raw_group, MarkerGroup):
                group = raw_group
            else:
                if self.normalizer is None:
                    raise ValueError("정규화 전 그룹을 그리려면 normalizer가 필요합니다")
                try:
                    group, _ = process_marker_group(raw_group, self.normalizer, strict=False)
                except ValidationError as exc:
                    logger.warning("그룹 형식 오류, 건너뜀: %s", exc.errors()[0]["msg"])
                    continue
                assert group is not None

            for marker in group.markers:
                handles.append(self.create_group_marker(group, marker, viewport))

            if not group.visible:
                self.toggle_group_visibility(group.id, False)

        return handles


    def toggle_group_visibility(self, group_id: str, visible: bool) -> None:
        """CSS 규칙으로만 숨긴다. 마커 요소는 건드리지 않으므로 되돌릴 수 있다."""
        selector = f".{group_class(group_id)}"
        self.document.set_visibility_rule(selector, None if visible else "display: none !important;")

    def is_group_hidden(self, group_id: str) -> bool:
        return f".{group_class(group_id)}" in self.document.visibility_rules()

    def apply_theme(self, theme: Mapping[str, Any]) -> None:
        """테마를 CSS custom property(--theme-<key>)로 반영. 마커 기하는 다시 그리지 않는다."""
        for key, value in theme.items():
            if isinstance(value, str):
                self.document.set_style_property(f"--theme-{key}", value)
