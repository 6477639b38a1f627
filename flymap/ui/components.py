"""재사용 가능한 스타일/테마: 마커 스타일 프리셋, 색상 순환, 지도 테마."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from flymap.core.config import settings
from flymap.data.models import StyleMap

logger = logging.getLogger(__name__)

# 의미 없는 그룹 여러 개를 구분하기 위한 팔레트
CYCLE_COLOURS: list[str] = [
    "#2563eb",  # blue
    "#16a34a",  # green
    "#dc2626",  # red
    "#9333ea",  # purple
    "#ea580c",  # orange
    "#0891b2",  # cyan
    "#ca8a04",  # yellow
    "#db2777",  # pink
    "#0d9488",  # teal
    "#65a30d",  # lime
    "#d97706",  # amber
    "#4338ca",  # indigo
]

# 프리셋 이름 -> (colour, animation)
_PRESETS: dict[str, tuple[str, str]] = {
    "operational": ("#10b981", "none"),
    "warning": ("#f59e0b", "none"),
    "danger": ("#ef4444", "pulse"),
    "inactive": ("#6b7280", "none"),
    "primary": ("#3b82f6", "none"),
    "secondary": ("#14b8a6", "none"),
    "info": ("#0ea5e9", "none"),
}

_ALIASES: dict[str, str] = {
    "active": "operational",
    "success": "operational",
    "acknowledged": "operational",
    "expected": "warning",
}

PRESET_SIZE = 4


def custom(colour: str, **opts: Any) -> StyleMap:
    """명시적 파라미터로 스타일 생성. 예: custom("#3b82f6", size=10, glow=True)"""
    return StyleMap(
        colour=colour,
        size=opts.get("size", settings.default_marker_radius),
        animation=opts.get("animation", "none"),
        glow=opts.get("glow", False),
    )


def preset(name: str, **opts: Any) -> StyleMap:
    """의미 스타일(operational/warning/danger/...). 알 수 없는 이름은 info."""
    key = _ALIASES.get(name, name)
    colour, animation = _PRESETS.get(key, _PRESETS["info"])
    merged: dict[str, Any] = {"size": PRESET_SIZE, "animation": animation, "glow": False}
    merged.update(opts)
    return custom(colour, **merged)


def operational(**opts: Any) -> StyleMap:
    return preset("operational", **opts)


def warning(**opts: Any) -> StyleMap:
    return preset("warning", **opts)


def danger(**opts: Any) -> StyleMap:
    return preset("danger", **opts)


def inactive(**opts: Any) -> StyleMap:
    return preset("inactive", **opts)


def primary(**opts: Any) -> StyleMap:
    return preset("primary", **opts)


def secondary(**opts: Any) -> StyleMap:
    return preset("secondary", **opts)


def info(**opts: Any) -> StyleMap:
    return preset("info", **opts)


def cycle(index: int, **opts: Any) -> StyleMap:
    """팔레트 순환 스타일. cycle(12)는 cycle(0)과 같은 색."""
    colour = CYCLE_COLOURS[index % len(CYCLE_COLOURS)]
    return custom(colour, **opts)


def preset_names() -> list[str]:
    return list(_PRESETS)


def normalize_style(style: Any) -> StyleMap:
    """프리셋 이름 / 매핑 / StyleMap / None 을 StyleMap으로 변환.

    매핑은 누락 필드에 기본값을 채운다. 잘못된 매핑은 경고 후 info 스타일.
    """
    if isinstance(style, StyleMap):
        return style
    if style is None:
        return StyleMap()
    if isinstance(style, str):
        return preset(style)
    if isinstance(style, Mapping):
        try:
            return StyleMap.model_validate(dict(style))
        except ValidationError as exc:
            logger.warning("스타일 형식 오류, info 스타일 사용: %s", exc.errors()[0]["msg"])
            return info()
    return info()


# ---------------------------------------------------------------------------
# 지도 테마 (land / ocean / border / neutral_marker / neutral_text)
# ---------------------------------------------------------------------------

THEMES: dict[str, dict[str, str]] = {
    "light": {
        "land": "#888888",
        "ocean": "#aaaaaa",
        "border": "#0f172a",
        "neutral_marker": "#6b7280",
        "neutral_text": "#374151",
    },
    "dark": {
        "land": "#0f172a",
        "ocean": "#aaaaaa",
        "border": "#334155",
        "neutral_marker": "#9ca3af",
        "neutral_text": "#d1d5db",
    },
    "minimal": {
        "land": "transparent",
        "ocean": "transparent",
        "border": "#b5b7bb",
        "neutral_marker": "#aba2a0",
        "neutral_text": "#374151",
    },
    "cool": {
        "land": "#f1f5f9",
        "ocean": "#aaaaaa",
        "border": "#64748b",
        "neutral_marker": "#64748b",
        "neutral_text": "#334155",
    },
    "warm": {
        "land": "#fef7ed",
        "ocean": "#aaaaaa",
        "border": "#c2410c",
        "neutral_marker": "#92400e",
        "neutral_text": "#451a03",
    },
    "high_contrast": {
        "land": "#ffffff",
        "ocean": "#aaaaaa",
        "border": "#000000",
        "neutral_marker": "#404040",
        "neutral_text": "#000000",
    },
    "responsive": {
        "land": "oklch(var(--color-base-100) / 1)",
        "ocean": "oklch(var(--color-base-200) / 1)",
        "border": "oklch(var(--color-base-300) / 1)",
        "neutral_marker": "oklch(var(--color-base-content) / 0.6)",
        "neutral_text": "oklch(var(--color-base-content) / 0.8)",
    },
}


def theme_names(custom_themes: Mapping[str, Mapping[str, str]] | None = None) -> list[str]:
    extra = custom_themes if custom_themes is not None else settings.custom_themes
    return list(THEMES) + [name for name in extra if name not in THEMES]


def map_theme(
    theme: str | Mapping[str, str] | None,
    custom_themes: Mapping[str, Mapping[str, str]] | None = None,
) -> dict[str, str]:
    """테마 이름 또는 색상 매핑 -> 색상 dict.

    이름은 커스텀 테마를 먼저 찾고 다음 내장 테마를 찾는다. 모르는 이름은 light.
    """
    if isinstance(theme, Mapping):
        return {str(k): str(v) for k, v in theme.items()}

    name = theme or settings.default_theme
    extra = custom_themes if custom_themes is not None else settings.custom_themes
    if name in extra:
        return dict(extra[name])
    if name in THEMES:
        return dict(THEMES[name])
    logger.warning("알 수 없는 테마 %r, light 테마 사용", name)
    return dict(THEMES["light"])
