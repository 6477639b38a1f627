"""지도 설정 관리 모듈: 환경변수/Secrets 로드 및 전역 설정 제공.

Streamlit Community Cloud에서는 `.env` 대신 Secrets(`.streamlit/secrets.toml`)로
환경변수를 주입하는 경우가 많다. 이 모듈은 다음 우선순위로 값을 로드한다.

1) OS 환경변수 (os.environ)
2) Streamlit secrets.toml (프로젝트/.streamlit 또는 사용자 홈)

Region Directory, Renderer, Sync Client는 이 값을 생성 시점에 인자로 주입받는다.
연산 도중 전역 설정을 다시 읽지 않는다.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")


def _load_secrets() -> dict[str, Any]:
    candidates = [
        _PROJECT_ROOT / ".streamlit" / "secrets.toml",
        Path.home() / ".streamlit" / "secrets.toml",
    ]
    for path in candidates:
        try:
            content = path.read_text(encoding="utf-8")
        except OSError:
            continue

        try:
            data = tomllib.loads(content)
        except tomllib.TOMLDecodeError:
            continue

        if isinstance(data, dict):
            return data
    return {}


_SECRETS = _load_secrets()


def _get_raw(key: str) -> str | None:
    value = os.getenv(key)
    if value is not None:
        return value

    secret = _SECRETS.get(key)
    if secret is None:
        return None
    if isinstance(secret, (str, int, float, bool)):
        return str(secret)
    return None


def _get_str(key: str, default: str) -> str:
    value = _get_raw(key)
    if value is None:
        return default
    return str(value).strip()


def _get_bool(key: str, default: bool) -> bool:
    value = _get_raw(key)
    if value is None:
        return default
    return str(value).strip().lower() == "true"


def _get_int(key: str, default: int) -> int:
    value = _get_raw(key)
    if value is None:
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def _get_float(key: str, default: float) -> float:
    value = _get_raw(key)
    if value is None:
        return default
    try:
        return float(str(value).strip())
    except ValueError:
        return default


def _get_custom_themes() -> dict[str, dict[str, str]]:
    # secrets.toml의 [flymap_custom_themes.<name>] 테이블만 지원
    raw = _SECRETS.get("flymap_custom_themes")
    if not isinstance(raw, dict):
        return {}
    themes: dict[str, dict[str, str]] = {}
    for name, colours in raw.items():
        if isinstance(colours, dict):
            themes[str(name)] = {str(k): str(v) for k, v in colours.items()}
    return themes


@dataclass(frozen=True)
class Settings:
    """지도 전역 설정. 환경변수에서 값을 읽으며 frozen=True로 런타임 변경을 방지."""

    debug: bool = field(default_factory=lambda: _get_bool("FLYMAP_DEBUG", False))

    # 커스텀 리전 테이블 위치 (로컬 JSON/TOML 경로 또는 http(s) URL)
    custom_regions_source: str = field(
        default_factory=lambda: _get_str("FLYMAP_CUSTOM_REGIONS", "")
    )
    default_theme: str = field(default_factory=lambda: _get_str("FLYMAP_DEFAULT_THEME", "light"))
    custom_themes: dict[str, dict[str, str]] = field(default_factory=_get_custom_themes)

    channel_url: str = field(
        default_factory=lambda: _get_str(
            "FLYMAP_CHANNEL_URL", "ws://localhost:4000/socket/websocket"
        )
    )
    http_timeout_seconds: float = field(
        default_factory=lambda: _get_float("FLYMAP_HTTP_TIMEOUT_SECONDS", 10.0)
    )

    # 재연결 정책: delay = min(base * 2^(attempts-1), max)
    max_reconnect_attempts: int = field(
        default_factory=lambda: _get_int("FLYMAP_MAX_RECONNECT_ATTEMPTS", 5)
    )
    reconnect_base_delay_seconds: float = field(
        default_factory=lambda: _get_float("FLYMAP_RECONNECT_BASE_DELAY_SECONDS", 1.0)
    )
    reconnect_max_delay_seconds: float = field(
        default_factory=lambda: _get_float("FLYMAP_RECONNECT_MAX_DELAY_SECONDS", 30.0)
    )
    update_throttle_ms: int = field(
        default_factory=lambda: _get_int("FLYMAP_UPDATE_THROTTLE_MS", 100)
    )

    # 마커 렌더링 상수
    default_marker_radius: float = 8
    region_marker_radius: float = 4
    marker_opacity: float = 1.0
    hover_opacity: float = 1.0
    pulse_duration: str = "2s"
    fade_duration: str = "2s"
    pulse_size_delta: float = 2
    pulse_repeat_count: int = 2
    animation_opacity_range: tuple[float, float] = (0.5, 1.0)
    show_regions_default: bool = True


settings = Settings()
