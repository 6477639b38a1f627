"""Fly.io 리전 디렉터리: 리전 코드 -> 좌표/표시명.

내장 테이블(프로세스 상수)에 커스텀 리전 테이블을 overlay로 합친다.
코드 비교는 대소문자를 구분하지 않으며, 같은 코드면 커스텀 항목이 이긴다.
커스텀 테이블은 설정 시점에 한 번 로드되고 이후에는 읽기 전용이다.

커스텀 테이블 형식 (JSON/TOML 공통):

    {"dev": {"name": "Development", "coordinates": [47.6062, -122.3321]}}
"""

from __future__ import annotations

import json
import logging
import tomllib
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

import httpx
from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from flymap.core.config import settings
from flymap.core.exceptions import RegionDataError
from flymap.data.models import GeoPoint, RegionEntry

logger = logging.getLogger(__name__)

# code: (lat, lng, name)
BUILTIN_REGIONS: dict[str, tuple[float, float, str]] = {
    "ams": (52, 5, "Amsterdam"),
    "iad": (39, -77, "Ashburn"),
    "atl": (34, -84, "Atlanta"),
    "bog": (5, -74, "Bogotá"),
    "bos": (42, -71, "Boston"),
    "otp": (45, 26, "Bucharest"),
    "ord": (42, -88, "Chicago"),
    "dfw": (33, -97, "Dallas"),
    "den": (40, -105, "Denver"),
    "eze": (-35, -59, "Ezeiza"),
    "fra": (50, 9, "Frankfurt"),
    "gdl": (21, -103, "Guadalajara"),
    "hkg": (22, 114, "Hong Kong"),
    "jnb": (-26, 28, "Johannesburg"),
    "lhr": (51, 0, "London"),
    "lax": (34, -118, "Los Angeles"),
    "mad": (40, -4, "Madrid"),
    "mia": (26, -80, "Miami"),
    "yul": (45, -74, "Montreal"),
    "bom": (19, 73, "Mumbai"),
    "cdg": (49, 3, "Paris"),
    "phx": (33, -112, "Phoenix"),
    "qro": (21, -100, "Querétaro"),
    "gig": (-23, -43, "Rio de Janeiro"),
    "sjc": (37, -122, "San Jose"),
    "scl": (-33, -71, "Santiago"),
    "gru": (-23, -46, "Sao Paulo"),
    "sea": (47, -122, "Seattle"),
    "ewr": (41, -74, "Secaucus"),
    "sin": (1, 104, "Singapore"),
    "arn": (60, 18, "Stockholm"),
    "syd": (-34, 151, "Sydney"),
    "nrt": (36, 140, "Tokyo"),
    "yyz": (44, -80, "Toronto"),
    "waw": (52, 21, "Warsaw"),
}


def _builtin_entries() -> dict[str, RegionEntry]:
    return {
        code: RegionEntry(code=code, point=GeoPoint(lat=lat, lng=lng), name=name)
        for code, (lat, lng, name) in BUILTIN_REGIONS.items()
    }


_BUILTIN_ENTRIES = _builtin_entries()


def parse_custom_regions(data: Mapping[str, Any]) -> dict[str, RegionEntry]:
    """커스텀 리전 원본 dict를 RegionEntry 테이블로 변환.

    형식이 잘못된 항목은 경고 로그를 남기고 건너뛴다. 최상위가 dict가 아니면 RegionDataError.
    """

    if not isinstance(data, Mapping):
        raise RegionDataError("커스텀 리전 테이블은 code -> {name, coordinates} 형태여야 합니다.")

    entries: dict[str, RegionEntry] = {}
    for raw_code, raw in data.items():
        code = str(raw_code).strip().lower()
        if not code or not isinstance(raw, Mapping):
            logger.warning("커스텀 리전 항목 무시 (형식 오류): %r", raw_code)
            continue

        coords = raw.get("coordinates")
        if not isinstance(coords, (list, tuple)) or len(coords) != 2:
            logger.warning("커스텀 리전 %s: coordinates가 (lat, lng) 쌍이 아님", code)
            continue

        try:
            point = GeoPoint(lat=coords[0], lng=coords[1])
        except ValidationError:
            logger.warning("커스텀 리전 %s: 좌표 범위 오류 %r", code, coords)
            continue

        name = str(raw.get("name") or code)
        entries[code] = RegionEntry(code=code, point=point, name=name)
    return entries


class RegionDirectory:
    """내장 리전 + 커스텀 overlay 조회기.

    알 수 없는 코드는 오류가 아니라 None으로 반환된다. 치명적인지는 호출자가 판단한다.
    """

    def __init__(self, custom_regions: Mapping[str, Any] | None = None) -> None:
        self._custom = parse_custom_regions(custom_regions or {})
        self._entries: dict[str, RegionEntry] = {**_BUILTIN_ENTRIES, **self._custom}

    @staticmethod
    def _key(code: str) -> str:
        return code.strip().lower()

    def lookup(self, code: str) -> RegionEntry | None:
        if not isinstance(code, str):
            return None
        return self._entries.get(self._key(code))

    def name(self, code: str) -> str | None:
        entry = self.lookup(code)
        return entry.name if entry is not None else None

    def is_valid(self, code: str) -> bool:
        return self.lookup(code) is not None

    def is_custom(self, code: str) -> bool:
        return isinstance(code, str) and self._key(code) in self._custom

    def display_name(self, codes: list[str]) -> str:
        """그룹 라벨용 표시명. 하나면 '이름 (code)', 여럿이면 'N regions'."""
        if not codes:
            return "no regions"
        if len(codes) == 1:
            name = self.name(codes[0])
            return f"{name} ({codes[0]})" if name else codes[0]
        return f"{len(codes)} regions"

    def codes(self) -> list[str]:
        return sorted(self._entries)

    def __iter__(self) -> Iterator[RegionEntry]:
        for code in self.codes():
            yield self._entries[code]

    def __len__(self) -> int:
        return len(self._entries)


def _parse_region_text(content: str, fmt: str) -> dict[str, Any]:
    try:
        if fmt == "toml":
            data = tomllib.loads(content)
        else:
            data = json.loads(content)
    except (ValueError, tomllib.TOMLDecodeError) as exc:
        raise RegionDataError(f"커스텀 리전 파싱 실패: {exc}") from exc

    # TOML 파일은 [regions] 테이블 아래에 둘 수도 있다
    if isinstance(data, dict) and isinstance(data.get("regions"), dict):
        data = data["regions"]
    if not isinstance(data, dict):
        raise RegionDataError("커스텀 리전 최상위 값이 객체가 아닙니다.")
    return data


@retry(
    reraise=True,
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
)
def _get_with_retry(url: str, client: httpx.Client) -> httpx.Response:
    return client.get(url)


def load_custom_regions(
    source: str,
    client: httpx.Client | None = None,
    timeout_seconds: float | None = None,
) -> dict[str, Any]:
    """로컬 JSON/TOML 파일 또는 http(s) URL에서 커스텀 리전 원본 dict를 읽는다."""

    src = (source or "").strip()
    if not src:
        return {}

    fmt = "toml" if src.lower().endswith(".toml") else "json"

    if src.startswith(("http://", "https://")):
        timeout = timeout_seconds if timeout_seconds is not None else settings.http_timeout_seconds
        own_client = client is None
        http = client or httpx.Client(timeout=timeout)
        try:
            try:
                resp = _get_with_retry(src, http)
            except httpx.TimeoutException as exc:
                raise RegionDataError("커스텀 리전 요청 시간 초과") from exc
            except httpx.NetworkError as exc:
                raise RegionDataError("커스텀 리전 네트워크 오류") from exc
        finally:
            if own_client:
                http.close()

        if resp.status_code >= 400:
            raise RegionDataError(f"커스텀 리전 HTTP 오류: {resp.status_code}")
        content_type = resp.headers.get("content-type", "")
        if "toml" in content_type:
            fmt = "toml"
        return _parse_region_text(resp.text, fmt)

    path = Path(src)
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise RegionDataError(f"커스텀 리전 파일을 찾을 수 없습니다: {path}") from exc
    except OSError as exc:
        raise RegionDataError(f"커스텀 리전 파일 읽기 실패: {path}") from exc
    return _parse_region_text(content, fmt)


def build_default_directory() -> RegionDirectory:
    """settings 기반 디렉터리. 커스텀 테이블 로드 실패는 경고 후 내장 테이블만 사용."""
    custom: dict[str, Any] = {}
    if settings.custom_regions_source:
        try:
            custom = load_custom_regions(settings.custom_regions_source)
        except RegionDataError as exc:
            logger.warning("커스텀 리전 로드 실패, 내장 리전만 사용: %s", exc.message)
    return RegionDirectory(custom)
