"""MarkerSpec 정규화.

입력 형태(리전 코드 문자열 / (lat, lng) 쌍 / {label, coordinates} 객체)를 한 번만
판별해 tagged variant로 만들고, 이후 코드는 GeoPoint/CanonicalMarker만 다룬다.

정규화 자체는 예외를 던지지 않고 NormalizeResult를 반환한다.
- 렌더링 경로: 실패한 마커를 건너뛰고 로그만 남긴다 (process_marker_group(strict=False))
- 작성 검증 경로: 실패를 MarkerInputError로 올려 중단한다 (examples.validate_*)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from flymap.core.exceptions import MarkerInputError
from flymap.data.models import CanonicalMarker, GeoPoint, MarkerGroup, StyleMap, WireMarkerGroup
from flymap.data.regions import RegionDirectory
from flymap.ui.components import normalize_style

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegionCode:
    code: str
    label: str | None = None


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float


@dataclass(frozen=True)
class LabeledCoordinate:
    label: str
    lat: float
    lng: float


MarkerSpec = RegionCode | Coordinate | LabeledCoordinate


@dataclass(frozen=True)
class NormalizeResult:
    point: GeoPoint | None = None
    label: str | None = None
    spec: MarkerSpec | None = None
    style: Any = None
    error: MarkerInputError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _fail(raw: Any, reason: str, message: str) -> NormalizeResult:
    return NormalizeResult(error=MarkerInputError(message, spec=raw, reason=reason))


def _pair(value: Any) -> tuple[float, float] | None:
    if isinstance(value, (list, tuple)) and len(value) == 2:
        lat, lng = value
        if _is_number(lat) and _is_number(lng):
            return float(lat), float(lng)
    return None


def parse_marker_spec(raw: Any) -> MarkerSpec | MarkerInputError:
    """원본 입력의 형태만 판별한다 (좌표 범위/리전 존재 여부는 normalize에서 검사)."""

    if isinstance(raw, (RegionCode, Coordinate, LabeledCoordinate)):
        return raw

    if isinstance(raw, str):
        return RegionCode(code=raw)

    if isinstance(raw, (list, tuple)):
        pair = _pair(raw)
        if pair is None:
            return MarkerInputError(
                f"좌표 쌍은 숫자 2개여야 합니다: {raw!r}", spec=raw, reason="invalid_coordinates"
            )
        return Coordinate(lat=pair[0], lng=pair[1])

    if isinstance(raw, Mapping):
        if "coordinates" in raw:
            pair = _pair(raw.get("coordinates"))
            if pair is None:
                return MarkerInputError(
                    f"coordinates가 (lat, lng) 쌍이 아닙니다: {raw.get('coordinates')!r}",
                    spec=raw,
                    reason="invalid_coordinates",
                )
            label = raw.get("label")
            if not isinstance(label, str) or not label.strip():
                return MarkerInputError(
                    f"좌표 객체에 label이 없습니다: {raw!r}", spec=raw, reason="missing_label"
                )
            return LabeledCoordinate(label=label, lat=pair[0], lng=pair[1])

        if "region" in raw and isinstance(raw.get("region"), str):
            label = raw.get("label")
            return RegionCode(code=raw["region"], label=label if isinstance(label, str) else None)

        lat = raw.get("lat", raw.get("latitude"))
        lng = raw.get("lng", raw.get("longitude"))
        if lat is not None or lng is not None:
            if not (_is_number(lat) and _is_number(lng)):
                return MarkerInputError(
                    f"lat/lng는 숫자여야 합니다: {raw!r}", spec=raw, reason="invalid_coordinates"
                )
            return Coordinate(lat=float(lat), lng=float(lng))

        if "label" in raw:
            return MarkerInputError(
                f"label만 있고 coordinates가 없습니다: {raw!r}",
                spec=raw,
                reason="invalid_coordinates",
            )

    return MarkerInputError(
        f"지원하지 않는 마커 형식: {type(raw).__name__} {raw!r}", spec=raw, reason="invalid_format"
    )


def _checked_point(raw: Any, lat: float, lng: float) -> GeoPoint | MarkerInputError:
    try:
        return GeoPoint(lat=lat, lng=lng)
    except ValidationError:
        return MarkerInputError(
            f"좌표 범위 오류 (lat ∈ [-90, 90], lng ∈ [-180, 180]): ({lat}, {lng})",
            spec=raw,
            reason="invalid_coordinates",
        )


class MarkerNormalizer:
    """MarkerSpec -> GeoPoint. 리전 디렉터리를 생성 시점에 주입받는다."""

    def __init__(self, directory: RegionDirectory) -> None:
        self.directory = directory

    def normalize(self, raw: Any) -> NormalizeResult:
        spec = parse_marker_spec(raw)
        if isinstance(spec, MarkerInputError):
            return NormalizeResult(error=spec)

        style = raw.get("style") if isinstance(raw, Mapping) else None

        if isinstance(spec, RegionCode):
            entry = self.directory.lookup(spec.code)
            if entry is None:
                return _fail(raw, "unknown_region", f"알 수 없는 리전 코드: {spec.code!r}")
            return NormalizeResult(
                point=entry.point, label=spec.label or entry.name, spec=spec, style=style
            )

        point = _checked_point(raw, spec.lat, spec.lng)
        if isinstance(point, MarkerInputError):
            return NormalizeResult(error=point)

        if isinstance(spec, LabeledCoordinate):
            return NormalizeResult(point=point, label=spec.label, spec=spec, style=style)
        return NormalizeResult(point=point, label=None, spec=spec, style=style)

    def to_canonical(self, raw: Any, marker_id: str) -> CanonicalMarker | MarkerInputError:
        result = self.normalize(raw)
        if result.error is not None:
            return result.error
        assert result.point is not None

        style_key: str | None = None
        style_override: StyleMap | None = None
        if isinstance(result.style, str):
            style_key = result.style
        elif isinstance(result.style, Mapping):
            try:
                style_override = StyleMap.model_validate(dict(result.style))
            except ValidationError as exc:
                return MarkerInputError(
                    f"마커 style 형식 오류: {exc.errors()[0]['msg']}",
                    spec=raw,
                    reason="invalid_format",
                )

        region = result.spec.code.lower() if isinstance(result.spec, RegionCode) else None
        return CanonicalMarker(
            id=marker_id,
            point=result.point,
            label=result.label,
            region=region,
            style_key=style_key,
            style_override=style_override,
        )


def marker_id_for(group_id: str, index: int) -> str:
    """wire 호환 마커 id: '<group_id>-<index>'"""
    return f"{group_id}-{index}"


def canonicalize_markers(
    group_id: str,
    raw_markers: Sequence[Any],
    normalizer: MarkerNormalizer,
    strict: bool,
    start_index: int = 0,
) -> tuple[list[CanonicalMarker], list[MarkerInputError]]:
    """그룹의 원본 마커 목록을 정규화한다.

    strict=True면 첫 실패에서 멈추고 그 오류만 돌려준다 (원자적 적용용).
    strict=False면 실패한 마커를 건너뛰고 계속한다 (부분 렌더링용).
    id는 원본 목록 위치 기준이므로, 건너뛴 마커가 있어도 다른 마커 id는 바뀌지 않는다.
    """

    markers: list[CanonicalMarker] = []
    errors: list[MarkerInputError] = []
    for offset, raw in enumerate(raw_markers):
        marker = normalizer.to_canonical(raw, marker_id_for(group_id, start_index + offset))
        if isinstance(marker, MarkerInputError):
            errors.append(marker)
            if strict:
                return [], errors
            logger.warning("그룹 %s 마커 #%d 건너뜀: %s", group_id, offset, marker.message)
            continue
        markers.append(marker)
    return markers, errors


def process_marker_group(
    raw_group: WireMarkerGroup | Mapping[str, Any],
    normalizer: MarkerNormalizer,
    strict: bool = False,
) -> tuple[MarkerGroup | None, list[MarkerInputError]]:
    """원본 그룹 하나를 MarkerGroup으로 만든다. strict 모드에서 실패하면 (None, errors)."""

    group = (
        raw_group
        if isinstance(raw_group, WireMarkerGroup)
        else WireMarkerGroup.model_validate(raw_group)
    )
    markers, errors = canonicalize_markers(group.id, group.markers, normalizer, strict=strict)
    if strict and errors:
        return None, errors

    return (
        MarkerGroup(
            id=group.id,
            label=group.label or group.id,
            markers=markers,
            style=normalize_style(group.style),
            visible=group.visible,
            next_index=len(group.markers),
        ),
        errors,
    )
