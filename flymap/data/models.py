"""Pydantic 데이터 모델 모듈

좌표/리전/마커/그룹/동기화 상태와 채널 wire payload는 모두 이 모듈의 모델로 검증한다.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from flymap.core.config import settings

AnimationKind = Literal["none", "pulse", "fade"]


class GeoPoint(BaseModel):
    """WGS84 위경도. 검증된 입력으로만 생성되는 불변 값."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90, description="위도")
    lng: float = Field(ge=-180, le=180, description="경도")


class ScreenPoint(BaseModel):
    """뷰포트 안의 2D 픽셀 좌표"""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float


class Viewport(BaseModel):
    """투영 대상 픽셀 bounding box.

    wire에서는 `{minX, minY, maxX, maxY}` 또는 `[minX, minY, maxX, maxY]`로 들어온다.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    min_x: float = Field(default=0, alias="minX")
    min_y: float = Field(default=0, alias="minY")
    max_x: float = Field(default=800, alias="maxX")
    max_y: float = Field(default=391, alias="maxY")

    @model_validator(mode="before")
    @classmethod
    def _from_sequence(cls, data: Any) -> Any:
        if isinstance(data, (list, tuple)):
            if len(data) != 4:
                raise ValueError("viewport 시퀀스는 4개 값이어야 합니다 (minX, minY, maxX, maxY)")
            min_x, min_y, max_x, max_y = data
            return {"minX": min_x, "minY": min_y, "maxX": max_x, "maxY": max_y}
        return data

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def as_view_box(self) -> str:
        return f"{self.min_x:g} {self.min_y:g} {self.width:g} {self.height:g}"


DEFAULT_VIEWPORT = Viewport()


class RegionEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    point: GeoPoint
    name: str


class StyleMap(BaseModel):
    """마커 스타일. 누락된 필드는 기본값으로 채운다."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    colour: str = Field(default="#6b7280", validation_alias="color", description="CSS 색상")
    size: float = Field(default=settings.default_marker_radius, gt=0, description="반지름(px)")
    animation: AnimationKind = "none"
    glow: bool = False

    @model_validator(mode="before")
    @classmethod
    def _accept_both_spellings(cls, data: Any) -> Any:
        # "colour"와 "color" 모두 허용 (colour 우선)
        if isinstance(data, dict) and "colour" in data:
            data = dict(data)
            data["color"] = data.pop("colour")
            return data
        return data

    @field_validator("animation", mode="before")
    @classmethod
    def _animation_none(cls, value: Any) -> Any:
        if value is None or value is False:
            return "none"
        if value is True:
            return "pulse"
        return value


class CanonicalMarker(BaseModel):
    """정규화된 마커. id는 같은 논리 마커에 대해 업데이트 사이에서 유지된다."""

    model_config = ConfigDict(frozen=True)

    id: str
    point: GeoPoint
    label: str | None = None
    region: str | None = None
    style_key: str | None = None
    style_override: StyleMap | None = None


class MarkerGroup(BaseModel):
    """이름/스타일을 공유하며 함께 토글되는 마커 묶음. visible은 표시 토글일 뿐 삭제가 아니다."""

    id: str = Field(min_length=1)
    label: str = ""
    markers: list[CanonicalMarker] = Field(default_factory=list)
    style: StyleMap = Field(default_factory=StyleMap)
    visible: bool = True
    # 다음 마커 id 번호. 중간 삭제 후에도 id가 재사용되지 않는다.
    next_index: int = Field(default=0, exclude=True)

    @model_validator(mode="after")
    def _default_label(self) -> MarkerGroup:
        if not self.label:
            self.label = self.id
        if self.next_index < len(self.markers):
            self.next_index = len(self.markers)
        return self

    def marker_ids(self) -> list[str]:
        return [m.id for m in self.markers]


class MapConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    viewport: Viewport = Field(default=DEFAULT_VIEWPORT)
    update_throttle_ms: int = Field(default=settings.update_throttle_ms, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _accept_wire_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "viewport" not in data and "bbox" in data:
            data["viewport"] = data.pop("bbox")
        if "update_throttle_ms" not in data and "updateThrottleMs" in data:
            data["update_throttle_ms"] = data.pop("updateThrottleMs")
        return data


class ClientMirrorState(BaseModel):
    """서버 권한 상태의 클라이언트 로컬 사본. 수신 이벤트를 도착 순서대로 적용해서만 변경된다."""

    marker_groups: list[MarkerGroup] = Field(default_factory=list)
    theme: dict[str, Any] = Field(default_factory=dict)
    config: MapConfig = Field(default_factory=MapConfig)
    last_update_timestamp: int = 0

    def find_group(self, group_id: str) -> MarkerGroup | None:
        for group in self.marker_groups:
            if group.id == group_id:
                return group
        return None

    @property
    def marker_count(self) -> int:
        return sum(len(g.markers) for g in self.marker_groups)


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    JOINED = "joined"
    ERROR = "error"
    CLOSED = "closed"
    FALLBACK = "fallback"


class FallbackNotice(BaseModel):
    """호스트 뷰에 보내는 '서버 렌더링으로 전환' 알림"""

    reason: str
    timestamp: int


# ---------------------------------------------------------------------------
# Wire payloads (channel -> client)
# ---------------------------------------------------------------------------


class WireMarkerGroup(BaseModel):
    """정규화 전의 그룹. markers 항목은 MarkerSpec 원본 그대로다."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    label: str | None = Field(default=None, validation_alias="group_label")
    markers: list[Any] = Field(default_factory=list)
    style: Any = None
    visible: bool = True

    @model_validator(mode="before")
    @classmethod
    def _accept_aliases(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        if "markers" not in data and "nodes" in data:
            data["markers"] = data.pop("nodes")
        if "label" in data and "group_label" not in data:
            data["group_label"] = data.pop("label")
        return data


class MarkerStatePayload(BaseModel):
    marker_groups: list[WireMarkerGroup]
    theme: dict[str, Any] | None = None
    config: dict[str, Any] | None = None


class MarkerUpdatePayload(BaseModel):
    group_id: str = Field(min_length=1)
    markers: list[Any]


class MarkerAddPayload(BaseModel):
    group_id: str = Field(min_length=1)
    marker: Any

    @field_validator("marker")
    @classmethod
    def _present(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("marker가 비어 있습니다")
        return value


class MarkerRemovePayload(BaseModel):
    group_id: str = Field(min_length=1)
    marker_id: str = Field(min_length=1)


class ThemeChangePayload(BaseModel):
    theme: dict[str, Any]


class GroupTogglePayload(BaseModel):
    model_config = ConfigDict(strict=True)

    group_id: str = Field(min_length=1)
    visible: bool


# ---------------------------------------------------------------------------
# Wire payloads (client -> channel)
# ---------------------------------------------------------------------------


class ClientStateSummary(BaseModel):
    last_update: int
    marker_count: int


class StateSyncPayload(BaseModel):
    client_state: ClientStateSummary
