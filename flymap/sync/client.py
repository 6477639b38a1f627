"""실시간 마커 동기화 클라이언트 (상태 머신).

지도 인스턴스 하나당 하나. 서버 권한 상태의 로컬 사본(ClientMirrorState)을 유지하며,
수신 이벤트를 도착 순서대로 하나씩 적용하고 렌더러로 SVG를 맞춘다.

상태 전이:
  idle --mount--> connecting --join ok--> joined
  connecting/joined --join 실패/전송 오류--> error
  joined --close--> closed  (reason == "leave"면 재연결하지 않음)
  error/closed --backoff 타이머--> connecting
  연속 실패가 max_attempts에 도달 --> fallback (종료 상태, 호스트에 한 번 알림)

모든 처리는 dispatch() 안에서 동기로 끝난다. 잠금은 없다 (동시 writer가 없다).
중단 지점은 전송 계층(join 대기, 재연결 타이머, 다음 메시지 대기)뿐이다.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import BaseModel, ValidationError

from flymap.core.config import Settings, settings
from flymap.core.exceptions import ProtocolError
from flymap.data.models import (
    ClientMirrorState,
    ConnectionState,
    FallbackNotice,
    GroupTogglePayload,
    MapConfig,
    MarkerAddPayload,
    MarkerGroup,
    MarkerRemovePayload,
    MarkerStatePayload,
    MarkerUpdatePayload,
    StateSyncPayload,
    ThemeChangePayload,
)
from flymap.data.nodes import MarkerNormalizer, canonicalize_markers, process_marker_group
from flymap.data.regions import RegionDirectory
from flymap.sync.events import (
    LEAVE_REASON,
    ChannelClosed,
    ChannelErrored,
    ChannelMessage,
    JoinFailed,
    JoinSucceeded,
    Mount,
    ReconnectDue,
    SyncEvent,
    Teardown,
    TransportOpened,
)
from flymap.ui.markers import MarkerConfig, MarkerHandle, MarkerRenderer
from flymap.ui.svg_document import SvgMapDocument

logger = logging.getLogger(__name__)


class ChannelTransport(Protocol):
    """채널 전송 계층. join 결과와 수신 메시지는 세션 큐로 이벤트를 post해 돌려준다."""

    def is_available(self) -> bool: ...

    def join(self, topic: str) -> None: ...

    def leave(self) -> None: ...

    def push(self, event: str, payload: dict[str, Any]) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


@dataclass(frozen=True)
class ReconnectPolicy:
    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """attempt번째 재연결 대기 시간(초): min(base * 2^(attempt-1), max)"""
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)

    @classmethod
    def from_settings(cls, s: Settings = settings) -> ReconnectPolicy:
        return cls(
            max_attempts=s.max_reconnect_attempts,
            base_delay=s.reconnect_base_delay_seconds,
            max_delay=s.reconnect_max_delay_seconds,
        )


@dataclass(frozen=True)
class SessionConfig:
    """호스트 뷰가 넘겨주는 읽기 전용 설정"""

    channel_topic: str
    map_element_id: str = "fly-region-map"
    initial_state: Mapping[str, Any] = field(default_factory=dict)
    progressive_enhancement: bool = False


def _now_ms() -> int:
    return int(time.time() * 1000)


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc}: {err['msg']}" if loc else err["msg"]


class SyncClient:
    def __init__(
        self,
        config: SessionConfig,
        transport: ChannelTransport,
        scheduler: Scheduler,
        document: SvgMapDocument | None,
        directory: RegionDirectory | None = None,
        on_fallback: Callable[[FallbackNotice], None] | None = None,
        post: Callable[[SyncEvent], None] | None = None,
        policy: ReconnectPolicy | None = None,
        marker_config: MarkerConfig | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.config = config
        self.transport = transport
        self.scheduler = scheduler
        self.document = document
        self.normalizer = MarkerNormalizer(directory or RegionDirectory())
        self.renderer = (
            MarkerRenderer(document, marker_config, self.normalizer) if document is not None else None
        )
        self.policy = policy or ReconnectPolicy.from_settings()
        self._on_fallback = on_fallback
        self._post = post or self.dispatch
        self._clock = clock

        self.state = ConnectionState.IDLE
        self.mirror: ClientMirrorState | None = None
        self.active_markers: dict[str, MarkerHandle] = {}
        self.using_fallback = False
        self.reconnect_attempts = 0

        self._timer: TimerHandle | None = None
        self._timer_generation = 0
        self._torn_down = False
        self._joined_once = False
        self._resync_pending = False
        self._initial_render_pending = False

        self._handlers: dict[type, Callable[[Any], None]] = {
            Mount: self._on_mount,
            Teardown: self._on_teardown,
            JoinSucceeded: self._on_join_succeeded,
            JoinFailed: self._on_join_failed,
            ChannelErrored: self._on_channel_errored,
            ChannelClosed: self._on_channel_closed,
            TransportOpened: self._on_transport_opened,
            ReconnectDue: self._on_reconnect_due,
            ChannelMessage: self._on_message,
        }
        self._message_handlers: dict[str, Callable[[Any], None]] = {
            "marker_state": self.handle_marker_state,
            "marker_update": self.handle_marker_update,
            "marker_add": self.handle_marker_add,
            "marker_remove": self.handle_marker_remove,
            "theme_change": self.handle_theme_change,
            "group_toggle": self.handle_group_toggle,
        }

    # ------------------------------------------------------------------
    # 진입점
    # ------------------------------------------------------------------

    def dispatch(self, event: SyncEvent) -> None:
        """이벤트 하나를 동기 처리한다. 큐에서 꺼낸 순서 그대로 호출해야 한다."""
        if self._torn_down and not isinstance(event, Teardown):
            logger.debug("teardown 이후 이벤트 무시: %s", type(event).__name__)
            return
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.warning("알 수 없는 세션 이벤트: %r", event)
            return
        handler(event)

    @property
    def is_joined(self) -> bool:
        return self.state is ConnectionState.JOINED

    # ------------------------------------------------------------------
    # 라이프사이클
    # ------------------------------------------------------------------

    def is_real_time_supported(self) -> bool:
        if not self.transport.is_available():
            logger.warning("실시간 모드 불가: 채널 전송 계층 없음")
            return False
        if self.document is None or self.renderer is None:
            logger.warning("실시간 모드 불가: 마커 조작 대상 문서 없음")
            return False
        if self.document.get_element_by_id(self.config.map_element_id) is None:
            logger.warning("실시간 모드 불가: 지도 요소 %s 없음", self.config.map_element_id)
            return False
        if not self.config.channel_topic:
            logger.warning("실시간 모드 불가: 채널 토픽 미지정")
            return False
        return True

    def _on_mount(self, _: Mount) -> None:
        if self.state is not ConnectionState.IDLE:
            logger.debug("이미 mount됨 (state=%s)", self.state.value)
            return

        logger.info("실시간 지도 mount: topic=%s", self.config.channel_topic)
        if not self.is_real_time_supported():
            self.fallback_to_server_rendering("unsupported_environment")
            return

        self.mirror = self._initial_mirror(self.config.initial_state)
        if self.config.progressive_enhancement:
            # 서버 렌더링 결과를 join 성공 전까지 유지
            self._initial_render_pending = True
        else:
            self.render_all_markers()

        self._connect()

    def _initial_mirror(self, initial: Mapping[str, Any]) -> ClientMirrorState:
        raw = dict(initial or {})
        payload = {
            "marker_groups": raw.get("markerGroups", raw.get("marker_groups", [])),
            "theme": raw.get("theme") or {},
            "config": raw.get("config") or {},
        }
        try:
            groups, theme, config = self._build_state(payload, None, strict=False)
        except ProtocolError as exc:
            logger.error("초기 상태 파싱 실패, 빈 상태로 시작: %s", exc.message)
            return ClientMirrorState(last_update_timestamp=self._clock())
        return ClientMirrorState(
            marker_groups=groups, theme=theme, config=config, last_update_timestamp=self._clock()
        )

    def _on_teardown(self, _: Teardown) -> None:
        if self._torn_down:
            return
        logger.info("실시간 지도 teardown: topic=%s", self.config.channel_topic)
        self._cancel_timer()
        if self.state is not ConnectionState.FALLBACK:
            self.transport.leave()
            self.state = ConnectionState.CLOSED
        self.clear_client_markers()
        self.mirror = None
        self._torn_down = True

    # ------------------------------------------------------------------
    # 연결 / 재연결
    # ------------------------------------------------------------------

    def _connect(self) -> None:
        self.state = ConnectionState.CONNECTING
        self.transport.join(self.config.channel_topic)

    def _on_join_succeeded(self, event: JoinSucceeded) -> None:
        if self.state is ConnectionState.FALLBACK:
            return
        logger.info("채널 join 성공: %s", self.config.channel_topic)
        self._cancel_timer()
        self.state = ConnectionState.JOINED
        self.reconnect_attempts = 0

        if self._initial_render_pending:
            self._initial_render_pending = False
            self.render_all_markers()

        if self._joined_once or self._resync_pending:
            self._resync_pending = False
            self.request_state_sync()
        self._joined_once = True

    def _on_join_failed(self, event: JoinFailed) -> None:
        logger.error("채널 join 실패: %s", event.reason)
        self._handle_connection_failure(ConnectionState.ERROR, event.reason)

    def _on_channel_errored(self, event: ChannelErrored) -> None:
        logger.error("채널 오류: %s", event.reason)
        self._handle_connection_failure(ConnectionState.ERROR, event.reason)

    def _on_channel_closed(self, event: ChannelClosed) -> None:
        if event.reason == LEAVE_REASON:
            logger.info("채널 정상 종료(leave), 재연결하지 않음")
            self._cancel_timer()
            if self.state is not ConnectionState.FALLBACK:
                self.state = ConnectionState.CLOSED
            return
        logger.warning("채널 닫힘: %s", event.reason)
        self._handle_connection_failure(ConnectionState.CLOSED, event.reason)

    def _handle_connection_failure(self, new_state: ConnectionState, reason: str) -> None:
        if self.state is ConnectionState.FALLBACK:
            return
        if self._timer is not None:
            # 같은 장애에 대한 후속 콜백(error 다음 close 등)은 이미 예약된 재연결로 처리
            self.state = new_state
            logger.debug("재연결이 이미 예약됨, 추가 실패 무시: %s", reason)
            return

        self.state = new_state
        self.reconnect_attempts += 1
        if self.reconnect_attempts >= self.policy.max_attempts:
            logger.error(
                "연속 연결 실패 %d회, 서버 렌더링으로 전환", self.reconnect_attempts
            )
            self.fallback_to_server_rendering("channel_error")
            return
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        delay = self.policy.delay_for(self.reconnect_attempts)
        self._timer_generation += 1
        generation = self._timer_generation
        logger.info(
            "재연결 시도 %d/%d, %.1f초 후",
            self.reconnect_attempts,
            self.policy.max_attempts,
            delay,
        )
        self._timer = self.scheduler.call_later(
            delay, lambda: self._post(ReconnectDue(generation=generation))
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        # 이미 큐에 들어간 만료 이벤트도 무효화
        self._timer_generation += 1

    def _on_reconnect_due(self, event: ReconnectDue) -> None:
        if event.generation != self._timer_generation:
            logger.debug("만료된 재연결 타이머 무시 (gen=%d)", event.generation)
            return
        self._timer = None
        if self.state in (ConnectionState.JOINED, ConnectionState.FALLBACK):
            return
        logger.info("재연결: %s", self.config.channel_topic)
        self._connect()

    def _on_transport_opened(self, _: TransportOpened) -> None:
        if self.state is ConnectionState.JOINED:
            self.request_state_sync()
        elif self._joined_once:
            self._resync_pending = True

    def request_state_sync(self) -> None:
        """재연결 후 서버가 전체 상태 재전송 여부를 판단하도록 요약을 보낸다."""
        if not self.is_joined or self.mirror is None:
            return
        payload = StateSyncPayload.model_validate(
            {
                "client_state": {
                    "last_update": self.mirror.last_update_timestamp,
                    "marker_count": len(self.active_markers),
                }
            }
        )
        logger.info(
            "state_sync 요청: last_update=%d marker_count=%d",
            payload.client_state.last_update,
            payload.client_state.marker_count,
        )
        self.transport.push("state_sync", payload.model_dump())

    def fallback_to_server_rendering(self, reason: str) -> None:
        """종료 상태로 전환. 클라이언트 마커를 지우고 호스트에 한 번만 알린다."""
        if self.state is ConnectionState.FALLBACK:
            return
        was_connected = self.state is not ConnectionState.IDLE
        self._cancel_timer()
        self.state = ConnectionState.FALLBACK
        if was_connected:
            self.transport.leave()

        self.clear_client_markers()
        self.using_fallback = True
        self.mirror = None
        if self.document is not None:
            self.document.root.set("data-fallback-mode", "true")

        notice = FallbackNotice(reason=reason, timestamp=self._clock())
        logger.info("서버 렌더링 fallback으로 전환: reason=%s", reason)
        if self._on_fallback is not None:
            self._on_fallback(notice)

    # ------------------------------------------------------------------
    # 수신 메시지
    # ------------------------------------------------------------------

    def _on_message(self, message: ChannelMessage) -> None:
        if not self.is_joined:
            logger.warning("join 전 메시지 무시: %s", message.event)
            return
        handler = self._message_handlers.get(message.event)
        if handler is None:
            logger.warning("처리하지 않는 채널 이벤트: %s", message.event)
            return
        logger.debug("채널 이벤트 %s: %r", message.event, message.payload)
        try:
            handler(message.payload)
        except ProtocolError as exc:
            logger.warning("이벤트 %s 버림: %s", exc.event or message.event, exc.message)

    def _parse(self, model: type[BaseModel], payload: Any, event: str) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise ProtocolError(f"payload 검증 실패 ({_first_error(exc)})", event=event) from exc

    def _touch(self) -> None:
        assert self.mirror is not None
        self.mirror.last_update_timestamp = self._clock()

    def _build_state(
        self, payload: Any, current: ClientMirrorState | None, strict: bool = True
    ) -> tuple[list[MarkerGroup], dict[str, Any], MapConfig]:
        """전체 상태 payload를 검증·정규화한다.

        strict=True(수신 marker_state)면 하나라도 실패할 때 ProtocolError.
        strict=False(초기 상태)면 잘못된 마커와 중복 그룹만 건너뛴다.
        """
        state = self._parse(MarkerStatePayload, payload, "marker_state")

        seen: set[str] = set()
        groups: list[MarkerGroup] = []
        for wire_group in state.marker_groups:
            if wire_group.id in seen:
                if not strict:
                    logger.warning("초기 상태: 그룹 id 중복, 뒤의 그룹 무시: %s", wire_group.id)
                    continue
                raise ProtocolError(f"그룹 id 중복: {wire_group.id}", event="marker_state")
            seen.add(wire_group.id)
            group, errors = process_marker_group(wire_group, self.normalizer, strict=strict)
            if group is None:
                raise ProtocolError(
                    f"그룹 {wire_group.id} 마커 오류: {errors[0].message}", event="marker_state"
                )
            groups.append(group)

        theme = state.theme if state.theme is not None else (current.theme if current else {})
        if state.config is not None:
            config = self._parse(MapConfig, state.config, "marker_state")
        else:
            config = current.config if current else MapConfig()
        return groups, dict(theme), config

    def handle_marker_state(self, payload: Any) -> None:
        """전체 교체: groups/theme/config를 통째로 덮어쓰고 모든 마커를 다시 그린다."""
        assert self.mirror is not None
        groups, theme, config = self._build_state(payload, self.mirror)

        old_group_ids = [g.id for g in self.mirror.marker_groups]
        self.mirror = ClientMirrorState(
            marker_groups=groups, theme=theme, config=config, last_update_timestamp=self._clock()
        )
        if self.renderer is not None:
            for group_id in old_group_ids:
                self.renderer.toggle_group_visibility(group_id, True)
            self.renderer.apply_theme(theme)
        self.render_all_markers()

    def handle_marker_update(self, payload: Any) -> None:
        """그룹 하나의 마커 목록 교체. 해당 그룹 마커만 지우고 다시 만든다."""
        assert self.mirror is not None
        update = self._parse(MarkerUpdatePayload, payload, "marker_update")

        index = next(
            (i for i, g in enumerate(self.mirror.marker_groups) if g.id == update.group_id), None
        )
        if index is None:
            logger.warning("marker_update: 알 수 없는 그룹 %s", update.group_id)
            return

        markers, errors = canonicalize_markers(
            update.group_id, update.markers, self.normalizer, strict=True
        )
        if errors:
            raise ProtocolError(f"마커 오류: {errors[0].message}", event="marker_update")

        old = self.mirror.marker_groups[index]
        new_group = old.model_copy(update={"markers": markers, "next_index": len(markers)})
        self.mirror.marker_groups[index] = new_group
        self._touch()
        self._render_group(old, new_group)

    def handle_marker_add(self, payload: Any) -> None:
        """그룹 끝에 마커 하나 추가. id는 '<group_id>-<index>'."""
        assert self.mirror is not None
        add = self._parse(MarkerAddPayload, payload, "marker_add")

        group = self.mirror.find_group(add.group_id)
        if group is None:
            logger.warning("marker_add: 알 수 없는 그룹 %s", add.group_id)
            return

        markers, errors = canonicalize_markers(
            group.id, [add.marker], self.normalizer, strict=True, start_index=group.next_index
        )
        if errors:
            raise ProtocolError(f"마커 오류: {errors[0].message}", event="marker_add")

        marker = markers[0]
        group.markers.append(marker)
        group.next_index += 1
        self._touch()

        if self.renderer is not None:
            handle = self.renderer.create_group_marker(
                group, marker, self.mirror.config.viewport
            )
            self.active_markers[marker.id] = handle

    def handle_marker_remove(self, payload: Any) -> None:
        """id로 마커 삭제 (SVG와 사본 모두). 모르는 id는 no-op."""
        assert self.mirror is not None
        remove = self._parse(MarkerRemovePayload, payload, "marker_remove")

        group = self.mirror.find_group(remove.group_id)
        if group is None:
            logger.warning("marker_remove: 알 수 없는 그룹 %s", remove.group_id)
            return
        if remove.marker_id not in group.marker_ids():
            logger.warning("marker_remove: 그룹 %s에 마커 %s 없음", group.id, remove.marker_id)
            return

        group.markers = [m for m in group.markers if m.id != remove.marker_id]
        self._touch()
        if self.renderer is not None:
            self.renderer.remove_marker(remove.marker_id)
        self.active_markers.pop(remove.marker_id, None)

    def handle_theme_change(self, payload: Any) -> None:
        """테마 얕은 병합 후 CSS custom property로만 반영한다."""
        assert self.mirror is not None
        change = self._parse(ThemeChangePayload, payload, "theme_change")
        self.mirror.theme = {**self.mirror.theme, **change.theme}
        self._touch()
        if self.renderer is not None:
            self.renderer.apply_theme(change.theme)

    def handle_group_toggle(self, payload: Any) -> None:
        assert self.mirror is not None
        toggle = self._parse(GroupTogglePayload, payload, "group_toggle")
        group = self.mirror.find_group(toggle.group_id)
        if group is None:
            logger.warning("group_toggle: 알 수 없는 그룹 %s", toggle.group_id)
            return
        group.visible = toggle.visible
        self._touch()
        if self.renderer is not None:
            self.renderer.toggle_group_visibility(group.id, toggle.visible)

    # ------------------------------------------------------------------
    # 렌더링
    # ------------------------------------------------------------------

    def clear_client_markers(self) -> None:
        if self.renderer is not None:
            for marker_id in list(self.active_markers):
                self.renderer.remove_marker(marker_id)
        self.active_markers.clear()

    def render_all_markers(self) -> None:
        if self.renderer is None or self.mirror is None:
            return
        self.clear_client_markers()
        handles = self.renderer.create_markers_from_groups(
            self.mirror.marker_groups, self.mirror.config.viewport
        )
        for handle in handles:
            self.active_markers[handle.get("id", "")] = handle
        logger.info("마커 %d개 렌더링", len(handles))

    def _render_group(self, old: MarkerGroup, new: MarkerGroup) -> None:
        if self.renderer is None or self.mirror is None:
            return
        for marker_id in old.marker_ids():
            self.renderer.remove_marker(marker_id)
            self.active_markers.pop(marker_id, None)
        handles = self.renderer.create_markers_from_groups([new], self.mirror.config.viewport)
        for handle in handles:
            self.active_markers[handle.get("id", "")] = handle
