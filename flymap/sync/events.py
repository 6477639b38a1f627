"""동기화 세션 큐에 들어가는 이벤트.

호스트 라이프사이클(mount/teardown)과 전송 계층 콜백(join 결과, 오류, close, 수신 메시지),
재연결 타이머 만료가 모두 같은 큐를 거쳐 도착 순서대로 처리된다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Mount:
    pass


@dataclass(frozen=True)
class Teardown:
    pass


@dataclass(frozen=True)
class JoinSucceeded:
    response: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class JoinFailed:
    reason: str = "join_error"


@dataclass(frozen=True)
class ChannelErrored:
    reason: str = "channel_error"


@dataclass(frozen=True)
class ChannelClosed:
    reason: str = "closed"


@dataclass(frozen=True)
class TransportOpened:
    """소켓이 (재)연결되었다. 채널이 join 상태면 state_sync를 요청한다."""


@dataclass(frozen=True)
class ReconnectDue:
    generation: int


@dataclass(frozen=True)
class ChannelMessage:
    event: str
    payload: Any


SyncEvent = (
    Mount
    | Teardown
    | JoinSucceeded
    | JoinFailed
    | ChannelErrored
    | ChannelClosed
    | TransportOpened
    | ReconnectDue
    | ChannelMessage
)

LEAVE_REASON = "leave"
