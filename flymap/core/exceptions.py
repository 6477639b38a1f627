"""커스텀 예외 클래스 모듈

지도 코어에서 발생하는 모든 예외의 계층 구조를 정의한다.
어떤 예외도 호스트 프로세스를 종료시키지 않는다. 렌더링 경로는 마커를 건너뛰고,
동기화 경로는 이벤트를 버리거나 재연결/폴백으로 복구한다.
"""

from __future__ import annotations

from typing import Any


class FlyMapError(Exception):
    """지도 코어 기본 예외

    모든 커스텀 예외의 부모 클래스.
    """

    def __init__(self, message: str = "알 수 없는 지도 오류가 발생했습니다.") -> None:
        self.message = message
        super().__init__(self.message)


class MarkerInputError(FlyMapError):
    """마커 입력(MarkerSpec) 오류

    알 수 없는 리전 코드, 범위를 벗어난 좌표, 지원하지 않는 형태 등.
    렌더링 경로에서는 해당 마커만 건너뛰고, 작성(authoring) 검증 경로에서는 중단한다.
    """

    def __init__(
        self,
        message: str = "마커 입력이 올바르지 않습니다.",
        spec: Any = None,
        reason: str = "invalid_format",
    ) -> None:
        self.spec = spec
        self.reason = reason
        super().__init__(message)


class ProtocolError(FlyMapError):
    """채널에서 받은 이벤트 payload 구조 오류. 이벤트를 버리고 로그만 남긴다."""

    def __init__(
        self,
        message: str = "잘못된 이벤트 payload입니다.",
        event: str | None = None,
    ) -> None:
        self.event = event
        super().__init__(message)


class ChannelConnectionError(FlyMapError):
    """채널 join 실패, 전송 계층 오류, 예기치 않은 close."""

    def __init__(
        self,
        message: str = "채널 연결 중 오류가 발생했습니다.",
        reason: str | None = None,
    ) -> None:
        self.reason = reason
        super().__init__(message)


class RegionDataError(FlyMapError):
    """커스텀 리전 테이블 로드/파싱 에러

    파일 없음, JSON/TOML 파싱 실패, HTTP 조회 실패 등.
    """

    def __init__(
        self,
        message: str = "리전 데이터 처리 중 오류가 발생했습니다.",
    ) -> None:
        super().__init__(message)
