"""WGS84 -> 뷰포트 픽셀 좌표 변환 (등장방형 선형 투영).

서버 측 SVG 렌더러와 실시간 마커 렌더러가 모두 이 함수 하나를 쓴다.
같은 입력이면 두 경로의 좌표가 부동소수점 오차 범위까지 일치해야 한다.
"""

from __future__ import annotations

from flymap.data.models import DEFAULT_VIEWPORT, GeoPoint, ScreenPoint, Viewport

MIN_LNG = -180.0
MAX_LNG = 180.0
MIN_LAT = -90.0
MAX_LAT = 90.0


def project_lat_lng(lat: float, lng: float, viewport: Viewport = DEFAULT_VIEWPORT) -> ScreenPoint:
    """검증 없이 위경도를 픽셀 좌표로 변환한다.

    범위를 벗어난 값은 뷰포트 밖 좌표가 된다. 범위 검증은 호출자(정규화 단계) 책임.
    """

    x_percent = (lng - MIN_LNG) / (MAX_LNG - MIN_LNG)
    # 픽셀 y축은 아래로 증가하고 위도는 북쪽으로 증가하므로 뒤집는다
    y_percent = 1 - (lat - MIN_LAT) / (MAX_LAT - MIN_LAT)

    x = x_percent * (viewport.max_x - viewport.min_x) + viewport.min_x
    y = y_percent * (viewport.max_y - viewport.min_y) + viewport.min_y
    return ScreenPoint(x=x, y=y)


def project(point: GeoPoint, viewport: Viewport = DEFAULT_VIEWPORT) -> ScreenPoint:
    return project_lat_lng(point.lat, point.lng, viewport)
