"""작성(authoring) 예제 검증.

문서/데모에 싣는 마커 그룹 예제를 렌더링 전에 검증한다. 렌더링 경로와 같은
정규화 규칙을 쓰되, 첫 번째 잘못된 마커에서 MarkerInputError로 중단한다.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from flymap.core.config import settings
from flymap.core.exceptions import MarkerInputError
from flymap.data.models import MarkerGroup
from flymap.data.nodes import MarkerNormalizer, process_marker_group
from flymap.data.regions import RegionDirectory
from flymap.ui.components import theme_names

logger = logging.getLogger(__name__)


def validate_marker_groups(
    groups: Iterable[Mapping[str, Any]],
    directory: RegionDirectory | None = None,
) -> list[MarkerGroup]:
    """예제 그룹 목록 검증. 통과하면 정규화된 MarkerGroup 목록을 돌려준다."""
    normalizer = MarkerNormalizer(directory or RegionDirectory())
    validated: list[MarkerGroup] = []
    seen: set[str] = set()

    for position, raw_group in enumerate(groups):
        try:
            group, errors = process_marker_group(raw_group, normalizer, strict=True)
        except ValidationError as exc:
            raise MarkerInputError(
                f"그룹 #{position} 형식 오류: {exc.errors()[0]['msg']}",
                spec=raw_group,
                reason="invalid_format",
            ) from exc

        if group is None:
            error = errors[0]
            raise MarkerInputError(
                f"그룹 #{position}: {error.message}", spec=error.spec, reason=error.reason
            )
        if group.id in seen:
            raise MarkerInputError(
                f"그룹 id 중복: {group.id}", spec=raw_group, reason="invalid_format"
            )
        seen.add(group.id)
        validated.append(group)

    return validated


def validate_example(
    example: Mapping[str, Any],
    directory: RegionDirectory | None = None,
) -> list[MarkerGroup]:
    """예제 하나 ({"marker_groups": [...], "theme": ...}) 검증"""
    if not isinstance(example, Mapping):
        raise MarkerInputError("예제는 객체여야 합니다", spec=example, reason="invalid_format")
    groups = example.get("marker_groups", example.get("markerGroups"))
    if not isinstance(groups, list):
        raise MarkerInputError("marker_groups 목록이 없습니다", spec=example, reason="invalid_format")

    theme = example.get("theme")
    if isinstance(theme, str) and theme not in theme_names(settings.custom_themes):
        raise MarkerInputError(f"알 수 없는 테마: {theme!r}", spec=example, reason="invalid_format")

    return validate_marker_groups(groups, directory)


def validate_example_file(path: str | Path, directory: RegionDirectory | None = None) -> int:
    """JSON 예제 파일({name: example}) 전체를 검증하고 검증된 예제 수를 돌려준다."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise MarkerInputError(f"예제 파일을 읽을 수 없습니다: {path} ({exc})") from exc

    if not isinstance(data, dict):
        raise MarkerInputError(f"예제 파일 최상위는 객체여야 합니다: {path}")

    for name, example in data.items():
        try:
            validate_example(example, directory)
        except MarkerInputError as exc:
            raise MarkerInputError(f"[{name}] {exc.message}", spec=exc.spec, reason=exc.reason) from exc
        logger.debug("예제 검증 통과: %s", name)

    logger.info("예제 %d개 검증 완료: %s", len(data), path)
    return len(data)
