"""Fly.io 배포 정보 -> 마커 그룹 변환 유틸리티."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import Any

from flymap.ui.components import normalize_style

logger = logging.getLogger(__name__)

_INVALID_REGIONS = {"", "unknown"}


def _parse_machine_entry(entry: str) -> tuple[str, str] | None:
    parts = entry.strip().split(" ", 1)
    if len(parts) != 2:
        return None
    machine_id, region = parts[0].strip(), parts[1].strip()
    if not machine_id or not region:
        return None
    return machine_id, region


def from_fly_dns_txt(txt_record: Any) -> list[tuple[str, str]]:
    """Fly.io 내부 DNS TXT 레코드 파싱.

    형식: "machineId region,machineId region"

    >>> from_fly_dns_txt("683d314fdd4d68 yyz,568323e9b54dd8 lhr")
    [('683d314fdd4d68', 'yyz'), ('568323e9b54dd8', 'lhr')]
    """
    if not isinstance(txt_record, str):
        return []
    record = txt_record.strip()
    if not record:
        return []

    machines: list[tuple[str, str]] = []
    for entry in record.split(","):
        parsed = _parse_machine_entry(entry)
        if parsed is None:
            logger.debug("TXT 항목 무시: %r", entry)
            continue
        machines.append(parsed)
    return machines


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-") or "machines"


def from_machine_tuples(
    machines: Iterable[tuple[str, str | None]] | None,
    label: str,
    style_key: str = "primary",
) -> list[dict[str, Any]]:
    """(machine_id, region) 목록을 리전별 마커 그룹으로 묶는다.

    그룹 label에는 머신 수가 붙는다: "Running Machines (2)".
    빈 리전, None, "unknown"은 제외한다.
    """
    if machines is None:
        return []

    by_region: dict[str, int] = {}
    for _machine_id, region in machines:
        if region is None or region in _INVALID_REGIONS:
            continue
        by_region[region] = by_region.get(region, 0) + 1

    style = normalize_style(style_key)
    prefix = _slug(label)
    return [
        {
            "id": f"{prefix}-{region}",
            "label": f"{label} ({count})",
            "nodes": [region],
            "style": style,
            "machine_count": count,
        }
        for region, count in sorted(by_region.items())
    ]
