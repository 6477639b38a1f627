"""사이드바: 테마/리전 표시/마커 데이터 소스 선택."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import streamlit as st

from flymap.core.config import settings
from flymap.data.adapters import from_fly_dns_txt, from_machine_tuples
from flymap.ui.components import preset_names, theme_names

DEMO_GROUPS: list[dict[str, Any]] = [
    {"id": "production", "label": "Production", "nodes": ["sjc", "fra", "lhr"], "style": "operational"},
    {"id": "staging", "label": "Staging", "nodes": ["ord", "ams"], "style": "warning"},
    {
        "id": "incidents",
        "label": "Incidents",
        "nodes": [{"label": "Tokyo edge", "coordinates": [35.6762, 139.6503]}],
        "style": {"colour": "#ef4444", "size": 8, "animation": "pulse", "glow": True},
    },
]


@dataclass
class MapControls:
    theme: str
    show_regions: bool
    groups: list[dict[str, Any]] = field(default_factory=list)
    source_label: str = ""


def _groups_from_upload(content: bytes) -> list[dict[str, Any]] | None:
    try:
        data = json.loads(content.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    if isinstance(data, dict):
        data = data.get("marker_groups", data.get("markerGroups"))
    if not isinstance(data, list):
        return None
    return [g for g in data if isinstance(g, dict)]


def render_map_controls() -> MapControls:
    """사이드바에 지도 옵션을 렌더링하고 선택 결과를 반환."""
    st.sidebar.header("🗺️ 지도 옵션")

    names = theme_names(settings.custom_themes)
    default_index = names.index(settings.default_theme) if settings.default_theme in names else 0
    theme = st.sidebar.selectbox("테마", options=names, index=default_index)
    show_regions = st.sidebar.checkbox("전체 리전 표시", value=settings.show_regions_default)

    st.sidebar.divider()
    st.sidebar.subheader("📍 마커 데이터")
    source = st.sidebar.radio(
        "데이터 소스",
        options=["데모", "Fly DNS TXT", "JSON 업로드"],
        index=0,
        horizontal=True,
    )

    if source == "Fly DNS TXT":
        txt = st.sidebar.text_area(
            "TXT 레코드",
            value="",
            placeholder="683d314fdd4d68 yyz,568323e9b54dd8 lhr",
            help="`dig txt vms.<app>.internal` 결과를 붙여넣으세요.",
        )
        label = st.sidebar.text_input("그룹 이름", value="Running Machines")
        style_key = st.sidebar.selectbox("스타일", options=preset_names(), index=preset_names().index("primary"))
        machines = from_fly_dns_txt(txt)
        if txt.strip() and not machines:
            st.sidebar.warning("TXT 레코드에서 머신을 찾을 수 없습니다.")
        return MapControls(
            theme=theme,
            show_regions=show_regions,
            groups=from_machine_tuples(machines, label, style_key),
            source_label=label,
        )

    if source == "JSON 업로드":
        uploaded_file = st.sidebar.file_uploader(
            "마커 그룹 JSON",
            type=["json"],
            help='[{"id": "prod", "nodes": ["sjc", [51.5, -0.1]]}] 형식',
        )
        if uploaded_file is None:
            return MapControls(theme=theme, show_regions=show_regions)
        groups = _groups_from_upload(uploaded_file.read())
        if groups is None:
            st.sidebar.error("JSON에서 마커 그룹 목록을 찾을 수 없습니다.")
            return MapControls(theme=theme, show_regions=show_regions)
        return MapControls(
            theme=theme, show_regions=show_regions, groups=groups, source_label=uploaded_file.name
        )

    return MapControls(theme=theme, show_regions=show_regions, groups=DEMO_GROUPS, source_label="데모")
