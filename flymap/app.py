"""Fly 리전 지도: Streamlit 메인 앱.

마커 그룹을 정규화해 정적 SVG 세계 지도와 Plotly 지도로 보여준다.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import streamlit as st
import streamlit.components.v1 as components
from pydantic import ValidationError

from flymap.core.config import settings
from flymap.core.exceptions import MarkerInputError
from flymap.data.models import MarkerGroup
from flymap.data.nodes import MarkerNormalizer, process_marker_group
from flymap.ui.charts import render_geo_chart, render_group_count_chart
from flymap.ui.legend import render_legend
from flymap.ui.sidebar import render_map_controls
from flymap.ui.world_map import render_world_map
from flymap.utils.cache import get_region_directory
from flymap.utils.export import render_download_buttons

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)

_VISIBILITY_KEY = "_group_visibility"


def _get_visibility_state() -> dict[str, bool]:
    state = st.session_state.get(_VISIBILITY_KEY)
    if isinstance(state, dict):
        return state
    st.session_state[_VISIBILITY_KEY] = {}
    return st.session_state[_VISIBILITY_KEY]


def _normalize_groups(
    raw_groups: Sequence[dict[str, Any]], normalizer: MarkerNormalizer
) -> tuple[list[MarkerGroup], list[MarkerInputError]]:
    """렌더링 경로: 잘못된 마커/그룹은 건너뛰고 오류만 모은다."""
    groups: list[MarkerGroup] = []
    errors: list[MarkerInputError] = []
    for raw in raw_groups:
        try:
            group, group_errors = process_marker_group(raw, normalizer, strict=False)
        except ValidationError as exc:
            logger.warning("그룹 형식 오류, 건너뜀: %s", exc.errors()[0]["msg"])
            errors.append(MarkerInputError(f"그룹 형식 오류: {raw.get('id', '?')}", spec=raw))
            continue
        assert group is not None
        errors.extend(group_errors)
        groups.append(group)
    return groups, errors


def _apply_visibility(groups: list[MarkerGroup], visibility: dict[str, bool]) -> list[MarkerGroup]:
    return [
        g.model_copy(update={"visible": visibility[g.id]}) if g.id in visibility else g
        for g in groups
    ]


def main() -> None:
    st.set_page_config(
        page_title="🗺️ Fly 리전 지도",
        page_icon="🗺️",
        layout="wide",
        initial_sidebar_state="expanded",
    )

    st.title("🗺️ Fly 리전 지도")
    st.caption("리전 코드·좌표로 마커 그룹을 세계 지도에 표시합니다.")

    controls = render_map_controls()
    directory = get_region_directory()
    if settings.custom_regions_source:
        custom_count = sum(1 for code in directory.codes() if directory.is_custom(code))
        st.sidebar.caption(f"커스텀 리전 {custom_count}개 로드됨")

    if not controls.groups:
        st.info("👈 사이드바에서 마커 데이터를 선택하세요.")
        return

    groups, errors = _normalize_groups(controls.groups, MarkerNormalizer(directory))
    if errors:
        with st.expander(f"⚠️ 표시하지 못한 마커 {len(errors)}개"):
            for err in errors:
                st.write(f"- `{err.reason}` {err.message}")

    visibility = _get_visibility_state()
    groups = _apply_visibility(groups, visibility)

    map_col, legend_col = st.columns([4, 1])
    with legend_col:
        st.subheader("범례")
        requests = render_legend(groups)
        if requests:
            for request in requests:
                visibility[request.group_id] = request.visible
            st.rerun()

    with map_col:
        tab1, tab2, tab3 = st.tabs(["🗺️ SVG 지도", "🌐 Plotly 지도", "📊 그룹별 마커 수"])
        with tab1:
            svg = render_world_map(groups, theme=controls.theme, show_regions=controls.show_regions, directory=directory)
            components.html(svg, height=360)
        with tab2:
            render_geo_chart(groups, theme=controls.theme)
        with tab3:
            render_group_count_chart(groups)

    st.divider()
    st.subheader(f"📍 마커 ({sum(len(g.markers) for g in groups)}개) · {controls.source_label}")
    render_download_buttons(groups, name=controls.source_label)


if __name__ == "__main__":
    main()
