from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import streamlit as st

from flymap.data.models import GroupTogglePayload, MarkerGroup


def summarize_groups(groups: Sequence[MarkerGroup]) -> list[dict[str, Any]]:
    """레전드 표시용 그룹 요약 (id, label, style, visible, marker_count)."""
    return [
        {
            "id": g.id,
            "label": g.label,
            "style": g.style,
            "visible": g.visible,
            "marker_count": len(g.markers),
        }
        for g in groups
    ]


def toggle_request(group_id: str, visible: bool) -> GroupTogglePayload:
    return GroupTogglePayload(group_id=group_id, visible=visible)


def changed_toggles(
    groups: Sequence[MarkerGroup], selections: Mapping[str, bool]
) -> list[GroupTogglePayload]:
    """현재 가시성과 다른 선택만 group_toggle 요청으로 만든다."""
    requests = []
    for group in groups:
        wanted = selections.get(group.id, group.visible)
        if wanted != group.visible:
            requests.append(toggle_request(group.id, wanted))
    return requests


def _swatch(colour: str) -> str:
    return (
        f"<span style='display:inline-block;width:10px;height:10px;"
        f"border-radius:50%;background:{colour}'></span>"
    )


def render_legend(groups: Sequence[MarkerGroup], key_prefix: str = "legend") -> list[GroupTogglePayload]:
    if not groups:
        st.info("표시할 마커 그룹이 없습니다.")
        return []

    selections: dict[str, bool] = {}
    for summary in summarize_groups(groups):
        cols = st.columns([1, 8, 2])
        with cols[0]:
            st.markdown(_swatch(summary["style"].colour), unsafe_allow_html=True)
        with cols[1]:
            selections[summary["id"]] = st.checkbox(
                summary["label"],
                value=summary["visible"],
                key=f"{key_prefix}-{summary['id']}",
            )
        with cols[2]:
            st.caption(f"{summary['marker_count']}개")

    return changed_toggles(groups, selections)
