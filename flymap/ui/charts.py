"""Plotly 기반 시각화 차트."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import streamlit as st

from flymap.data.models import MarkerGroup
from flymap.ui.components import map_theme, normalize_style


def build_geo_figure(
    groups: Sequence[MarkerGroup],
    theme: str | Mapping[str, str] | None = None,
    height: int = 480,
) -> go.Figure:
    """그룹별 Scattergeo trace (equirectangular). 숨김 그룹은 legendonly로 둔다."""
    colours = map_theme(theme)
    fig = go.Figure()

    for group in groups:
        lats = [m.point.lat for m in group.markers]
        lngs = [m.point.lng for m in group.markers]
        texts = [m.label or m.region or m.id for m in group.markers]
        sizes = [
            (m.style_override or (normalize_style(m.style_key) if m.style_key else group.style)).size
            for m in group.markers
        ]
        fig.add_trace(
            go.Scattergeo(
                lat=lats,
                lon=lngs,
                text=texts,
                name=f"{group.label} ({len(group.markers)})",
                mode="markers",
                marker=dict(color=group.style.colour, size=[s * 1.5 for s in sizes]),
                hovertemplate="%{text}<br>%{lat:.2f}, %{lon:.2f}<extra></extra>",
                visible=True if group.visible else "legendonly",
            )
        )

    land = colours.get("land", "#888888")
    fig.update_geos(
        projection_type="equirectangular",
        showland=True,
        landcolor=land if land != "transparent" else "#ffffff",
        showocean=True,
        oceancolor=colours.get("ocean", "#aaaaaa") if colours.get("ocean") != "transparent" else "#ffffff",
        showcountries=True,
        countrycolor=colours.get("border", "#0f172a"),
        lataxis_range=[-60, 85],
    )
    fig.update_layout(
        height=height,
        margin=dict(l=0, r=0, t=10, b=0),
        legend=dict(orientation="h", yanchor="bottom", y=-0.1),
    )
    return fig


def render_geo_chart(
    groups: Sequence[MarkerGroup], theme: str | Mapping[str, str] | None = None
) -> None:
    if not groups:
        st.info("표시할 마커 그룹이 없습니다.")
        return
    st.plotly_chart(build_geo_figure(groups, theme), use_container_width=True)


def render_group_count_chart(groups: Sequence[MarkerGroup]) -> None:
    """그룹별 마커 수 바 차트."""
    if not groups:
        return

    df = pd.DataFrame(
        [{"그룹": g.label, "마커 수": len(g.markers), "색상": g.style.colour} for g in groups]
    )
    fig = px.bar(
        df,
        x="마커 수",
        y="그룹",
        orientation="h",
        color="그룹",
        color_discrete_map={row["그룹"]: row["색상"] for row in df.to_dict("records")},
        height=max(240, len(groups) * 40),
    )
    fig.update_layout(showlegend=False, margin=dict(l=10, r=10, t=20, b=30))
    st.plotly_chart(fig, use_container_width=True)
