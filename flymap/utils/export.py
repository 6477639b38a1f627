"""CSV/Excel 다운로드 유틸리티."""

from __future__ import annotations

import io
from collections.abc import Sequence
from datetime import datetime

import pandas as pd
import streamlit as st

from flymap.data.models import MarkerGroup


def _groups_to_export_df(groups: Sequence[MarkerGroup]) -> pd.DataFrame:
    """마커 그룹을 마커 한 줄씩의 DataFrame으로 변환."""
    rows = []
    for group in groups:
        for marker in group.markers:
            rows.append(
                {
                    "그룹ID": group.id,
                    "그룹": group.label,
                    "마커ID": marker.id,
                    "라벨": marker.label or "",
                    "리전": marker.region or "",
                    "위도": marker.point.lat,
                    "경도": marker.point.lng,
                    "색상": (marker.style_override or group.style).colour,
                    "표시": "O" if group.visible else "X",
                }
            )
    return pd.DataFrame(
        rows, columns=["그룹ID", "그룹", "마커ID", "라벨", "리전", "위도", "경도", "색상", "표시"]
    )


def to_excel_bytes(df: pd.DataFrame, sheet_name: str = "마커") -> bytes:
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name)
    return buffer.getvalue()


def render_download_buttons(groups: Sequence[MarkerGroup], name: str = "") -> None:
    """CSV/Excel 다운로드 버튼을 렌더링."""
    if not groups:
        return

    df = _groups_to_export_df(groups)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename_base = f"markers_{name}_{timestamp}" if name else f"markers_{timestamp}"

    col1, col2 = st.columns(2)

    col1.download_button(
        label="📥 CSV 다운로드",
        data=df.to_csv(index=False, encoding="utf-8-sig"),
        file_name=f"{filename_base}.csv",
        mime="text/csv",
    )
    col2.download_button(
        label="📥 Excel 다운로드",
        data=to_excel_bytes(df),
        file_name=f"{filename_base}.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
