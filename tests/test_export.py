from __future__ import annotations

import io

import pandas as pd

from flymap.data.nodes import process_marker_group
from flymap.utils.export import _groups_to_export_df, to_excel_bytes


def test_groups_to_export_df(normalizer) -> None:
    group, _ = process_marker_group(
        {"id": "prod", "label": "Production", "nodes": ["lhr", {"label": "X", "coordinates": [1, 2]}]},
        normalizer,
    )
    df = _groups_to_export_df([group])

    assert list(df["마커ID"]) == ["prod-0", "prod-1"]
    assert list(df["리전"]) == ["lhr", ""]
    assert df.iloc[0]["위도"] == 51
    assert df.iloc[1]["라벨"] == "X"


def test_empty_groups_keep_columns() -> None:
    df = _groups_to_export_df([])
    assert df.empty
    assert "그룹ID" in df.columns


def test_to_excel_bytes_round_trip(normalizer) -> None:
    group, _ = process_marker_group({"id": "g", "nodes": ["sjc"]}, normalizer)
    data = to_excel_bytes(_groups_to_export_df([group]))
    loaded = pd.read_excel(io.BytesIO(data), engine="openpyxl")
    assert list(loaded["마커ID"]) == ["g-0"]
