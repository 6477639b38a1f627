from __future__ import annotations

from flymap.data.nodes import process_marker_group
from flymap.ui.charts import build_geo_figure


def test_build_geo_figure(normalizer) -> None:
    prod, _ = process_marker_group({"id": "prod", "nodes": ["sjc", "fra"], "style": "danger"}, normalizer)
    hidden, _ = process_marker_group({"id": "h", "nodes": ["ams"], "visible": False}, normalizer)

    fig = build_geo_figure([prod, hidden], theme="dark")

    assert len(fig.data) == 2
    assert list(fig.data[0].lat) == [37, 50]
    assert fig.data[0].marker.color == "#ef4444"
    assert fig.data[1].visible == "legendonly"
    assert fig.layout.geo.projection.type == "equirectangular"
