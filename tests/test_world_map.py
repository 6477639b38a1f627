from __future__ import annotations

from xml.etree import ElementTree as ET

from flymap.data.regions import RegionDirectory
from flymap.ui.components import THEMES
from flymap.ui.world_map import MAP_VIEW_BOX, build_world_map, render_world_map

GROUPS = [
    {"id": "prod", "label": "Production", "nodes": ["sjc", "fra", "not-a-region"], "style": "operational"},
    {"id": "edge", "nodes": [{"label": "Seoul", "coordinates": [37.5, 127.0]}], "style": {"glow": True}},
]


def test_render_world_map_is_valid_svg() -> None:
    svg = render_world_map(GROUPS, theme="dark")
    root = ET.fromstring(svg)

    assert root.get("id") == "fly-region-map"
    assert root.get("viewBox") == MAP_VIEW_BOX
    assert THEMES["dark"]["border"] in svg


def test_group_markers_and_region_markers() -> None:
    document = build_world_map(GROUPS, show_regions=True)

    marker_ids = [child.get("id") for child in document.marker_layer]
    assert marker_ids == ["prod-0", "prod-1", "edge-0"]
    assert document.get_element_by_id("region-sjc") is not None
    regions = document.get_element_by_id("fly-region-map-regions")
    assert len(list(regions)) == 35
    assert document.get_element_by_id("glow-gradient-edge-0") is not None


def test_show_regions_false_omits_region_layer() -> None:
    document = build_world_map(GROUPS, show_regions=False)
    assert document.get_element_by_id("fly-region-map-regions") is None
    assert document.get_element_by_id("region-text-sjc") is None


def test_custom_regions_are_drawn() -> None:
    directory = RegionDirectory({"dev": {"name": "Dev", "coordinates": [10, 10]}})
    document = build_world_map([{"id": "g", "nodes": ["dev"]}], directory=directory, show_regions=True)
    assert document.get_element_by_id("region-dev") is not None
    assert document.get_element_by_id("g-0") is not None


def test_hidden_group_is_hidden_by_css() -> None:
    svg = render_world_map([{"id": "staging", "nodes": ["ams"], "visible": False}], map_id="m2")
    assert ".group-staging" in svg
    assert 'id="m2"' in svg
