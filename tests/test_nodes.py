"""MarkerSpec 정규화 테스트."""

from __future__ import annotations

import pytest

from flymap.core.exceptions import MarkerInputError
from flymap.data.models import WireMarkerGroup
from flymap.data.nodes import (
    Coordinate,
    LabeledCoordinate,
    MarkerNormalizer,
    RegionCode,
    canonicalize_markers,
    marker_id_for,
    parse_marker_spec,
    process_marker_group,
)


class TestParseMarkerSpec:
    def test_region_code(self) -> None:
        assert parse_marker_spec("sjc") == RegionCode(code="sjc")

    def test_coordinate_pair(self) -> None:
        assert parse_marker_spec([51.5, -0.1]) == Coordinate(lat=51.5, lng=-0.1)
        assert parse_marker_spec((10, 20)) == Coordinate(lat=10.0, lng=20.0)

    def test_labeled_coordinates(self) -> None:
        spec = parse_marker_spec({"label": "Seoul", "coordinates": [37.5, 127.0]})
        assert spec == LabeledCoordinate(label="Seoul", lat=37.5, lng=127.0)

    def test_lat_lng_mapping(self) -> None:
        assert parse_marker_spec({"lat": 1, "lng": 2}) == Coordinate(lat=1.0, lng=2.0)
        assert parse_marker_spec({"latitude": 1, "longitude": 2}) == Coordinate(lat=1.0, lng=2.0)

    def test_region_mapping_keeps_label(self) -> None:
        assert parse_marker_spec({"region": "fra", "label": "EU"}) == RegionCode(code="fra", label="EU")

    @pytest.mark.parametrize(
        ("raw", "reason"),
        [
            ({"coordinates": [1, 2]}, "missing_label"),
            ({"label": "x", "coordinates": [1]}, "invalid_coordinates"),
            ({"label": "only"}, "invalid_coordinates"),
            ([1, 2, 3], "invalid_coordinates"),
            (["a", "b"], "invalid_coordinates"),
            ({"lat": "1", "lng": 2}, "invalid_coordinates"),
            (42, "invalid_format"),
            (None, "invalid_format"),
        ],
    )
    def test_malformed_inputs(self, raw, reason: str) -> None:
        result = parse_marker_spec(raw)
        assert isinstance(result, MarkerInputError)
        assert result.reason == reason


class TestMarkerNormalizer:
    def test_region_and_its_coordinates_agree(self, normalizer: MarkerNormalizer, directory) -> None:
        for entry in directory:
            by_code = normalizer.normalize(entry.code)
            by_pair = normalizer.normalize([entry.point.lat, entry.point.lng])
            assert by_code.ok and by_pair.ok
            assert by_code.point == by_pair.point

    def test_region_label_defaults_to_name(self, normalizer: MarkerNormalizer) -> None:
        assert normalizer.normalize("lhr").label == "London"
        assert normalizer.normalize("LHR").point == normalizer.normalize("lhr").point

    def test_unknown_region(self, normalizer: MarkerNormalizer) -> None:
        result = normalizer.normalize("xyz-invalid")
        assert not result.ok
        assert result.error.reason == "unknown_region"

    def test_out_of_range_is_rejected(self, normalizer: MarkerNormalizer) -> None:
        result = normalizer.normalize({"lat": 200, "lng": 0})
        assert result.point is None
        assert result.error.reason == "invalid_coordinates"

    @pytest.mark.parametrize("pair", [[-91, 0], [91, 0], [0, -181], [0, 181]])
    def test_pair_bounds(self, normalizer: MarkerNormalizer, pair) -> None:
        assert not normalizer.normalize(pair).ok

    def test_bounds_are_inclusive(self, normalizer: MarkerNormalizer) -> None:
        assert normalizer.normalize([90, 180]).ok
        assert normalizer.normalize([-90, -180]).ok

    def test_to_canonical_style_key_and_override(self, normalizer: MarkerNormalizer) -> None:
        keyed = normalizer.to_canonical({"region": "sjc", "style": "danger"}, "g-0")
        assert keyed.style_key == "danger"
        assert keyed.region == "sjc"

        override = normalizer.to_canonical(
            {"label": "x", "coordinates": [1, 2], "style": {"color": "#ff0000"}}, "g-1"
        )
        assert override.style_override.colour == "#ff0000"
        assert override.region is None


def test_marker_id_for() -> None:
    assert marker_id_for("prod", 3) == "prod-3"


class TestCanonicalizeMarkers:
    def test_skip_policy_keeps_positional_ids(self, normalizer: MarkerNormalizer) -> None:
        markers, errors = canonicalize_markers(
            "prod", ["sjc", "nope", "fra"], normalizer, strict=False
        )
        assert [m.id for m in markers] == ["prod-0", "prod-2"]
        assert len(errors) == 1

    def test_strict_policy_returns_nothing(self, normalizer: MarkerNormalizer) -> None:
        markers, errors = canonicalize_markers(
            "prod", ["sjc", "nope", "fra"], normalizer, strict=True
        )
        assert markers == []
        assert errors[0].reason == "unknown_region"

    def test_start_index(self, normalizer: MarkerNormalizer) -> None:
        markers, _ = canonicalize_markers("prod", ["sjc"], normalizer, strict=True, start_index=5)
        assert markers[0].id == "prod-5"


class TestProcessMarkerGroup:
    def test_nodes_alias_and_preset_style(self, normalizer: MarkerNormalizer) -> None:
        group, errors = process_marker_group(
            {"id": "prod", "label": "Production", "nodes": ["sjc", "fra"], "style": "operational"},
            normalizer,
        )
        assert errors == []
        assert group.label == "Production"
        assert group.marker_ids() == ["prod-0", "prod-1"]
        assert group.style.colour == "#10b981"
        assert group.next_index == 2

    def test_label_defaults_to_id(self, normalizer: MarkerNormalizer) -> None:
        group, _ = process_marker_group(WireMarkerGroup(id="solo", markers=["ams"]), normalizer)
        assert group.label == "solo"

    def test_skip_mode_reports_errors(self, normalizer: MarkerNormalizer) -> None:
        group, errors = process_marker_group(
            {"id": "g", "nodes": ["sjc", {"lat": 200, "lng": 0}]}, normalizer
        )
        assert group.marker_ids() == ["g-0"]
        assert group.next_index == 2
        assert errors[0].reason == "invalid_coordinates"

    def test_strict_mode_rejects_group(self, normalizer: MarkerNormalizer) -> None:
        group, errors = process_marker_group(
            {"id": "g", "nodes": ["sjc", "bad-code"]}, normalizer, strict=True
        )
        assert group is None
        assert len(errors) == 1
