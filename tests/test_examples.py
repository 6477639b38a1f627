"""작성 예제 검증 테스트: 첫 번째 잘못된 마커에서 중단해야 한다."""

from __future__ import annotations

import json

import pytest

from flymap.core.exceptions import MarkerInputError
from flymap.data.examples import validate_example, validate_example_file, validate_marker_groups


def test_valid_groups() -> None:
    groups = validate_marker_groups(
        [
            {"id": "prod", "nodes": ["sjc", [51.5, -0.1]]},
            {"id": "edge", "nodes": [{"label": "Seoul", "coordinates": [37.5, 127.0]}]},
        ]
    )
    assert [g.id for g in groups] == ["prod", "edge"]


def test_invalid_coordinate_aborts() -> None:
    with pytest.raises(MarkerInputError) as exc:
        validate_marker_groups([{"id": "bad", "nodes": [{"lat": 200, "lng": 0}]}])
    assert exc.value.reason == "invalid_coordinates"


def test_unknown_region_aborts() -> None:
    with pytest.raises(MarkerInputError) as exc:
        validate_marker_groups([{"id": "bad", "nodes": ["sjc", "xyz-invalid"]}])
    assert exc.value.reason == "unknown_region"
    assert exc.value.spec == "xyz-invalid"


def test_malformed_group_and_duplicates() -> None:
    with pytest.raises(MarkerInputError):
        validate_marker_groups([{"nodes": ["sjc"]}])
    with pytest.raises(MarkerInputError):
        validate_marker_groups([{"id": "a"}, {"id": "a"}])


@pytest.mark.parametrize("group", ["sjc", ["sjc", "fra"], 42, None])
def test_non_mapping_group_is_invalid_format(group) -> None:
    with pytest.raises(MarkerInputError) as exc:
        validate_marker_groups([group])
    assert exc.value.reason == "invalid_format"
    assert exc.value.spec == group


def test_example_theme_must_exist() -> None:
    with pytest.raises(MarkerInputError):
        validate_example({"marker_groups": [], "theme": "no-such-theme"})
    assert validate_example({"markerGroups": [{"id": "a", "nodes": ["lhr"]}], "theme": "dark"})


def test_example_file(tmp_path) -> None:
    path = tmp_path / "examples.json"
    path.write_text(
        json.dumps(
            {
                "basic": {"marker_groups": [{"id": "a", "nodes": ["lhr"]}]},
                "broken": {"marker_groups": [{"id": "b", "nodes": [{"coordinates": [1, 2]}]}]},
            }
        ),
        encoding="utf-8",
    )
    with pytest.raises(MarkerInputError) as exc:
        validate_example_file(path)
    assert "[broken]" in exc.value.message
    assert exc.value.reason == "missing_label"
