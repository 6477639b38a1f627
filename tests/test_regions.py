"""리전 디렉터리/커스텀 리전 로더 테스트 (httpx MockTransport)."""

from __future__ import annotations

import httpx
import pytest
from tenacity import wait_none

from flymap.core.exceptions import RegionDataError
from flymap.data.regions import (
    BUILTIN_REGIONS,
    RegionDirectory,
    _get_with_retry,
    load_custom_regions,
    parse_custom_regions,
)


class TestRegionDirectory:
    def test_builtin_table_size(self, directory: RegionDirectory) -> None:
        assert len(directory) == len(BUILTIN_REGIONS) == 35

    def test_lookup_known_code(self, directory: RegionDirectory) -> None:
        entry = directory.lookup("sjc")
        assert entry is not None
        assert (entry.point.lat, entry.point.lng) == (37, -122)
        assert entry.name == "San Jose"

    def test_lookup_is_case_insensitive(self, directory: RegionDirectory) -> None:
        assert directory.lookup("SJC") == directory.lookup("sjc")

    def test_unknown_code_is_not_found(self, directory: RegionDirectory) -> None:
        assert directory.lookup("xyz-invalid") is None
        assert directory.is_valid("xyz-invalid") is False

    def test_custom_region_overrides_builtin(self) -> None:
        directory = RegionDirectory(
            {
                "lhr": {"name": "London Custom", "coordinates": [51.5, -0.12]},
                "dev": {"name": "Development", "coordinates": [47.6, -122.3]},
            }
        )
        assert directory.name("lhr") == "London Custom"
        assert directory.is_custom("DEV") is True
        assert directory.is_custom("sjc") is False
        assert len(directory) == 36

    def test_display_name(self, directory: RegionDirectory) -> None:
        assert directory.display_name(["fra"]) == "Frankfurt (fra)"
        assert directory.display_name(["fra", "lhr"]) == "2 regions"
        assert directory.display_name([]) == "no regions"


class TestParseCustomRegions:
    def test_bad_entries_are_skipped(self) -> None:
        entries = parse_custom_regions(
            {
                "ok": {"name": "Ok", "coordinates": [10, 20]},
                "range": {"coordinates": [100, 0]},
                "shape": {"coordinates": [1]},
                "flat": "not a mapping",
            }
        )
        assert list(entries) == ["ok"]

    def test_non_mapping_raises(self) -> None:
        with pytest.raises(RegionDataError):
            parse_custom_regions(["dev"])  # type: ignore[arg-type]


class TestLoadCustomRegions:
    def test_json_file(self, tmp_path) -> None:
        path = tmp_path / "regions.json"
        path.write_text('{"dev": {"name": "Dev", "coordinates": [1, 2]}}', encoding="utf-8")
        assert load_custom_regions(str(path)) == {"dev": {"name": "Dev", "coordinates": [1, 2]}}

    def test_toml_file_with_regions_table(self, tmp_path) -> None:
        path = tmp_path / "regions.toml"
        path.write_text('[regions.dev]\nname = "Dev"\ncoordinates = [1, 2]\n', encoding="utf-8")
        assert load_custom_regions(str(path)) == {"dev": {"name": "Dev", "coordinates": [1, 2]}}

    def test_missing_file_raises(self, tmp_path) -> None:
        with pytest.raises(RegionDataError):
            load_custom_regions(str(tmp_path / "nope.json"))

    def test_invalid_json_raises(self, tmp_path) -> None:
        path = tmp_path / "regions.json"
        path.write_text("not json", encoding="utf-8")
        with pytest.raises(RegionDataError):
            load_custom_regions(str(path))

    def test_empty_source(self) -> None:
        assert load_custom_regions("") == {}

    def test_url_source(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/regions.json"
            return httpx.Response(200, json={"dev": {"name": "Dev", "coordinates": [1, 2]}})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        data = load_custom_regions("https://config.example/regions.json", client=client)
        assert RegionDirectory(data).name("dev") == "Dev"
        client.close()

    def test_url_http_error_raises(self) -> None:
        client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(404)))
        with pytest.raises(RegionDataError):
            load_custom_regions("https://config.example/regions.json", client=client)
        client.close()

    def test_url_network_error_is_retried(self, monkeypatch) -> None:
        monkeypatch.setattr(_get_with_retry.retry, "wait", wait_none())
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("down", request=request)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        with pytest.raises(RegionDataError):
            load_custom_regions("https://config.example/regions.json", client=client)
        assert len(calls) == 3
        client.close()
