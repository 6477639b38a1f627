from __future__ import annotations

from flymap.data.models import GroupTogglePayload
from flymap.data.nodes import process_marker_group
from flymap.ui.legend import changed_toggles, summarize_groups


def _groups(normalizer):
    prod, _ = process_marker_group({"id": "prod", "nodes": ["sjc", "fra"]}, normalizer)
    staging, _ = process_marker_group({"id": "staging", "nodes": ["ams"], "visible": False}, normalizer)
    return [prod, staging]


def test_summarize_groups(normalizer) -> None:
    summaries = summarize_groups(_groups(normalizer))
    assert [(s["id"], s["marker_count"], s["visible"]) for s in summaries] == [
        ("prod", 2, True),
        ("staging", 1, False),
    ]


def test_changed_toggles_only_reports_differences(normalizer) -> None:
    groups = _groups(normalizer)
    requests = changed_toggles(groups, {"prod": True, "staging": True})
    assert requests == [GroupTogglePayload(group_id="staging", visible=True)]
    assert changed_toggles(groups, {}) == []
