from __future__ import annotations

from flymap.ui.svg_document import VISIBILITY_STYLE_ID, SvgMapDocument


def test_skeleton() -> None:
    document = SvgMapDocument(map_id="m")
    assert document.get_element_by_id("m") is document.root
    assert document.get_element_by_id(VISIBILITY_STYLE_ID) is document.visibility_style
    assert document.get_element_by_id("m-markers") is document.marker_layer


def test_remove_unregisters_subtree() -> None:
    document = SvgMapDocument()
    group = document.append(document.marker_layer, "g", {"id": "outer"})
    inner = document.append(group, "circle", {"id": "inner"})

    assert document.remove(group) is True
    assert document.get_element_by_id("inner") is None
    assert document.is_attached(inner) is False
    assert document.remove(group) is False


def test_visibility_rules() -> None:
    document = SvgMapDocument()
    document.set_visibility_rule(".group-a", "display: none !important;")
    assert document.visibility_style.text == ".group-a { display: none !important; }"
    document.set_visibility_rule(".group-a", None)
    assert document.visibility_style.text == ""
