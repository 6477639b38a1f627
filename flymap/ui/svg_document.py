"""ElementTree 기반 SVG 시각 트리.

마커 렌더러가 조작하는 대상이다. id 인덱스(getElementById 대응)와 부모 추적을 유지해
요소를 다시 만들지 않고 속성만 바꾸거나 떼어낼 수 있게 한다.
지도 인스턴스마다 문서를 따로 만든다 (여러 지도가 상태를 공유하지 않는다).
"""

from __future__ import annotations

from xml.etree import ElementTree as ET

SVG_NS = "http://www.w3.org/2000/svg"
VISIBILITY_STYLE_ID = "group-visibility-styles"


class SvgMapDocument:
    def __init__(self, map_id: str = "fly-region-map", view_box: str = "0 0 800 391") -> None:
        self.map_id = map_id
        self.root = ET.Element(
            "svg",
            {
                "xmlns": SVG_NS,
                "id": map_id,
                "viewBox": view_box,
                "stroke-linecap": "round",
                "stroke-linejoin": "round",
            },
        )
        self._index: dict[str, ET.Element] = {map_id: self.root}
        self._parents: dict[int, ET.Element] = {}
        self._style_properties: dict[str, str] = {}
        self._visibility_rules: dict[str, str] = {}

        self.defs = self.append(self.root, "defs")
        self.visibility_style = self.append(self.root, "style", {"id": VISIBILITY_STYLE_ID})
        self.marker_layer = self.append(self.root, "g", {"id": f"{map_id}-markers"})

    # -- 트리 조작 -----------------------------------------------------------

    def append(
        self,
        parent: ET.Element,
        tag: str,
        attrs: dict[str, str] | None = None,
        index: int | None = None,
    ) -> ET.Element:
        element = ET.Element(tag, {k: str(v) for k, v in (attrs or {}).items()})
        if index is None:
            parent.append(element)
        else:
            parent.insert(index, element)
        self._register(element, parent)
        return element

    def _register(self, element: ET.Element, parent: ET.Element) -> None:
        self._parents[id(element)] = parent
        element_id = element.get("id")
        if element_id:
            self._index[element_id] = element
        for child in element:
            self._register(child, element)

    def _unregister(self, element: ET.Element) -> None:
        for child in element:
            self._unregister(child)
        self._parents.pop(id(element), None)
        element_id = element.get("id")
        if element_id and self._index.get(element_id) is element:
            del self._index[element_id]

    def get_element_by_id(self, element_id: str) -> ET.Element | None:
        return self._index.get(element_id)

    def remove(self, element: ET.Element) -> bool:
        parent = self._parents.get(id(element))
        if parent is None:
            return False
        parent.remove(element)
        self._unregister(element)
        return True

    def remove_children(self, element: ET.Element, tag: str | None = None) -> int:
        targets = [c for c in element if tag is None or c.tag == tag]
        for child in targets:
            self.remove(child)
        return len(targets)

    def is_attached(self, element: ET.Element) -> bool:
        return id(element) in self._parents

    # -- CSS -------------------------------------------------------------

    def set_style_property(self, name: str, value: str) -> None:
        """루트 svg의 CSS custom property 갱신 (예: --theme-land)."""
        self._style_properties[name] = value
        self.root.set("style", "; ".join(f"{k}: {v}" for k, v in self._style_properties.items()))

    def style_property(self, name: str) -> str | None:
        return self._style_properties.get(name)

    def set_visibility_rule(self, selector: str, rule: str | None) -> None:
        """가시성 스타일시트의 규칙 추가/삭제. rule=None이면 삭제."""
        if rule is None:
            self._visibility_rules.pop(selector, None)
        else:
            self._visibility_rules[selector] = rule
        self.visibility_style.text = "\n".join(
            f"{sel} {{ {body} }}" for sel, body in self._visibility_rules.items()
        )

    def visibility_rules(self) -> dict[str, str]:
        return dict(self._visibility_rules)

    # -- 직렬화 ------------------------------------------------------------

    def to_string(self) -> str:
        return ET.tostring(self.root, encoding="unicode")
