import typing

from forma.core.hierarchy.extraction import (
    classify_tree,
    extract_components,
    extract_global_defaults,
    extract_page_instance,
    extract_pages,
)
from forma.core.hierarchy.models import Level, PropsMap, PropsValue


def _doc():
    buttons = []
    for i in range(6):
        buttons.append({
            "type": "button",
            "id": f"btn-{i}",
            "class": "btn",
            "variant": "primary" if i < 3 else "ghost",
            "text": f"Go {i}",
        })
    return {"page": {"content": buttons}}


def test_classify_tree_returns_stats_and_elements():
    stats, elements = classify_tree(_doc())
    assert stats.element_count("button") == 6
    assert len(elements) == 6
    assert elements[0].classified.level_of("class") == "components"
    assert elements[0].classified.level_of("text") == "pages"


def test_metadata_is_matched_by_element_id():
    meta = {"btn-2": {"property_sources": {"text": {"level": "sections"}}}}
    _, elements = classify_tree(_doc(), meta)
    assert elements[2].classified.level_of("text") == "sections"
    assert elements[2].classified.confidence_of("text") == 1.0
    assert elements[1].classified.level_of("text") == "pages"


def test_extract_components_collects_base_and_variants():
    _, elements = classify_tree(_doc())
    components = extract_components(elements)

    assert components["button"]["base"]["class"] == "btn"
    assert set(components["button"]["variants"]) == {"primary", "ghost"}
    assert components["button"]["variants"]["ghost"]["class"] == "btn"


def test_extract_global_defaults_carries_tokens():
    _, elements = classify_tree(_doc())
    out = extract_global_defaults({"colors": {"primary": "#00f"}}, elements)
    assert out["tokens"] == {"colors": {"primary": "#00f"}}
    assert isinstance(out["defaults"], dict)


def test_extract_page_instance_keeps_page_props_and_variant():
    _, elements = classify_tree(_doc())
    page = extract_page_instance(elements)

    first = page["content"][0]
    assert first[0] == "button"
    assert first[1]["text"] == "Go 0"
    assert first[1]["variant"] == "primary"
    assert "class" not in first[1]
    assert elements[0].bucket(Level.PAGES)["text"] == "Go 0"


def test_extract_pages_by_name():
    _, elements = classify_tree(_doc())
    pages = extract_pages([{"name": "home", "elements": elements[:2]}, {"name": "empty"}])
    assert len(pages["home"]["content"]) == 2
    assert pages["empty"] == {"content": []}


def test_props_map_values_are_props_values():
    assert typing.get_args(PropsMap) == (str, PropsValue)
    members = typing.get_args(PropsValue)
    assert bool in members and typing.List[typing.Any] in members
