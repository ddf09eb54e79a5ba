import pytest

from forma.core.hierarchy import (
    Level,
    build_usage_statistics,
    classify_element_properties,
    classify_property,
    filter_by_confidence,
)
from forma.core.hierarchy.classifier import (
    DEFAULT_RULES,
    ClassificationRule,
    filter_by_level,
    format_classification_report,
    summarize_classifications,
)
from forma.core.hierarchy.models import Classification
from forma.core.hierarchy.statistics import extract_elements


def _buttons():
    margins = ["0", "1px", "2px", "3px"]
    out = []
    for i in range(10):
        e = {"type": "button", "class": "btn", "text": f"Label {i}"}
        if i < 6:
            e["background"] = "#fff"
        if i < 4:
            e["border"] = "1px"
        if i < 8:
            e["margin"] = margins[i % 4]
        out.append(e)
    return {"page": {"content": out}}


@pytest.fixture()
def tree():
    return _buttons()


@pytest.fixture()
def stats(tree):
    return build_usage_statistics(tree)


def test_statistics_walk_nested_and_hiccup_forms():
    doc = [
        "div",
        {"class": "row"},
        ["button", {"class": "btn"}],
        ["button", {"class": "btn", "disabled": True}],
        "plain text",
        {"type": "card", "children": [{"type": "button", "class": "btn", "style": {"gap": "1rem"}}]},
    ]
    stats = build_usage_statistics(doc)

    assert stats.elements == {"div": 1, "button": 3, "card": 1}
    assert stats.by_type["button"]["class"].frequency == 3
    assert stats.by_type["button"]["class"].variance == pytest.approx(1 / 3)
    assert stats.by_type["button"]["disabled"].variance == 1.0
    assert stats.properties["class"].values == {"row", "btn"}
    assert '{"gap": "1rem"}' in stats.properties["style"].values
    assert "children" not in stats.properties
    assert stats.properties["class"].to_dict() == {"frequency": 4, "values": ["btn", "row"], "variance": 0.5}
    assert [e["type"] for e in extract_elements(doc)] == ["div", "button", "button", "card", "button"]


def test_mixed_content_children_are_not_read_as_hiccup():
    doc = {
        "type": "div",
        "children": ["Hello there", ["span", {"class": "x"}]],
    }
    stats = build_usage_statistics(doc)

    assert stats.elements == {"div": 1, "span": 1}
    assert [e["type"] for e in extract_elements({"page": {"content": ["text", ["em"]]}})] == ["em"]


def test_variance_stays_in_unit_interval(stats):
    for usage in stats.properties.values():
        assert 0.0 <= usage.variance <= 1.0
    assert stats.usage("unknown", "button").variance == 0.0


def test_rules_in_order(tree, stats):
    elem = extract_elements(tree)[0]
    classified = classify_element_properties(elem, stats)
    c = classified.classifications

    assert (c["class"].level, c["class"].confidence) == ("components", 0.9)
    assert (c["background"].level, c["background"].confidence) == ("global", 0.8)
    assert (c["border"].level, c["border"].confidence) == ("components", 0.7)
    assert (c["text"].level, c["text"].confidence) == ("pages", 0.9)
    assert (c["margin"].level, c["margin"].confidence) == ("pages", 0.6)

    assert classified.buckets["global"] == {"background": "#fff"}
    assert classified.buckets["components"] == {"class": "btn", "border": "1px"}
    assert classified.buckets["sections"] == {}
    assert "type" not in classified.classifications


def test_metadata_hint_and_token_reference_take_priority(stats):
    meta = {
        "property_sources": {"text": {"level": "templates"}, "margin": {"level": "nowhere"}},
        "token_provenance": {"border": "$borders.thin"},
    }
    elem = {"type": "button", "text": "Label 1", "border": "1px", "margin": "1px"}
    c = classify_element_properties(elem, stats, meta).classifications

    assert c["text"] == Classification("templates", 1.0, "Explicit metadata from sync mode")
    assert (c["border"].level, c["border"].confidence) == ("global", 0.95)
    assert "$borders.thin" in c["border"].reason
    # an unknown hinted level is ignored
    assert c["margin"].confidence == 0.6


def test_confidence_never_drops_as_frequency_ratio_rises():
    confidences = []
    for present in range(10, 101, 10):
        doc = [{"type": "card", "class": "card"} if i < present else {"type": "card"} for i in range(100)]
        stats = build_usage_statistics(doc)
        confidences.append(classify_property("class", "card", "card", stats).confidence)

    assert confidences == sorted(confidences)
    assert confidences[0] == 0.6
    assert confidences[-1] == 0.9


def test_injected_rules_replace_defaults(stats):
    rules = [ClassificationRule("all-sections", lambda ctx: True, lambda ctx: Classification("sections", 0.5, "x"))]
    assert classify_property("class", "btn", "button", stats, rules=rules).level == "sections"
    # no rule matches -> pages fallback
    assert classify_property("class", "btn", "button", stats, rules=[]).level == Level.PAGES.value
    assert DEFAULT_RULES[-1].name == "fallback"


def test_filter_by_confidence(tree, stats):
    classified = classify_element_properties(extract_elements(tree)[0], stats)
    high = filter_by_confidence(classified, 0.8)

    assert high["components"] == {"class": "btn"}
    assert high["global"] == {"background": "#fff"}
    assert high["pages"] == {"text": "Label 0"}
    assert filter_by_level(classified, Level.GLOBAL) == {"background": "#fff"}
    assert classified.classifications["class"].to_dict()["level"] == "components"
    assert set(high) == {"global", "components", "sections", "templates", "pages"}


def test_summary_and_report(tree, stats):
    classified = classify_element_properties(extract_elements(tree)[0], stats)
    summary = summarize_classifications(classified)

    assert summary["total"] == 5
    assert summary["by_confidence"] == {"high": 3, "medium": 2, "low": 0}

    report = format_classification_report(classified)
    assert report.startswith("# Property Classification Report")
    assert "- `margin` -> **pages** (60% confidence)" in report
