"""
Tests for DOM snapshots.
"""

import pytest

from stepforge.dom import DomSnapshot, Rect, element_type, is_toggle_control, normalize_space
from stepforge.exceptions import SnapshotError


class TestFromHtml:
    """Test markup-built snapshots."""

    def test_ids_follow_document_order(self, snapshot_from):
        snap = snapshot_from('<p id="a">one</p><p id="b">two</p>')
        first, second = snap.find("#a"), snap.find("#b")
        assert snap.rid_of(first) < snap.rid_of(second)
        assert snap.get(snap.rid_of(second)) is second

    def test_unknown_rid_returns_none(self, snapshot_from):
        snap = snapshot_from("<p>x</p>")
        assert snap.get(9999) is None
        assert snap.get(None) is None

    def test_form_state_comes_from_markup(self, snapshot_from):
        snap = snapshot_from(
            '<input id="q" value="hello">'
            '<input id="c" type="checkbox" checked>'
            '<select id="s"><option value="1">One</option><option value="2" selected>Two</option></select>'
        )
        assert snap.state(snap.find("#q")).value == "hello"
        assert snap.state(snap.find("#c")).checked is True
        select_state = snap.state(snap.find("#s"))
        assert select_state.value == "2"
        assert select_state.selected_text == "Two"

    def test_text_is_normalized_and_skips_scripts(self, snapshot_from):
        snap = snapshot_from('<div id="d">  Hello \n   <b>world</b><script>var x = 1;</script></div>')
        assert snap.text_of(snap.find("#d")) == "Hello world"

    def test_text_includes_hidden_descendants(self, snapshot_from):
        snap = snapshot_from('<button id="b">Save <span class="sr-only">changes</span></button>')
        assert snap.text_of(snap.find("#b")) == "Save changes"
        assert snap.count_xpath('//button[normalize-space()="Save changes"]') == 1

    def test_declarative_shadow_root_is_detached(self, snapshot_from):
        snap = snapshot_from(
            '<div id="host"><template shadowrootmode="open">'
            '<input type="checkbox" id="inner"></template></div>'
        )
        host = snap.find("#host")
        assert snap.has_shadow_root(host)
        assert snap.count_css("#inner") == 0

        (inner,) = snap.shadow_children(host)
        assert inner.get("id") == "inner"
        assert snap.parent(inner) is None
        assert not snap.is_in_document(inner)
        assert snap.get(snap.rid_of(inner)) is inner


class TestQueries:
    """Test CSS and XPath evaluation."""

    def test_count_css_and_xpath(self, snapshot_from):
        snap = snapshot_from('<a class="nav">A</a><a class="nav">B</a>')
        assert snap.count_css(".nav") == 2
        assert snap.count_xpath('//a[normalize-space()="B"]') == 1

    def test_invalid_queries_match_nothing(self, snapshot_from):
        snap = snapshot_from("<p>x</p>")
        assert snap.count_css("p[") == 0
        assert snap.count_xpath("//p[") == 0
        assert snap.query_all_xpath("count(//p)") == []

    def test_queries_ignore_shadow_content(self, snapshot_from):
        snap = snapshot_from(
            '<span class="label">out</span>'
            '<div id="host"><template shadowrootmode="open"><span class="label">in</span></template></div>'
        )
        assert snap.count_css(".label") == 1


class TestFromJson:
    """Test snapshots sent by the page listener."""

    PAYLOAD = {
        "url": "https://app.test/form",
        "focused": 4,
        "root": {
            "rid": 1, "tag": "html", "attrs": {}, "rect": [0, 0, 800, 600],
            "children": [{
                "rid": 2, "tag": "body", "attrs": {}, "rect": [0, 0, 800, 600],
                "children": [
                    "Intro ",
                    {"rid": 3, "tag": "button", "attrs": {"bad name": "go()", "@click": "go()", "class": "primary"},
                     "rect": [10, 10, 100, 30], "children": ["Go"]},
                    {"rid": 4, "tag": "input", "attrs": {"type": "text"}, "rect": [10, 50, 200, 20],
                     "value": "typed", "children": []},
                    {"rid": 5, "tag": "my-toggle", "attrs": {}, "rect": [0, 100, 40, 20], "children": [],
                     "shadow": [{"rid": 6, "tag": "input", "attrs": {"type": "checkbox"},
                                 "rect": [5, 105, 10, 10], "checked": True, "children": []}]},
                ],
            }],
        },
    }

    def test_builds_tree_and_state(self):
        snap = DomSnapshot.from_json(self.PAYLOAD)
        button = snap.get(3)
        assert button.tag == "button"
        assert button.get("class") == "primary"
        assert "bad name" not in button.attrib
        assert "@click" not in button.attrib
        assert snap.text_of(button) == "Go"
        assert snap.state(snap.get(4)).value == "typed"
        assert snap.state(button).rect == Rect(10, 10, 100, 30)
        assert snap.url == "https://app.test/form"

    def test_focus_and_shadow(self):
        snap = DomSnapshot.from_json(self.PAYLOAD)
        assert snap.active_element is snap.get(4)
        host = snap.get(5)
        assert [snap.rid_of(el) for el in snap.shadow_children(host)] == [6]
        assert snap.state(snap.get(6)).checked is True

    @pytest.mark.parametrize("payload", [None, {}, {"root": "html"}])
    def test_rejects_payload_without_root(self, payload):
        with pytest.raises(SnapshotError):
            DomSnapshot.from_json(payload)


class TestHelpers:
    """Test module-level helpers."""

    def test_rect_distance(self):
        rect = Rect(0, 0, 20, 20)
        assert rect.center == (10, 10)
        assert rect.distance_to((13, 14)) == pytest.approx(5.0)

    def test_element_type_defaults(self, snapshot_from):
        snap = snapshot_from("<input id='i'><button id='b'>x</button><div id='d'></div>")
        assert element_type(snap.find("#i")) == "text"
        assert element_type(snap.find("#b")) == "submit"
        assert element_type(snap.find("#d")) is None

    def test_aria_toggle(self, snapshot_from):
        snap = snapshot_from('<div id="t" role="checkbox" aria-checked="false"></div>')
        assert is_toggle_control(snap.find("#t"))

    def test_normalize_space(self):
        assert normalize_space("  a \t b\n") == "a b"
        assert normalize_space(None) == ""
