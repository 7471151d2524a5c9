"""
Tests for the selector inference engine.
"""

import pytest

from stepforge.selectors import EMITTED_KINDS, LocatorKind, SelectorEngine, count_matches


def best(snapshot, css, smart=True):
    return SelectorEngine(snapshot, smart=smart).best_locator(snapshot.find(css))


class TestStrategyPriority:
    """Test the order of the strategy chain."""

    def test_test_id_beats_unique_id(self, snapshot_from):
        snap = snapshot_from('<button data-testid="save" id="save-btn">Save</button>')
        locator = best(snap, "button")
        assert locator.kind == LocatorKind.CSS_SELECTOR
        assert locator.value == '[data-testid="save"]'

    def test_unique_id(self, snapshot_from):
        snap = snapshot_from('<div><span id="total">42</span></div>')
        locator = best(snap, "#total")
        assert locator.kind == LocatorKind.ID
        assert locator.value == "total"

    def test_duplicate_id_is_not_trusted(self, snapshot_from):
        snap = snapshot_from('<div id="dup">First</div><div id="dup">Second</div>')
        locator = best(snap, "div")
        assert locator.kind != LocatorKind.ID
        assert count_matches(snap, locator) == 1

    def test_name(self, snapshot_from):
        snap = snapshot_from('<form><input name="email"><input name="password" type="password"></form>')
        locator = best(snap, "input")
        assert locator.kind == LocatorKind.NAME
        assert locator.value == "email"

    def test_visible_text(self, snapshot_from):
        snap = snapshot_from("<button>Cancel</button><button>  Sign   in </button>")
        locator = best(snap, "button:nth-of-type(2)")
        assert locator.kind == LocatorKind.XPATH
        assert locator.value == '//button[normalize-space()="Sign in"]'

    def test_text_with_quote_is_rejected(self, snapshot_from):
        snap = snapshot_from("<button>Don't</button>")
        locator = best(snap, "button")
        assert "Don't" not in locator.value
        assert count_matches(snap, locator) == 1

    def test_long_text_is_rejected(self, snapshot_from):
        text = "word " * 20
        snap = snapshot_from(f"<a href='/x'>{text}</a>")
        locator = best(snap, "a")
        assert "normalize-space" not in locator.value

    def test_label_context(self, snapshot_from):
        snap = snapshot_from(
            "<ul>"
            "<li><input type='checkbox'><label>write a letter</label></li>"
            "<li><input type='checkbox'><label>buy milk</label></li>"
            "</ul>"
        )
        locator = best(snap, "input")
        assert locator.kind == LocatorKind.XPATH
        assert locator.value == '//label[normalize-space()="write a letter"]/preceding-sibling::input'

    def test_aria_label(self, snapshot_from):
        snap = snapshot_from('<button aria-label="Close"></button><button aria-label="Open"></button>')
        locator = best(snap, "button")
        assert locator.value == '[aria-label="Close"]'

    def test_placeholder(self, snapshot_from):
        snap = snapshot_from('<input placeholder="Search"><input placeholder="Filter">')
        locator = best(snap, "input")
        assert locator.value == '[placeholder="Search"]'

    def test_meaningful_class(self, snapshot_from):
        snap = snapshot_from('<i class="css-9xk icon-star"></i><i class="icon-heart"></i>')
        locator = best(snap, "i")
        assert locator.kind == LocatorKind.CSS_SELECTOR
        assert locator.value == ".icon-star"


class TestFallbacks:
    """Test structural fallbacks."""

    def test_css_path_is_bounded(self, snapshot_from):
        snap = snapshot_from(
            "<main><section><div><ul><li>x</li><li>y</li></ul></div></section></main>"
            "<main><section><div><ul><li>x</li></ul></div></section></main>"
        )
        locator = best(snap, "li:nth-of-type(2)")
        assert locator.kind == LocatorKind.CSS_SELECTOR
        assert locator.value.count(">") <= 3
        assert count_matches(snap, locator) == 1

    def test_absolute_xpath_when_nothing_else_is_unique(self, snapshot_from):
        snap = snapshot_from('<i class="icon star"></i><i class="icon"></i>')
        locator = best(snap, "i")
        assert locator.kind == LocatorKind.XPATH
        assert locator.value == "/html/body[1]/i[1]"

    def test_shadow_element_falls_back_to_tag_name(self, snapshot_from):
        snap = snapshot_from(
            '<div id="host"><template shadowrootmode="open"><em></em></template></div>'
        )
        (inner,) = snap.shadow_children(snap.find("#host"))
        locator = SelectorEngine(snap).best_locator(inner)
        assert locator.kind == LocatorKind.TAG_NAME
        assert locator.value == "em"

    def test_none_element(self, snapshot_from):
        snap = snapshot_from("<p>x</p>")
        assert SelectorEngine(snap).best_locator(None).kind == LocatorKind.TAG_NAME


class TestSimpleFidelity:
    """Test the plain strategy chain."""

    def test_strategy_sets(self, snapshot_from):
        snap = snapshot_from("<p>x</p>")
        smart = SelectorEngine(snap, smart=True).strategy_names
        simple = SelectorEngine(snap, smart=False).strategy_names
        assert "aria" in smart and "aria" not in simple
        assert "class-list" in simple and "class" not in simple
        assert "indexed-xpath" in simple and "xpath" not in simple
        assert smart[:5] == simple[:5]

    def test_joined_class_list(self, snapshot_from):
        snap = snapshot_from('<i class="icon star"></i><i class="icon"></i>')
        locator = best(snap, "i", smart=False)
        assert locator.value == ".icon.star"

    def test_unbounded_css_path(self, snapshot_from):
        snap = snapshot_from(
            "<main><section><div><ul><li></li><li></li></ul></div></section></main>"
        )
        locator = best(snap, "li:nth-of-type(2)", smart=False)
        assert locator.kind == LocatorKind.CSS_SELECTOR
        assert locator.value.startswith("html > body > main")
        assert locator.value.endswith("li:nth-of-type(2)")


class TestUniquenessInvariant:
    """Every non-fallback locator matches exactly one element."""

    PAGE = """
        <header><a href="/">Home</a><a href="/about">About</a></header>
        <form id="login">
          <input name="user"><input name="user">
          <input type="password" placeholder="Password">
          <button class="btn btn-primary">Sign in</button>
          <button class="btn">Sign in</button>
        </form>
        <ul class="todo">
          <li><input type="checkbox"><label>one</label></li>
          <li><input type="checkbox"><label>one</label></li>
          <li data-qa="third"><span>three</span></li>
        </ul>
        <table><tr><td>1</td><td>1</td></tr><tr><td>2</td><td>2</td></tr></table>
    """

    @pytest.mark.parametrize("smart", [True, False])
    def test_every_element(self, snapshot_from, smart):
        snap = snapshot_from(self.PAGE)
        engine = SelectorEngine(snap, smart=smart)
        for el in snap.iter_descendants(snap.body):
            locator = engine.best_locator(el)
            assert locator.kind in EMITTED_KINDS
            if locator.kind == LocatorKind.TAG_NAME:
                continue
            assert count_matches(snap, locator) == 1, (el.tag, locator)
