"""Runtime objects: attribute bags, loop cursors and the render context."""

from __future__ import annotations

import pytest

from tessera import UNKNOWN, ComponentAttributes, LoopCursor, RenderContext, get_render_context, render_context
from tessera.render_context import PARENT_PLACEHOLDER, AwareStack


class TestComponentAttributes:
    def test_render(self):
        bag = ComponentAttributes({"id": "a<b", "disabled": True, "hidden": False, "title": None})
        assert str(bag) == 'id="a&lt;b" disabled'

    def test_merge_appends_class_and_style(self):
        bag = ComponentAttributes({"class": "mt-4", "style": "margin: 0", "type": "submit"})
        merged = bag.merge({"class": "btn", "style": "color: red;", "type": "button"})
        assert merged["class"] == "btn mt-4"
        assert merged["style"] == "color: red; margin: 0"
        assert merged["type"] == "submit"

    def test_merge_keyword_defaults(self):
        assert str(ComponentAttributes({"disabled": True}).merge(role="button")) == 'role="button" disabled'

    def test_merge_leaves_original(self):
        bag = ComponentAttributes({"class": "a"})
        bag.merge({"class": "b"})
        assert bag["class"] == "a"

    def test_only_and_without(self):
        bag = ComponentAttributes({"a": 1, "b": 2, "c": 3})
        assert dict(bag.only("a", "c")) == {"a": 1, "c": 3}
        assert dict(bag.without(["a", "b"])) == {"c": 3}
        assert dict(bag.except_("c")) == {"a": 1, "b": 2}

    def test_has_and_get(self):
        bag = ComponentAttributes({"a": 1, "b": 2})
        assert bag.has("a", "b")
        assert not bag.has("a", "z")
        assert bag.get("z", "fallback") == "fallback"

    def test_class_shortcut(self):
        assert ComponentAttributes({"class": "x"}).class_("base")["class"] == "base x"

    def test_truthiness(self):
        assert not ComponentAttributes()
        assert ComponentAttributes({"a": 1})


class TestLoopCursor:
    def test_sized(self):
        loop = LoopCursor(["a", "b", "c"])
        seen = [(item, loop.index, loop.iteration, loop.first, loop.last, loop.remaining) for item in loop]
        assert seen == [
            ("a", 0, 1, True, False, 2),
            ("b", 1, 2, False, False, 1),
            ("c", 2, 3, False, True, 0),
        ]
        assert loop.count == 3
        assert loop.iterated

    def test_parity(self):
        loop = LoopCursor(range(2))
        assert [(loop.odd, loop.even) for _ in loop] == [(True, False), (False, True)]

    def test_generator_is_lazy(self):
        loop = LoopCursor(x for x in "ab")
        assert list(loop) == ["a", "b"]
        assert loop.count is UNKNOWN
        assert loop.last is UNKNOWN
        assert not loop.last
        assert str(loop.remaining) == ""

    def test_none_is_empty(self):
        loop = LoopCursor(None)
        assert list(loop) == []
        assert not loop.iterated

    def test_pairs(self):
        assert list(LoopCursor({"k": "v"}, pairs=True)) == [("k", "v")]
        assert list(LoopCursor(["x"], pairs=True)) == [(0, "x")]

    def test_depth_and_parent(self):
        outer = LoopCursor([1])
        inner = LoopCursor([2], outer)
        assert inner.parent is outer
        assert inner.depth == 2
        assert LoopCursor([3], "not a cursor").parent is None


class TestAwareStack:
    def test_lookup_skips_own_frame(self):
        aware = AwareStack()
        with aware.frame({"color": "purple"}), aware.frame({"color": "own"}):
            assert aware.lookup("color", "gray") == "purple"
            assert aware.current() == {"color": "own"}
        assert len(aware) == 0

    def test_default_without_ancestor(self):
        aware = AwareStack()
        with aware.frame({}):
            assert aware.lookup("color", "gray") == "gray"

    def test_publish_keeps_call_site_values(self):
        aware = AwareStack()
        with aware.frame({"size": "lg"}):
            aware.publish({"size": "sm", "tone": "dark"})
            assert aware.current() == {"size": "lg", "tone": "dark"}

    def test_frame_popped_on_error(self):
        aware = AwareStack()
        with pytest.raises(RuntimeError), aware.frame({"a": 1}):
            raise RuntimeError("boom")
        assert len(aware) == 0


class TestRenderContext:
    def test_first_section_capture_wins(self):
        rc = RenderContext()
        rc.capture_section("title", "child")
        rc.capture_section("title", "parent")
        assert rc.resolve_section("title") == "child"
        assert rc.resolve_section("missing") is None

    def test_parent_placeholder_chain(self):
        rc = RenderContext()
        rc.capture_section("nav", f"[c {PARENT_PLACEHOLDER}]")
        rc.capture_section("nav", f"[m {PARENT_PLACEHOLDER}]")
        rc.capture_section("nav", f"[r {PARENT_PLACEHOLDER}]")
        assert rc.resolve_section("nav") == "[c [m [r ]]]"

    def test_stacks(self):
        rc = RenderContext()
        rc.push("js", "b")
        rc.push("js", "c")
        rc.push("js", "a", prepend=True)
        assert rc.render_stack("js") == "abc"
        assert rc.render_stack("css") == ""

    def test_claim_once(self):
        rc = RenderContext()
        assert rc.claim_once("k")
        assert not rc.claim_once("k")

    def test_fragments_first_capture_wins(self):
        rc = RenderContext()
        rc.add_fragment("list", "one")
        rc.add_fragment("list", "two")
        assert rc.fragments == {"list": "one"}

    def test_include_child_shares_tables(self):
        rc = RenderContext(template_name="page.html", line=4)
        child = rc.child_context("partials/nav.html")
        child.capture_section("s", "x")
        child.push("js", "y")
        assert rc.sections == {"s": "x"}
        assert rc.stacks == {"js": ["y"]}
        assert child.include_depth == 1
        assert child.template_stack == [("page.html", 4)]

    def test_isolated_child(self):
        rc = RenderContext(template_name="page.html")
        rc.set_meta("csrf_token", "t")
        child = rc.child_context("components/card.html", isolated=True)
        child.capture_section("s", "x")
        child.add_teleport("#m", "t")
        assert rc.sections == {}
        assert rc.teleports == [("#m", "t")]
        assert child.aware is rc.aware
        assert child.get_meta("csrf_token") == "t"

    def test_csp_nonce(self):
        rc = RenderContext()
        assert rc.csp_nonce is None
        rc.set_meta("csp_nonce", 123)
        assert rc.csp_nonce == "123"


class TestRenderContextVar:
    def test_scoped_to_block(self):
        assert get_render_context() is None
        with render_context(parent_meta={"a": 1}) as rc:
            assert get_render_context() is rc
            assert rc.get_meta("a") == 1
        assert get_render_context() is None

    def test_render_inherits_meta(self, env):
        with render_context() as rc:
            rc.set_meta("hx_target", "#main")
            assert env.from_string("{{ hx_target() }}").render() == "#main"

    def test_each_render_gets_fresh_state(self, env):
        tmpl = env.from_string("@once x@endonce")
        assert tmpl.render() == " x"
        assert tmpl.render() == " x"
