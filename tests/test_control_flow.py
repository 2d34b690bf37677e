"""Conditionals, loops and @switch rendered end to end."""

from __future__ import annotations

import pytest

from tessera import UNKNOWN, TemplateRuntimeError, UndefinedError


class TestConditionals:
    @pytest.mark.parametrize(("x", "expected"), [(2, "big"), (1, "one"), (0, " small")])
    def test_if_elseif_else(self, env, x, expected):
        tmpl = env.from_string("@if(x > 1)big@elseif(x == 1)one@else small@endif")
        assert tmpl.render(x=x) == expected

    def test_else_directly_after_text(self, env):
        tmpl = env.from_string("@if(ok)yes@else no@endif")
        assert tmpl.render(ok=True) == "yes"
        assert tmpl.render(ok=False) == " no"

    def test_unless(self, env):
        tmpl = env.from_string("@unless(admin)guest@endunless")
        assert tmpl.render(admin=False) == "guest"
        assert tmpl.render(admin=True) == ""

    def test_isset_tolerates_undefined(self, env):
        tmpl = env.from_string("@isset(user)yes@endisset")
        assert tmpl.render() == ""
        assert tmpl.render(user=None) == ""
        assert tmpl.render(user="ada") == "yes"

    def test_isset_several(self, env):
        tmpl = env.from_string("@isset(a, b.c)both@endisset")
        assert tmpl.render(a=1, b={"c": 2}) == "both"
        assert tmpl.render(a=1, b={}) == ""

    def test_empty(self, env):
        tmpl = env.from_string("@empty(items)none@endempty")
        assert tmpl.render(items=[]) == "none"
        assert tmpl.render() == "none"
        assert tmpl.render(items=[1]) == ""

    def test_nested(self, env):
        tmpl = env.from_string("@if(a)@if(b)ab@else a@endif@endif")
        assert tmpl.render(a=True, b=False) == " a"


class TestForeach:
    def test_basic(self, env):
        tmpl = env.from_string("@foreach(xs as x){{ x }},@endforeach")
        assert tmpl.render(xs=[1, 2, 3]) == "1,2,3,"

    def test_pythonic_header(self, env):
        tmpl = env.from_string("@foreach(x in xs){{ x }}@endforeach")
        assert tmpl.render(xs="ab") == "ab"

    def test_tuple_target(self, env):
        tmpl = env.from_string("@foreach(pairs as (a, b)){{ a }}{{ b }};@endforeach")
        assert tmpl.render(pairs=[(1, 2), (3, 4)]) == "12;34;"

    def test_key_value_mapping(self, env):
        tmpl = env.from_string("@foreach(d as k => v){{ k }}={{ v }};@endforeach")
        assert tmpl.render(d={"a": 1, "b": 2}) == "a=1;b=2;"

    def test_key_value_sequence(self, env):
        tmpl = env.from_string("@foreach(d as k => v){{ k }}={{ v }};@endforeach")
        assert tmpl.render(d=["x", "y"]) == "0=x;1=y;"

    def test_loop_metadata(self, env):
        tmpl = env.from_string(
            "@foreach(xs as x){{ loop.iteration }}/{{ loop.count }}"
            "@if(loop.first)F@endif@if(loop.last)L@endif @endforeach"
        )
        assert tmpl.render(xs=["a", "b"]) == "1/2F 2/2L "

    def test_remaining_and_parity(self, env):
        tmpl = env.from_string("@foreach(xs as x){{ loop.remaining }}@if(loop.even)e@endif@endforeach")
        assert tmpl.render(xs=[1, 2, 3]) == "21e0"

    def test_generator_has_unknown_length(self, env):
        tmpl = env.from_string("@foreach(gen as x){{ x }}[{{ loop.count }}{{ loop.last }}]@endforeach")
        assert tmpl.render(gen=(i for i in range(2))) == "0[]1[]"

    def test_nested_cursors(self, env):
        tmpl = env.from_string(
            "@foreach(rows as row)@foreach(row as c){{ loop.depth }}{{ loop.parent.index }}"
            "@endforeach@endforeach"
        )
        assert tmpl.render(rows=[[1], [2]]) == "2021"

    def test_cursor_restored_after_inner_loop(self, env):
        tmpl = env.from_string("@foreach(a as x)@foreach(b as y)@endforeach{{ loop.index }}@endforeach")
        assert tmpl.render(a=[1, 2], b=[1]) == "01"

    def test_forelse(self, env):
        tmpl = env.from_string("@forelse(xs as x){{ x }}@empty none@endforelse")
        assert tmpl.render(xs=[]) == " none"
        assert tmpl.render(xs=None) == " none"
        assert tmpl.render(xs=[1]) == "1"

    def test_break_and_continue(self, env):
        tmpl = env.from_string("@foreach(range(10) as i)@continue(i % 2)@break(i > 5){{ i }}@endforeach")
        assert tmpl.render() == "024"

    def test_bare_break(self, env):
        tmpl = env.from_string("@foreach(xs as x){{ x }}@if(x == 2)@break@endif@endforeach")
        assert tmpl.render(xs=[1, 2, 3]) == "12"

    def test_not_iterable(self, env):
        tmpl = env.from_string("@foreach(n as x){{ x }}@endforeach")
        with pytest.raises(TemplateRuntimeError) as exc_info:
            tmpl.render(n=5)
        assert "TypeError" in exc_info.value.message


class TestOtherLoops:
    def test_for(self, env):
        assert env.from_string("@for(i in range(3)){{ i }}@endfor").render() == "012"

    def test_while_with_walrus(self, env):
        tmpl = env.from_string("@while((n := n - 1) >= 0){{ n }}@endwhile")
        assert tmpl.render(n=3) == "210"


class TestSwitch:
    SOURCE = (
        "@switch(role)"
        "@case('admin')A@break"
        "@case('editor')@case('author')W@break"
        "@default R"
        "@endswitch"
    )

    @pytest.mark.parametrize(
        ("role", "expected"),
        [("admin", "A"), ("editor", "W"), ("author", "W"), ("guest", " R")],
    )
    def test_cases(self, env, role, expected):
        assert env.from_string(self.SOURCE).render(role=role) == expected

    def test_whitespace_between_cases(self, env):
        tmpl = env.from_string("@switch(n)\n  @case(1)one@break\n  @case(2)two@break\n@endswitch")
        assert tmpl.render(n=2) == "two"


class TestUndefined:
    def test_strict_undefined_raises(self, env):
        with pytest.raises(UndefinedError) as exc_info:
            env.from_string("Hi {{ nmae }}").render(name="x")
        assert exc_info.value.name == "nmae"
        assert "name" in str(exc_info.value)

    def test_lenient_undefined_is_empty(self, lenient_env):
        assert lenient_env.from_string("[{{ missing }}]").render() == "[]"

    def test_attribute_of_none_is_empty(self, env):
        assert env.from_string("[{{ user.name }}]").render(user=None) == "[]"

    def test_unknown_renders_empty(self):
        assert str(UNKNOWN) == ""
        assert not UNKNOWN
