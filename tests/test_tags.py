"""Custom HTML tags are rewritten to their directive spellings before lexing."""

from __future__ import annotations

import pytest

from tessera import Environment, ErrorCode, TemplateSyntaxError
from tessera.tags import Attribute, expand_tags, is_component_tag, parse_attributes


class TestControlTags:
    def test_if_else(self):
        assert expand_tags('<if :condition="ok">yes<else/>no</if>') == "@if(ok)yes@else()no@endif"

    def test_elseif_and_unless(self):
        assert (
            expand_tags('<if :condition="a">A<elseif :condition="b"/>B</if>')
            == "@if(a)A@elseif(b)B@endif"
        )
        assert expand_tags('<unless :condition="x">n</unless>') == "@unless(x)n@endunless"

    def test_bare_directive_before_parenthesis(self):
        assert expand_tags("<else/> (x)") == "@else() (x)"

    def test_loop(self):
        assert (
            expand_tags('<loop :items="users" as="user">{{ user }}</loop>')
            == "@foreach(users as user){{ user }}@endforeach"
        )

    def test_forelse(self):
        assert (
            expand_tags('<forelse :items="xs" as="x">{{ x }}<empty/>none</forelse>')
            == "@forelse(xs as x){{ x }}@empty()none@endforelse"
        )

    def test_missing_required_attribute(self):
        with pytest.raises(TemplateSyntaxError) as exc_info:
            expand_tags("line\n<if>x</if>")
        assert exc_info.value.code is ErrorCode.MALFORMED_TAG
        assert exc_info.value.lineno == 2
        assert "condition" in str(exc_info.value)

    def test_newlines_kept_inside_arguments(self):
        assert expand_tags('<if\n  :condition="x">y</if>') == "@if(x\n)y@endif"


class TestComponentTags:
    def test_self_closing_component(self):
        assert (
            expand_tags('<Alert type="error" :message="msg"/>')
            == "@component('Alert', {'type': 'error', 'message': msg})@endcomponent"
        )

    def test_x_prefixed_component(self):
        assert expand_tags("<x-alert>hi</x-alert>") == "@component('alert', {})hi@endcomponent"

    def test_bare_attribute_is_true(self):
        assert (
            expand_tags("<Button disabled/>")
            == "@component('Button', {'disabled': True})@endcomponent"
        )

    def test_literal_attribute_with_echo(self):
        assert (
            expand_tags('<Card title="Hi {{ name }}"/>')
            == "@component('Card', {'title': ('Hi ' + str(name))})@endcomponent"
        )

    def test_named_slots_inside_component(self):
        assert (
            expand_tags("<Card><slot:title>T</slot:title>Body</Card>")
            == "@component('Card', {})@slot('title')T@endslot()Body@endcomponent"
        )

    def test_slot_name_attribute(self):
        assert (
            expand_tags('<Card><slot name="footer">F</slot></Card>')
            == "@component('Card', {})@slot('footer')F@endslot@endcomponent"
        )

    def test_html_slot_outside_component(self):
        assert expand_tags("<slot>x</slot>") == "<slot>x</slot>"

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("Alert", True),
            ("User.ProfileCard", True),
            ("x-user-card", True),
            ("div", False),
            ("x-slot", False),
            ("slot", False),
        ],
    )
    def test_is_component_tag(self, name, expected):
        assert is_component_tag(name) is expected


class TestPrefixedTags:
    def test_stack(self):
        assert expand_tags("<stack:scripts/>") == "@stack('scripts')"

    def test_push(self):
        assert expand_tags("<push:scripts>x</push:scripts>") == "@push('scripts')x@endpush"

    def test_prepend(self):
        assert expand_tags("<prepend:styles>x</prepend:styles>") == "@prepend('styles')x@endprepend"

    def test_yield_default(self):
        assert expand_tags('<yield:title default="Home"/>') == "@yield('title', 'Home')"


class TestOtherTags:
    def test_error(self):
        assert expand_tags('<error field="email"/>') == "@error('email'){{ message }}@enderror"

    def test_cache(self):
        assert (
            expand_tags('<cache key="nav" ttl="60" tags="a b">X</cache>')
            == "@cache('nav', 60, ['a', 'b'])X@endcache"
        )

    def test_cache_without_ttl(self):
        assert expand_tags('<cache key="nav">X</cache>') == "@cache('nav', None)X@endcache"

    def test_include(self):
        assert (
            expand_tags("<include view=\"partials.nav\" :data=\"{'active': 1}\"/>")
            == "@include('partials.nav', {'active': 1})"
        )

    def test_when_helpers(self):
        assert expand_tags('<checked :when="x"/>') == "@checked(x)"
        assert expand_tags('<disabled :when="busy"/>') == "@disabled(busy)"

    def test_fragment_and_teleport(self):
        assert expand_tags('<fragment name="list">L</fragment>') == "@fragment('list')L@endfragment"
        assert expand_tags('<teleport to="#modal">M</teleport>') == "@teleport('#modal')M@endteleport"

    def test_layout(self):
        assert (
            expand_tags('<layout name="layouts.app"><slot:title>T</slot:title></layout>')
            == "@layout('layouts.app')@slot('title')T@endslot@endlayout"
        )

    def test_self_closing_layout_leaves_later_slots_alone(self):
        assert (
            expand_tags('<layout name="layouts.app"/><slot>native</slot>')
            == "@layout('layouts.app')@endlayout<slot>native</slot>"
        )

    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ('<if :condition="ok">yes</if>', "@if(ok)yes@endif"),
            ('<if :condition="ok">yes</if>(', "@if(ok)yes@endif()("),
            ('<if :condition="ok">yes</if> (x)', "@if(ok)yes@endif() (x)"),
            ('<if :condition="ok">yes</if> ', "@if(ok)yes@endif "),
        ],
    )
    def test_parentheses_only_when_text_follows(self, source, expected):
        assert expand_tags(source) == expected

    def test_method(self):
        assert expand_tags('<method type="put"/>') == "@method('put')"

    def test_plain_style_and_html_unchanged(self):
        source = '<style>.a { color: red }</style><div class="x"><p>hi</p></div>'
        assert expand_tags(source) == source

    def test_style_map(self):
        assert expand_tags('<style :map="rules"/>') == "@style(rules)"


class TestProtectedRegions:
    def test_echo_contents_untouched(self):
        assert expand_tags("{{ '<if>' }}") == "{{ '<if>' }}"

    def test_comment_contents_untouched(self):
        source = "{{-- <if> --}}<p></p>"
        assert expand_tags(source) == source

    def test_verbatim_contents_untouched(self):
        source = "@verbatim <if :condition='x'> @endverbatim<p></p>"
        assert expand_tags(source) == source


class TestParseAttributes:
    def test_kinds(self):
        assert parse_attributes('type="error" :count="n + 1" disabled') == [
            Attribute("type", "error"),
            Attribute("count", "n + 1", bound=True),
            Attribute("disabled", None),
        ]

    def test_quote_styles(self):
        attrs = parse_attributes("a='1' b=2 c=\"3\"")
        assert [(a.name, a.value) for a in attrs] == [("a", "1"), ("b", "2"), ("c", "3")]

    def test_expression(self):
        assert Attribute("x", "y").expression == "'y'"
        assert Attribute("x", "y", bound=True).expression == "y"
        assert Attribute("x", None).expression == "True"


class TestRenderedTags:
    def test_if_tag(self, env):
        tmpl = env.from_string('<if :condition="ok">yes<else/>no</if>')
        assert tmpl.render(ok=True) == "yes"
        assert tmpl.render(ok=False) == "no"

    def test_loop_tag(self, env):
        tmpl = env.from_string('<ul><loop :items="xs" as="x"><li>{{ x }}</li></loop></ul>')
        assert tmpl.render(xs=[1, 2]) == "<ul><li>1</li><li>2</li></ul>"

    def test_line_numbers_survive_expansion(self, env):
        with pytest.raises(TemplateSyntaxError) as exc_info:
            env.from_string('<if\n:condition="x">\n{{ 1 + }}</if>')
        assert exc_info.value.lineno == 3


class TestEnvironmentExpand:
    def test_expand_strips_comments_then_tags(self):
        source = '{{-- note --}}<if :condition="ok">yes</if>'
        assert Environment().expand(source) == "@if(ok)yes@endif"
