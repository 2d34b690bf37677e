"""Components: resolution, props, slots, attribute bags and aware data."""

from __future__ import annotations

import logging

import pytest

from tessera import DictLoader, Environment, MissingRequiredPropError, TemplateNotFoundError

COMPONENTS = {
    "components/alert.html": "@props(type='info')<div class=\"alert alert-{{ type }}\">{{ slot }}</div>",
    "components/card.html": "<div>{{ title }}|{{ slot }}</div>",
    "components/button.html": (
        "@props(variant='primary')"
        "<button {{ attributes.merge({'class': 'btn btn-' + variant, 'type': 'button'}) }}>{{ slot }}</button>"
    ),
    "components/profile.html": "@props('user')<p>{{ user }}</p>",
    "components/menu.html": "@props(color='gray')<ul class=\"{{ color }}\">{{ slot }}</ul>",
    "components/menu/item.html": "@aware(color='gray')<li class=\"{{ color }}\">{{ slot }}</li>",
    "components/nav/index.html": "<nav>{{ slot }}</nav>",
    "components/user/profile-card.html": "<section>{{ name }}</section>",
    "components/sized.html": "@props({'size': 'md'})[{{ size }}]",
    "components/badge.html": "@aware(accent_color='gray'){{ accent_color }}",
    "components/pusher.html": "@push('scripts')X@endpush@stack('scripts')",
    "components/inner.html": "@isset(title)leak@endisset ok",
    "components/outer.html": "{{ title }}:<Inner/>",
    "forms/button.html": "<button>{{ slot }}</button>",
}


@pytest.fixture
def cenv():
    return Environment(loader=DictLoader(dict(COMPONENTS)))


class TestInvocation:
    def test_tag_with_props(self, cenv):
        out = cenv.from_string('<Alert type="error">Oops</Alert>').render()
        assert out == '<div class="alert alert-error">Oops</div>'

    def test_prop_default(self, cenv):
        assert cenv.from_string("<Alert>Hi</Alert>").render() == '<div class="alert alert-info">Hi</div>'

    def test_x_prefixed_tag(self, cenv):
        assert cenv.from_string("<x-alert>Hi</x-alert>").render() == '<div class="alert alert-info">Hi</div>'

    def test_directive_form_with_keywords(self, cenv):
        out = cenv.from_string("@component('Alert', type='warning')x@endcomponent").render()
        assert out == '<div class="alert alert-warning">x</div>'

    def test_bound_attribute(self, cenv):
        out = cenv.from_string('<Alert :type="level">x</Alert>').render(level="danger")
        assert out == '<div class="alert alert-danger">x</div>'

    def test_default_slot_keeps_caller_escaping(self, cenv):
        out = cenv.from_string("<Alert><b>{{ msg }}</b></Alert>").render(msg="<i>")
        assert out == '<div class="alert alert-info"><b>&lt;i&gt;</b></div>'

    def test_named_slot(self, cenv):
        out = cenv.from_string("<Card><slot:title>T</slot:title>Body</Card>").render()
        assert out == "<div>T|Body</div>"

    def test_dotted_name(self, cenv):
        assert cenv.from_string('<User.ProfileCard name="Ada"/>').render() == "<section>Ada</section>"

    def test_directory_index(self, cenv):
        assert cenv.from_string("<Nav>links</Nav>").render() == "<nav>links</nav>"

    def test_alias(self, cenv):
        cenv.alias("btn", "forms.button")
        assert cenv.from_string("@component('btn')Go@endcomponent").render() == "<button>Go</button>"

    def test_missing_component(self, cenv):
        with pytest.raises(TemplateNotFoundError, match="Component 'Missing' not found"):
            cenv.from_string("<Missing/>").render()


class TestComponentViews:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("Alert", ["components/alert", "components/alert/index"]),
            ("User.ProfileCard", ["components/user/profile-card", "components/user/profile-card/index"]),
            ("HTMLButton", ["components/html-button", "components/html-button/index"]),
            ("user-card", ["components/user-card", "components/user-card/index"]),
        ],
    )
    def test_component_view(self, name, expected):
        assert Environment().component_view(name) == expected

    def test_custom_components_path(self):
        env = Environment(components_path="ui/")
        assert env.component_view("Alert")[0] == "ui/alert"


class TestAttributes:
    def test_attribute_bag_excludes_props(self, cenv):
        out = cenv.from_string('<Button class="wide" disabled variant="danger">Go</Button>').render()
        assert out == '<button class="btn btn-danger wide" type="button" disabled>Go</button>'

    def test_attribute_bag_defaults_only(self, cenv):
        out = cenv.from_string("<Button>Go</Button>").render()
        assert out == '<button class="btn btn-primary" type="button">Go</button>'


class TestProps:
    def test_missing_required_prop(self, cenv):
        with pytest.raises(MissingRequiredPropError) as exc_info:
            cenv.from_string("<Profile/>").render()
        assert exc_info.value.prop == "user"

    def test_missing_required_prop_in_production(self, caplog):
        env = Environment(loader=DictLoader(dict(COMPONENTS)), mode="production")
        with caplog.at_level(logging.WARNING, logger="tessera"):
            assert env.from_string("<Profile/>").render() == "<p></p>"
        assert "without required prop 'user'" in caplog.text

    def test_call_site_wins_over_default(self, cenv):
        assert "alert-error" in cenv.from_string("@component('Alert', {'type': 'error'})@endcomponent").render()

    def test_tag_props_with_dict_defaults(self, cenv):
        assert cenv.from_string('<Sized size="lg"/>|<Sized/>').render() == "[lg]|[md]"


class TestAware:
    def test_child_reads_parent_value(self, cenv):
        out = cenv.from_string('<Menu color="purple"><Menu.Item>A</Menu.Item></Menu>').render()
        assert out == '<ul class="purple"><li class="purple">A</li></ul>'

    def test_default_when_no_ancestor_value(self, cenv):
        out = cenv.from_string("<Menu><Menu.Item>A</Menu.Item></Menu>").render()
        assert out == '<ul class="gray"><li class="gray">A</li></ul>'

    def test_own_value_wins(self, cenv):
        out = cenv.from_string('<Menu color="purple"><Menu.Item color="red">A</Menu.Item></Menu>').render()
        assert out == '<ul class="purple"><li class="red">A</li></ul>'

    def test_standalone_item_uses_default(self, cenv):
        assert cenv.from_string("<Menu.Item>A</Menu.Item>").render() == '<li class="gray">A</li>'

    def test_kebab_case_attribute_reaches_snake_case_name(self, cenv):
        out = cenv.from_string('<Menu accent-color="red"><Badge/></Menu>').render()
        assert out == '<ul class="gray">red</ul>'


class TestIsolation:
    def test_component_stacks_are_isolated(self, cenv):
        assert cenv.from_string("<Pusher/>[@stack('scripts')]").render() == "X[]"

    def test_named_slots_do_not_leak_into_nested_components(self, cenv):
        out = cenv.from_string("<Outer><slot:title>T</slot:title></Outer>").render()
        assert out == "T: ok"
