"""Inline helpers, registered directives and conditions, @error and globals."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from tessera import DictLoader, Environment, Markup, TemplateRuntimeError, UndefinedError
from tessera.environment.directives import diff_for_humans, format_number
from tessera.render_context import render_context


def render_with_meta(env: Environment, source: str, meta: dict, **context) -> str:
    tmpl = env.from_string(source)
    with render_context() as rc:
        for key, value in meta.items():
            rc.set_meta(key, value)
        return tmpl.render(**context)


class TestFormHelpers:
    def test_csrf(self, env):
        out = render_with_meta(env, "<form>@csrf</form>", {"csrf_token": "t<k"})
        assert out == '<form><input type="hidden" name="_token" value="t&lt;k"></form>'

    def test_csrf_without_token_warns(self, env):
        with pytest.warns(UserWarning, match="no token provided"):
            assert env.from_string("@csrf").render() == ""

    def test_method(self, env):
        assert env.from_string("@method('put')").render() == (
            '<input type="hidden" name="_method" value="PUT">'
        )

    def test_old_input(self, env):
        meta = {"old": {"email": "a@b.c", "address": {"city": "Lagos"}}}
        out = render_with_meta(env, "@old('email')|@old('address.city')|@old('name', 'anon')", meta)
        assert out == "a@b.c|Lagos|anon"

    @pytest.mark.parametrize(("on", "expected"), [(True, "<input checked>"), (False, "<input >")])
    def test_checked(self, env, on, expected):
        assert env.from_string("<input @checked(on)>").render(on=on) == expected

    def test_csrf_token_global(self, env):
        assert render_with_meta(env, "{{ csrf_token() }}", {"csrf_token": "abc"}) == "abc"


class TestAttributeHelpers:
    def test_class(self, env):
        out = env.from_string("<a @class(['btn', {'active': on, 'off': not on}])>").render(on=True)
        assert out == '<a class="btn active">'

    def test_style(self, env):
        out = env.from_string("<p @style(['color: red;', {'font-weight: bold': bold}])>").render(bold=True)
        assert out == '<p style="color: red; font-weight: bold;">'

    def test_json(self, env):
        out = env.from_string("@json(data)").render(data={"a": "</script>"})
        assert out == '{"a": "\\u003c/script\\u003e"}'

    def test_json_script_with_nonce(self, env):
        out = render_with_meta(env, "@jsonScript(cfg, 'config')", {"csp_nonce": "n1"}, cfg={"x": 1})
        assert out == '<script nonce="n1">var config = {"x": 1};</script>'

    def test_json_script_rejects_bad_name(self, env):
        with pytest.raises(TemplateRuntimeError) as exc_info:
            env.from_string("@jsonScript(1, 'not-valid')").render()
        assert "ValueError" in exc_info.value.message

    def test_csp_meta_tag(self, env):
        out = render_with_meta(env, "@csp", {"csp_nonce": "xyz"})
        assert "'nonce-xyz'" in out
        assert out.startswith('<meta http-equiv="Content-Security-Policy"')

    def test_sanitize(self, env):
        out = env.from_string("@sanitize(body)").render(body="<p onclick=\"x()\">hi</p><script>bad()</script>")
        assert out == "<p>hi</p>"


class TestFormatting:
    def test_dates(self, env):
        tmpl = env.from_string("@date(d, '%d %b')|@humanDate(d)|@datetime(dt)")
        out = tmpl.render(d=date(2026, 3, 4), dt=datetime(2026, 3, 4, 5, 6, 7))
        assert out == "04 Mar|March 4, 2026|2026-03-04 05:06:07"

    def test_iso_string_date(self, env):
        assert env.from_string("@date('2026-03-04T10:00:00')").render() == "2026-03-04"

    def test_empty_date(self, env):
        assert env.from_string("[@date(d)]").render(d=None) == "[]"

    @pytest.mark.parametrize(
        ("then", "expected"),
        [
            (datetime(2026, 3, 4, 9), "3 hours ago"),
            (datetime(2026, 3, 4, 11, 59, 59), "1 second ago"),
            (datetime(2026, 3, 6, 12), "in 2 days"),
            (datetime(2025, 3, 4, 12), "1 year ago"),
        ],
    )
    def test_diff_for_humans(self, then, expected):
        assert diff_for_humans(then, datetime(2026, 3, 4, 12)) == expected

    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("@number(1234.5)", "1,235"),
            ("@number(1234.5, 2)", "1,234.50"),
            ("@currency(9.5)", "$9.50"),
            ("@currency(3, 'ngn')", "₦3.00"),
            ("@currency(1, 'CHF')", "CHF 1.00"),
            ("@percent(12.345, 1)", "12.3%"),
        ],
    )
    def test_numbers(self, env, source, expected):
        assert env.from_string(source).render() == expected

    def test_round_half_up(self):
        assert format_number(2.5) == "3"
        assert format_number(-2.5) == "-3"

    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("@upper('abc')", "ABC"),
            ("@lower('ABC')", "abc"),
            ("@title('hello wORLD')", "Hello World"),
            ("@ucfirst('hello world')", "Hello world"),
            ("@slug('Hello, World!')", "hello-world"),
            ("@truncate('abcdef', 3)", "abc..."),
            ("@truncate('abc', 3)", "abc"),
            ("@excerpt('<p>one two three</p>', 8)", "one two..."),
            ("@count([1, 2])", "2"),
            ("@join(['a', 'b'], ', ')", "a, b"),
            ("@default('', 'none')", "none"),
            ("@default('set', 'none')", "set"),
        ],
    )
    def test_strings(self, env, source, expected):
        assert env.from_string(source).render() == expected

    def test_helper_output_is_escaped(self, env):
        assert env.from_string("@upper(x)").render(x="<b>") == "&lt;B&gt;"


class TestDump:
    def test_debug_mode(self, env):
        assert env.from_string("@dump(x)").render(x={"a": 1}) == (
            "<pre class=\"tessera-dump\">{&#39;a&#39;: 1}</pre>"
        )

    def test_production_renders_nothing(self):
        env = Environment(mode="production")
        assert env.from_string("[@dump(x)]").render(x=1) == "[]"


class TestCustomDirectives:
    def test_register_helper(self, env):
        env.directive("money", lambda v: f"${v:,.2f}")
        assert env.from_string("@money(price)").render(price=1234.5) == "$1,234.50"

    def test_plain_result_escaped_markup_not(self, env):
        env.directive("bold", lambda s: f"<b>{s}</b>")
        env.directive("safe_bold", lambda s: Markup("<b>") + s + Markup("</b>"))
        assert env.from_string("@bold('x')").render() == "&lt;b&gt;x&lt;/b&gt;"
        assert env.from_string("@safe_bold('<x>')").render() == "<b>&lt;x&gt;</b>"

    def test_keyword_arguments(self, env):
        env.directive("greet", lambda name, punct="!": f"Hi {name}{punct}")
        assert env.from_string("@greet('Ada', punct='?')").render() == "Hi Ada?"

    def test_unregistered_name_stays_text(self, env):
        assert env.from_string("@money(1)").render() == "@money(1)"

    def test_registration_recompiles_views(self):
        env = Environment(loader=DictLoader({"price.html": "@money(1)"}))
        assert env.render("price") == "@money(1)"
        env.directive("money", lambda v: f"${v:,.2f}")
        assert env.render("price") == "$1.00"

    @pytest.mark.parametrize("name", ["if", "foreach", "js", "not-valid"])
    def test_reserved_or_invalid_names(self, env, name):
        with pytest.raises(ValueError):
            env.directive(name, lambda: "")

    def test_helper_error_is_wrapped(self, env):
        env.directive("explode", lambda: 1 / 0)
        with pytest.raises(TemplateRuntimeError) as exc_info:
            env.from_string("@explode").render()
        assert exc_info.value.message.startswith("ZeroDivisionError")


class TestConditions:
    def test_custom_condition(self, env):
        env.condition("admin", lambda user: user.get("role") == "admin")
        tmpl = env.from_string("@admin(user)yes@else no@endadmin")
        assert tmpl.render(user={"role": "admin"}) == "yes"
        assert tmpl.render(user={"role": "guest"}) == " no"

    def test_production(self):
        source = "@production P@else D@endproduction"
        assert Environment(mode="production").from_string(source).render() == " P"
        assert Environment().from_string(source).render() == " D"

    def test_env(self, env):
        assert env.from_string("@env('staging', 'development')yes@endenv").render() == "yes"
        assert env.from_string("@env(['production'])yes@endenv").render() == ""


class TestErrorBlocks:
    def test_first_message(self, env):
        out = render_with_meta(
            env,
            "@error('email')<p>{{ message }}</p>@enderror",
            {"errors": {"email": ["Required", "Invalid"]}},
        )
        assert out == "<p>Required</p>"

    def test_else_branch(self, env):
        out = render_with_meta(env, "@error('email')bad@else ok@enderror", {"errors": {}})
        assert out == " ok"

    def test_no_errors_meta(self, env):
        assert env.from_string("[@error('email')bad@enderror]").render() == "[]"

    def test_named_bag(self, env):
        meta = {"errors": {"login": {"email": "Unknown user"}}}
        assert render_with_meta(env, "@error('email', 'login'){{ message }}@enderror", meta) == "Unknown user"

    def test_error_tag(self, env):
        out = render_with_meta(env, '<error field="name"/>', {"errors": {"name": ["<short>"]}})
        assert out == "&lt;short&gt;"

    def test_message_restored(self, lenient_env):
        out = render_with_meta(
            lenient_env, "@error('a')x@enderror[{{ message }}]", {"errors": {"a": ["m"]}}
        )
        assert out == "x[]"

    def test_errors_global(self, env):
        out = render_with_meta(env, "{{ errors()['a'][0] }}", {"errors": {"a": ["m"]}})
        assert out == "m"


class TestRequestGlobals:
    def test_hx_request(self, env):
        tmpl = "@if(hx_request())partial@else full@endif|{{ hx_target() }}"
        assert render_with_meta(env, tmpl, {"hx_request": True, "hx_target": "#list"}) == "partial|#list"

    def test_outside_render_context(self, env):
        assert env.from_string("@if(hx_request())p@else f@endif").render() == " f"

    def test_builtins_available(self, env):
        assert env.from_string("{{ len(xs) }}{{ max(xs) }}{{ sorted(xs)[0] }}").render(xs=[3, 1]) == "231"

    def test_no_python_builtins_beyond_globals(self, env):
        with pytest.raises(UndefinedError):
            env.from_string("{{ open('x') }}").render()

    def test_share(self, env):
        env.share("site", "Tessera")
        assert env.from_string("{{ site }}").render() == "Tessera"
        assert env.from_string("{{ site }}").render(site="Override") == "Override"
