"""Layout inheritance, sections, stacks and @once."""

from __future__ import annotations

import pytest

from tessera import (
    CyclicInheritanceError,
    DictLoader,
    Environment,
    ErrorCode,
    TemplateNotFoundError,
)


def make_env(**views: str) -> Environment:
    return Environment(loader=DictLoader({f"{name}.html": source for name, source in views.items()}))


class TestExtends:
    def test_child_fills_parent(self, loader_env):
        assert loader_env.render("home", {"name": "Ada"}) == (
            "<html><head><title>Home</title></head><body><h1>Hello Ada</h1></body></html>"
        )

    def test_yield_default(self, views, loader_env):
        views["bare.html"] = "@extends('layouts.app')@section('content')x@endsection"
        assert "<title>Site</title>" in loader_env.render("bare")

    def test_three_levels(self, views, loader_env):
        views["dash.html"] = "@extends('layouts.admin')@section('main')M@endsection"
        assert loader_env.render("dash") == (
            "<html><head><title>Site</title></head><body><nav>admin</nav>M</body></html>"
        )

    def test_closest_definition_wins(self):
        env = make_env(
            grand="[@yield('x')|@yield('y', 'D')]",
            parent="@extends('grand')@section('x')parent@endsection",
            child="@extends('parent')@section('x')child@endsection",
        )
        assert env.render("child") == "[child|D]"

    def test_child_text_outside_sections_dropped(self, loader_env):
        tmpl = loader_env.from_string(
            "@extends('layouts.app')IGNORED@section('content')C@endsection"
        )
        out = tmpl.render()
        assert "IGNORED" not in out
        assert "<body>C</body>" in out

    def test_parent_directive(self):
        env = make_env(
            base="<aside>@section('sidebar')base@show</aside>",
            page="@extends('base')@section('sidebar')@parent extra@endsection",
        )
        assert env.render("page") == "<aside>base extra</aside>"

    def test_parent_through_three_levels(self):
        env = make_env(
            a="@yield('s')",
            b="@extends('a')@section('s')B@parent@endsection",
            c="@extends('b')@section('s')C@parent@endsection",
        )
        assert env.render("c") == "CB"

    def test_show_without_override(self):
        env = make_env(base="@section('nav')default nav@show")
        assert env.render("base") == "default nav"

    def test_stop_closes_section(self):
        env = make_env(
            base="@yield('a')",
            page="@extends('base')@section('a')A@stop",
        )
        assert env.render("page") == "A"

    def test_inline_section_is_escaped(self):
        env = make_env(
            base="@yield('title')|@yield('x', '<b>')",
            page="@extends('base')@section('title', heading)",
        )
        assert env.render("page", {"heading": "<T>"}) == "&lt;T&gt;|&lt;b&gt;"

    def test_has_section(self):
        env = make_env(
            base="@hasSection('nav')N@else none@endif|@sectionMissing('nav')M@endif",
            with_nav="@extends('base')@section('nav')x@endsection",
            without_nav="@extends('base')",
        )
        assert env.render("with_nav") == "N|"
        assert env.render("without_nav") == " none|M"

    def test_layout_sugar(self, loader_env):
        tmpl = loader_env.from_string(
            "@layout('layouts.app')\n@slot('title')T@endslot\n<p>body</p>\n@endlayout"
        )
        assert tmpl.render() == (
            "<html><head><title>T</title></head><body><p>body</p></body></html>"
        )

    def test_layout_tag(self, loader_env):
        tmpl = loader_env.from_string(
            '<layout name="layouts.app"><slot:title>T</slot:title><p>body</p></layout>'
        )
        assert "<title>T</title>" in tmpl.render()
        assert "<body><p>body</p></body>" in tmpl.render()


class TestInheritanceErrors:
    def test_cycle(self):
        env = make_env(a="@extends('b')", b="@extends('a')")
        with pytest.raises(CyclicInheritanceError) as exc_info:
            env.render("a")
        assert exc_info.value.chain == ["a.html", "b.html", "a.html"]
        assert exc_info.value.code is ErrorCode.CYCLIC_INHERITANCE
        assert "a.html -> b.html -> a.html" in str(exc_info.value)

    def test_self_extension(self):
        env = make_env(me="@extends('me')")
        with pytest.raises(CyclicInheritanceError) as exc_info:
            env.render("me")
        assert exc_info.value.chain == ["me.html", "me.html"]

    def test_missing_parent(self):
        env = make_env(page="@extends('nowhere')")
        with pytest.raises(TemplateNotFoundError):
            env.render("page")


class TestStacks:
    def test_push_and_prepend_order(self, env):
        tmpl = env.from_string("@push('s')A@endpush@prepend('s')B@endprepend@push('s')C@endpush@stack('s')")
        assert tmpl.render() == "BAC"

    def test_empty_stack(self, env):
        assert env.from_string("[@stack('nothing')]").render() == "[]"

    def test_child_pushes_reach_layout(self, views, loader_env):
        views["page.html"] = (
            "@extends('layouts.app')"
            "@push('styles')<link href=\"/a.css\">@endpush"
            "@section('content')C@endsection"
        )
        assert loader_env.render("page") == (
            '<html><head><title>Site</title><link href="/a.css"></head><body>C</body></html>'
        )

    def test_push_from_included_partial(self, views, loader_env):
        views["partials/js.html"] = "@push('scripts')<script>p()</script>@endpush"
        views["page.html"] = "@extends('layouts.app')@section('content')C@include('partials.js')@endsection"
        assert loader_env.render("page").endswith("<body>C<script>p()</script></body></html>")

    def test_push_once_in_loop(self, env):
        tmpl = env.from_string("@foreach(range(3) as i)@pushOnce('s')X@endPushOnce@endforeach@stack('s')")
        assert tmpl.render() == "X"

    def test_push_once_explicit_key(self, env):
        tmpl = env.from_string(
            "@pushOnce('s', 'k')X@endPushOnce@pushOnce('s', 'k')Y@endPushOnce"
            "@pushOnce('s', 'other')Z@endPushOnce@stack('s')"
        )
        assert tmpl.render() == "XZ"

    def test_stack_tags(self, env):
        tmpl = env.from_string("<push:s>a</push:s><prepend:s>b</prepend:s><stack:s/>")
        assert tmpl.render() == "ba"


class TestOnce:
    def test_once_in_loop(self, env):
        assert env.from_string("@foreach(range(3) as i)@once I@endonce@endforeach").render() == " I"

    def test_once_keyed(self, env):
        tmpl = env.from_string("@once('a')1@endonce@once('a')2@endonce@once('b')3@endonce")
        assert tmpl.render() == "13"

    def test_once_across_includes(self, views, loader_env):
        views["partials/once.html"] = "@once X@endonce"
        tmpl = loader_env.from_string("@include('partials.once')@include('partials.once')")
        assert tmpl.render() == " X"

    def test_once_resets_between_renders(self, env):
        tmpl = env.from_string("@once X@endonce")
        assert tmpl.render() == " X"
        assert tmpl.render() == " X"
