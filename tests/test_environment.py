"""Environment: view resolution, loaders, includes, shared data and composers."""

from __future__ import annotations

import pytest

from tessera import (
    ChoiceLoader,
    DictLoader,
    Environment,
    ErrorCode,
    FileSystemLoader,
    FunctionLoader,
    PrefixLoader,
    TemplateNotFoundError,
    TemplateRuntimeError,
)


class TestConfiguration:
    def test_invalid_mode(self):
        with pytest.raises(ValueError, match="mode"):
            Environment(mode="staging")

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            Environment(stream_chunk_size=0)

    def test_mode_flags(self):
        assert Environment().debug
        assert Environment(mode="production").production

    def test_repr(self):
        assert repr(Environment()) == "<Environment mode=development strict=True fast_cache=False compiled=0>"

    def test_extensions_normalized(self):
        env = Environment(extensions=["tpl", ".html"])
        assert env.candidates("mail.welcome") == ["mail/welcome.tpl", "mail/welcome.html"]


class TestViewNames:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("home", ["home.html"]),
            ("layouts.app", ["layouts/app.html"]),
            ("users/profile", ["users/profile.html"]),
            ("emails/welcome.html", ["emails/welcome.html"]),
        ],
    )
    def test_candidates(self, name, expected):
        assert Environment().candidates(name) == expected

    @pytest.mark.parametrize("name", ["", "../secrets", "a/../../b"])
    def test_rejected_names(self, name):
        with pytest.raises(TemplateNotFoundError, match="Invalid view name"):
            Environment().candidates(name)

    def test_missing_view(self, loader_env):
        with pytest.raises(TemplateNotFoundError, match="View 'nope' not found"):
            loader_env.render("nope")

    def test_no_loader(self, env):
        with pytest.raises(TemplateNotFoundError, match="no loader configured"):
            env.get_template("home")


class TestLoaders:
    def test_filesystem(self, tmp_path):
        (tmp_path / "pages").mkdir()
        (tmp_path / "pages" / "about.html").write_text("About {{ who }}")
        env = Environment(loader=FileSystemLoader(tmp_path))
        assert env.render("pages.about", {"who": "us"}) == "About us"
        assert env.get_template("pages.about").filename == str(tmp_path / "pages" / "about.html")

    def test_filesystem_search_order(self, tmp_path):
        theme, base = tmp_path / "theme", tmp_path / "base"
        theme.mkdir()
        base.mkdir()
        (theme / "a.html").write_text("theme")
        (base / "a.html").write_text("base")
        (base / "b.html").write_text("base b")
        loader = FileSystemLoader([theme, base])
        env = Environment(loader=loader)
        assert env.render("a") == "theme"
        assert env.render("b") == "base b"
        assert loader.list_templates() == ["a.html", "b.html"]

    def test_filesystem_rejects_escape(self, tmp_path):
        root = tmp_path / "views"
        root.mkdir()
        (tmp_path / "secret.html").write_text("secret")
        with pytest.raises(TemplateNotFoundError):
            FileSystemLoader(root).get_source("../secret.html")

    def test_dict_loader_suggestion(self):
        with pytest.raises(TemplateNotFoundError, match="Did you mean 'home.html'"):
            DictLoader({"home.html": ""}).get_source("hom.html")

    def test_choice_loader(self):
        loader = ChoiceLoader([DictLoader({"a.html": "first"}), DictLoader({"a.html": "second", "b.html": "b"})])
        env = Environment(loader=loader)
        assert env.render("a") == "first"
        assert env.render("b") == "b"

    def test_prefix_loader(self):
        loader = PrefixLoader({"mail": DictLoader({"welcome.html": "Hi {{ name }}"})})
        env = Environment(loader=loader)
        assert env.render("mail/welcome", {"name": "Ada"}) == "Hi Ada"
        assert loader.list_templates() == ["mail/welcome.html"]

    def test_function_loader(self):
        env = Environment(loader=FunctionLoader(lambda name: "F" if name == "f.html" else None))
        assert env.render("f") == "F"
        with pytest.raises(TemplateNotFoundError):
            env.render("g")


class TestIncludes:
    def test_include_sees_parent_context(self, loader_env):
        assert loader_env.from_string("@include('partials.nav')").render(active="x") == "<nav>x</nav>"

    def test_include_with_data(self, loader_env):
        tmpl = loader_env.from_string("@include('partials.nav', {'active': 'home'})|{{ active }}")
        assert tmpl.render(active="outer") == "<nav>home</nav>|outer"

    def test_include_if_missing(self, loader_env):
        assert loader_env.from_string("[@includeIf('nope')]").render() == "[]"

    def test_include_missing_raises(self, loader_env):
        with pytest.raises(TemplateNotFoundError):
            loader_env.from_string("@include('nope')").render()

    @pytest.mark.parametrize(("show", "expected"), [(True, "<nav>a</nav>"), (False, "")])
    def test_include_when(self, loader_env, show, expected):
        tmpl = loader_env.from_string("@includeWhen(show, 'partials.nav', {'active': 'a'})")
        assert tmpl.render(show=show) == expected

    def test_include_tag(self, loader_env):
        tmpl = loader_env.from_string("<include view=\"partials.nav\" :data=\"{'active': 'tag'}\"/>")
        assert tmpl.render() == "<nav>tag</nav>"

    def test_include_output_not_escaped_twice(self, views, loader_env):
        views["partials/b.html"] = "<b>{{ v }}</b>"
        assert loader_env.from_string("@include('partials.b')").render(v="<") == "<b>&lt;</b>"

    def test_recursive_include_hits_depth_limit(self, views):
        views["loop.html"] = "x@include('loop')"
        env = Environment(loader=DictLoader(views), max_include_depth=5)
        with pytest.raises(TemplateRuntimeError) as exc_info:
            env.render("loop")
        assert exc_info.value.code is ErrorCode.INCLUDE_DEPTH
        assert "Maximum include depth exceeded (5)" in exc_info.value.message


class TestSharedData:
    def test_share(self, loader_env):
        loader_env.share("active", "shared")
        assert loader_env.render("partials.nav") == "<nav>shared</nav>"

    def test_globals_argument(self):
        env = Environment(globals={"site": "S"})
        assert env.from_string("{{ site }}").render() == "S"

    def test_composer_by_name(self, loader_env):
        loader_env.composer("home", lambda data: {"name": "Composed"})
        assert "<h1>Hello Composed</h1>" in loader_env.render("home")

    def test_composer_glob_on_include(self, loader_env):
        loader_env.composer("partials.*", lambda data: {"active": data.get("page", "?")})
        assert loader_env.from_string("@include('partials.nav')").render(page="p") == "<nav>p</nav>"

    def test_composer_can_mutate(self, loader_env):
        def add_active(data):
            data["active"] = "mutated"

        loader_env.composer(["partials.nav"], add_active)
        assert loader_env.render("partials.nav") == "<nav>mutated</nav>"

    def test_composer_for_component(self, views, loader_env):
        views["components/badge.html"] = "<i>{{ label }}</i>"
        loader_env.composer("components.badge", lambda data: {"label": "composed"})
        assert loader_env.from_string("<Badge/>").render() == "<i>composed</i>"

    def test_render_many(self, loader_env):
        results = loader_env.render_many(
            {"partials.nav": {"active": "a"}, "home": None},
            {"name": "N", "active": "z"},
        )
        assert results["partials.nav"] == "<nav>a</nav>"
        assert "Hello N" in results["home"]

    def test_render_many_names(self, loader_env):
        assert loader_env.render_many(["partials.nav"], {"active": "q"}) == {"partials.nav": "<nav>q</nav>"}

    def test_positional_mapping_and_kwargs(self, loader_env):
        tmpl = loader_env.get_template("partials.nav")
        assert tmpl.render({"active": "a"}, active="b") == "<nav>b</nav>"
        with pytest.raises(TypeError):
            tmpl.render({"a": 1}, {"b": 2})
