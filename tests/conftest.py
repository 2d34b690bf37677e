"""Pytest configuration and fixtures for tessera tests."""

import pytest

from tessera import ContentCache, DictLoader, Environment


@pytest.fixture
def env():
    """Environment without a loader, for from_string() tests."""
    return Environment()


@pytest.fixture
def lenient_env():
    """Environment reading undefined names as None."""
    return Environment(strict=False)


@pytest.fixture
def views():
    """Mutable template mapping backing the ``loader_env`` fixture."""
    return {
        "layouts/app.html": (
            "<html><head><title>@yield('title', 'Site')</title>@stack('styles')</head>"
            "<body>@yield('content')@stack('scripts')</body></html>"
        ),
        "layouts/admin.html": (
            "@extends('layouts.app')"
            "@section('content')<nav>admin</nav>@yield('main')@endsection"
        ),
        "home.html": (
            "@extends('layouts.app')"
            "@section('title', 'Home')"
            "@section('content')<h1>Hello {{ name }}</h1>@endsection"
        ),
        "partials/nav.html": "<nav>{{ active }}</nav>",
        "components/alert.html": (
            "@props(type='info')<div class=\"alert alert-{{ type }}\">{{ slot }}</div>"
        ),
    }


@pytest.fixture
def loader_env(views):
    """Environment over a DictLoader holding ``views``."""
    return Environment(loader=DictLoader(views))


class FakeClock:
    """Manually advanced time source for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def content_cache(clock):
    return ContentCache(clock=clock)


def assert_template_equal(template_result: str, expected: str) -> None:
    """Assert template result equals expected, normalizing whitespace."""
    actual_normalized = " ".join(template_result.split())
    expected_normalized = " ".join(expected.split())
    assert actual_normalized == expected_normalized, (
        f"Template output mismatch:\n"
        f"  Actual: {actual_normalized!r}\n"
        f"  Expected: {expected_normalized!r}"
    )


def assert_contains(template_result: str, *expected_parts: str) -> None:
    """Assert template result contains all expected parts."""
    for part in expected_parts:
        assert part in template_result, (
            f"Template output missing expected content:\n"
            f"  Missing: {part!r}\n"
            f"  Actual: {template_result!r}"
        )
