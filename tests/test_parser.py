"""Parser: node tree shape, block nesting and located syntax errors."""

from __future__ import annotations

import ast

import pytest

from tessera import Environment, ErrorCode, TemplateSyntaxError
from tessera.lexer import tokenize
from tessera.nodes import (
    Break,
    Component,
    Data,
    For,
    Helper,
    If,
    InlineSection,
    Output,
    Push,
    Section,
    Switch,
)
from tessera.parser import ExpressionError, Parser, parse_arguments, parse_loop_header

_REGISTRY = Environment().registry


def parse(source: str):
    tokens = tokenize(source, is_directive=_REGISTRY.is_directive, name="test")
    return Parser(tokens, "test", source=source, registry=_REGISTRY).parse()


def syntax_error(source: str) -> TemplateSyntaxError:
    with pytest.raises(TemplateSyntaxError) as exc_info:
        parse(source)
    return exc_info.value


class TestTree:
    def test_text_and_echo(self):
        body = parse("Hi {{ name }}").body
        assert isinstance(body[0], Data)
        assert isinstance(body[1], Output)
        assert ast.unparse(body[1].expr) == "name"
        assert body[1].source == "name"

    def test_if_chain(self):
        (node,) = parse("@if(a)A@elseif(b)B@else C@endif").body
        assert isinstance(node, If)
        assert ast.unparse(node.test) == "a"
        assert len(node.elif_) == 1
        assert node.else_[0].value == " C"

    def test_unless_negates(self):
        (node,) = parse("@unless(a)x@endunless").body
        assert ast.unparse(node.test) == "not a"

    def test_foreach_forms(self):
        (loop,) = parse("@foreach(users as user){{ user }}@endforeach").body
        assert isinstance(loop, For)
        assert ast.unparse(loop.target) == "user"
        assert loop.key_target is None

        (pairs,) = parse("@foreach(scores as name => score)x@endforeach").body
        assert ast.unparse(pairs.key_target) == "name"
        assert ast.unparse(pairs.target) == "score"

        (pythonic,) = parse("@foreach(item in items)x@endforeach").body
        assert ast.unparse(pythonic.iter) == "items"

    def test_forelse_empty_branch(self):
        (loop,) = parse("@forelse(xs as x)a@empty b@endforelse").body
        assert loop.empty[0].value == " b"

    def test_switch_shared_cases(self):
        (node,) = parse("@switch(x)@case(1)@case(2)two@break@default d@endswitch").body
        assert isinstance(node, Switch)
        assert [ast.unparse(v) for v in node.cases[0].values] == ["1", "2"]
        assert node.cases[0].body[0].value == "two"
        assert node.default[0].value == " d"

    def test_break_in_loop(self):
        (loop,) = parse("@foreach(xs as x)@break(x > 2)@endforeach").body
        assert isinstance(loop.body[0], Break)
        assert ast.unparse(loop.body[0].test) == "x > 2"

    def test_sections(self):
        inline, block = parse("@section('title', 'Home')@section('content')C@show").body
        assert isinstance(inline, InlineSection)
        assert isinstance(block, Section)
        assert block.name == "content"
        assert block.show

    def test_extends_recorded(self):
        tree = parse("@extends('layouts.app')@section('content')x@endsection")
        assert tree.extends.template == "layouts.app"

    def test_push_kinds(self):
        push, prepend, once = parse(
            "@push('s')a@endpush@prepend('s')b@endprepend@pushOnce('s')c@endPushOnce"
        ).body
        assert isinstance(push, Push) and not push.prepend
        assert prepend.prepend
        assert once.once_key is not None

    def test_component_slots(self):
        (node,) = parse("@component('Card', {'a': 1})body@slot('title')T@endslot@endcomponent").body
        assert isinstance(node, Component)
        assert node.body[0].value == "body"
        assert ast.unparse(node.slots[0].name) == "'title'"

    def test_component_keyword_attributes(self):
        (node,) = parse("@component('Card', type='x')@endcomponent").body
        assert ast.unparse(node.attrs) == "{'type': 'x'}"

    def test_helper(self):
        (node,) = parse("@date(now, '%Y')").body
        assert isinstance(node, Helper)
        assert node.name == "date"
        assert len(node.args) == 2

    def test_default_with_arguments_is_helper(self):
        (node,) = parse("@default(name, 'anon')").body
        assert isinstance(node, Helper)
        assert node.name == "default"


class TestBlockErrors:
    def test_unclosed_if(self):
        err = syntax_error("@if(x)a")
        assert err.code is ErrorCode.UNCLOSED_BLOCK
        assert "Unclosed @if" in err.message
        assert "@endif" in err.suggestion

    def test_stray_end(self):
        err = syntax_error("text @endif")
        assert err.code is ErrorCode.UNEXPECTED_DIRECTIVE

    def test_stray_else(self):
        assert syntax_error("@else").code is ErrorCode.UNEXPECTED_DIRECTIVE

    def test_wrong_closer_names_innermost_block(self):
        err = syntax_error("@foreach(xs as x)\n{{ x }}\n@endif")
        assert err.code is ErrorCode.UNEXPECTED_DIRECTIVE
        assert err.lineno == 3
        assert "@endforeach" in err.suggestion

    def test_unclosed_nested_reports_innermost(self):
        err = syntax_error("@if(a)\n@foreach(xs as x)\n")
        assert err.code is ErrorCode.UNCLOSED_BLOCK
        assert err.lineno == 2

    @pytest.mark.parametrize(
        "source",
        [
            "@slot('x')y@endslot",
            "@parent",
            "@break",
            "@continue",
        ],
    )
    def test_misplaced_directives(self, source):
        assert syntax_error(source).code is ErrorCode.UNEXPECTED_DIRECTIVE

    def test_conditional_break_inside_switch(self):
        err = syntax_error("@switch(x)@case(1)@break(y)@endswitch")
        assert err.code is ErrorCode.UNEXPECTED_DIRECTIVE

    def test_text_before_first_case(self):
        err = syntax_error("@switch(x) oops @case(1)a@endswitch")
        assert err.code is ErrorCode.UNEXPECTED_DIRECTIVE


class TestArgumentErrors:
    @pytest.mark.parametrize("source", ["{{ 1 + }}", "@if(x ==)y@endif", "@foreach(items)x@endforeach"])
    def test_invalid_expression(self, source):
        assert syntax_error(source).code is ErrorCode.INVALID_EXPRESSION

    def test_empty_echo(self):
        assert syntax_error("{{ }}").code is ErrorCode.INVALID_EXPRESSION

    @pytest.mark.parametrize(
        "source",
        [
            "@section()x@endsection",
            "@section(name)x@endsection",
            "@yield()",
            "@component()@endcomponent",
            "@cache('k', colour=1)x@endcache",
            "@props(**extra)",
        ],
    )
    def test_invalid_arguments(self, source):
        assert syntax_error(source).code is ErrorCode.INVALID_ARGUMENTS

    def test_for_rejects_as_form(self):
        err = syntax_error("@for(items as item)x@endfor")
        assert err.code is ErrorCode.INVALID_EXPRESSION
        assert "@foreach" in err.suggestion


class TestExtendsPlacement:
    def test_extends_inside_block(self):
        err = syntax_error("@if(x)@extends('a')@endif")
        assert err.code is ErrorCode.MISPLACED_EXTENDS

    def test_extends_twice(self):
        err = syntax_error("@extends('a')@extends('b')")
        assert err.code is ErrorCode.MISPLACED_EXTENDS

    def test_extends_needs_literal(self):
        assert syntax_error("@extends(parent)").code is ErrorCode.INVALID_ARGUMENTS


class TestErrorLocation:
    def test_error_carries_source_line(self):
        err = syntax_error("one\ntwo {{ 1 + }}")
        assert err.lineno == 2
        assert err.col_offset == 4
        assert err.name == "test"
        assert "two {{ 1 + }}" in str(err)


class TestExpressions:
    def test_parse_arguments(self):
        args, keywords = parse_arguments("'nav', ttl=60")
        assert ast.unparse(args[0]) == "'nav'"
        assert keywords[0].arg == "ttl"

    def test_parse_arguments_empty(self):
        assert parse_arguments(None) == ([], [])
        assert parse_arguments("  ") == ([], [])

    def test_loop_header_with_commas_and_strings(self):
        target, iterable, key = parse_loop_header("zip(a, 'x as y') as (i, j)")
        assert ast.unparse(iterable) == "zip(a, 'x as y')"
        assert ast.unparse(target) == "(i, j)"
        assert key is None

    def test_loop_header_invalid(self):
        with pytest.raises(ExpressionError, match="items as item"):
            parse_loop_header("items")

    def test_loop_target_must_be_names(self):
        with pytest.raises(ExpressionError):
            parse_loop_header("xs as a.b")
