from __future__ import annotations

import pytest

from indieauth_discovery.link_logic import (
    LinkRelation,
    find_first_by_rel,
    find_first_html_rel,
    parse_html_relations,
    parse_link_headers,
    resolve_url,
)


def test_parse_single_quoted_rel():
    links = list(parse_link_headers(['<https://example.com/auth>; rel="authorization_endpoint"']))
    assert links == [LinkRelation("https://example.com/auth", "authorization_endpoint")]


def test_parse_unquoted_rel_and_extra_params():
    links = list(
        parse_link_headers(['<https://example.com/m>; type="application/json"; rel=indieauth-metadata'])
    )
    assert links == [LinkRelation("https://example.com/m", "indieauth-metadata")]


def test_parse_comma_separated_links_in_one_header():
    header = (
        '<https://example.com/auth>; rel="authorization_endpoint", '
        '<https://example.com/token>; rel="token_endpoint"'
    )
    links = list(parse_link_headers([header]))
    assert [l.relation for l in links] == ["authorization_endpoint", "token_endpoint"]


def test_parse_multiple_header_values_keep_order():
    links = list(
        parse_link_headers(
            [
                '<https://a.example/>; rel="me"',
                '<https://b.example/>; rel="me"',
            ]
        )
    )
    assert [l.url for l in links] == ["https://a.example/", "https://b.example/"]


def test_multi_token_rel_yields_each_token():
    links = list(parse_link_headers(['<https://example.com/x>; rel="authorization_endpoint me"']))
    assert links == [
        LinkRelation("https://example.com/x", "authorization_endpoint"),
        LinkRelation("https://example.com/x", "me"),
    ]


@pytest.mark.parametrize(
    "header",
    [
        "",
        "   ",
        "garbage without brackets",
        "<https://example.com/>",
        '<https://example.com/>; type="text/html"',
    ],
)
def test_entries_without_rel_are_ignored(header):
    assert list(parse_link_headers([header])) == []


def test_malformed_neighbour_does_not_break_good_entry():
    header = 'nonsense; rel="x", <https://example.com/token>; rel="token_endpoint"'
    assert find_first_by_rel([header], "token_endpoint") == "https://example.com/token"


def test_parse_result_is_restartable():
    parsed = parse_link_headers(['<https://example.com/a>; rel="a"'])
    assert list(parsed) == list(parsed)


def test_single_string_is_treated_as_one_header():
    links = list(parse_link_headers('<https://example.com/a>; rel="a"'))
    assert links == [LinkRelation("https://example.com/a", "a")]


@pytest.mark.parametrize("headers", [None, []])
def test_find_first_by_rel_empty_input(headers):
    assert find_first_by_rel(headers, "token_endpoint") is None


def test_find_first_by_rel_is_case_insensitive_and_first_wins():
    headers = [
        '<https://example.com/first>; rel="Token_Endpoint"',
        '<https://example.com/second>; rel="token_endpoint"',
    ]
    assert find_first_by_rel(headers, "TOKEN_ENDPOINT") == "https://example.com/first"


def test_find_first_by_rel_missing_rel():
    assert find_first_by_rel(['<https://example.com/>; rel="me"'], "token_endpoint") is None
    assert find_first_by_rel(['<https://example.com/>; rel="me"'], "") is None


@pytest.mark.parametrize(
    "url, base, expected",
    [
        ("https://auth.example/x", "https://example.com/", "https://auth.example/x"),
        ("/auth", "https://example.com/profile/", "https://example.com/auth"),
        ("auth", "https://example.com/profile/", "https://example.com/profile/auth"),
        ("../token", "https://example.com/a/b/", "https://example.com/a/token"),
        ("//cdn.example/m", "https://example.com/", "https://cdn.example/m"),
        ("/auth", None, "/auth"),
    ],
)
def test_resolve_url(url, base, expected):
    assert resolve_url(url, base) == expected


HTML = """
<html>
  <head>
    <link rel="stylesheet" href="/style.css">
    <link rel="authorization_endpoint me" href="/auth">
    <link rel="token_endpoint" href="https://tokens.example/token">
    <link rel="token_endpoint" href="https://tokens.example/second">
  </head>
  <body>
    <a rel="indieauth-metadata" href="/meta">metadata</a>
    <a href="/no-rel">plain</a>
    <link rel="micropub">
  </body>
</html>
"""


def test_parse_html_relations_reads_link_and_a():
    rels = parse_html_relations(HTML)
    assert LinkRelation("/auth", "authorization_endpoint") in rels
    assert LinkRelation("/auth", "me") in rels
    assert LinkRelation("/meta", "indieauth-metadata") in rels
    # elements without href are skipped
    assert all(r.relation != "micropub" for r in rels)


def test_find_first_html_rel_resolves_and_first_wins():
    rels = parse_html_relations(HTML)
    base = "https://example.com/profile"
    assert find_first_html_rel(rels, "authorization_endpoint", base) == "https://example.com/auth"
    assert find_first_html_rel(rels, "token_endpoint", base) == "https://tokens.example/token"
    assert find_first_html_rel(rels, "indieauth-metadata", base) == "https://example.com/meta"
    assert find_first_html_rel(rels, "redirect_uri", base) is None


def test_parse_html_relations_empty_body():
    assert parse_html_relations("") == []
