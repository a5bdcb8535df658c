# indieauth_discovery/link_logic.py
"""
Link relation parsing shared by every discovery tier.

- HTTP `Link` headers (RFC 8288): `<url>; rel="value"; other=...`, comma
  separated inside one header or repeated across several.
- HTML: `<link>` and `<a>` elements with both `rel` and `href`.
- Resolution of relative URLs against the effective base URI.

Nothing here does I/O. First match in document order always wins.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator, List
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, Tag

log = logging.getLogger(__name__)

REL_INDIEAUTH_METADATA = "indieauth-metadata"
REL_AUTHORIZATION_ENDPOINT = "authorization_endpoint"
REL_TOKEN_ENDPOINT = "token_endpoint"

ALLOWED_SCHEMES = {"http", "https"}

# One link entry: <url> followed by its parameters up to the next comma.
_LINK_ENTRY = re.compile(r"<([^>]+)>\s*;?\s*([^,]*)")
# rel parameter, quoted (possibly several space separated types) or bare.
_REL_PARAM = re.compile(
    r"(?:^|;)\s*rel\s*=\s*(?:\"([^\"]*)\"|([^\s;,\"]+))", re.IGNORECASE
)


@dataclass(frozen=True)
class LinkRelation:
    url: str
    relation: str


def _parse_single_header(value: str) -> Iterator[LinkRelation]:
    for match in _LINK_ENTRY.finditer(value):
        url = match.group(1).strip()
        rel_match = _REL_PARAM.search(match.group(2) or "")
        if not url or rel_match is None:
            continue
        rel_value = rel_match.group(1)
        if rel_value is None:
            rel_value = rel_match.group(2)
        for rel in rel_value.split():
            yield LinkRelation(url=url, relation=rel)


class _LinkRelations:
    """Restartable view over the relations in a set of header values."""

    def __init__(self, header_values: Iterable[str] | None):
        if isinstance(header_values, str):
            header_values = [header_values]
        self._values = list(header_values or [])

    def __iter__(self) -> Iterator[LinkRelation]:
        for value in self._values:
            if not value or not value.strip():
                continue
            yield from _parse_single_header(value)


def parse_link_headers(header_values: Iterable[str] | None) -> Iterable[LinkRelation]:
    """
    Lazily yield every (url, relation) pair in the given `Link` header values.

    Entries without a rel parameter are skipped. Malformed entries are
    skipped without affecting well-formed neighbours. The returned iterable
    can be iterated more than once.
    """
    return _LinkRelations(header_values)


def find_first_by_rel(header_values: Iterable[str] | None, rel: str | None) -> str | None:
    """Return the URL of the first link whose relation matches `rel` (case-insensitive)."""
    if not header_values or not rel:
        return None
    wanted = rel.lower()
    for link in parse_link_headers(header_values):
        if link.relation.lower() == wanted:
            return link.url
    return None


def resolve_url(url: str | None, base: str | None = None) -> str | None:
    """
    Return `url` unchanged when it is an absolute http(s) URL, otherwise
    resolve it against `base`. Without a base the input is returned as is.

    urljoin treats "/x" as a path relative to the base host, never as a
    local file reference.
    """
    if not url:
        return url
    try:
        p = urlsplit(url)
        if p.scheme.lower() in ALLOWED_SCHEMES and p.netloc:
            return url
        if base:
            return urljoin(base, url)
    except ValueError:
        log.debug("Could not resolve %s against %s", url, base)
    return url


def find_first_by_rel_resolved(
    header_values: Iterable[str] | None, rel: str, base: str | None
) -> str | None:
    found = find_first_by_rel(header_values, rel)
    if not found:
        return None
    return resolve_url(found, base)


# ---------- HTML ----------


def _rel_list(tag: Tag) -> List[str]:
    rel = tag.get("rel", None)
    if not rel:
        return []
    if isinstance(rel, str):
        rel = rel.split()
    return [r.strip().lower() for r in rel if isinstance(r, str) and r.strip()]


def extract_rel_elements(soup: BeautifulSoup) -> List[Tag]:
    """All <link>/<a> elements carrying both rel and href, in document order."""
    return list(soup.find_all(["link", "a"], rel=True, href=True))


def parse_html_relations(html: str) -> List[LinkRelation]:
    """
    Collect relations declared in HTML markup.

    A multi-valued rel ("authorization_endpoint me") registers the href
    under each of its tokens.
    """
    if not html:
        return []
    soup = BeautifulSoup(html, "html.parser")
    out: List[LinkRelation] = []
    for el in extract_rel_elements(soup):
        href = el.get("href")
        if not isinstance(href, str) or not href.strip():
            continue
        for rel in _rel_list(el):
            out.append(LinkRelation(url=href.strip(), relation=rel))
    return out


def find_first_html_rel(
    relations: Iterable[LinkRelation], rel: str, base: str | None
) -> str | None:
    wanted = rel.lower()
    for link in relations:
        if link.relation.lower() == wanted:
            return resolve_url(link.url, base)
    return None
