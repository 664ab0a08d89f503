"""
HTML document helpers shared by the page extractors.

Every helper returns a zero value (None / "" / 0) on a missing node or a
failed match instead of raising.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Pattern, Union

from bs4 import BeautifulSoup, Tag

Node = Union[BeautifulSoup, Tag]

SITE_TITLE_SUFFIX = "(豆瓣)"
SITE_ATTRIBUTION = "©豆瓣"

# Any whitespace except newline, directly after a newline
OVERVIEW_SPACE_PATTERN = re.compile(r"\n[^\S\n]+")
KEYWORDS_SPLIT = ","


def parse_html(html: str) -> BeautifulSoup:
    """Parse a document with the lxml backend."""
    return BeautifulSoup(html or "", "lxml")


def select_text(node: Optional[Node], css: str, strip: bool = True) -> Optional[str]:
    """Text of the first node matching ``css``, or None."""
    if node is None:
        return None
    el = node.select_one(css)
    if el is None:
        return None
    text = el.get_text()
    return text.strip() if strip else text


def select_attr(node: Optional[Node], css: str, attr: str) -> Optional[str]:
    """Attribute of the first node matching ``css``, or None."""
    if node is None:
        return None
    el = node.select_one(css)
    if el is None:
        return None
    value = el.get(attr)
    if isinstance(value, list):
        value = " ".join(value)
    return value


def match_group(text: str, pattern: Pattern, group: int = 1, default: str = "") -> str:
    """First match of ``pattern`` in ``text``, returning one group."""
    if not text:
        return default
    m = pattern.search(text)
    if m is None:
        return default
    try:
        return m.group(group) or default
    except IndexError:
        return default


@dataclass(frozen=True)
class PatternRule:
    """
    Named extraction rule: regex over a text block -> record field.
    """
    field: str
    pattern: Pattern
    group: int = 1
    transform: Callable[[str], Any] = str.strip

    def apply(self, text: str, record: Any) -> bool:
        value = match_group(text, self.pattern, self.group)
        if not value:
            return False
        setattr(record, self.field, self.transform(value))
        return True


def apply_rules(text: str, record: Any, rules: Iterable[PatternRule]) -> int:
    """Apply every rule to ``text``; returns the number of fields set."""
    return sum(1 for rule in rules if rule.apply(text, record))


def extract_title(soup: BeautifulSoup) -> str:
    """
    Resolve the display title of a page.

    The keywords meta starts with the localized title; the <title> element
    carries a site suffix that needs stripping.
    """
    meta = soup.find("meta", attrs={"name": "keywords"})
    if meta is not None:
        keywords = meta.get("content") or ""
        first = keywords.split(KEYWORDS_SPLIT)[0].strip()
        if first:
            return first

    if soup.title is not None:
        return soup.title.get_text().replace(SITE_TITLE_SUFFIX, "").strip()
    return ""


def format_overview(text: str) -> str:
    """Normalize a synopsis / biography block."""
    text = (text or "").replace(SITE_ATTRIBUTION, "")
    return OVERVIEW_SPACE_PATTERN.sub("\n", text).strip()


def inner_text_with_paragraphs(node: Optional[Tag]) -> str:
    """Text of ``node`` with paragraph ends turned into newlines."""
    if node is None:
        return ""
    html = node.decode_contents().replace("</p>", "\n")
    return BeautifulSoup(html, "lxml").get_text()
