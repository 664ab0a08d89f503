"""
Subject (movie / TV) page extraction.

Handles:
- Search result lists (www.douban.com/search)
- Quick-suggest JSON
- Subject detail pages, including the on-page cast digest
- Dedicated subject celebrities pages
"""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Optional

from bs4 import Tag

from doubanscout.extract.html import (
    PatternRule,
    apply_rules,
    extract_title,
    format_overview,
    match_group,
    parse_html,
    select_attr,
    select_text,
)
from doubanscout.extract.names import parse_celebrity_name, parse_role
from doubanscout.models import (
    Celebrity,
    Subject,
    SubjectCategory,
    normalize_text,
    split_names,
    to_float,
    to_int,
)

UNAIRED_MARKER = "尚未播出"
CELEBRITY_SECTIONS = ("导演", "演员")
SUGGEST_SUBJECT_TYPE = "movie"

ID_PATTERN = re.compile(r"/(\d+?)/")
SID_PATTERN = re.compile(r"sid: (\d+?),")
CATEGORY_PATTERN = re.compile(r"\[(.+?)\]")
YEAR_PATTERN = re.compile(r"([12][890][0-9][0-9])")
ORIGINAL_NAME_PATTERN = re.compile(r"原名[:：](.+?)\s*?/")
BACKGROUND_IMAGE_PATTERN = re.compile(r"url\(([^)]+?)\)")

# Rules over the text of the #info block, one "label: value" per line
INFO_RULES = (
    PatternRule("directors", re.compile(r"导演: (.+?)\n"), transform=split_names),
    PatternRule("writers", re.compile(r"编剧: (.+?)\n"), transform=split_names),
    PatternRule("actors", re.compile(r"主演: (.+?)\n"), transform=split_names),
    PatternRule("genre", re.compile(r"类型: (.+?)\n")),
    PatternRule("country", re.compile(r"制片国家/地区: (.+?)\n")),
    PatternRule("language", re.compile(r"语言: (.+?)\n")),
    PatternRule("duration", re.compile(r"片长: (.+?)\n")),
    PatternRule("screen", re.compile(r"(上映日期|首播): (.+?)\n"), group=2),
    PatternRule("aka", re.compile(r"又名: (.+?)\n")),
    PatternRule("imdb", re.compile(r"IMDb: (tt\d+)", re.IGNORECASE)),
    PatternRule("site", re.compile(r"官方网站: (.+?)\n")),
)

INTRO_SELECTORS = (
    "div#link-report-intra>span.all",
    "div#link-report-intra>span",
    "div#link-report>span.all",
    "div#link-report>span",
)


# ----------------------------- Search -----------------------------

def parse_search_result(el: Tag) -> Optional[Subject]:
    """
    Parse one search result entry.

    Returns None for entries that are not yet aired or are not movies / TV.
    """
    rating_info = select_text(el, "div.rating-info") or ""
    if UNAIRED_MARKER in rating_info:
        return None

    title_label = select_text(el, "div.title>h3>span") or ""
    label = match_group(title_label, CATEGORY_PATTERN)
    category = SubjectCategory.from_label(label)
    if category is None:
        return None

    onclick = select_attr(el, "div.title a", "onclick") or ""
    name = normalize_text(select_text(el, "div.title a") or "")
    subject_str = select_text(el, "div.rating-info>span:last-child") or ""
    original_name = match_group(subject_str, ORIGINAL_NAME_PATTERN).strip()

    return Subject(
        sid=match_group(onclick, SID_PATTERN),
        name=name,
        original_name=original_name or name,
        category=category,
        genre=label,
        rating=to_float(select_text(el, "div.rating-info>.rating_nums") or "0"),
        year=to_int(match_group(subject_str, YEAR_PATTERN)),
        img=select_attr(el, "a.nbg>img", "src") or "",
        intro=select_text(el, "div.content>p") or "",
    )


def parse_search_results(html: str) -> List[Subject]:
    """Parse a search results page into movie / TV subjects."""
    soup = parse_html(html)
    subjects: List[Subject] = []
    for el in soup.select("div.result-list .result"):
        subject = parse_search_result(el)
        if subject is not None:
            subjects.append(subject)
    return subjects


def parse_suggest(data: Any) -> List[Subject]:
    """
    Parse quick-suggest JSON: ``{"cards": [{type, sid, title, year}, ...]}``
    or a bare list of cards.
    """
    if isinstance(data, dict):
        cards = data.get("cards") or data.get("items") or []
    elif isinstance(data, list):
        cards = data
    else:
        return []

    subjects: List[Subject] = []
    for card in cards:
        if not isinstance(card, dict):
            continue
        if card.get("type") != SUGGEST_SUBJECT_TYPE:
            continue
        subjects.append(Subject(
            sid=str(card.get("sid") or card.get("id") or ""),
            name=normalize_text(str(card.get("title") or "")),
            year=to_int(str(card.get("year") or "")),
        ))
    return subjects


# ----------------------------- Detail page -----------------------------

def infer_category(content: Optional[Tag]) -> SubjectCategory:
    """Pages with an episode list are TV; everything else is a movie."""
    if content is not None and content.select_one("div.episode_list") is not None:
        return SubjectCategory.TV
    return SubjectCategory.MOVIE


def parse_celebrity_digest(node: Tag) -> Celebrity:
    """Cast entry from the subject page digest (no role type)."""
    href = select_attr(node, "div.info a.name", "href") or ""
    style = select_attr(node, "div.avatar", "style") or ""
    return Celebrity(
        id=match_group(href, ID_PATTERN),
        name=select_text(node, "div.info a.name") or "",
        role=select_text(node, "div.info span.role") or "",
        img=match_group(style, BACKGROUND_IMAGE_PATTERN).strip("'\" "),
    )


def _first_text(node: Tag, selectors: Iterable[str]) -> str:
    for css in selectors:
        text = select_text(node, css, strip=False)
        if text is not None:
            return text
    return ""


def parse_subject_page(html: str, sid: str) -> Optional[Subject]:
    """
    Parse a subject detail page.

    Returns None when the page has no content block (removed subject,
    interstitial page).
    """
    soup = parse_html(html)
    content = soup.select_one("#content")
    if content is None:
        return None

    name = extract_title(soup)
    heading = select_text(content, "h1>span:first-child") or ""
    original_name = heading.replace(name, "").strip() if name else heading

    subject = Subject(
        sid=sid,
        name=name,
        original_name=original_name,
        category=infer_category(content),
        year=to_int(match_group(select_text(content, "h1>span.year") or "", YEAR_PATTERN)),
        rating=to_float(select_text(content, "div.rating_self strong.rating_num") or "0"),
        img=select_attr(content, "a.nbgnbg>img", "src") or "",
        intro=format_overview(_first_text(content, INTRO_SELECTORS)),
    )

    # Trailing newline so the last line of the block still matches
    info = (select_text(content, "#info", strip=False) or "") + "\n"
    apply_rules(info, subject, INFO_RULES)

    subject.celebrities = [
        parse_celebrity_digest(node)
        for node in content.select("#celebrities li.celebrity")
    ]
    return subject


# ----------------------------- Celebrities page -----------------------------

def parse_celebrity_entry(node: Tag) -> Optional[Celebrity]:
    """Entry from the dedicated celebrities page; None when it has no name."""
    name = parse_celebrity_name(select_text(node, "div.info a.name") or "")
    if not name:
        return None

    href = select_attr(node, "div.info a.name", "href") or ""
    style = select_attr(node, "div.avatar", "style") or ""
    role, role_type = parse_role(select_text(node, "div.info span.role") or "")
    return Celebrity(
        id=match_group(href, ID_PATTERN),
        name=name,
        role=role,
        role_type=role_type,
        img=match_group(style, BACKGROUND_IMAGE_PATTERN).strip("'\" "),
    )


def parse_subject_celebrities(html: str) -> List[Celebrity]:
    """Directors and actors from a subject's celebrities page."""
    soup = parse_html(html)
    celebrities: List[Celebrity] = []

    for section in soup.select("div#celebrities>.list-wrapper"):
        title = select_text(section, "h2") or ""
        if not any(s in title for s in CELEBRITY_SECTIONS):
            continue

        for node in section.select("ul.celebrities-list li.celebrity"):
            celebrity = parse_celebrity_entry(node)
            if celebrity is None:
                # Some entries are missing a name on the site
                continue
            celebrities.append(celebrity)

    return celebrities
