"""
Celebrity profile and celebrity search extraction.
"""

from __future__ import annotations

import re
from typing import List, Optional

from doubanscout.extract.html import (
    format_overview,
    inner_text_with_paragraphs,
    match_group,
    parse_html,
    select_attr,
    select_text,
)
from doubanscout.extract.names import parse_celebrity_name, parse_lifedate
from doubanscout.models import Celebrity, normalize_text

ID_PATTERN = re.compile(r"/(\d+?)/")

LIFEDATE_LABEL = "生卒日期"

# Profile property label -> Celebrity field
PROPERTY_FIELDS = {
    "性别": "gender",
    "星座": "constellation",
    "出生日期": "birthdate",
    "去世日期": "enddate",
    "出生地": "birthplace",
    "职业": "role",
    "更多外文名": "nickname",
    "家庭成员": "family",
    "IMDb编号": "imdb",
}


def normalize_label(label: str) -> str:
    """ "性别:" / "性别：" -> "性别" """
    return (label or "").strip().rstrip(":：").strip()


def apply_property(celebrity: Celebrity, label: str, value: str) -> bool:
    """Set the field a profile property maps to. Unknown labels are ignored."""
    key = normalize_label(label)
    value = normalize_text(value)

    if key == LIFEDATE_LABEL:
        birth, death = parse_lifedate(value)
        if not birth:
            return False
        celebrity.birthdate = birth
        celebrity.enddate = death
        return True

    field_name = PROPERTY_FIELDS.get(key)
    if field_name is None:
        return False
    setattr(celebrity, field_name, value)
    return True


def parse_celebrity_page(html: str, cid: str) -> Optional[Celebrity]:
    """
    Parse a celebrity profile page.

    Returns None when the page has no content block.
    """
    soup = parse_html(html)
    content = soup.select_one("#content")
    if content is None:
        return None

    raw_name = normalize_text(select_text(content, "h1.subject-name") or select_text(content, "h1") or "")
    name = parse_celebrity_name(raw_name)
    celebrity = Celebrity(
        id=cid,
        name=name,
        english_name=raw_name.replace(name, "").strip() if name else "",
        img=select_attr(content, "img.avatar", "src") or "",
    )

    for li in content.select("ul.subject-property>li"):
        apply_property(
            celebrity,
            select_text(li, "span.label") or "",
            select_text(li, "span.value") or "",
        )

    # Keep paragraph breaks
    intro = inner_text_with_paragraphs(content.select_one("section.subject-intro div.content"))
    celebrity.intro = format_overview(intro)
    return celebrity


def parse_celebrity_search(html: str) -> List[Celebrity]:
    """Parse a celebrity search results page."""
    soup = parse_html(html)
    celebrities: List[Celebrity] = []

    for el in soup.select("div.article .result"):
        href = select_attr(el, "h3>a", "href") or ""
        name_str = normalize_text(select_text(el, "h3>a") or "")
        # "中文名 Foreign Name" -> first token
        parts = name_str.split(" ")
        name = parts[0] if len(parts) > 1 else name_str

        celebrities.append(Celebrity(
            id=match_group(href, ID_PATTERN),
            name=name,
            img=select_attr(el, "div.pic img", "src") or "",
        ))

    return celebrities
