"""
Small text heuristics: mixed-script names, role strings, life dates, sizes.
"""

from __future__ import annotations

import re
from typing import Tuple

from doubanscout.models import to_int

# CJK unified ideographs (+ ext A, compatibility), kana and hangul syllables
CJK_PATTERN = re.compile(
    r"[\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff\u3040-\u30ff\uac00-\ud7af]"
)

# "(饰 Kim Ki-taek)" / "(配 ...)" / "(Kim Ki-taek)"
ROLE_PATTERN = re.compile(r"\([饰|配]?\s*?(.+?)\)")

# "1954-04-07 至 2020-01-01"
LIFEDATE_PATTERN = re.compile(r"(.+?) 至 (.+)")


def has_cjk(text: str) -> bool:
    return bool(CJK_PATTERN.search(text or ""))


def parse_celebrity_name(name: str) -> str:
    """
    Pick a display name from the site's mixed Chinese/English rendering.

    "成龙 Jackie Chan" -> "成龙", "Tom Hanks Tom Hanks" -> "Tom Hanks",
    "Tom Hanks" -> "Tom Hanks".
    """
    name = (name or "").strip()
    if not name:
        return ""

    idx = name.find(" ")
    if idx < 0:
        return name.strip()

    # Chinese name followed by the foreign one
    first = name[:idx]
    if has_cjk(first):
        return first.strip()

    # Foreign name rendered twice
    if first:
        next_idx = name[idx:].lower().find(first.lower())
        if next_idx >= 0:
            return name[:idx + next_idx].strip()

    return name.strip()


def parse_role(role_text: str) -> Tuple[str, str]:
    """
    Split "演员 Actor (饰 金基泽)" into ``(role, role_type)``.

    Without a parenthesized detail the leading type token is the role too.
    """
    text = (role_text or "").strip()
    if not text:
        return "", ""

    tokens = text.split()
    role_type = tokens[0] if tokens else ""

    m = ROLE_PATTERN.search(text)
    role = m.group(1).strip() if m else ""
    if not role:
        role = role_type
    return role, role_type


def parse_lifedate(value: str) -> Tuple[str, str]:
    """Split "<birth> 至 <death>"; returns ("", "") when not a range."""
    m = LIFEDATE_PATTERN.match((value or "").strip())
    if m is None:
        return "", ""
    return m.group(1).strip(), m.group(2).strip()


def parse_dimensions(size: str) -> Tuple[int, int]:
    """"1200x1800" -> (1200, 1800); anything else -> (0, 0) per bad part."""
    parts = (size or "").strip().split("x")
    if len(parts) != 2:
        return 0, 0
    return to_int(parts[0]), to_int(parts[1])
