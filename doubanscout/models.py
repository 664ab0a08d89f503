"""
Core data models for doubanscout.

Provides:
- SubjectCategory: movie / TV classification
- Subject: canonical movie or TV record
- Celebrity: cast/crew entry and full celebrity profile
- Photo: gallery image with size variants
- LoginInfo: result of the login probe
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


# ----------------------------- Enums -----------------------------

class SubjectCategory(str, Enum):
    """Normalized subject classification."""
    MOVIE = "movie"
    TV = "tv"

    @classmethod
    def from_label(cls, label: str) -> Optional["SubjectCategory"]:
        """Map a site category label (电影 / 电视剧) to a category."""
        t = (label or "").strip()
        if t == "电影":
            return cls.MOVIE
        if t == "电视剧":
            return cls.TV
        return None


# ----------------------------- Utilities -----------------------------

def normalize_text(s: str) -> str:
    """Collapse whitespace and strip."""
    return re.sub(r"\s+", " ", (s or "")).strip()


def split_names(s: str) -> List[str]:
    """Split a ``"A / B / C"`` name list."""
    return [n for n in (normalize_text(x) for x in (s or "").split("/")) if n]


def to_int(s: str) -> int:
    """Lenient int conversion, 0 on failure."""
    try:
        return int((s or "").strip())
    except ValueError:
        return 0


def to_float(s: str) -> float:
    """Lenient float conversion, 0.0 on failure."""
    try:
        return float((s or "").strip())
    except ValueError:
        return 0.0


# ----------------------------- Records -----------------------------

@dataclass
class Celebrity:
    """
    A person attached to a subject, or a full celebrity profile.

    Subject pages only fill the identity fields (id, name, role, img);
    the profile page fills the rest.
    """

    id: str = ""
    name: str = ""
    role: str = ""
    role_type: str = ""
    img: str = ""

    # Profile
    english_name: str = ""
    gender: str = ""
    constellation: str = ""
    birthdate: str = ""
    enddate: str = ""  # Date of death
    birthplace: str = ""
    nickname: str = ""
    family: str = ""
    imdb: str = ""
    intro: str = ""


@dataclass
class Subject:
    """Canonical movie / TV record."""

    # Identity
    sid: str = ""
    name: str = ""
    original_name: str = ""
    category: SubjectCategory = SubjectCategory.MOVIE

    # Classification
    genre: str = ""
    rating: float = 0.0
    year: int = 0

    # Description
    intro: str = ""
    aka: str = ""  # Alternative titles, raw "又名" text

    # People
    directors: List[str] = field(default_factory=list)
    writers: List[str] = field(default_factory=list)
    actors: List[str] = field(default_factory=list)
    celebrities: List[Celebrity] = field(default_factory=list)

    # Production
    country: str = ""
    language: str = ""
    duration: str = ""
    screen: str = ""  # Release / first-air date text
    site: str = ""
    imdb: str = ""

    img: str = ""

    @property
    def is_tv(self) -> bool:
        return self.category == SubjectCategory.TV


@dataclass
class Photo:
    """Gallery image with resolution variants."""

    id: str = ""
    size: str = ""  # Raw "WxH" token
    width: int = 0
    height: int = 0
    small: str = ""
    medium: str = ""
    large: str = ""
    raw: str = ""


@dataclass
class LoginInfo:
    """Result of probing the profile page."""

    name: str = ""
    is_logged_in: bool = False
