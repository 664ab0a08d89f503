"""
Extraction utilities for doubanscout.

Provides:
- Search result, suggest and subject detail parsing
- Celebrity profile and celebrity search parsing
- Photo gallery parsing
- Mixed-script name, role, life date and size heuristics
"""

from doubanscout.extract.celebrity import parse_celebrity_page, parse_celebrity_search
from doubanscout.extract.html import extract_title, format_overview
from doubanscout.extract.login import is_logged_in_url, parse_login_info
from doubanscout.extract.names import (
    parse_celebrity_name,
    parse_dimensions,
    parse_lifedate,
    parse_role,
)
from doubanscout.extract.photos import parse_celebrity_photos, parse_subject_photos
from doubanscout.extract.subject import (
    infer_category,
    parse_search_results,
    parse_subject_celebrities,
    parse_subject_page,
    parse_suggest,
)

__all__ = [
    "parse_celebrity_page",
    "parse_celebrity_search",
    "extract_title",
    "format_overview",
    "is_logged_in_url",
    "parse_login_info",
    "parse_celebrity_name",
    "parse_dimensions",
    "parse_lifedate",
    "parse_role",
    "parse_celebrity_photos",
    "parse_subject_photos",
    "infer_category",
    "parse_search_results",
    "parse_subject_celebrities",
    "parse_subject_page",
    "parse_suggest",
]
