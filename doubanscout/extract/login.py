"""
Login probe extraction.
"""

from __future__ import annotations

from typing import Iterable

from doubanscout.extract.html import parse_html
from doubanscout.models import LoginInfo

# The profile URL redirects here when the session is not logged in
LOGGED_OUT_URL_MARKERS = ("accounts.douban.com", "login", "sec.douban.com")


def is_logged_in_url(final_url: str, markers: Iterable[str] = LOGGED_OUT_URL_MARKERS) -> bool:
    """True unless the probe ended on a login or checkpoint page."""
    if not final_url:
        return False
    return not any(m in final_url for m in markers)


def parse_login_name(html: str) -> str:
    """Display name from the profile header."""
    soup = parse_html(html)
    h1 = soup.select_one("div.db-usr-profile h1")
    if h1 is None:
        return ""
    # The h1 also holds a signature span; the name is the leading text
    return next(h1.stripped_strings, "")


def parse_login_info(final_url: str, html: str) -> LoginInfo:
    logged_in = is_logged_in_url(final_url)
    return LoginInfo(
        name=parse_login_name(html) if logged_in else "",
        is_logged_in=logged_in,
    )
