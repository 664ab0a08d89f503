"""
Photo gallery extraction.
"""

from __future__ import annotations

import re
from typing import List

from doubanscout.extract.html import match_group, parse_html, select_attr, select_text
from doubanscout.extract.names import parse_dimensions
from doubanscout.models import Photo

PHOTO_ID_PATTERN = re.compile(r"/photo/(\d+?)/")
IMG_HOST_PATTERN = re.compile(r"//(img\d+?)\.")

DEFAULT_IMG_HOST = "img2"
PHOTO_URL_TEMPLATE = "https://{host}.doubanio.com/view/photo/{tier}/public/p{id}.jpg"
PHOTO_TIERS = ("s", "m", "l", "raw")


def photo_urls(img_host: str, photo_id: str) -> List[str]:
    """Small, medium, large and raw URLs for one photo."""
    host = img_host or DEFAULT_IMG_HOST
    return [PHOTO_URL_TEMPLATE.format(host=host, tier=tier, id=photo_id) for tier in PHOTO_TIERS]


def _with_size(photo: Photo, size: str) -> Photo:
    photo.size = size
    if size:
        photo.width, photo.height = parse_dimensions(size)
    return photo


def parse_celebrity_photos(html: str) -> List[Photo]:
    """Parse a celebrity gallery; only the listed thumbnail URL is known."""
    soup = parse_html(html)
    photos: List[Photo] = []

    for node in soup.select(".poster-col3>li"):
        href = select_attr(node, "a", "href") or ""
        photo = Photo(
            id=match_group(href, PHOTO_ID_PATTERN),
            raw=select_attr(node, "img", "src") or "",
        )
        photos.append(_with_size(photo, select_text(node, "div.prop") or ""))

    return photos


def parse_subject_photos(html: str) -> List[Photo]:
    """
    Parse a subject wallpaper gallery.

    Variant URLs are built from the thumbnail's image host and the photo id.
    """
    soup = parse_html(html)
    photos: List[Photo] = []

    for node in soup.select(".poster-col3>li"):
        photo_id = (node.get("data-id") or "").strip()
        thumb = select_attr(node, "img", "src") or ""
        host = match_group(thumb, IMG_HOST_PATTERN, default=DEFAULT_IMG_HOST)
        small, medium, large, raw = photo_urls(host, photo_id)

        photo = Photo(id=photo_id, small=small, medium=medium, large=large, raw=raw)
        photos.append(_with_size(photo, select_text(node, "div.prop") or ""))

    return photos
