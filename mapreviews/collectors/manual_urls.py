"""Explicit-URL mode: turn pasted Google Maps links into Places.

No search job runs in this mode; the parsed Places go straight to selection.
"""

import re
from typing import Iterable
from urllib.parse import quote, unquote_plus

import structlog

from mapreviews.models.schemas import Place

logger = structlog.get_logger(__name__)

UNKNOWN_TITLE = "Unknown Location"

PLACE_ID_URL = "https://www.google.com/maps/search/?api=1&query=Google&query_place_id={place_id}"
NAME_SEARCH_URL = "https://www.google.com/maps/search/?api=1&query={name}"

# Checked in order; the first pattern yielding an id wins.
QUERY_PLACE_ID_RE = re.compile(r"query_place_id=([a-zA-Z0-9_-]+)")
PLACE_ID_PARAM_RE = re.compile(r"place_id[=:]([a-zA-Z0-9_-]+)")
PLACE_DATA_RE = re.compile(r"/place/([^/]+)/.*!1s([a-zA-Z0-9_-]+)")
BARE_PLACE_ID_RE = re.compile(r"^(ChIJ[a-zA-Z0-9_-]+)$")
PLACE_NAME_RE = re.compile(r"/place/([^/?]+)")


def _decode_name(segment: str) -> str:
    return unquote_plus(segment)


def parse_manual_url(url: str) -> Place | None:
    """Parse one link or bare place id.

    Returns None when neither a place id nor a place name can be extracted.
    """
    text = url.strip()
    if not text:
        return None

    place_id: str | None = None
    title = UNKNOWN_TITLE

    match = QUERY_PLACE_ID_RE.search(text)
    if match:
        place_id = match.group(1)

    if place_id is None:
        match = PLACE_ID_PARAM_RE.search(text)
        if match:
            place_id = match.group(1)

    if place_id is None:
        match = PLACE_DATA_RE.search(text)
        if match:
            place_id = match.group(2)
            title = _decode_name(match.group(1))

    if place_id is None:
        match = BARE_PLACE_ID_RE.match(text)
        if match:
            place_id = match.group(1)

    if place_id is None:
        match = PLACE_NAME_RE.search(text)
        if match:
            title = _decode_name(match.group(1))

    if place_id is None and title == UNKNOWN_TITLE:
        return None

    if place_id:
        place_url = PLACE_ID_URL.format(place_id=place_id)
    else:
        place_url = NAME_SEARCH_URL.format(name=quote(title, safe="-_.!~*'()"))

    return Place(
        place_id=place_id or f"search:{title}",
        title=title,
        url=place_url,
        original_url=text,
    )


def parse_manual_urls(urls: Iterable[str]) -> list[Place]:
    """Parse a list of pasted links, skipping blank and unparseable lines."""
    places: list[Place] = []
    total = 0
    for url in urls:
        if not url or not url.strip():
            continue
        total += 1
        place = parse_manual_url(url)
        if place is None:
            logger.warning("manual_url_unparseable", url=url.strip())
            continue
        places.append(place)

    logger.info("manual_urls_parsed", places=len(places), urls=total)
    return places
