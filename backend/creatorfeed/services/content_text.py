"""Plain-text helpers shared by the normalizers and the store."""
from __future__ import annotations

import html
import math
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any
from urllib.parse import urlparse

WORDS_PER_MINUTE = 200

_TAG_RE = re.compile(r"<[^>]+>")
_SCRIPT_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_IMG_SRC_RE = re.compile(r"<img\b[^>]*?\bsrc\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")

_TWITTER_DATE_FORMAT = "%a %b %d %H:%M:%S %z %Y"


def extract_text_from_html(value: str | None) -> str:
    """Strip tags, decode entities and collapse whitespace."""
    if not value:
        return ""
    text = _SCRIPT_RE.sub(" ", value)
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text)
    return _WS_RE.sub(" ", text).strip()


def extract_image_sources(value: str | None) -> list[str]:
    if not value:
        return []
    seen: list[str] = []
    for src in _IMG_SRC_RE.findall(value):
        src = html.unescape(src.strip())
        if src and src not in seen:
            seen.append(src)
    return seen


def word_count(text: str | None) -> int:
    if not text:
        return 0
    return len(text.split())


def reading_time_minutes(words: int) -> int:
    if words <= 0:
        return 0
    return math.ceil(words / WORDS_PER_MINUTE)


def text_metrics(content_body: str | None) -> tuple[int, int]:
    """(word_count, reading_time_minutes) of the plain text inside ``content_body``."""
    words = word_count(extract_text_from_html(content_body))
    return words, reading_time_minutes(words)


def ensure_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: Any) -> datetime | None:
    """Parse the timestamp shapes scrapers hand us.

    Accepts datetimes, ISO-8601 strings, RFC 2822 strings (RSS ``pubDate``),
    Twitter's ``Wed Oct 10 20:19:24 +0000 2018`` and epoch seconds or
    milliseconds. Returns an aware UTC datetime or ``None``.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _from_epoch(float(value))
    if not isinstance(value, str):
        return None

    raw = value.strip()
    if not raw:
        return None
    if re.fullmatch(r"\d+(\.\d+)?", raw):
        return _from_epoch(float(raw))
    try:
        return ensure_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        pass
    try:
        return ensure_utc(datetime.strptime(raw, _TWITTER_DATE_FORMAT))
    except ValueError:
        pass
    try:
        return ensure_utc(parsedate_to_datetime(raw))
    except (TypeError, ValueError, IndexError):
        return None


def _from_epoch(value: float) -> datetime | None:
    if value <= 0:
        return None
    if value > 1e12:
        value = value / 1000.0
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def domain_of(url: str | None) -> str | None:
    if not url:
        return None
    try:
        netloc = urlparse(url).netloc
    except ValueError:
        return None
    netloc = netloc.lower().split("@")[-1].split(":")[0]
    if netloc.startswith("www."):
        netloc = netloc[4:]
    return netloc or None
