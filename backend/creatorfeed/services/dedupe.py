"""
Content hasher: exact-duplicate signature for canonical items.

Uses SHA-256 of normalized text (title + a body snippet). Identity fields
(platform_content_id, url, creator_id) and timestamps never enter the hash,
so the same article syndicated through two feeds collides.
"""
from __future__ import annotations

import hashlib
import re
import unicodedata
from typing import TYPE_CHECKING

from creatorfeed.models import SOCIAL_PLATFORMS, Platform
from creatorfeed.services.content_text import extract_text_from_html

if TYPE_CHECKING:
    from creatorfeed.schemas import ContentCreate

SNIPPET_WORDS = 100
MIN_SIGNIFICANT_WORD_LEN = 3


def normalize_text(text: str) -> str:
    """Normalize text for deduplication.

    - NFKC unicode normalization
    - lowercase
    - collapse whitespace
    - strip punctuation (keep letters, digits, spaces)
    """
    if not text:
        return ""
    text = unicodedata.normalize("NFKC", text)
    text = text.lower()
    # Remove punctuation, keep letters/digits/spaces
    text = re.sub(r"[^\w\s]", "", text)
    # Collapse whitespace
    text = re.sub(r"\s+", " ", text).strip()
    return text


def body_snippet(text: str, limit: int = SNIPPET_WORDS) -> str:
    """First ``limit`` significant words of ``text`` (short words are noise)."""
    words = [w for w in normalize_text(text).split() if len(w) >= MIN_SIGNIFICANT_WORD_LEN]
    return " ".join(words[:limit])


def hash_text(item: "ContentCreate") -> str:
    """The normalized text that feeds the content hash."""
    body = extract_text_from_html(item.content_body) or extract_text_from_html(item.description)
    parts = []
    if Platform(item.platform) not in SOCIAL_PLATFORMS:
        parts.append(normalize_text(item.title or ""))
    parts.append(body_snippet(body))
    return " ".join(part for part in parts if part)


def compute_signature(text: str) -> str:
    """Compute SHA-256 hex signature of normalized text."""
    normalized = normalize_text(text)
    if not normalized:
        return ""
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def compute_content_hash(item: "ContentCreate") -> str:
    signature = compute_signature(hash_text(item))
    if signature:
        return signature
    # Nothing to compare on: key by identity so empty items never collapse together
    fallback = f"id:{Platform(item.platform).value}:{item.platform_content_id}"
    return hashlib.sha256(fallback.encode("utf-8")).hexdigest()
