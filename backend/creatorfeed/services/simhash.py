"""
SimHash-based near-duplicate detection for social posts.

Uses 64-bit SimHash over word-level shingles and Hamming distance
to find "almost identical" texts (the same post lightly edited or
cross-posted with a different hashtag).

Stored in content.content_simhash as 16-char hex string.
"""
from __future__ import annotations

import hashlib
from datetime import datetime

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from creatorfeed.models import SOCIAL_PLATFORMS, Content
from creatorfeed.services.dedupe import normalize_text

_STOP_WORDS = frozenset(
    "the a an and or but in on at to of for with is it this that are was be by as from"
    " our we you your i my".split()
)

DEFAULT_MAX_DISTANCE = 6


def tokenize(text: str) -> list[str]:
    """Normalize and tokenize text into word tokens, removing stop-words."""
    normalized = normalize_text(text)
    if not normalized:
        return []
    tokens = normalized.split()
    return [t for t in tokens if t not in _STOP_WORDS and len(t) > 1]


def _hash64(token: str) -> int:
    """Stable 64-bit hash of a token via MD5 truncation."""
    h = hashlib.md5(token.encode("utf-8")).digest()
    return int.from_bytes(h[:8], "little")


def simhash64(tokens: list[str]) -> int:
    """Compute 64-bit SimHash from a list of tokens.

    Uses word bigrams as features for better accuracy.
    """
    if not tokens:
        return 0

    # Build features: unigrams + bigrams
    features: list[str] = list(tokens)
    for i in range(len(tokens) - 1):
        features.append(f"{tokens[i]}_{tokens[i + 1]}")

    v = [0] * 64
    for feat in features:
        h = _hash64(feat)
        for i in range(64):
            if h & (1 << i):
                v[i] += 1
            else:
                v[i] -= 1

    result = 0
    for i in range(64):
        if v[i] > 0:
            result |= (1 << i)
    return result


def hamming(a: int, b: int) -> int:
    """Hamming distance between two 64-bit integers."""
    return bin(a ^ b).count("1")


def simhash_to_hex(value: int) -> str:
    """Convert simhash int to 16-char hex string."""
    return f"{value & 0xFFFFFFFFFFFFFFFF:016x}"


def hex_to_simhash(hex_str: str) -> int:
    """Convert 16-char hex string back to int."""
    return int(hex_str, 16)


def compute_text_simhash(text: str, *, min_tokens: int = 0) -> str | None:
    """Hex SimHash of ``text``, or ``None`` when it is too short to be meaningful."""
    tokens = tokenize(text)
    if not tokens or len(tokens) < min_tokens:
        return None
    value = simhash64(tokens)
    if value == 0:
        return None
    return simhash_to_hex(value)


async def find_near_duplicate(
    session: AsyncSession,
    creator_id: str,
    simhash_hex: str,
    *,
    since: datetime | None = None,
    max_distance: int = DEFAULT_MAX_DISTANCE,
    exclude_id: int | None = None,
) -> tuple[str | None, int]:
    """Find the duplicate group of the creator's closest social post by Hamming distance.

    Loads the creator's fingerprinted social posts in the window and compares
    in Python; per-creator volumes are small.

    Returns (duplicate_group_id, distance) or (None, -1).
    """
    if not simhash_hex:
        return None, -1
    target_hash = hex_to_simhash(simhash_hex)
    if target_hash == 0:
        return None, -1

    query = select(Content.id, Content.content_simhash, Content.duplicate_group_id).where(
        and_(
            Content.creator_id == creator_id,
            Content.platform.in_([p.value for p in SOCIAL_PLATFORMS]),
            Content.content_simhash.isnot(None),
            Content.duplicate_group_id.isnot(None),
        )
    )
    if since is not None:
        query = query.where(Content.published_at >= since)
    if exclude_id is not None:
        query = query.where(Content.id != exclude_id)

    result = await session.execute(query.order_by(Content.id))
    best_group: str | None = None
    best_dist = max_distance + 1

    for row_id, row_hex, row_group in result.all():
        try:
            row_hash = hex_to_simhash(row_hex)
        except (ValueError, TypeError):
            continue
        dist = hamming(target_hash, row_hash)
        if dist <= max_distance and dist < best_dist:
            best_dist = dist
            best_group = row_group

    if best_group is not None:
        return best_group, best_dist
    return None, -1
