#!/usr/bin/env python3
"""
Recompute content hashes and duplicate groups for stored content.

Needed after the hashing rules change. Rows are processed oldest first so
re-election keeps the earliest item primary.

Usage:
  python scripts/backfill_deduplication.py [--creator-id ID] [--platform twitter] [--batch-size 200] [--dry-run]

Env vars:
  DATABASE_URL   (see creatorfeed.settings)
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from sqlalchemy import select

from creatorfeed.db import build_engine, build_session_factory
from creatorfeed.models import Content, Platform
from creatorfeed.services.deduplication import DeduplicationEngine
from creatorfeed.settings import get_settings

logger = logging.getLogger("backfill_deduplication")


async def backfill(creator_id: str | None, platform: str | None, batch_size: int, dry_run: bool) -> int:
    settings = get_settings()
    engine = build_engine(settings.async_database_url)
    session_factory = build_session_factory(engine)
    dedup = DeduplicationEngine(settings)
    moved = 0
    last_id = 0
    try:
        while True:
            async with session_factory() as session:
                query = select(Content).where(Content.id > last_id).order_by(Content.id).limit(batch_size)
                if creator_id:
                    query = query.where(Content.creator_id == creator_id)
                if platform:
                    query = query.where(Content.platform == Platform(platform).value)
                rows = list((await session.execute(query)).scalars().all())
                if not rows:
                    break
                for content in rows:
                    last_id = content.id
                    old_hash, old_group = content.content_hash, content.duplicate_group_id
                    new_hash, _ = dedup.fingerprint(content)
                    if dry_run:
                        if new_hash != old_hash:
                            moved += 1
                            logger.info("Content %s would be rehashed", content.id)
                        continue
                    decision = await dedup.regroup(session, content)
                    if decision.duplicate_group_id != old_group:
                        moved += 1
                        logger.info(
                            "Content %s: group %s -> %s (%s)",
                            content.id, old_group, decision.duplicate_group_id, decision.match,
                        )
                if not dry_run:
                    await session.commit()
                logger.info("Processed up to content id %s", last_id)
    finally:
        await engine.dispose()
    return moved


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--creator-id", default=None)
    parser.add_argument("--platform", default=None, choices=[p.value for p in Platform])
    parser.add_argument("--batch-size", type=int, default=200)
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=get_settings().log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        moved = asyncio.run(backfill(args.creator_id, args.platform, args.batch_size, args.dry_run))
    except KeyboardInterrupt:
        print("\n  Interrupted")
        sys.exit(130)
    print(f"{'Would move' if args.dry_run else 'Moved'} {moved} content rows")


if __name__ == "__main__":
    main()
