#!/usr/bin/env python3
"""
Smoke test: ingest, deduplicate, refresh and clean up against a running API.

No external tokens required; payloads are inline samples.

Env vars:
  BASE_URL       (default http://localhost:8000)
"""
from __future__ import annotations

import json
import os
import sys
import time
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

BASE_URL = os.environ.get("BASE_URL", "http://localhost:8000").rstrip("/")

SMOKE_TAG = f"smoke_{int(time.time())}"

# ── Helpers ──────────────────────────────────────────────────

class SmokeError(Exception):
    pass


def _req(method: str, path: str, body: dict | None = None, expect: tuple[int, ...] = (200,)) -> dict:
    url = f"{BASE_URL}{path}"
    data = json.dumps(body).encode() if body is not None else None
    req = Request(url, data=data, headers={"Content-Type": "application/json"}, method=method)
    try:
        with urlopen(req, timeout=30) as resp:
            raw = resp.read().decode()
            if resp.status not in expect:
                raise SmokeError(f"{method} {path} -> {resp.status}: {raw[:500]}")
            return json.loads(raw) if raw else {}
    except HTTPError as e:
        raw = e.read().decode()[:500]
        if e.code in expect:
            return json.loads(raw) if raw else {}
        raise SmokeError(f"{method} {path} -> {e.code}: {raw}")
    except URLError as e:
        raise SmokeError(f"{method} {path} -> URLError: {e}")


def step(name: str):
    print(f"\n{'='*60}")
    print(f"  STEP: {name}")
    print(f"{'='*60}")


def ok(msg: str):
    print(f"  OK  {msg}")


def fail(msg: str):
    print(f"  FAIL {msg}")
    raise SmokeError(msg)


def _rss_item(guid: str) -> dict:
    return {
        "title": f"Smoke article {SMOKE_TAG}",
        "link": f"https://example.com/{guid}",
        "guid": guid,
        "pubDate": "Mon, 01 Jan 2024 10:00:00 GMT",
        "content": f"<p>Smoke body for {SMOKE_TAG} covering ingestion, hashing and duplicate groups.</p>",
    }


# ── Steps ────────────────────────────────────────────────────

def main():
    try:
        step("1. Health check")
        _req("GET", "/ping")
        ok("API reachable")

        step("2. Create creator")
        creator = _req("POST", "/api/creators", {"name": f"Smoke {SMOKE_TAG}", "platform": "rss"}, expect=(201,))
        creator_id = creator["id"]
        ok(f"Creator {creator_id}")

        step("3. Ingest the same article from two feeds")
        result = _req(
            "POST",
            "/api/content/ingest",
            {"creator_id": creator_id, "platform": "rss", "items": [_rss_item(f"{SMOKE_TAG}-a"), _rss_item(f"{SMOKE_TAG}-b")]},
        )
        if result["created"] != 2:
            fail(f"expected 2 created, got {result}")
        listing = _req("GET", f"/api/content?creator_id={creator_id}")
        groups = {item["duplicate_group_id"] for item in listing["items"]}
        primaries = [item for item in listing["items"] if item["is_primary"]]
        if len(groups) != 1 or len(primaries) != 1:
            fail(f"expected one group with one primary, got groups={groups} primaries={len(primaries)}")
        ok("Both stored, one duplicate group, one primary")

        step("4. Re-ingest is an update")
        result = _req("POST", "/api/content/ingest", {"creator_id": creator_id, "platform": "rss", "items": [_rss_item(f"{SMOKE_TAG}-a")]})
        if result["updated"] != 1 or result["created"] != 0:
            fail(f"expected 1 updated, got {result}")
        ok("Idempotent re-ingest")

        step("5. Cleanup")
        removed = _req("DELETE", f"/api/creators/{creator_id}")
        ok(f"Creator removed with {removed['deleted_content']} content rows")

        print("\n  SMOKE PASSED")
    except SmokeError as e:
        print(f"\n{'='*60}")
        print(f"  FAIL: {e}")
        print(f"{'='*60}\n")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n\n  Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
