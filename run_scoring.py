"""
run_scoring.py: score a file of raw answer records end-to-end.

Runs the whole pipeline in one go:
  1. Load entity profiles and raw answer records from JSON
  2. Build the orchestrator from .env settings (providers without keys are skipped)
  3. Create the result tables if needed
  4. Score the batch and print the summary

Usage:
    python run_scoring.py records.json profiles.json [--force] [--memory] [--log-level DEBUG]

records.json:  [{"id": "...", "answer_text": "...", "brand_ref": "Acme", "competitor_refs": [...], "cited_urls": [...]}]
profiles.json: [{"canonical_name": "Acme", "aliases": [...], "product_names": [...]}]
"""

import argparse
import asyncio
import json
import logging
import sys
import time

from brandscore.analysis.pipeline import build_orchestrator
from brandscore.analysis.types import EntityProfile, RawAnswerRecord
from brandscore.core.config import settings, validate_settings
from brandscore.core.logging import setup_logging
from brandscore.storage.sql_store import SqlResultStore
from brandscore.storage.store import InMemoryResultStore

logger = logging.getLogger("run_scoring")


def _load_json(path: str) -> list[dict]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise SystemExit(f"{path}: expected a JSON array")
    return data


async def main(args: argparse.Namespace) -> int:
    setup_logging(level=args.log_level)
    validate_settings()

    profiles = [EntityProfile.from_dict(p) for p in _load_json(args.profiles)]
    records = [RawAnswerRecord.from_dict(r) for r in _load_json(args.records)]

    print("\n" + "=" * 60)
    print(f"  Scoring {len(records)} records against {len(profiles)} profiles")
    print("=" * 60)

    if args.memory:
        store = InMemoryResultStore()
    else:
        store = SqlResultStore.from_url(settings.database_url)
        await store.create_all()

    orchestrator = build_orchestrator(settings, store, profiles)

    start = time.monotonic()
    try:
        summary = await orchestrator.score_batch(records, force=args.force)
    finally:
        await store.close()
    elapsed = time.monotonic() - start

    print(f"\n  Done in {elapsed:.1f}s")
    print(json.dumps(summary.to_dict(), indent=4, ensure_ascii=False))

    for outcome in summary.outcomes:
        status = "✓" if outcome.succeeded else "✗"
        brand = outcome.metrics[0] if outcome.metrics else None
        if brand is not None:
            print(
                f"  {status} {outcome.record_id}: {brand.entity} VI={brand.visibility_index:.4f} "
                f"SoA={brand.share_of_answers:.2f}% consolidated={outcome.used_consolidated}"
            )
        else:
            print(f"  {status} {outcome.record_id}: {outcome.state.value}")

    print("=" * 60)
    return 0 if summary.succeeded == summary.processed else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Score raw AI answers for brand visibility, share and sentiment")
    parser.add_argument("records", help="JSON file with raw answer records")
    parser.add_argument("profiles", help="JSON file with entity profiles")
    parser.add_argument("--force", action="store_true", help="re-score records that already have metrics")
    parser.add_argument("--memory", action="store_true", help="keep results in memory instead of DATABASE_URL")
    parser.add_argument("--log-level", default=None, help="override LOG_LEVEL for this run (e.g. DEBUG)")
    sys.exit(asyncio.run(main(parser.parse_args())))
