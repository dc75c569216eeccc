#!/usr/bin/env python3
"""
Summary Generation Script

Generates every cached feedback summary. Each batch stops before its time
budget runs out and reports the clinics still to do; this script keeps
calling until nothing remains, so a full refresh finishes even when one
batch cannot.

Usage:
    python -m scripts.generate_summaries
    python -m scripts.generate_summaries --force-refresh
    python -m scripts.generate_summaries --clinic-only "Neko Health Marylebone"

Environment Variables:
    SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY, OPENAI_API_KEY
    NEKOVIBE_SUMMARY_BUDGET_SECONDS: budget per batch (default: 240)
"""

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv
from supabase import create_client

from nekovibe.config import ConfigurationError, Settings
from nekovibe.openai_provider import create_chat_model
from nekovibe.storage import FeedbackStore
from nekovibe.summary_service import SummaryGenerator


async def generate_all(settings: Settings, clinic_only=None, force_refresh=False, max_rounds=20) -> int:
    store = FeedbackStore(create_client(settings.supabase_url, settings.supabase_key))
    generator = SummaryGenerator(
        store,
        create_chat_model(settings),
        max_items=settings.summary_max_items,
        budget_seconds=settings.summary_budget_seconds,
    )

    errors = 0
    skip_global = False
    for round_number in range(1, max_rounds + 1):
        # force_refresh only applies to the first round; later rounds resume
        report = await generator.run_batch(
            skip_global=skip_global,
            clinic_only=clinic_only,
            force_refresh=force_refresh and round_number == 1,
        )
        counts = {}
        for result in report.results:
            counts[result.status] = counts.get(result.status, 0) + 1
        errors += counts.get("error", 0)
        print(f"  Round {round_number}: {report.message} {counts}")

        if not report.partial:
            return errors
        print(f"      {len(report.remaining_clinics)} clinics remaining")
        skip_global = True

    print(f"\n⚠️  Stopped after {max_rounds} rounds with clinics remaining")
    return errors + 1


def main():
    parser = argparse.ArgumentParser(description="Generate Nekovibe feedback summaries")
    parser.add_argument("--clinic-only", type=str, help="Only summarize this clinic")
    parser.add_argument(
        "--force-refresh",
        action="store_true",
        help="Regenerate summaries younger than 24 hours",
    )
    parser.add_argument("--max-rounds", type=int, default=20, help="Batch calls before giving up")
    args = parser.parse_args()

    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    settings = Settings.from_env()
    try:
        settings.require("supabase_url", "supabase_key", "openai_api_key")
        errors = asyncio.run(
            generate_all(settings, args.clinic_only, args.force_refresh, args.max_rounds)
        )
    except ConfigurationError as e:
        print(f"\n❌ Configuration Error: {e}")
        sys.exit(1)

    if errors:
        print(f"\n⚠️  Summary generation finished with {errors} errors.")
        sys.exit(1)
    print("\n✅ All summaries generated.")


if __name__ == "__main__":
    main()
