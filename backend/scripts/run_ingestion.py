#!/usr/bin/env python3
"""
Ingestion Runner

Runs the Nekovibe ingestion jobs from the command line, the same jobs the
/api/v1/ingestion endpoints start. Useful from cron or a CI schedule.

Usage:
    # Every job
    python -m scripts.run_ingestion

    # Only some jobs
    python -m scripts.run_ingestion --jobs google_reviews articles

    # Web insights for one provider
    python -m scripts.run_ingestion --jobs insights --providers tavily

Environment Variables:
    SUPABASE_URL: Supabase project URL
    SUPABASE_SERVICE_ROLE_KEY: Supabase service role key
    GOOGLE_PLACES_API_KEY, GNEWS_API_KEY, TAVILY_API_KEY,
    PERPLEXITY_API_KEY, OPENAI_API_KEY: per-job credentials
"""

import argparse
import asyncio
import logging
import sys
from typing import Dict, List

from dotenv import load_dotenv
from supabase import create_client

from nekovibe.config import ConfigurationError, Settings
from nekovibe.ingestion import (
    INSIGHT_JOBS,
    INSIGHT_SCOPES,
    ArticlesJob,
    GoogleReviewsJob,
    LinkedInJob,
)
from nekovibe.openai_provider import create_chat_model
from nekovibe.storage import FeedbackStore

JOB_NAMES = ["google_reviews", "articles", "linkedin", "insights"]


async def run_jobs(settings: Settings, jobs: List[str], providers: List[str]) -> Dict[str, int]:
    store = FeedbackStore(create_client(settings.supabase_url, settings.supabase_key))
    model = create_chat_model(settings)
    failures = 0

    for name in jobs:
        print(f"\n[{name}]")
        try:
            if name == "insights":
                for provider in providers:
                    job = INSIGHT_JOBS[provider](settings, store)
                    for scope in INSIGHT_SCOPES:
                        result = await job.run(scope)
                        status = "stored" if result.stored else f"failed: {result.error}"
                        print(f"      {provider}/{result.scope}: {status}")
                        failures += 0 if result.stored else 1
                continue

            if name == "google_reviews":
                job = GoogleReviewsJob(settings, store)
            elif name == "articles":
                job = ArticlesJob(settings, store, model=model)
            else:
                job = LinkedInJob(settings, store)
            result = await job.run()
        except ConfigurationError as e:
            print(f"      ⚠️  Skipped: {e}")
            continue

        print(
            f"      added={result.added} skipped={result.skipped} "
            f"found={result.total_found} errors={len(result.errors)}"
        )
        for error in result.errors[:5]:
            print(f"        - {error.item}: {error.error}")
        failures += len(result.errors)

    return {"errors": failures}


def main():
    parser = argparse.ArgumentParser(description="Run Nekovibe ingestion jobs")
    parser.add_argument(
        "--jobs",
        nargs="+",
        choices=JOB_NAMES,
        default=JOB_NAMES,
        help="Jobs to run (default: all)",
    )
    parser.add_argument(
        "--providers",
        nargs="+",
        choices=sorted(INSIGHT_JOBS),
        default=sorted(INSIGHT_JOBS),
        help="Insight providers for the insights job (default: all)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    args = parser.parse_args()

    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    settings = Settings.from_env()
    try:
        settings.require("supabase_url", "supabase_key")
        result = asyncio.run(run_jobs(settings, args.jobs, args.providers))
    except ConfigurationError as e:
        print(f"\n❌ Configuration Error: {e}")
        sys.exit(1)

    if result["errors"]:
        print(f"\n⚠️  Ingestion finished with {result['errors']} errors.")
        sys.exit(1)
    print("\n✅ Ingestion completed successfully!")


if __name__ == "__main__":
    main()
