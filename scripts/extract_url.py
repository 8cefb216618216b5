#!/usr/bin/env python
"""
Run one extraction from the command line and print the result as JSON.

    python scripts/extract_url.py "https://www.youtube.com/watch?v=..." [--skip-preflight]
    python scripts/extract_url.py --preflight-only "https://youtu.be/..."
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("extract_url")


def parse_args(argv):
    parser = argparse.ArgumentParser(description="Extract a recipe from a URL.")
    parser.add_argument("url")
    parser.add_argument("--skip-preflight", action="store_true", help="extract even if the gate fails")
    parser.add_argument("--preflight-only", action="store_true", help="only run the preflight gate")
    return parser.parse_args(argv)


async def run(args) -> int:
    # imported after load_dotenv so Settings sees the .env values
    from chefstacks.app.core.config import get_settings
    from chefstacks.app.services.extraction import ExtractionOrchestrator
    from chefstacks.app.services.extraction.errors import ExtractionError

    orchestrator = ExtractionOrchestrator(get_settings())
    if args.preflight_only:
        try:
            result = await orchestrator.preflight(args.url)
        except ExtractionError as exc:
            logger.error("Preflight failed: %s", exc)
            return 2
        print(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False))
        return 0 if result.pass_ else 1

    result = await orchestrator.extract(args.url, skip_preflight=args.skip_preflight)
    print(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False))
    if not result.success:
        logger.error("Extraction failed (%s): %s", result.error_code, result.error_message)
        return 1
    return 0


def main():
    repo_root = Path(__file__).resolve().parents[1]
    env_path = repo_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    sys.exit(asyncio.run(run(parse_args(sys.argv[1:]))))


if __name__ == "__main__":
    main()
