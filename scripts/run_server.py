#!/usr/bin/env python
"""
Serve the extraction API with uvicorn.

    python scripts/run_server.py [--host 0.0.0.0] [--port 8000] [--reload]
"""
import argparse
import logging
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("run_server")

APP = "chefstacks.app.main:app"


def parse_args(argv):
    parser = argparse.ArgumentParser(description="Run the Chef Stacks API.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="restart on code changes")
    return parser.parse_args(argv)


def main(argv=None):
    repo_root = Path(__file__).resolve().parents[1]
    env_path = repo_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logger.info("Serving %s on %s:%d", APP, args.host, args.port)
    uvicorn.run(APP, host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
