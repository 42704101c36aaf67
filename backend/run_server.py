#!/usr/bin/env python3
"""
Serve a folder of dive computer logs over HTTP.

    python run_server.py ~/dives --port 5000
    python run_server.py --reload
"""

import argparse
import os
from collections import Counter
from pathlib import Path

from diveimport.main import DATA_FOLDER_ENV, DEFAULT_DATA_FOLDER
from diveimport.services.repository import IMPORTABLE_SUFFIXES


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Browse imported dive logs over HTTP")
    parser.add_argument("folder", nargs="?", type=Path, default=DEFAULT_DATA_FOLDER,
                        help=f"dive log folder (default: {DEFAULT_DATA_FOLDER})")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", "-p", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="restart on code changes")
    parser.add_argument("--log-level", default="info",
                        choices=["critical", "error", "warning", "info", "debug"])
    return parser


def suffix_counts(folder: Path) -> Counter:
    """Candidate log files per suffix, before format detection."""
    return Counter(
        path.suffix.lower()
        for path in folder.iterdir()
        if path.is_file() and path.suffix.lower() in IMPORTABLE_SUFFIXES
    )


def main():
    args = build_parser().parse_args()
    folder = args.folder.expanduser()

    if folder.is_dir():
        os.environ[DATA_FOLDER_ENV] = str(folder)
        counts = suffix_counts(folder)
        found = ", ".join(f"{n} {suffix}" for suffix, n in sorted(counts.items())) or "no log files"
        print(f"Serving {folder.resolve()} ({found})")
    else:
        print(f"{folder} is not a directory; set one later with POST /folder")

    print(f"API docs at http://{args.host}:{args.port}/docs")

    import uvicorn

    uvicorn.run(
        "diveimport.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
