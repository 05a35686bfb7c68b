"""
Command-line entry point: python -m plancost <text file> [--json]
Reads extracted document text, prints the detected cost tables
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from pythonjsonlogger import jsonlogger

from .config import get_settings
from .insights import merge_coded_budgets, summarize_detections
from .scanner import scan


def setup_logging(level: str, json_logs: bool = False) -> logging.Logger:
    """Configure the root logger from the settings log level"""
    handler = logging.StreamHandler(sys.stderr)
    if json_logs:
        handler.setFormatter(jsonlogger.JsonFormatter(
            '%(asctime)s %(name)s %(levelname)s %(message)s'
        ))
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))

    logger = logging.getLogger()
    logger.handlers = [handler]
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog='plancost', description='Detect cost tables in plan text')
    parser.add_argument('path', help='UTF-8 text file, one document line per line')
    parser.add_argument('--json', action='store_true', help='print full detections as JSON')
    parser.add_argument('--json-logs', action='store_true', help='emit structured JSON log records')
    args = parser.parse_args(argv)

    settings = get_settings()
    logger = setup_logging(settings.log_level, args.json_logs)

    path = Path(args.path)
    if not path.exists():
        logger.error(f"❌ File not found: {path}")
        return 1

    lines = path.read_text(encoding='utf-8', errors='replace').splitlines()
    tables = merge_coded_budgets(scan(lines, settings=settings))

    if args.json:
        print(json.dumps([t.to_dict() for t in tables], indent=2))
    else:
        for entry in summarize_detections(tables):
            print(f"{entry['id']:<40} {entry['confidence']:.2f}  "
                  f"reported={entry['totalReported']}  computed={entry['totalComputed']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
