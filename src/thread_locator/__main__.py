"""Command line entry point."""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from .app import run_locator
from .config import build_parser, load_config, parse_thread_reference
from .page import ThreadUnavailableError


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        board, thread_id = parse_thread_reference(args.thread)
    except ValueError as exc:
        parser.error(str(exc))
    if board and not args.board:
        args.board = board

    config = load_config(args, os.environ)
    logger = logging.getLogger(__name__)
    try:
        found = asyncio.run(run_locator(thread_id, config))
    except ThreadUnavailableError as exc:
        logger.error("%s", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        return

    if found is None:
        logger.info("Thread %s is not a general, exiting", thread_id)


if __name__ == "__main__":
    main()
