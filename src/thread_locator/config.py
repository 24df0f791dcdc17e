"""Assemble :class:`LocatorConfig` from defaults, environment and flags."""

from __future__ import annotations

import argparse
import re
from typing import Mapping

from .models import LocatorConfig
from .utils import parse_bool, parse_int, parse_keywords, parse_seconds

ENV_PREFIX = "THREAD_LOCATOR_"

_THREAD_URL_RE = re.compile(
    r"^(?:https?://)?boards\.4chan(?:nel)?\.org/(?P<board>[a-z0-9]+)/(?:res|thread)/(?P<thread>\d+)"
)


def parse_thread_reference(value: str) -> tuple[str | None, str]:
    """Return ``(board, thread_id)`` from a thread URL or a bare id."""

    text = value.strip()
    if text.isdigit():
        return None, text
    match = _THREAD_URL_RE.match(text)
    if not match:
        raise ValueError(f"not a thread URL or id: {value!r}")
    return match.group("board"), match.group("thread")


def config_from_env(environ: Mapping[str, str], base: LocatorConfig | None = None) -> LocatorConfig:
    config = base or LocatorConfig()

    def env(name: str) -> str | None:
        return environ.get(ENV_PREFIX + name)

    return LocatorConfig(
        keywords=parse_keywords(env("KEYWORDS")) or config.keywords,
        marker_md5=(env("MARKER_MD5") or "").strip() or config.marker_md5,
        image_limit=parse_int(env("IMAGE_LIMIT"), config.image_limit),
        request_interval=parse_seconds(env("REQUEST_INTERVAL"), config.request_interval),
        thread_update_interval=parse_seconds(
            env("UPDATE_INTERVAL"), config.thread_update_interval
        ),
        request_timeout=parse_seconds(env("TIMEOUT"), config.request_timeout),
        retry_limit=parse_int(env("RETRY_LIMIT"), config.retry_limit),
        auto_open=parse_bool(env("AUTO_OPEN"), config.auto_open),
        open_in_new_tab=parse_bool(env("NEW_TAB"), config.open_in_new_tab),
        board=(env("BOARD") or "").strip() or config.board,
        api_base=(env("API_BASE") or "").strip() or config.api_base,
        page_refresh_interval=parse_seconds(
            env("PAGE_REFRESH_INTERVAL"), config.page_refresh_interval
        ),
        user_agent=(env("USER_AGENT") or "").strip() or config.user_agent,
    )


def load_config(args: argparse.Namespace, environ: Mapping[str, str]) -> LocatorConfig:
    """Flags win over environment variables, which win over defaults."""

    config = config_from_env(environ)
    if args.keywords is not None:
        config.keywords = parse_keywords(args.keywords) or config.keywords
    if args.marker:
        config.marker_md5 = args.marker.strip()
    if args.image_limit is not None:
        config.image_limit = max(0, args.image_limit)
    if args.request_interval is not None:
        config.request_interval = max(0.0, args.request_interval)
    if args.update_interval is not None:
        config.thread_update_interval = max(0.0, args.update_interval)
    if args.timeout is not None:
        config.request_timeout = max(0.0, args.timeout)
    if args.retry_limit is not None:
        config.retry_limit = max(0, args.retry_limit)
    if args.auto_open:
        config.auto_open = True
    if args.same_tab:
        config.open_in_new_tab = False
    if args.board:
        config.board = args.board.strip()
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Find the successor of a 4chan general once it reaches the image limit"
    )
    parser.add_argument("thread", help="Thread URL or numeric id")
    parser.add_argument("--board", help="Board of the thread (default: mlp)")
    parser.add_argument("--keywords", help="Comma separated keywords of the general")
    parser.add_argument("--marker", help="MD5 (base64) of the marker image")
    parser.add_argument("--image-limit", type=int, help="Image count that starts the search")
    parser.add_argument(
        "--request-interval", type=float, help="Seconds between requests to the API"
    )
    parser.add_argument(
        "--update-interval", type=float, help="Seconds between checks of each linked thread"
    )
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds")
    parser.add_argument(
        "--retry-limit", type=int, help="Checks per linked thread, 0 for unlimited"
    )
    parser.add_argument(
        "--auto-open", action="store_true", help="Open the new thread without asking"
    )
    parser.add_argument(
        "--same-tab", action="store_true", help="Reuse the browser window instead of a new tab"
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser
