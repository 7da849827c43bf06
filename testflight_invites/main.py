"""Main entry point for the TestFlight invite scanner."""

import argparse
import imaplib
import logging
import os
import sys
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from .config import AppConfig, load_config
from .db import clear_seen_links, get_seen_links, init_db, mark_links_seen, set_meta
from .email_client import fetch_messages, load_messages_from_dir
from .models import LinkKind, RawMessage
from .report import write_grouped_report, write_link_list
from .resolver import AppNameResolver
from .scanner import scan_messages

logger = logging.getLogger(__name__)

KIND_CHOICES = {
    "all": None,
    "invite": {LinkKind.INVITE, LinkKind.JOIN},
    "activation": {LinkKind.ACTIVATION},
}


def _configure_logging(level_name: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def _collect_messages(config: AppConfig, args: argparse.Namespace) -> List[RawMessage]:
    """Gather messages from .eml files or from every configured mailbox."""
    if args.source == "dir":
        return load_messages_from_dir(args.eml_dir)

    messages = []
    logger.info(f"Scanning {len(config.email_accounts)} mailbox(es)...")
    for email_config in config.email_accounts:
        if args.folder:
            email_config.folder = args.folder
        try:
            messages.extend(fetch_messages(email_config, limit=args.limit))
        except (imaplib.IMAP4.error, OSError) as e:
            logger.error(f"Error fetching messages from {email_config.username}: {e}", exc_info=True)
            continue  # Continue with other accounts even if one fails
    return messages


def run_once(args: argparse.Namespace) -> int:
    """Run one scan; returns the process exit code."""
    try:
        config = load_config(require_email=args.source == "imap")
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    output_dir = args.output_dir or config.output_dir
    conn = init_db(config.db_path)
    try:
        if args.reset_seen:
            logger.info("Clearing previously reported links...")
            clear_seen_links(conn)

        seen_urls = get_seen_links(conn) if args.new_only else set()
        if seen_urls:
            logger.info(f"Skipping {len(seen_urls)} links reported in earlier runs")

        try:
            messages = _collect_messages(config, args)
        except FileNotFoundError as e:
            logger.error(str(e))
            return 1

        resolver = AppNameResolver(config.resolver.to_options())
        result = scan_messages(
            messages,
            resolver=resolver,
            seen_urls=set(seen_urls),
            kinds=KIND_CHOICES[args.kind],
        )

        if result.total_urls == 0:
            logger.info(
                "No TestFlight or activation links found. Check the spam folder, "
                "or raise --limit to scan more messages."
            )
            return 0

        for app_name in sorted(result.groups):
            group = result.groups[app_name]
            logger.info(f"{app_name}: {len(group.urls)} link(s), latest {group.latest_date:%Y-%m-%d}")

        write_grouped_report(result, output_dir)
        activation_urls = [
            url for group in result.groups.values() for url in group.activation_urls
        ]
        if activation_urls:
            write_link_list(activation_urls, output_dir, prefix="ActivationLinks")

        mark_links_seen(conn, [
            (url, group.app_name)
            for group in result.groups.values()
            for url in group.urls
        ])
        set_meta(conn, "last_run", datetime.now(timezone.utc).isoformat())
        logger.info(f"Found {result.total_urls} links for {result.total_apps} apps")
        return 0
    finally:
        conn.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Collect TestFlight invite and App Store Connect activation links from mailboxes"
    )
    parser.add_argument(
        "--source",
        choices=["imap", "dir"],
        default="imap",
        help="Read messages from configured IMAP accounts or from a directory of .eml files"
    )
    parser.add_argument(
        "--eml-dir",
        default=".",
        help="Directory of .eml files (with --source dir)"
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Number of newest messages to scan per mailbox (default: MAX_MESSAGES_PER_ACCOUNT)"
    )
    parser.add_argument(
        "--folder",
        default=None,
        help="Mailbox folder to scan (overrides EMAIL_FOLDER)"
    )
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Where report files are written (overrides OUTPUT_DIR)"
    )
    parser.add_argument(
        "--kind",
        choices=sorted(KIND_CHOICES),
        default="all",
        help="Which link family to collect"
    )
    parser.add_argument(
        "--new-only",
        action="store_true",
        help="Skip links already reported by an earlier run"
    )
    parser.add_argument(
        "--reset-seen",
        action="store_true",
        help="Forget links reported by earlier runs before scanning"
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: LOG_LEVEL env var or INFO)"
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point with command-line argument parsing."""
    args = build_parser().parse_args(argv)
    _configure_logging(args.log_level)
    sys.exit(run_once(args))


if __name__ == "__main__":
    main()
