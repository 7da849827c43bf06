"""Per-message pipeline: content -> links -> app name -> records -> groups."""

import logging
from typing import Collection, Iterable, List, Optional, Set

from .decoder import unfold_quoted_printable
from .extractor import extract_links
from .grouper import Grouper
from .models import GroupingResult, InviteRecord, LinkKind, RawMessage
from .resolver import AppNameResolver
from .validator import link_kind

logger = logging.getLogger(__name__)

TESTFLIGHT_KEYWORDS = (
    "testflight",
    "test flight",
    "invited to test",
    "join the beta",
    "beta test",
    "app store connect",
    "testflight.apple.com",
    "appstoreconnect.apple.com",
)


def message_content(message: RawMessage) -> str:
    """
    HTML body, text body and raw source, one per line; any may be missing.

    The parts are separated by a newline so a link at the very end of one part
    never runs into the start of the next. Only the raw source is unfolded,
    since the bodies are already transfer-decoded.
    """
    parts = (message.html_body, message.text_body, unfold_quoted_printable(message.raw_source))
    return "\n".join(part for part in parts if part)


def is_testflight_message(subject: str, content: str) -> bool:
    """Cheap keyword check before running the pattern set."""
    text = f"{subject or ''} {content or ''}".lower()
    return any(keyword in text for keyword in TESTFLIGHT_KEYWORDS)


def process_message(
    message: RawMessage,
    resolver: Optional[AppNameResolver] = None,
    kinds: Optional[Collection[LinkKind]] = None,
) -> List[InviteRecord]:
    """
    Build one InviteRecord per validated link in a message.

    Args:
        message: Message to scan.
        resolver: App name resolver (default options if None).
        kinds: If given, only links of these kinds are kept.

    Returns:
        Records in link order; empty when the message has no links.
    """
    content = message_content(message)
    if not is_testflight_message(message.subject, content):
        logger.debug(f"Skipping non-TestFlight message: {message.subject[:60]!r}")
        return []

    urls = extract_links(content)
    if kinds is not None:
        urls = [url for url in urls if link_kind(url) in kinds]
    if not urls:
        logger.info(f"TestFlight message without usable links: {message.subject[:60]!r}")
        return []

    resolver = resolver or AppNameResolver()
    app_name = resolver.resolve(message.subject, content)
    logger.info(f"Found {len(urls)} link(s) for {app_name}: {message.subject[:60]!r}")
    return [
        InviteRecord(url=url, app_name=app_name, subject=message.subject, date=message.received_date)
        for url in urls
    ]


def scan_messages(
    messages: Iterable[RawMessage],
    resolver: Optional[AppNameResolver] = None,
    seen_urls: Optional[Set[str]] = None,
    kinds: Optional[Collection[LinkKind]] = None,
) -> GroupingResult:
    """Process every message and group the resulting records by app."""
    resolver = resolver or AppNameResolver()
    grouper = Grouper(seen_urls)
    scanned = 0
    with_links = 0
    for message in messages:
        scanned += 1
        records = process_message(message, resolver, kinds)
        if records:
            with_links += 1
        grouper.extend(records)

    result = grouper.result()
    logger.info(
        f"Scanned {scanned} messages, {with_links} with links: "
        f"{result.total_urls} unique links across {result.total_apps} apps"
    )
    return result
