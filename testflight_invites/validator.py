"""Structural checks that reject partial or corrupted link matches."""

import re
from typing import Iterable, List, Optional

from .models import LinkKind

TESTFLIGHT_HOST = "testflight.apple.com"
ACTIVATION_HOST = "appstoreconnect.apple.com"
ACTIVATION_PATH = "/activation_ds?key="
INVITE_PATH = "/v1/invite/"
JOIN_PATH = "/join/"

# TestFlight links shorter than this are prefixes cut off mid-token.
MIN_TESTFLIGHT_LENGTH = 50
MIN_TOKEN_LENGTH = 8

_TOKEN_RE = re.compile(
    r"(?:%s|%s)[A-Za-z0-9]{%d,}"
    % (re.escape(INVITE_PATH), re.escape(JOIN_PATH), MIN_TOKEN_LENGTH),
    re.IGNORECASE,
)
_ACTIVATION_KEY_RE = re.compile(
    re.escape(ACTIVATION_PATH) + r"[0-9a-f]{%d,}" % MIN_TOKEN_LENGTH,
    re.IGNORECASE,
)


def link_kind(url: str) -> Optional[LinkKind]:
    """Classify a URL by host and path, or None if it is neither family."""
    if not url:
        return None
    lowered = url.lower()
    if ACTIVATION_HOST in lowered and ACTIVATION_PATH in lowered:
        return LinkKind.ACTIVATION
    if TESTFLIGHT_HOST in lowered:
        if INVITE_PATH in lowered:
            return LinkKind.INVITE
        if JOIN_PATH in lowered:
            return LinkKind.JOIN
    return None


def is_valid(url: str) -> bool:
    """
    Check that a URL is a complete invite or activation link.

    TestFlight links must be longer than 50 characters, must not end with
    "=" or contain "...", and must carry a token of at least 8 alphanumerics.
    Activation links only need the host, path and a hex key.
    """
    kind = link_kind(url)
    if kind is None:
        return False

    if kind is LinkKind.ACTIVATION:
        return bool(_ACTIVATION_KEY_RE.search(url))

    if len(url) <= MIN_TESTFLIGHT_LENGTH:
        return False
    if url.endswith("=") or "..." in url:
        return False
    return bool(_TOKEN_RE.search(url))


def filter_truncated(urls: Iterable[str]) -> List[str]:
    """Drop URLs that are strict prefixes of another, longer URL in the set."""
    candidates = list(dict.fromkeys(urls))
    return [
        url
        for url in candidates
        if not any(
            other != url and len(other) > len(url) and other.startswith(url)
            for other in candidates
        )
    ]
