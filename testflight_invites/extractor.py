"""Locate TestFlight invite and App Store Connect activation links in mail content."""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern

from .decoder import decode_entities, decode_percent
from .models import LinkKind
from .validator import filter_truncated, is_valid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkPattern:
    """One matcher; group 1 (or the whole match) is the candidate link."""
    name: str
    kind: LinkKind
    regex: Pattern[str]
    percent_encoded: bool = False


def _compile(pattern: str) -> Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


_ACTIVATION = r"https://appstoreconnect\.apple\.com/activation_ds\?key"
_TESTFLIGHT = r"testflight\.apple\.com"
_TAIL = r"""[^\s<>"'\)]*"""

LINK_PATTERNS: List[LinkPattern] = [
    # Activation links
    LinkPattern("activation_hex32", LinkKind.ACTIVATION,
                _compile(_ACTIVATION + r"=[a-f0-9]{32}")),
    LinkPattern("activation_href", LinkKind.ACTIVATION,
                _compile(r"""<a[^>]+href=["'](""" + _ACTIVATION + r"""=[a-f0-9]{32,})["'][^>]*>""")),
    LinkPattern("activation_any_length", LinkKind.ACTIVATION,
                _compile(_ACTIVATION + r"=[a-f0-9]+")),
    LinkPattern("activation_encoded_key", LinkKind.ACTIVATION,
                _compile(_ACTIVATION + r"%3D[a-f0-9]+"), percent_encoded=True),
    # TestFlight links inside href attributes
    LinkPattern("invite_href", LinkKind.INVITE,
                _compile(r"""href=["'](https?://""" + _TESTFLIGHT + r"""/v1/invite/[A-Za-z0-9]+[^"'\s]*?)["']""")),
    LinkPattern("join_href", LinkKind.JOIN,
                _compile(r"""href=["'](https?://""" + _TESTFLIGHT + r"""/join/[A-Za-z0-9]+[^"'\s]*?)["']""")),
    # Bare TestFlight links
    LinkPattern("invite_bare", LinkKind.INVITE,
                _compile(r"(https://" + _TESTFLIGHT + r"/v1/invite/[A-Za-z0-9]+" + _TAIL + ")")),
    LinkPattern("join_bare", LinkKind.JOIN,
                _compile(r"(https://" + _TESTFLIGHT + r"/join/[A-Za-z0-9]+" + _TAIL + ")")),
    # Fully percent-encoded (tracking redirects)
    LinkPattern("invite_encoded", LinkKind.INVITE,
                _compile(r"(https%3A%2F%2F" + _TESTFLIGHT + r"%2Fv1%2Finvite%2F[A-Za-z0-9%]+)"),
                percent_encoded=True),
    LinkPattern("join_encoded", LinkKind.JOIN,
                _compile(r"(https%3A%2F%2F" + _TESTFLIGHT + r"%2Fjoin%2F[A-Za-z0-9%]+)"),
                percent_encoded=True),
    # Scheme-less mentions in plain text
    LinkPattern("invite_schemeless", LinkKind.INVITE,
                _compile(r"(?<![/\w.])(" + _TESTFLIGHT + r"/v1/invite/[A-Za-z0-9]+" + _TAIL + ")")),
    LinkPattern("join_schemeless", LinkKind.JOIN,
                _compile(r"(?<![/\w.])(" + _TESTFLIGHT + r"/join/[A-Za-z0-9]+" + _TAIL + ")")),
]

_ACTIVATION_RESCAN = _compile(_ACTIVATION + r"=[a-f0-9]+")
_TRAILING_PUNCTUATION = re.compile(r"""[.,;:!?)\]}>'"]+$""")
_WHITESPACE = re.compile(r"\s+")


def normalize_candidate(text: str, percent_encoded: bool = False) -> str:
    """Turn a raw match into an absolute, decoded, punctuation-trimmed URL."""
    url = text
    if percent_encoded:
        url = decode_percent(url)
    url = decode_entities(url)
    url = url.replace("key%3D", "key=").replace("key%3d", "key=")
    if not url.lower().startswith("http"):
        url = "https://" + url
    return _TRAILING_PUNCTUATION.sub("", url)


def _scan(content: str) -> List[str]:
    """Run every pattern over the content, returning normalized candidates."""
    found = []
    for pattern in LINK_PATTERNS:
        for match in pattern.regex.finditer(content):
            raw = match.group(1) if match.groups() else match.group(0)
            found.append(normalize_candidate(raw, pattern.percent_encoded))
    return found


def _rescan_activation(content: str) -> List[str]:
    """Whitespace-collapsed token scan for activation links split by wrapping."""
    found = []
    for token in _WHITESPACE.sub(" ", content).split(" "):
        if "appstoreconnect.apple.com/activation_ds" not in token.lower():
            continue
        match = _ACTIVATION_RESCAN.search(token)
        if match:
            found.append(normalize_candidate(match.group(0)))
    return found


def extract_candidates(content: Optional[str]) -> List[str]:
    """
    Find every plausible link in the content, before validation.

    The content is entity-decoded first. Quoted-printable raw source must
    already be unfolded (see decoder.unfold_quoted_printable). Candidates are
    deduplicated by their final decoded value and returned in first-seen order.
    """
    if not content:
        return []
    decoded = decode_entities(content)
    candidates = _scan(decoded) + _rescan_activation(decoded)
    return list(dict.fromkeys(candidates))


def extract_links(content: Optional[str]) -> List[str]:
    """
    Extract validated, deduplicated invite and activation links.

    Returns an empty list when nothing matches; never raises.
    """
    candidates = extract_candidates(content)
    valid = [url for url in candidates if is_valid(url)]
    links = filter_truncated(valid)
    if len(candidates) != len(links):
        logger.debug(
            f"Kept {len(links)} of {len(candidates)} candidate links "
            f"({len(candidates) - len(valid)} invalid, {len(valid) - len(links)} truncated)"
        )
    return links
