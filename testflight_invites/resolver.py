"""Derive a human-readable app name from an invitation's subject and body.

Resolution is an ordered cascade of rules. Each rule either yields a
candidate name or passes; the first candidate that survives cleanup wins:

1. alias table (hard-coded nicknames, returned verbatim)
2. content rules (HTML markers and invitation phrases in the body)
3. subject rules ("X has invited you to test", "TestFlight: X", ...)
4. developer pass ("By X for iOS"), prefixed as "<developer> + <app>"
5. subject with stop words removed, else "Unknown App"
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Dict, List, Optional, Pattern, Sequence

from .decoder import decode_entities

logger = logging.getLogger(__name__)

UNKNOWN_APP = "Unknown App"

DEFAULT_ALIASES: Dict[str, str] = {
    "vietnamgg": "VietnamGG",
    "vietnam gg": "VietnamGG",
    "viet nam gg": "VietnamGG",
}

STOP_WORDS = (
    "TestFlight", "invited", "test", "you", "to", "for", "iOS", "has",
    "been", "the", "beta", "join", "start", "testing",
)

DEVELOPER_STOP_WORDS = ("for", "iOS", "the", "and")


class NameLengthCap(IntEnum):
    """Upper bound (exclusive) on a candidate name, by where it came from."""
    TITLE = 50
    CONTENT = 100
    SUBJECT = 100
    DEVELOPER = 50
    FALLBACK = 30


class NameSource(str, Enum):
    SUBJECT = "subject"
    CONTENT = "content"


def _word_pattern(words: Sequence[str]) -> Pattern[str]:
    # Contractions first so "you're" does not leave a stray "'re" behind.
    alternatives = [r"you['’](?:re|ve)"] + [re.escape(word) for word in words]
    return re.compile(r"\b(?:%s)\b" % "|".join(alternatives), re.IGNORECASE)


_STOP_WORD_RE = _word_pattern(STOP_WORDS)
_DEVELOPER_STOP_RE = re.compile(
    r"\b(?:%s)\b|&" % "|".join(DEVELOPER_STOP_WORDS), re.IGNORECASE
)
_LEFTOVER_ENTITY_RE = re.compile(r"&[a-zA-Z0-9#]+;")
_NON_WORD_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_HAS_LETTER_RE = re.compile(r"[A-Za-z]")
_TESTFLIGHT_PREFIX_RE = re.compile(r"TestFlight[\s:]*-?", re.IGNORECASE)
_REPLY_PREFIX_RE = re.compile(r"^(?:\s*(?:re|fwd?|aw|tr)\s*:\s*)+", re.IGNORECASE)
_EDGE_PUNCTUATION = " \t-–—:;,.|'\"’"


def _collapse(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def strip_stop_words(text: str) -> str:
    """Remove stop words and collapse whitespace and edge punctuation."""
    return _collapse(_STOP_WORD_RE.sub(" ", text)).strip(_EDGE_PUNCTUATION)


def is_acceptable(name: str, max_length: int) -> bool:
    """A candidate must be non-empty, under the cap and contain a letter."""
    return 0 < len(name) < max_length and bool(_HAS_LETTER_RE.search(name))


def clean_candidate(text: str) -> str:
    """Strip leftover entities and stop words from a matched name."""
    return strip_stop_words(_LEFTOVER_ENTITY_RE.sub("", text))


def normalize_app_name(name: str) -> str:
    """Final form: stop words stripped, each word capitalized."""
    words = strip_stop_words(name).split()
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


class NameRule(ABC):
    """One step of the cascade."""

    name: str = ""

    @abstractmethod
    def extract(self, subject: str, content: str) -> Optional[str]:
        """
        Try to find an app name.

        Args:
            subject: Subject line, reply prefixes removed.
            content: Entity-decoded message content.

        Returns:
            A cleaned, acceptable candidate, or None to let the cascade continue.
        """


class AliasRule(NameRule):
    """Known nicknames, matched case-insensitively as substrings."""

    name = "alias"

    def __init__(self, aliases: Dict[str, str]):
        self.aliases = {key.lower(): value for key, value in aliases.items()}

    def extract(self, subject: str, content: str) -> Optional[str]:
        cleaned_subject = _TESTFLIGHT_PREFIX_RE.sub("", subject).strip().lower()
        lowered_content = content.lower()
        for key, canonical in self.aliases.items():
            if key in cleaned_subject or key in lowered_content:
                return canonical
        return None


class PatternRule(NameRule):
    """A regex whose first group is the candidate name."""

    def __init__(
        self,
        name: str,
        pattern: str,
        source: NameSource,
        max_length: int,
        flags: int = re.IGNORECASE,
    ):
        self.name = name
        self.regex = re.compile(pattern, flags)
        self.source = source
        self.max_length = max_length

    def extract(self, subject: str, content: str) -> Optional[str]:
        text = subject if self.source is NameSource.SUBJECT else content
        if not text:
            return None
        match = self.regex.search(text)
        if not match or not match.group(1):
            return None
        candidate = clean_candidate(match.group(1))
        if is_acceptable(candidate, self.max_length):
            return candidate
        return None


class DeveloperRule(PatternRule):
    """Developer names ("By Acme for iOS") use a smaller stop-word list."""

    def extract(self, subject: str, content: str) -> Optional[str]:
        text = subject if self.source is NameSource.SUBJECT else content
        if not text:
            return None
        match = self.regex.search(text)
        if not match or not match.group(1):
            return None
        candidate = _collapse(_DEVELOPER_STOP_RE.sub(" ", match.group(1)))
        if is_acceptable(candidate, self.max_length):
            return candidate
        return None


def _content(name: str, pattern: str, cap: NameLengthCap = NameLengthCap.CONTENT) -> PatternRule:
    return PatternRule(name, pattern, NameSource.CONTENT, cap)


def _subject(name: str, pattern: str) -> PatternRule:
    return PatternRule(name, pattern, NameSource.SUBJECT, NameLengthCap.SUBJECT)


CONTENT_RULES: List[NameRule] = [
    _content("apple_system_span",
             r'<span[^>]*style="[^"]*font-family:[^"]*apple-system[^"]*"[^>]*>([^<]+)</span>'),
    _content("apple_system_div_by_developer",
             r'<div[^>]*style="[^"]*font-family:[^"]*apple-system[^"]*"[^>]*>([^<]+)</div>\s*<div[^>]*>By\s+[^<]+\s+for\s+iOS'),
    _content("app_icon_alt", r'alt="([^,"]+),\s*app\s+icon"'),
    _content("aria_label_for_ios", r'aria-label="([^"]+?)\s+for\s+iOS"'),
    _content("large_font_span",
             r'<[^>]*style="[^"]*font-size:\s*24px[^"]*"[^>]*>([^<]+)</[^>]*>'),
    _content("app_name_field", r"""app[_-]?name['"]?\s*[:=]\s*['"]([^'"]+)['"]"""),
    _content("application_field", r"""application['"]\s*:\s*['"]([^'"]+)['"]"""),
    _content("html_title", r"<title[^>]*>([^<]+)</title>", NameLengthCap.TITLE),
    _content("invited_to_test_phrase", r"You['’]re invited to test\s+([^.<\n]+)"),
    _content("by_using_agree", r"By using\s+([A-Za-z][A-Za-z0-9 ]{2,30}),\s*you agree"),
    _content("to_test_agree", r"To test\s+([A-Za-z][A-Za-z0-9 ]{2,30}),\s*you agree"),
    _content("join_on_testflight", r"join\s+([^<>\n]+?)\s+on\s+TestFlight"),
]

SUBJECT_RULES: List[NameRule] = [
    _subject("has_invited_you", r"^(.+?)\s+has invited you to test"),
    _subject("invited_to_test", r"invited to test\s+(.+?)(?:\s+on\s+TestFlight)?$"),
    _subject("testflight_colon", r"\bTestFlight\s*:\s*(.+?)(?:\s+for\s+iOS)?$"),
    _subject("for_ios", r"^(.+?)\s+for iOS"),
    _subject("dash_testflight", r"^(.+?)\s*[-–]\s*TestFlight"),
    _subject("join_the_beta", r"Join the\s+(.+?)\s+beta"),
    _subject("start_testing", r"Start testing\s+(.+)"),
    _subject("ready_for_beta", r"^(.+?)\s+is ready for beta testing"),
    _subject("colon_prefix", r"^([^:]+):"),
]

DEVELOPER_RULES: List[NameRule] = [
    DeveloperRule("by_developer_for_ios",
                  r"\bBy\s+([A-Za-z][A-Za-z0-9 ]{2,50}?)\s+for\s+iOS",
                  NameSource.CONTENT, NameLengthCap.DEVELOPER),
    DeveloperRule("by_developer_company",
                  r"\bBy\s+([A-Za-z][A-Za-z0-9 ]{2,50}?)\s+(?:(?:Inc|LLC|Ltd|Corporation)\b|Co\.)",
                  NameSource.CONTENT, NameLengthCap.DEVELOPER),
]


@dataclass
class ResolverOptions:
    """Tunable parts of the cascade."""
    aliases: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ALIASES))
    fallback_max_length: int = NameLengthCap.FALLBACK
    combine_developer: bool = True


class AppNameResolver:
    """Runs the rule cascade; `resolve` always returns a non-empty name."""

    def __init__(self, options: Optional[ResolverOptions] = None):
        self.options = options or ResolverOptions()
        self.alias_rule = AliasRule(self.options.aliases)
        self.name_rules: List[NameRule] = CONTENT_RULES + SUBJECT_RULES
        self.developer_rules: List[NameRule] = DEVELOPER_RULES

    @staticmethod
    def _first(rules: Sequence[NameRule], subject: str, content: str) -> Optional[str]:
        for rule in rules:
            candidate = rule.extract(subject, content)
            if candidate:
                logger.debug(f"Rule '{rule.name}' matched: {candidate!r}")
                return candidate
        return None

    def _fallback(self, subject: str) -> Optional[str]:
        cleaned = _collapse(_NON_WORD_RE.sub(" ", _STOP_WORD_RE.sub(" ", subject)))
        if is_acceptable(cleaned, self.options.fallback_max_length) and not cleaned.isdigit():
            return cleaned
        return None

    def resolve(self, subject: Optional[str], content: Optional[str]) -> str:
        subject = _REPLY_PREFIX_RE.sub("", subject or "").strip()
        content = decode_entities(content or "")

        alias = self.alias_rule.extract(subject, content)
        if alias:
            return alias

        app_name = self._first(self.name_rules, subject, content)
        if app_name:
            if self.options.combine_developer:
                developer = self._first(self.developer_rules, subject, content)
                if developer and developer.lower() not in app_name.lower():
                    app_name = f"{developer} + {app_name}"
            normalized = normalize_app_name(app_name)
            if normalized:
                return normalized

        fallback = self._fallback(subject)
        if fallback:
            normalized = normalize_app_name(fallback)
            if normalized:
                return normalized

        logger.debug(f"No app name found for subject {subject[:60]!r}")
        return UNKNOWN_APP


_default_resolver = AppNameResolver()


def resolve_app_name(subject: Optional[str], content: Optional[str]) -> str:
    """Resolve an app name with the default options."""
    return _default_resolver.resolve(subject, content)
