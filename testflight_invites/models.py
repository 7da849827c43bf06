"""Data models for scanned messages, invite records and app groups."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Set


class LinkKind(str, Enum):
    """Family a validated link belongs to."""
    ACTIVATION = "activation"  # appstoreconnect.apple.com/activation_ds?key=...
    INVITE = "invite"          # testflight.apple.com/v1/invite/...
    JOIN = "join"              # testflight.apple.com/join/...


@dataclass
class RawMessage:
    """Represents one fetched email, as handed over by the mail layer."""
    subject: str
    raw_source: str
    received_date: datetime
    html_body: Optional[str] = None
    text_body: Optional[str] = None
    message_id: str = ""     # Message-ID header or IMAP sequence number
    account: str = ""        # Mailbox this was fetched from


@dataclass(frozen=True)
class InviteRecord:
    """One validated link found in one message."""
    url: str
    app_name: str
    subject: str
    date: datetime


@dataclass
class AppGroup:
    """All unique links resolved to the same app name."""
    app_name: str
    latest_date: datetime
    urls: List[str] = field(default_factory=list)  # insertion order, unique
    subjects: Set[str] = field(default_factory=set)

    @property
    def activation_urls(self) -> List[str]:
        return [url for url in self.urls if "/activation_ds" in url]

    @property
    def invite_urls(self) -> List[str]:
        return [url for url in self.urls if "/activation_ds" not in url]


@dataclass
class GroupingResult:
    """Final output of a grouping run."""
    groups: Dict[str, AppGroup]

    @property
    def total_apps(self) -> int:
        return len(self.groups)

    @property
    def total_urls(self) -> int:
        return sum(len(group.urls) for group in self.groups.values())

    def all_urls(self) -> List[str]:
        """All URLs across groups, apps sorted by name."""
        return [
            url
            for name in sorted(self.groups)
            for url in self.groups[name].urls
        ]
