"""Fold invite records into app-keyed groups with global URL deduplication."""

import logging
from typing import Dict, Iterable, Optional, Set

from .models import AppGroup, GroupingResult, InviteRecord
from .validator import is_valid

logger = logging.getLogger(__name__)


class Grouper:
    """
    Incremental accumulator for one grouping run.

    A URL is placed in the first group that claims it and is never added to
    another. The dedup set may be supplied by the caller; otherwise each
    Grouper owns a fresh one.
    """

    def __init__(self, seen_urls: Optional[Set[str]] = None):
        self.seen_urls: Set[str] = seen_urls if seen_urls is not None else set()
        self.groups: Dict[str, AppGroup] = {}
        self.dropped_duplicates = 0
        self.dropped_invalid = 0

    def add(self, record: InviteRecord) -> bool:
        """
        Fold one record in.

        Returns:
            True if the record's URL was added, False if it was dropped as a
            duplicate or as an invalid link.
        """
        if not is_valid(record.url):
            logger.warning(f"Dropping invalid link for {record.app_name}: {record.url[:80]}")
            self.dropped_invalid += 1
            return False

        if record.url in self.seen_urls:
            logger.debug(f"Duplicate link dropped: {record.url[:80]}")
            self.dropped_duplicates += 1
            return False

        group = self.groups.get(record.app_name)
        if group is None:
            group = AppGroup(app_name=record.app_name, latest_date=record.date)
            self.groups[record.app_name] = group

        group.urls.append(record.url)
        group.subjects.add(record.subject)
        if record.date > group.latest_date:
            group.latest_date = record.date
        self.seen_urls.add(record.url)
        return True

    def extend(self, records: Iterable[InviteRecord]) -> None:
        for record in records:
            self.add(record)

    def result(self) -> GroupingResult:
        return GroupingResult(groups=dict(self.groups))


def group_records(
    records: Iterable[InviteRecord],
    seen_urls: Optional[Set[str]] = None,
) -> GroupingResult:
    """Group records by app name in one pass."""
    grouper = Grouper(seen_urls)
    grouper.extend(records)
    result = grouper.result()
    logger.debug(
        f"Grouped {result.total_urls} unique links into {result.total_apps} apps "
        f"({grouper.dropped_duplicates} duplicates dropped)"
    )
    return result
