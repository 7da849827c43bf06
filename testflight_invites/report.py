"""Text reports for grouped results and plain link lists."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .models import GroupingResult

logger = logging.getLogger(__name__)

RULE_WIDTH = 50


def _timestamp(now: datetime) -> str:
    return now.strftime("%Y-%m-%d_%H%M%S")


def format_grouped_report(result: GroupingResult, now: datetime) -> str:
    """Render groups as text, apps sorted by name."""
    lines = [
        "TestFlight URLs Grouped by App Name",
        "=" * RULE_WIDTH,
        "",
        "Summary:",
        f"   Total Apps: {result.total_apps}",
        f"   Total URLs: {result.total_urls}",
        f"   Generated: {now.strftime('%Y-%m-%d %H:%M:%S')}",
        "",
        "=" * RULE_WIDTH,
        "",
    ]
    for app_name in sorted(result.groups):
        group = result.groups[app_name]
        lines.append(app_name.upper())
        lines.append("-" * (len(app_name) + 3))
        lines.append(f"Latest Email: {group.latest_date.strftime('%Y-%m-%d')}")
        lines.append(f"URLs Found: {len(group.urls)}")
        lines.append("")
        lines.extend(f"{index}. {url}" for index, url in enumerate(group.urls, 1))
        lines.append("")
        lines.append("-" * RULE_WIDTH)
        lines.append("")
    return "\n".join(lines) + "\n"


def write_grouped_report(
    result: GroupingResult,
    output_dir: Union[str, Path],
    now: Optional[datetime] = None,
) -> Path:
    """Write the grouped report and return its path."""
    now = now or datetime.now()
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"TestFlight_Apps_Grouped_{_timestamp(now)}.txt"
    path.write_text(format_grouped_report(result, now), encoding="utf-8")
    logger.info(f"Grouped results saved to: {path}")
    return path


def write_link_list(
    urls: Iterable[str],
    output_dir: Union[str, Path],
    prefix: str = "ActivationLinks",
    now: Optional[datetime] = None,
) -> Path:
    """Write one URL per line and return the file path."""
    now = now or datetime.now()
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{prefix}_{_timestamp(now)}.txt"
    path.write_text("".join(f"{url}\n" for url in urls), encoding="utf-8")
    logger.info(f"Links saved to: {path}")
    return path


def load_links(path: Union[str, Path]) -> List[str]:
    """Read a link list back; blank lines and non-URLs are skipped."""
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        logger.error(f"Error reading link file {path}: {e}")
        return []

    links = [
        line.strip()
        for line in content.splitlines()
        if line.strip().startswith("http")
    ]
    if not links:
        logger.info(f"No links found in {path}")
    return links
