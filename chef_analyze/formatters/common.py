"""Shared pieces of the report formatters.

All formatters are pure: they never mutate the records they are given and
always return a FormattedResult with the report text and the error text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from ..data.models import CookbookRecord, NodeReportItem

UNKNOWN = "unknown"
NO_GROUP = "no group"
NO_POLICY = "no policy"
NO_REVISION = "no revision"
NONE = "none"
EMPTY_CELL = "-"


@dataclass
class FormattedResult:
    report: str = ""
    errors: str = ""


def string_or_placeholder(value: Optional[str], placeholder: str = UNKNOWN) -> str:
    return value if value else placeholder


def sorted_cookbook_records(records: List[CookbookRecord]) -> List[CookbookRecord]:
    """Records ordered by name then version; ties keep policy order stable."""
    return sorted(records, key=lambda r: (r.name, r.version, r.policy_group, r.policy))


def sorted_node_records(records: List[NodeReportItem]) -> List[NodeReportItem]:
    """Node items ordered by name, case-sensitive ('Zed' sorts before 'abe')."""
    return sorted(records, key=lambda r: r.name)


def cookbook_errors(records: List[CookbookRecord]) -> str:
    """Error listing for cookbook records.

    Grouped as download errors, then cookstyle errors, then usage lookup
    errors; each line reads `` - NAME (VERSION): ERROR``.
    """
    downloads, cookstyle, usage = [], [], []
    for record in sorted_cookbook_records(records):
        label = f" - {record.name} ({record.version})"
        if record.download_error is not None:
            downloads.append(f"{label}: {record.download_error}\n")
        if record.cookstyle_error is not None:
            cookstyle.append(f"{label}: {record.cookstyle_error}\n")
        if record.usage_lookup_error is not None:
            usage.append(f"{label}: {record.usage_lookup_error}\n")
    return "".join(downloads + cookstyle + usage)
