"""Terminal summary tables for the cookbook and node reports."""

from __future__ import annotations

import shutil
from typing import List, Optional, Sequence, Tuple

from ..data.models import CookbooksReport, NodeReportItem
from .common import (
    EMPTY_CELL,
    FormattedResult,
    sorted_cookbook_records,
    sorted_node_records,
    string_or_placeholder,
)

MIN_TERM_WIDTH = 120
SUMMARY_HEADER = "\n-- REPORT SUMMARY --\n\n"

EMPTY_COOKBOOK_RESULT = "No available cookbooks to generate a report"
EMPTY_NODE_RESULT = "No nodes found to analyze."
FILTERED_EMPTY_COOKBOOK_RESULT = (
    "\nNo cookbooks were found in the run lists of any filtered nodes.\n"
    "Please verify that your node filter is correct, or use one that is less restrictive.\n"
    "Node Filter: {}\n"
)
FILTERED_EMPTY_NODE_RESULT = "No nodes found with filter applied: {}"
APPLIED_NODE_FILTER = "\n\nNode Filter applied: {}\n"

RED = "\033[1;31m{}\033[0m"
YELLOW = "\033[1;33m{}\033[0m"

# a cell is (plain text, colored text); widths are computed on the plain text
Cell = Tuple[str, str]


def _cell(text: str, color: Optional[str] = None) -> Cell:
    text = text or EMPTY_CELL
    return text, color.format(text) if color else text


def render_table(headers: Sequence[str], rows: List[List[Cell]]) -> str:
    """Left aligned columns separated by two spaces, header underlined."""
    widths = [len(h) for h in headers]
    for row in rows:
        for i, (plain, _) in enumerate(row):
            widths[i] = max(widths[i], len(plain))

    header = "  ".join(h.ljust(widths[i]) for i, h in enumerate(headers)).rstrip()
    lines = [header, "-" * len(header)]
    for row in rows:
        cells = [
            colored + " " * (widths[i] - len(plain))
            for i, (plain, colored) in enumerate(row)
        ]
        lines.append("  ".join(cells).rstrip())
    return "\n".join(lines) + "\n"


def terminal_width() -> int:
    return shutil.get_terminal_size((MIN_TERM_WIDTH, 24)).columns


def _width_note(table: str, width: Optional[int]) -> str:
    needed = len(table.split("\n", 1)[0])
    available = width if width is not None else terminal_width()
    if available >= needed:
        return ""
    return (
        "\nNote:  To view the report with correct formatting, please expand"
        f"\n       your terminal window to be at least {needed} characters wide\n"
    )


def cookbooks_report_summary(
    report: Optional[CookbooksReport], width: Optional[int] = None
) -> FormattedResult:
    """Summarized cookbook report for the terminal.

    Violation counts are yellow when every offense is auto-correctable and
    red otherwise.
    """
    if report is None:
        return FormattedResult(EMPTY_COOKBOOK_RESULT, "")
    if not report.records:
        if report.node_filter and report.total_cookbooks > 0:
            return FormattedResult(FILTERED_EMPTY_COOKBOOK_RESULT.format(report.node_filter), "")
        return FormattedResult(EMPTY_COOKBOOK_RESULT, "")

    headers = ["Cookbook", "Version"]
    if report.run_cookstyle:
        headers.extend(["Violations", "Auto-correctable"])
    headers.append("Nodes Affected")

    rows = []
    for record in sorted_cookbook_records(report.records):
        row = [_cell(record.name), _cell(record.version)]
        if report.run_cookstyle:
            offenses = record.num_offenses()
            correctable = record.num_correctable()
            color = None
            if offenses:
                color = YELLOW if offenses == correctable else RED
            row.extend([_cell(str(offenses), color), _cell(str(correctable), color)])
        row.append(_cell(str(record.num_nodes_affected())))
        rows.append(row)

    table = render_table(headers, rows)
    report_text = SUMMARY_HEADER + table
    if report.node_filter:
        report_text += APPLIED_NODE_FILTER.format(report.node_filter)
    return FormattedResult(report_text, _width_note(table, width))


def nodes_report_summary(
    records: List[NodeReportItem], node_filter: str = "", width: Optional[int] = None
) -> FormattedResult:
    if not records:
        if node_filter:
            return FormattedResult(FILTERED_EMPTY_NODE_RESULT.format(node_filter), "")
        return FormattedResult(EMPTY_NODE_RESULT, "")

    headers = ["Node Name", "Chef Version", "Operating System", "Number Cookbooks"]
    if node_filter:
        headers[0] = f"Node Name (filter applied: {node_filter})"

    rows = [
        [
            _cell(record.name),
            _cell(string_or_placeholder(record.chef_version, EMPTY_CELL)),
            _cell(string_or_placeholder(record.os_version_pretty(), EMPTY_CELL)),
            _cell(str(len(record.cookbook_versions))),
        ]
        for record in sorted_node_records(records)
    ]

    table = render_table(headers, rows)
    report_text = SUMMARY_HEADER + table
    if node_filter:
        report_text += APPLIED_NODE_FILTER.format(node_filter)
    return FormattedResult(report_text, _width_note(table, width))
