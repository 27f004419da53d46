"""CSV reports.

Columns match the text reports field for field. Quoting and escaping follow
the csv module's defaults; rows end with a bare newline.
"""

from __future__ import annotations

import csv
import io
from typing import List, Optional

from ..data.models import CookbooksReport, NodeReportItem
from .common import (
    NO_GROUP,
    NO_POLICY,
    NO_REVISION,
    NONE,
    FormattedResult,
    cookbook_errors,
    sorted_cookbook_records,
    sorted_node_records,
    string_or_placeholder,
)

COOKBOOK_COLUMNS = ["Cookbook Name", "Version", "Policy Group", "Policy", "Policy Revision"]
OFFENSE_COLUMNS = ["File", "Offense", "Automatically Correctable", "Message"]
NODE_COLUMNS = [
    "Node Name",
    "Chef Version",
    "Operating System",
    "Policy Group",
    "Policy",
    "Policy Revision",
    "Cookbooks",
]


def _writer(buffer: io.StringIO):
    return csv.writer(buffer, lineterminator="\n")


def cookbooks_report_csv(report: Optional[CookbooksReport]) -> FormattedResult:
    """One row per record, or per (file, offense) pair when cookstyle ran."""
    if report is None or not report.records:
        return FormattedResult()

    buffer = io.StringIO()
    writer = _writer(buffer)

    nodes_header = f"Nodes (filtered: {report.node_filter})" if report.node_filter else "Nodes"
    header = list(COOKBOOK_COLUMNS)
    if report.run_cookstyle:
        header.extend(OFFENSE_COLUMNS)
    header.append(nodes_header)
    writer.writerow(header)

    for record in sorted_cookbook_records(report.records):
        prefix = [
            record.name,
            record.version,
            string_or_placeholder(record.policy_group, NO_GROUP),
            string_or_placeholder(record.policy, NO_POLICY),
            string_or_placeholder(record.policy_revision, NO_REVISION),
        ]
        nodes = " ".join(sorted(record.nodes)) if record.nodes else NONE
        if not report.run_cookstyle:
            writer.writerow(prefix + [nodes])
            continue
        for f in record.files:
            for offense in f.offenses:
                writer.writerow(prefix + [
                    f.path,
                    offense.cop_name,
                    "Y" if offense.correctable else "N",
                    offense.message,
                    nodes,
                ])

    return FormattedResult(buffer.getvalue(), cookbook_errors(report.records))


def nodes_report_csv(records: List[NodeReportItem], node_filter: str = "") -> FormattedResult:
    if not records:
        return FormattedResult()

    buffer = io.StringIO()
    writer = _writer(buffer)

    header = list(NODE_COLUMNS)
    if node_filter:
        header[0] = f"Node Name (node filter: {node_filter})"
    writer.writerow(header)

    for record in sorted_node_records(records):
        cookbooks = record.cookbooks_list()
        writer.writerow([
            record.name,
            string_or_placeholder(record.chef_version),
            string_or_placeholder(record.os_version_pretty()),
            string_or_placeholder(record.policy_group, NO_GROUP),
            string_or_placeholder(record.policy, NO_POLICY),
            string_or_placeholder(record.policy_revision, NO_REVISION),
            " ".join(cookbooks) if cookbooks else NONE,
        ])
    return FormattedResult(buffer.getvalue(), "")
