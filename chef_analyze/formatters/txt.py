"""Plain text reports."""

from __future__ import annotations

from typing import List, Optional

from ..data.models import CookbookRecord, CookbooksReport, NodeReportItem
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


def cookbooks_report_txt(report: Optional[CookbooksReport]) -> FormattedResult:
    if report is None:
        return FormattedResult()

    header = f"Node filter applied: {report.node_filter}\n" if report.node_filter else ""
    if not report.records:
        return FormattedResult(header, "")

    body = "".join(
        _cookbook_record_txt(record, report.run_cookstyle)
        for record in sorted_cookbook_records(report.records)
    )
    return FormattedResult(header + body, cookbook_errors(report.records))


def _cookbook_record_txt(record: CookbookRecord, run_cookstyle: bool) -> str:
    lines = [
        f"> Cookbook: {record.name} ({record.version})\n",
        f"  Policy Group: {string_or_placeholder(record.policy_group, NO_GROUP)}\n",
        f"  Policy: {string_or_placeholder(record.policy, NO_POLICY)}\n",
        f"  Policy Revision: {string_or_placeholder(record.policy_revision, NO_REVISION)}\n",
    ]
    if run_cookstyle:
        lines.append(f"  Violations: {record.num_offenses()}\n")
        lines.append(f"  Auto correctable: {record.num_correctable()}\n")

    nodes = ", ".join(sorted(record.nodes)) if record.nodes else NONE
    lines.append(f"  Nodes affected: {nodes}\n")

    if run_cookstyle:
        offenses = ""
        for f in record.files:
            if not f.offenses:
                continue
            offenses += f"\n   - {f.path}:"
            for o in f.offenses:
                offenses += f"\n\t{o.cop_name} ({str(o.correctable).lower()}) {o.message}"
        lines.append(f"  Files and offenses:{offenses}\n" if offenses else f"  Files and offenses: {NONE}\n")
    return "".join(lines)


def nodes_report_txt(records: List[NodeReportItem], node_filter: str = "") -> FormattedResult:
    header = f"Node Filter Applied: {node_filter}\n" if node_filter else ""
    body = []
    for record in sorted_node_records(records):
        cookbooks = record.cookbooks_list()
        body.append(
            f"> Node: {record.name}\n"
            f"  Chef Version: {string_or_placeholder(record.chef_version)}\n"
            f"  Operating System: {string_or_placeholder(record.os_version_pretty())}\n"
            f"  Policy Group: {string_or_placeholder(record.policy_group, NO_GROUP)}\n"
            f"  Policy: {string_or_placeholder(record.policy, NO_POLICY)}\n"
            f"  Policy Revision: {string_or_placeholder(record.policy_revision, NO_REVISION)}\n"
            f"  Cookbooks Applied: {', '.join(cookbooks) if cookbooks else NONE}\n"
        )
    return FormattedResult(header + "".join(body), "")

