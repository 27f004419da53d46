"""Node report generation."""

from __future__ import annotations

import hashlib
from typing import Any, Dict, List

from ..collectors.base import PartialSearcher
from ..data.models import CookbookVersion, NodeReportItem
from ..errors import ChefAnalyzeError, ReportError

ALL_NODES = "*:*"

NODE_ATTRIBUTES = {
    "name": ["name"],
    "chef_version": ["chef_packages", "chef", "version"],
    "os": ["platform"],
    "os_version": ["platform_version"],
    "cookbooks": ["cookbooks"],
    "policy_group": ["policy_group"],
    "policy_name": ["policy_name"],
    "policy_revision": ["policy_revision"],
}


def hash_string(value: str) -> str:
    """sha256 hex digest of ``value``; blank strings stay blank."""
    if not value:
        return value
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _text(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


def node_item_from_row(data: Dict[str, Any]) -> NodeReportItem:
    """Build a report item from one projected search row."""
    # cookbooks arrive as {NAME: {"version": VERSION}}
    cookbooks = data.get("cookbooks") or {}
    return NodeReportItem(
        name=_text(data, "name"),
        chef_version=_text(data, "chef_version"),
        os=_text(data, "os"),
        os_version=_text(data, "os_version"),
        policy_group=_text(data, "policy_group"),
        policy=_text(data, "policy_name"),
        policy_revision=_text(data, "policy_revision"),
        cookbook_versions=[
            CookbookVersion(name, _text(info or {}, "version"))
            for name, info in cookbooks.items()
        ],
    )


def generate_nodes_report(
    searcher: PartialSearcher, node_filter: str = "", anonymize: bool = False
) -> List[NodeReportItem]:
    """Search all nodes (or those matching ``node_filter``) and build report items.

    Raises:
        ReportError: If the search fails.
    """
    query = node_filter or ALL_NODES
    try:
        rows = searcher.partial_search("node", query, NODE_ATTRIBUTES)
    except ChefAnalyzeError as e:
        raise ReportError("unable to get node(s) information", e)

    items = [node_item_from_row(row) for row in rows]
    if anonymize:
        for item in items:
            item.name = hash_string(item.name)
    return items
