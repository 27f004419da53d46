"""Data models for chef-analyze.

Two families of models live here:

1. SERVER OBJECTS
   - Node: a node object as returned by the Chef Infra Server, with helpers
     for the attributes the capture pipeline reads (cookbooks, run-list
     roles, policy fields).

2. REPORT RECORDS
   - CookbookRecord: one cookbook version (or Policyfile cookbook artifact)
     with the nodes using it, its cookstyle offenses and per-stage errors.
   - NodeReportItem: one node row of the nodes report.

All records are built fresh for each report or capture and discarded after
rendering.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

ROLE_ENTRY = re.compile(r"^role\[(?P<name>.+)\]$")


# =============================================================================
# Server objects
# =============================================================================


@dataclass
class Node:
    """A Chef Infra node object."""

    name: str
    chef_environment: str = "_default"
    run_list: List[str] = field(default_factory=list)
    automatic: Dict[str, Any] = field(default_factory=dict)
    normal: Dict[str, Any] = field(default_factory=dict)
    default: Dict[str, Any] = field(default_factory=dict)
    override: Dict[str, Any] = field(default_factory=dict)
    policy_name: str = ""
    policy_group: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        return cls(
            name=data.get("name", ""),
            chef_environment=data.get("chef_environment") or "_default",
            run_list=list(data.get("run_list") or []),
            automatic=data.get("automatic") or {},
            normal=data.get("normal") or {},
            default=data.get("default") or {},
            override=data.get("override") or {},
            policy_name=data.get("policy_name") or "",
            policy_group=data.get("policy_group") or "",
            raw=dict(data),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Server representation of the node, as it was fetched."""
        if self.raw:
            return dict(self.raw)
        return {
            "name": self.name,
            "chef_environment": self.chef_environment,
            "run_list": list(self.run_list),
            "automatic": self.automatic,
            "normal": self.normal,
            "default": self.default,
            "override": self.override,
            "policy_name": self.policy_name or None,
            "policy_group": self.policy_group or None,
            "json_class": "Chef::Node",
            "chef_type": "node",
        }

    @property
    def uses_policyfile(self) -> bool:
        return bool(self.policy_name or self.policy_group)

    @property
    def cookbooks(self) -> Dict[str, str]:
        """Cookbooks applied in the last converge, name -> version."""
        cookbooks = self.automatic.get("cookbooks") or {}
        return {
            name: str((info or {}).get("version", ""))
            for name, info in cookbooks.items()
        }

    @property
    def role_names(self) -> List[str]:
        """Roles referenced by the run-list; recipes and other entries are skipped."""
        names = []
        for entry in self.run_list:
            match = ROLE_ENTRY.match(entry.strip())
            if match:
                names.append(match.group("name"))
        return names

    @property
    def chef_version(self) -> str:
        packages = self.automatic.get("chef_packages") or {}
        return str((packages.get("chef") or {}).get("version", "") or "")

    @property
    def platform(self) -> str:
        return str(self.automatic.get("platform", "") or "")

    @property
    def platform_version(self) -> str:
        return str(self.automatic.get("platform_version", "") or "")


@dataclass(frozen=True)
class CookbookVersion:
    """A cookbook name and version pair."""

    name: str
    version: str

    def __str__(self) -> str:
        return f"{self.name}({self.version})"


# =============================================================================
# Cookstyle results
# =============================================================================


@dataclass
class CookstyleOffense:
    cop_name: str
    message: str
    correctable: bool = False
    corrected: bool = False
    severity: str = ""
    location: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CookstyleOffense":
        return cls(
            cop_name=data.get("cop_name", ""),
            message=data.get("message", ""),
            correctable=bool(data.get("correctable", False)),
            corrected=bool(data.get("corrected", False)),
            severity=data.get("severity", ""),
            location=data.get("location") or {},
        )


@dataclass
class CookbookFile:
    path: str
    offenses: List[CookstyleOffense] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CookbookFile":
        return cls(
            path=data.get("path", ""),
            offenses=[CookstyleOffense.from_dict(o) for o in data.get("offenses") or []],
        )


@dataclass
class CookstyleResult:
    files: List[CookbookFile] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CookstyleResult":
        return cls(
            files=[CookbookFile.from_dict(f) for f in data.get("files") or []],
            metadata=data.get("metadata") or {},
        )


# =============================================================================
# Report records
# =============================================================================


@dataclass
class CookbookRecord:
    """State of one cookbook version across the organization.

    The node list, the file list and the three error slots are independent:
    a failed usage lookup does not prevent the download, and a failed
    download only prevents the analysis.
    """

    name: str
    version: str
    nodes: List[str] = field(default_factory=list)
    files: List[CookbookFile] = field(default_factory=list)
    policy_group: str = ""
    policy: str = ""
    policy_revision: str = ""
    identifier: str = ""  # cookbook artifact identifier, Policyfile cookbooks only
    path: str = ""  # local download directory
    download_error: Optional[Exception] = None
    cookstyle_error: Optional[Exception] = None
    usage_lookup_error: Optional[Exception] = None

    @property
    def is_artifact(self) -> bool:
        return bool(self.identifier)

    @property
    def has_errors(self) -> bool:
        return any((self.download_error, self.cookstyle_error, self.usage_lookup_error))

    def num_offenses(self) -> int:
        return sum(len(f.offenses) for f in self.files)

    def num_correctable(self) -> int:
        return sum(1 for f in self.files for o in f.offenses if o.correctable)

    def num_nodes_affected(self) -> int:
        return len(self.nodes)


@dataclass
class CookbooksReport:
    records: List[CookbookRecord] = field(default_factory=list)
    run_cookstyle: bool = False
    node_filter: str = ""
    total_cookbooks: int = 0  # versions found on the server, before filtering


@dataclass
class NodeReportItem:
    name: str
    chef_version: str = ""
    os: str = ""
    os_version: str = ""
    policy_group: str = ""
    policy: str = ""
    policy_revision: str = ""
    cookbook_versions: List[CookbookVersion] = field(default_factory=list)

    def os_version_pretty(self) -> str:
        """Operating system and version, e.g. 'ubuntu v20.04'."""
        if self.os and self.os_version:
            return f"{self.os} v{self.os_version}"
        return self.os

    def cookbooks_list(self) -> List[str]:
        ordered = sorted(self.cookbook_versions, key=lambda cb: (cb.name, cb.version))
        return [str(cb) for cb in ordered]
