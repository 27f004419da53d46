"""Cookbook report generation.

For every cookbook version on the server (and every cookbook locked by a
Policyfile revision) find the nodes using it, optionally download it and
run cookstyle against it. Failures are recorded on the affected record and
never abort the batch; only listing the cookbooks themselves is fatal.
"""

from __future__ import annotations

import logging
import shutil
from typing import Callable, Dict, List, Optional

from ..collectors.base import (
    CookbookArtifactFetcher,
    CookbookFetcher,
    PartialSearcher,
    PolicyFetcher,
)
from ..collectors.cookstyle import CookstyleRunner
from ..data.models import CookbookRecord, CookbooksReport
from ..data.persistence import ReportStore
from ..errors import ChefAnalyzeError, NotFoundError, ReportError
from .nodes import hash_string

logger = logging.getLogger("chef_analyze.cookbooks")

ProgressFn = Callable[[int, int], None]

USAGE_ATTRIBUTES = {"name": ["name"]}


class CookbooksReporter:
    """Builds a CookbooksReport from the server's cookbooks and node usage."""

    def __init__(
        self,
        cookbooks: CookbookFetcher,
        searcher: PartialSearcher,
        store: ReportStore,
        runner: Optional[CookstyleRunner] = None,
        policies: Optional[PolicyFetcher] = None,
        artifacts: Optional[CookbookArtifactFetcher] = None,
        progress: Optional[ProgressFn] = None,
    ):
        self.cookbooks = cookbooks
        self.searcher = searcher
        self.store = store
        self.runner = runner or CookstyleRunner()
        self.policies = policies
        self.artifacts = artifacts
        self.progress = progress

    def generate(
        self,
        run_cookstyle: bool = False,
        node_filter: str = "",
        only_unused: bool = False,
        skip_unused: bool = False,
        anonymize: bool = False,
    ) -> CookbooksReport:
        """Generate the report.

        Args:
            run_cookstyle: Download each cookbook and analyze it with cookstyle.
            node_filter: Search query restricting which nodes count as users.
                Records used by no matching node are dropped.
            only_unused: Keep only records used by no node.
            skip_unused: Drop records used by no node.
            anonymize: Replace node names with their sha256 digest.

        Raises:
            ReportError: If the cookbook listing itself cannot be retrieved.
        """
        candidates = self._list_candidates()
        report = CookbooksReport(
            run_cookstyle=run_cookstyle,
            node_filter=node_filter,
            total_cookbooks=len(candidates),
        )

        total = len(candidates)
        for index, record in enumerate(candidates, start=1):
            self._lookup_usage(record, node_filter, anonymize)
            if self._keep(record, node_filter, only_unused, skip_unused):
                if run_cookstyle:
                    self._download(record)
                report.records.append(record)
            self._tick(index, total)

        if run_cookstyle:
            self._analyze(report.records)
        return report

    # --- listing ---

    def _list_candidates(self) -> List[CookbookRecord]:
        try:
            versions = self.cookbooks.list_available_versions(0)
        except ChefAnalyzeError as e:
            raise ReportError("unable to retrieve cookbooks", e)

        records = [
            CookbookRecord(name=name, version=version)
            for name in sorted(versions)
            for version in versions[name]
        ]
        records.extend(self._list_policy_cookbooks())
        return records

    def _list_policy_cookbooks(self) -> List[CookbookRecord]:
        """Cookbook locks of the current revision of each policy in each group."""
        if self.policies is None:
            return []
        try:
            groups = self.policies.list_policy_groups()
        except NotFoundError:
            logger.debug("server has no policy groups endpoint")
            return []
        except ChefAnalyzeError as e:
            raise ReportError("unable to retrieve policy groups", e)

        records = []
        for group_name in sorted(groups):
            policies: Dict[str, Dict] = (groups[group_name] or {}).get("policies") or {}
            for policy_name in sorted(policies):
                revision = (policies[policy_name] or {}).get("revision_id", "")
                try:
                    details = self.policies.get_revision(policy_name, revision)
                except ChefAnalyzeError as e:
                    raise ReportError(f"unable to retrieve policy {policy_name}", e)
                locks = details.get("cookbook_locks") or {}
                for cookbook_name in sorted(locks):
                    lock = locks[cookbook_name] or {}
                    records.append(CookbookRecord(
                        name=cookbook_name,
                        version=str(lock.get("version", "")),
                        identifier=lock.get("identifier", ""),
                        policy_group=group_name,
                        policy=policy_name,
                        policy_revision=revision,
                    ))
        return records

    # --- per record stages ---

    def _lookup_usage(self, record: CookbookRecord, node_filter: str, anonymize: bool) -> None:
        if record.is_artifact:
            query = f"policy_group:{record.policy_group} AND policy_name:{record.policy}"
        else:
            query = f"cookbooks_{record.name}_version:{record.version}"
        if node_filter:
            query = f"({query}) AND ({node_filter})"

        try:
            rows = self.searcher.partial_search("node", query, USAGE_ATTRIBUTES)
        except ChefAnalyzeError as e:
            record.usage_lookup_error = e
            return

        names = [str(row.get("name") or "") for row in rows]
        if anonymize:
            names = [hash_string(n) for n in names]
        record.nodes = names

    @staticmethod
    def _keep(record: CookbookRecord, node_filter: str, only_unused: bool, skip_unused: bool) -> bool:
        # records whose usage is unknown stay in so their error is reported
        if record.usage_lookup_error is not None:
            return True
        used = bool(record.nodes)
        if node_filter and not used:
            return False
        if only_unused:
            return not used
        if skip_unused:
            return used
        return True

    def _download(self, record: CookbookRecord) -> None:
        target = self.store.download_dir(record.name, record.version, record.identifier)
        record.path = str(target)
        try:
            if target.exists():
                shutil.rmtree(target)
            if record.is_artifact:
                if self.artifacts is None:
                    raise ReportError("cookbook artifacts are not available")
                self.artifacts.download_to(record.name, record.identifier, target)
            else:
                self.cookbooks.download_to(record.name, record.version, target)
        except (ChefAnalyzeError, OSError) as e:
            record.download_error = e

    def _analyze(self, records: List[CookbookRecord]) -> None:
        candidates = [r for r in records if r.download_error is None]
        for index, record in enumerate(candidates, start=1):
            try:
                result = self.runner.run(record.path)
            except ChefAnalyzeError as e:
                record.cookstyle_error = e
            else:
                record.files = result.files
            self._tick(index, len(candidates))

    def _tick(self, done: int, total: int) -> None:
        if self.progress is not None:
            self.progress(done, total)
