"""Capability interfaces for Chef Infra Server data sources.

The capture and report pipelines depend only on these narrow interfaces,
so tests can substitute deterministic fakes without touching transport code.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Union

ChefObject = Dict[str, Any]
PathLike = Union[str, Path]


class NodeFetcher(ABC):
    """Fetches node objects by name."""

    @abstractmethod
    def get(self, name: str) -> ChefObject:
        """Fetch a node.

        Returns:
            The node object as returned by the server.

        Raises:
            NotFoundError: If the node does not exist.
            ChefServerError: On any other transport or API failure.
        """
        pass


class RoleFetcher(ABC):
    """Fetches role objects by name."""

    @abstractmethod
    def get(self, name: str) -> ChefObject:
        pass


class EnvironmentFetcher(ABC):
    """Fetches environment objects by name."""

    @abstractmethod
    def get(self, name: str) -> ChefObject:
        pass


class CookbookFetcher(ABC):
    """Lists and downloads cookbook versions."""

    @abstractmethod
    def list_available_versions(self, limit: int = 0) -> Dict[str, List[str]]:
        """List cookbook versions available on the server.

        Args:
            limit: Maximum versions per cookbook, 0 means all of them.

        Returns:
            Mapping of cookbook name to its version strings.
        """
        pass

    @abstractmethod
    def download_to(self, name: str, version: str, target_dir: PathLike) -> Path:
        """Download the full content tree of a cookbook version.

        Files are written directly below ``target_dir``.

        Returns:
            The directory the cookbook was written to.
        """
        pass


class CookbookArtifactFetcher(ABC):
    """Downloads Policyfile cookbook artifacts by identifier."""

    @abstractmethod
    def download_to(self, name: str, identifier: str, target_dir: PathLike) -> Path:
        pass


class PolicyFetcher(ABC):
    """Reads policy groups and policy revisions."""

    @abstractmethod
    def list_policy_groups(self) -> Dict[str, Any]:
        """Return the policy groups mapping, ``{group: {"policies": {...}}}``."""
        pass

    @abstractmethod
    def get_revision(self, name: str, revision_id: str) -> ChefObject:
        pass


class PartialSearcher(ABC):
    """Runs projected searches against a search index."""

    @abstractmethod
    def partial_search(
        self, index: str, query: str, attributes: Dict[str, List[str]]
    ) -> List[Dict[str, Any]]:
        """Execute a partial search.

        Args:
            index: Search index (e.g. 'node').
            query: Solr query string.
            attributes: Mapping of result key to attribute path.

        Returns:
            The projected ``data`` mapping of every matching row.
        """
        pass
