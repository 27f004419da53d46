"""Node capture pipeline.

Snapshots one node's configuration into a local repository:

    <root>/nodes/<name>.json
    <root>/cookbooks/<cookbook>/...
    <root>/environments/<name>.json
    <root>/roles/<name>.json

The stages run strictly in order on a worker thread. Before each stage a
progress marker is put on the capture's queue; the terminal marker is
always emitted, also after a failure, and the worker then closes the queue.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, Union

import yaml

from ..collectors.base import CookbookFetcher, EnvironmentFetcher, NodeFetcher, RoleFetcher
from ..data.models import CookbookVersion, Node
from ..data.persistence import ObjectWriter
from ..errors import CaptureError, ChefAnalyzeError, PolicyfileUnsupportedError

logger = logging.getLogger("chef_analyze.capture")


class CaptureProgress(str, Enum):
    """Progress markers, in the order a capture emits them."""

    FETCHING_NODE = "FetchingNode"
    FETCHING_COOKBOOKS = "FetchingCookbooks"
    FETCHING_ENVIRONMENT = "FetchingEnvironment"
    FETCHING_ROLES = "FetchingRoles"
    FETCHING_COMPLETE = "FetchingComplete"


class NodeCapturer:
    """Fetches a node's objects from the server and writes them to disk."""

    def __init__(
        self,
        nodes: NodeFetcher,
        roles: RoleFetcher,
        environments: EnvironmentFetcher,
        cookbooks: CookbookFetcher,
        writer: ObjectWriter,
    ):
        self.nodes = nodes
        self.roles = roles
        self.environments = environments
        self.cookbooks = cookbooks
        self.writer = writer

    def capture_node_object(self, name: str) -> Node:
        """Fetch the node and save it, unless it is managed by a Policyfile."""
        try:
            node = Node.from_dict(self.nodes.get(name))
        except ChefAnalyzeError as e:
            raise CaptureError(f"unable to capture node '{name}'", e)

        if node.uses_policyfile:
            raise PolicyfileUnsupportedError(name)

        self._save("nodes", node.name or name, node.to_dict())
        return node

    def capture_cookbooks(self, node: Node) -> List[CookbookVersion]:
        """Download every cookbook version the node last converged with.

        The first failed download aborts the capture.
        """
        captured = []
        cookbooks_dir = self.writer.root_dir / "cookbooks"
        for name, version in sorted(node.cookbooks.items()):
            logger.debug("capturing cookbook %s(%s)", name, version)
            try:
                self.cookbooks.download_to(name, version, cookbooks_dir / name)
            except ChefAnalyzeError as e:
                raise CaptureError(f"unable to capture cookbook {name}({version})", e)
            captured.append(CookbookVersion(name, version))
        return captured

    def capture_environment_object(self, node: Node) -> None:
        name = node.chef_environment
        try:
            environment = self.environments.get(name)
        except ChefAnalyzeError as e:
            raise CaptureError(f"unable to capture environment '{name}'", e)
        self._save("environments", environment.get("name") or name, environment)

    def capture_role_objects(self, node: Node) -> None:
        for name in node.role_names:
            try:
                role = self.roles.get(name)
            except ChefAnalyzeError as e:
                raise CaptureError(f"unable to capture role '{name}'", e)
            self._save("roles", role.get("name") or name, role)

    def save_kitchen_yml(self, node: Node) -> Path:
        """Write a kitchen.yml that converges the captured node locally."""
        if not node.chef_version:
            raise CaptureError(
                "could not determine chef client version: node missing automatic "
                "attribute chef_packages['chef']['version']"
            )
        kitchen = {
            "driver": {"name": "vagrant"},
            "provisioner": {
                "name": "chef_zero_capture",
                "product_name": "chef",
                "product_version": node.chef_version,
                "json_attributes": False,
                "client_rb": {"node_name": node.name},
            },
            "platforms": [{"name": f"{node.platform}-{node.platform_version}"}],
            "suites": [{"name": node.name}],
        }
        content = "---\n" + yaml.safe_dump(kitchen, default_flow_style=False, sort_keys=False)
        try:
            return self.writer.write_file("kitchen.yml", content)
        except ChefAnalyzeError as e:
            raise CaptureError("unable to write Kitchen config", e)

    def _save(self, subdir: str, name: str, obj) -> None:
        try:
            self.writer.write_object(subdir, name, obj)
        except ChefAnalyzeError as e:
            raise CaptureError(f"unable to save {subdir} object '{name}'", e)


class NodeCapture:
    """One capture run, producing progress markers on a queue.

    The caller starts the capture and drains ``progress`` (or iterates
    ``events()``) until it is closed; the worker blocks while the queue is
    full, so an undrained capture never finishes.
    """

    def __init__(self, name: str, repository_dir: Union[str, Path], capturer: NodeCapturer):
        self.name = name
        self.repository_dir = Path(repository_dir)
        self.capturer = capturer
        self.progress: "queue.Queue[Optional[CaptureProgress]]" = queue.Queue(maxsize=1)
        self.node: Optional[Node] = None
        self.cookbooks: List[CookbookVersion] = []
        self.error: Optional[Exception] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "NodeCapture":
        """Run the capture on a dedicated worker thread."""
        self._thread = threading.Thread(target=self.run, name=f"capture-{self.name}", daemon=True)
        self._thread.start()
        return self

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def events(self) -> Iterator[CaptureProgress]:
        """Yield progress markers until the worker closes the queue."""
        while True:
            event = self.progress.get()
            if event is None:
                return
            yield event

    def run(self) -> None:
        """Execute all stages; intended to run on the worker thread."""
        try:
            self._emit(CaptureProgress.FETCHING_NODE)
            node = self.capturer.capture_node_object(self.name)
            self.node = node

            self._emit(CaptureProgress.FETCHING_COOKBOOKS)
            self.cookbooks = self.capturer.capture_cookbooks(node)

            self._emit(CaptureProgress.FETCHING_ENVIRONMENT)
            self.capturer.capture_environment_object(node)

            self._emit(CaptureProgress.FETCHING_ROLES)
            self.capturer.capture_role_objects(node)
        except Exception as e:
            logger.debug("capture of %s failed: %s", self.name, e)
            self.error = e
        finally:
            self._emit(CaptureProgress.FETCHING_COMPLETE)
            self.progress.put(None)

    def _emit(self, event: CaptureProgress) -> None:
        self.progress.put(event)


def resolve_cookbooks(
    cookbooks: List[CookbookVersion],
    repository_dir: Union[str, Path],
    source_dir: Union[str, Path],
) -> List[CookbookVersion]:
    """Replace downloaded cookbooks with links to checked-out sources.

    For each cookbook found as ``<source_dir>/<name>``, the downloaded copy
    is kept as ``<name>.server`` and ``cookbooks/<name>`` becomes a symlink to
    the checkout.

    Returns:
        The cookbooks that were not found in ``source_dir``.
    """
    unresolved = []
    for cookbook in cookbooks:
        target = (Path(repository_dir) / "cookbooks" / cookbook.name).absolute()
        source = (Path(source_dir) / cookbook.name).absolute()
        if not source.exists():
            unresolved.append(cookbook)
            continue

        saved = target.with_name(f"{target.name}.server")
        try:
            os.rename(target, saved)
        except OSError as e:
            raise CaptureError(f"could not rename unsourced cookbook {target}", e)
        try:
            os.symlink(source, target, target_is_directory=True)
        except OSError as e:
            raise CaptureError(f"could not link {source} to {target}", e)
        print(f"  Using your checked-out cookbook: {cookbook.name}", flush=True)
    return unresolved
