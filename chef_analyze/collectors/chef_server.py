"""Chef Infra Server API client.

A thin facade over the server's REST API. Each capability (nodes, roles,
environments, cookbooks, cookbook artifacts, policies, search) is exposed
as its own endpoint object implementing the matching interface from
``collectors.base``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote, urljoin

import certifi
import requests
import urllib3
from requests.adapters import HTTPAdapter

from ..errors import ChefServerError, NotFoundError
from .auth import ChefAuth
from .base import (
    ChefObject,
    CookbookArtifactFetcher,
    CookbookFetcher,
    EnvironmentFetcher,
    NodeFetcher,
    PartialSearcher,
    PathLike,
    PolicyFetcher,
    RoleFetcher,
)

logger = logging.getLogger("chef_analyze.chef_server")

USER_AGENT = "chef-analyze/0.1"
SEARCH_PAGE_SIZE = 1000

# Cookbook manifest segments used by servers that do not return 'all_files'.
COOKBOOK_SEGMENTS = (
    "root_files",
    "files",
    "templates",
    "attributes",
    "recipes",
    "definitions",
    "libraries",
    "providers",
    "resources",
)


class ChefServerClient:
    """Client for a single Chef Infra Server organization."""

    def __init__(
        self,
        server_url: str,
        client_name: str,
        client_key: str,
        timeout: int = 30,
        verify: bool = True,
        ca_bundle: Optional[str] = None,
    ):
        self.server_url = server_url.rstrip("/") + "/"
        self.client_name = client_name
        self.timeout = timeout
        self._verify = self._determine_verify(not verify, ca_bundle)
        self._auth = ChefAuth(client_name, client_key)
        self._session: Optional[requests.Session] = None

        if self._verify is False:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        self.nodes = NodesEndpoint(self)
        self.roles = RolesEndpoint(self)
        self.environments = EnvironmentsEndpoint(self)
        self.cookbooks = CookbooksEndpoint(self)
        self.cookbook_artifacts = CookbookArtifactsEndpoint(self)
        self.policies = PoliciesEndpoint(self)
        self.search = SearchEndpoint(self)

    def _determine_verify(self, insecure: bool, ca_bundle: Optional[str]):
        """Determine SSL verification setting."""
        if insecure:
            return False
        if ca_bundle:
            return ca_bundle
        return certifi.where()

    def _get_session(self) -> requests.Session:
        """Get or create the signed requests session.

        Requests are never retried; the adapter is mounted for pooling only.
        """
        if self._session is None:
            session = requests.Session()
            adapter = HTTPAdapter(
                max_retries=0,
                pool_connections=5,
                pool_maxsize=10,
            )
            session.mount("https://", adapter)
            session.mount("http://", adapter)
            session.verify = self._verify
            session.auth = self._auth
            session.headers.update({
                "User-Agent": USER_AGENT,
                "Accept": "application/json",
            })
            self._session = session
        return self._session

    def close(self) -> None:
        """Close the session and release resources."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self) -> "ChefServerClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def url_for(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return urljoin(self.server_url, endpoint.lstrip("/"))

    def request(
        self,
        method: str,
        endpoint: str,
        context: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Any] = None,
        stream: bool = False,
    ) -> requests.Response:
        """Send a signed request and map failures to ChefServerError.

        Args:
            method: HTTP method.
            endpoint: Path relative to the organization URL, or an absolute URL.
            context: Message describing the operation, used to wrap errors.
            params: Query string parameters.
            body: JSON-serializable request body.
            stream: Stream the response body.

        Raises:
            NotFoundError: On HTTP 404.
            ChefServerError: On any other HTTP or transport failure.
        """
        url = self.url_for(endpoint)
        headers = {}
        data = None
        if body is not None:
            data = json.dumps(body)
            headers["Content-Type"] = "application/json"

        logger.debug("%s %s", method, url)
        try:
            resp = self._get_session().request(
                method,
                url,
                params=params,
                data=data,
                headers=headers,
                timeout=self.timeout,
                stream=stream,
            )
        except requests.exceptions.SSLError as e:
            raise ChefServerError(
                f"{context} (TLS/SSL error: certificate verify failed, consider using --ssl-no-verify)",
                e,
            )
        except requests.exceptions.RequestException as e:
            raise ChefServerError(context, e)

        if resp.status_code >= 400:
            cause = requests.HTTPError(_describe_failure(resp), response=resp)
            if resp.status_code == 404:
                raise NotFoundError(context, cause, status_code=404)
            raise ChefServerError(context, cause, status_code=resp.status_code)
        return resp

    def get_json(self, endpoint: str, context: str, params: Optional[Dict[str, Any]] = None) -> Any:
        resp = self.request("GET", endpoint, context, params=params)
        try:
            return resp.json()
        except ValueError as e:
            raise ChefServerError(f"{context} (invalid JSON response)", e)

    def download_manifest(self, manifest: Dict[str, Any], target_dir: PathLike, context: str) -> Path:
        """Write every file listed in a cookbook manifest below ``target_dir``."""
        target = Path(target_dir)
        root = target.resolve()
        for item in manifest_items(manifest):
            relative = item.get("path") or item.get("name")
            if not relative or not item.get("url"):
                continue
            dest = (target / relative).resolve()
            if root not in dest.parents:
                raise ChefServerError(f"{context}: refusing to write outside {target}: {relative}")

            resp = self.request("GET", item["url"], f"{context}: unable to download {relative}", stream=True)
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
                with open(dest, "wb") as f:
                    for chunk in resp.iter_content(chunk_size=64 * 1024):
                        f.write(chunk)
            except OSError as e:
                raise ChefServerError(f"{context}: unable to write {relative}", e)
            finally:
                resp.close()
        return target


def manifest_items(manifest: Dict[str, Any]) -> Iterable[Dict[str, Any]]:
    """Yield file entries of a cookbook manifest, either API format."""
    if manifest.get("all_files"):
        yield from manifest["all_files"]
        return
    for segment in COOKBOOK_SEGMENTS:
        for item in manifest.get(segment) or []:
            if not item.get("path"):
                prefix = "" if segment == "root_files" else f"{segment}/"
                item = dict(item, path=f"{prefix}{item.get('name', '')}")
            yield item


def _describe_failure(resp: requests.Response) -> str:
    """Short description of a failed response, including server-side messages."""
    detail = ""
    try:
        payload = resp.json()
        if isinstance(payload, dict) and payload.get("error"):
            error = payload["error"]
            detail = ", ".join(error) if isinstance(error, list) else str(error)
    except ValueError:
        pass
    message = f"{resp.status_code} {resp.reason or ''}".strip()
    return f"{message}: {detail}" if detail else message


# =============================================================================
# Endpoints
# =============================================================================


class _ObjectEndpoint:
    kind = ""
    path = ""

    def __init__(self, client: ChefServerClient):
        self._client = client

    def get(self, name: str) -> ChefObject:
        return self._client.get_json(
            f"{self.path}/{quote(name, safe='')}",
            f"unable to retrieve {self.kind}: {name}",
        )


class NodesEndpoint(_ObjectEndpoint, NodeFetcher):
    kind = "node"
    path = "nodes"


class RolesEndpoint(_ObjectEndpoint, RoleFetcher):
    kind = "role"
    path = "roles"


class EnvironmentsEndpoint(_ObjectEndpoint, EnvironmentFetcher):
    kind = "environment"
    path = "environments"


class CookbooksEndpoint(CookbookFetcher):
    def __init__(self, client: ChefServerClient):
        self._client = client

    def list_available_versions(self, limit: int = 0) -> Dict[str, List[str]]:
        num_versions = "all" if limit <= 0 else str(limit)
        listing = self._client.get_json(
            "cookbooks",
            "unable to list cookbooks",
            params={"num_versions": num_versions},
        )
        return {
            name: [v["version"] for v in (entry or {}).get("versions", [])]
            for name, entry in (listing or {}).items()
        }

    def download_to(self, name: str, version: str, target_dir: PathLike) -> Path:
        context = f"unable to download cookbook {name}({version})"
        manifest = self._client.get_json(
            f"cookbooks/{quote(name, safe='')}/{quote(version, safe='')}", context
        )
        logger.debug("downloading cookbook %s(%s) to %s", name, version, target_dir)
        return self._client.download_manifest(manifest, target_dir, context)


class CookbookArtifactsEndpoint(CookbookArtifactFetcher):
    def __init__(self, client: ChefServerClient):
        self._client = client

    def download_to(self, name: str, identifier: str, target_dir: PathLike) -> Path:
        context = f"unable to download cookbook artifact {name}({identifier})"
        manifest = self._client.get_json(
            f"cookbook_artifacts/{quote(name, safe='')}/{quote(identifier, safe='')}", context
        )
        logger.debug("downloading cookbook artifact %s(%s) to %s", name, identifier, target_dir)
        return self._client.download_manifest(manifest, target_dir, context)


class PoliciesEndpoint(PolicyFetcher):
    def __init__(self, client: ChefServerClient):
        self._client = client

    def list_policy_groups(self) -> Dict[str, Any]:
        return self._client.get_json("policy_groups", "unable to list policy groups") or {}

    def get_revision(self, name: str, revision_id: str) -> ChefObject:
        return self._client.get_json(
            f"policies/{quote(name, safe='')}/revisions/{quote(revision_id, safe='')}",
            f"unable to retrieve policy: {name} ({revision_id})",
        )


class SearchEndpoint(PartialSearcher):
    def __init__(self, client: ChefServerClient, page_size: int = SEARCH_PAGE_SIZE):
        self._client = client
        self.page_size = page_size

    def partial_search(
        self, index: str, query: str, attributes: Dict[str, List[str]]
    ) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        start = 0
        while True:
            resp = self._client.request(
                "POST",
                f"search/{quote(index, safe='')}",
                f"unable to search {index} index: {query}",
                params={"q": query, "start": start, "rows": self.page_size},
                body=attributes,
            )
            try:
                page = resp.json()
            except ValueError as e:
                raise ChefServerError(f"unable to search {index} index: {query}", e)

            page_rows = page.get("rows") or []
            for row in page_rows:
                data = row.get("data") if isinstance(row, dict) else None
                if data is not None:
                    rows.append(data)

            start += len(page_rows)
            # rows the caller may not read are dropped by the server, so an
            # empty page is the only reliable end marker besides 'total'
            if not page_rows or start >= int(page.get("total", 0)):
                return rows
