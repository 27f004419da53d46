"""Pytest configuration and shared fixtures."""

import pytest
from pathlib import Path
from tempfile import TemporaryDirectory

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from chef_analyze.collectors.base import (
    CookbookArtifactFetcher,
    CookbookFetcher,
    EnvironmentFetcher,
    NodeFetcher,
    PartialSearcher,
    PolicyFetcher,
    RoleFetcher,
)
from chef_analyze.errors import ChefServerError, NotFoundError


# =============================================================================
# Test doubles for the server capabilities
# =============================================================================


class StubObjects(NodeFetcher, RoleFetcher, EnvironmentFetcher):
    """Returns canned objects by name; unknown names raise NotFoundError."""

    def __init__(self, objects=None, errors=None):
        self.objects = dict(objects or {})
        self.errors = dict(errors or {})
        self.calls = []

    def get(self, name):
        self.calls.append(name)
        if name in self.errors:
            raise self.errors[name]
        if name not in self.objects:
            raise NotFoundError(f"unable to retrieve object: {name}", status_code=404)
        return self.objects[name]


class StubCookbooks(CookbookFetcher, CookbookArtifactFetcher):
    """Writes a metadata.rb for every download; failures are keyed by (name, version)."""

    def __init__(self, versions=None, failures=None, list_error=None):
        self.versions = dict(versions or {})
        self.failures = dict(failures or {})
        self.list_error = list_error
        self.downloads = []

    def list_available_versions(self, limit=0):
        if self.list_error is not None:
            raise self.list_error
        return self.versions

    def download_to(self, name, version, target_dir):
        self.downloads.append((name, version, Path(target_dir)))
        if (name, version) in self.failures:
            raise self.failures[(name, version)]
        target = Path(target_dir)
        target.mkdir(parents=True, exist_ok=True)
        (target / "metadata.rb").write_text(f"name '{name}'\nversion '{version}'\n")
        return target


class StubPolicies(PolicyFetcher):
    def __init__(self, groups=None, revisions=None, groups_error=None):
        self.groups = groups or {}
        self.revisions = revisions or {}
        self.groups_error = groups_error

    def list_policy_groups(self):
        if self.groups_error is not None:
            raise self.groups_error
        return self.groups

    def get_revision(self, name, revision_id):
        return self.revisions[(name, revision_id)]


class StubSearch(PartialSearcher):
    """Rows per query string; queries listed in ``errors`` fail."""

    def __init__(self, results=None, errors=None, default=None):
        self.results = dict(results or {})
        self.errors = dict(errors or {})
        self.default = default if default is not None else []
        self.calls = []

    def partial_search(self, index, query, attributes):
        self.calls.append((index, query, attributes))
        if query in self.errors:
            raise self.errors[query]
        return self.results.get(query, self.default)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def temp_data_dir():
    """Create a temporary data directory for tests."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_key):
    """PEM encoded client key, as found in a knife client.pem."""
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture
def credentials_file(tmp_path, private_key_pem):
    """A credentials file with two profiles and a relative key path."""
    chef_dir = tmp_path / ".chef"
    chef_dir.mkdir()
    (chef_dir / "client.pem").write_text(private_key_pem)
    creds = chef_dir / "credentials"
    creds.write_text(
        '[default]\n'
        'client_name = "alice"\n'
        'client_key = "client.pem"\n'
        'chef_server_url = "https://chef.example.com/organizations/acme"\n'
        '\n'
        '[dev]\n'
        'client_name = "bob"\n'
        'client_key = "/keys/bob.pem"\n'
        'chef_server_url = "https://chef-dev.example.com/organizations/acme"\n'
    )
    return creds


@pytest.fixture
def stub_objects():
    return StubObjects


@pytest.fixture
def stub_cookbooks():
    return StubCookbooks


@pytest.fixture
def stub_policies():
    return StubPolicies


@pytest.fixture
def stub_search():
    return StubSearch


@pytest.fixture
def server_error():
    """Factory for transport failures raised by the stubs."""
    def make(message="boom", status_code=500):
        return ChefServerError(message, status_code=status_code)
    return make


@pytest.fixture
def sample_node():
    """Node object as returned by GET /nodes/node1."""
    return {
        "name": "node1",
        "chef_environment": "_default",
        "json_class": "Chef::Node",
        "chef_type": "node",
        "run_list": ["cookbook1::recipe1", "role:mockrole"],
        "automatic": {
            "platform": "ubuntu",
            "platform_version": "20.04",
            "chef_packages": {"chef": {"version": "16.9.20"}},
            "cookbooks": {"foo": {"version": "0.1.0"}},
        },
        "normal": {},
        "default": {},
        "override": {},
        "policy_name": None,
        "policy_group": None,
    }


@pytest.fixture
def sample_cookstyle_json():
    """Sample output of cookstyle --format json."""
    return '''
{
  "metadata": {"rubocop_version": "0.75.1", "ruby_engine": "ruby", "ruby_version": "2.6.5"},
  "files": [
    {
      "path": "recipes/default.rb",
      "offenses": [
        {"severity": "refactor", "message": "Use node.override", "cop_name": "ChefDeprecations/NodeSet",
         "corrected": false, "correctable": true,
         "location": {"start_line": 3, "start_column": 1, "last_line": 3, "last_column": 9, "length": 9, "line": 3, "column": 1}},
        {"severity": "warning", "message": "Resource uses a deprecated property", "cop_name": "ChefDeprecations/ResourceProperty",
         "corrected": false, "correctable": false, "location": {"line": 7, "column": 3}}
      ]
    },
    {"path": "metadata.rb", "offenses": []}
  ]
}
'''
