"""Tests for Chef request signing."""

import base64

import pytest
import requests
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from chef_analyze.collectors.auth import (
    AUTHORIZATION_CHUNK,
    ChefAuth,
    canonical_path,
    canonical_request,
    content_hash,
    load_private_key,
)
from chef_analyze.errors import ConfigError

EMPTY_SHA256 = "47DEQpj8HBSa+/TImW+5JCeuQeRkm5NMpJWZG3hSuFU="


def _signature(headers):
    numbered = sorted(
        (int(k.rsplit("-", 1)[1]), v) for k, v in headers.items() if k.startswith("X-Ops-Authorization-")
    )
    return "".join(v for _, v in numbered)


class TestSigningHelpers:
    def test_canonical_path(self):
        assert canonical_path("https://chef/organizations/acme/nodes/n1") == "/organizations/acme/nodes/n1"
        assert canonical_path("https://chef/organizations//acme/nodes/") == "/organizations/acme/nodes"
        assert canonical_path("https://chef/search/node?q=*:*&rows=10") == "/search/node"
        assert canonical_path("https://chef") == "/"

    def test_content_hash(self):
        assert content_hash(None) == EMPTY_SHA256
        assert content_hash("") == EMPTY_SHA256
        assert content_hash(b"") == EMPTY_SHA256
        assert content_hash("{}") == content_hash(b"{}")

    def test_canonical_request(self):
        message = canonical_request("get", "/nodes", EMPTY_SHA256, "2020-01-01T00:00:00Z", "alice")
        assert message == (
            "Method:GET\n"
            "Path:/nodes\n"
            f"X-Ops-Content-Hash:{EMPTY_SHA256}\n"
            "X-Ops-Sign:version=1.3\n"
            "X-Ops-Timestamp:2020-01-01T00:00:00Z\n"
            "X-Ops-UserId:alice\n"
            "X-Ops-Server-API-Version:1"
        )

    def test_load_private_key_rejects_garbage(self):
        with pytest.raises(ConfigError) as exc:
            load_private_key("not a key")
        assert "unable to parse client key" in str(exc.value)


class TestChefAuth:
    def test_signed_headers(self, private_key_pem):
        auth = ChefAuth("alice", private_key_pem)
        headers = auth.signed_headers(
            "GET", "https://chef/organizations/acme/nodes", timestamp="2020-01-01T00:00:00Z"
        )

        assert headers["X-Ops-Sign"] == "algorithm=sha256;version=1.3"
        assert headers["X-Ops-Userid"] == "alice"
        assert headers["X-Ops-Timestamp"] == "2020-01-01T00:00:00Z"
        assert headers["X-Ops-Content-Hash"] == EMPTY_SHA256
        assert headers["X-Ops-Server-API-Version"] == "1"
        assert "X-Chef-Version" in headers

    def test_authorization_headers_are_chunked(self, private_key_pem):
        auth = ChefAuth("alice", private_key_pem)
        headers = auth.signed_headers("GET", "https://chef/nodes")
        chunks = [v for k, v in headers.items() if k.startswith("X-Ops-Authorization-")]

        assert len(chunks) > 1
        assert all(len(chunk) <= AUTHORIZATION_CHUNK for chunk in chunks)
        assert "X-Ops-Authorization-1" in headers

    def test_signature_verifies(self, rsa_key, private_key_pem):
        auth = ChefAuth("alice", private_key_pem)
        body = '{"name": ["name"]}'
        headers = auth.signed_headers(
            "POST", "https://chef/organizations/acme/search/node?q=x", body, "2020-01-01T00:00:00Z"
        )
        expected = canonical_request(
            "POST",
            "/organizations/acme/search/node",
            content_hash(body),
            "2020-01-01T00:00:00Z",
            "alice",
        )

        # raises InvalidSignature on mismatch
        rsa_key.public_key().verify(
            base64.b64decode(_signature(headers)),
            expected.encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )

    def test_call_signs_prepared_request(self, private_key_pem):
        request = requests.Request("GET", "https://chef/organizations/acme/nodes/n1").prepare()
        signed = ChefAuth("alice", private_key_pem)(request)

        assert signed.headers["X-Ops-Userid"] == "alice"
        assert signed.headers["X-Ops-Content-Hash"] == EMPTY_SHA256
        assert _signature(signed.headers)
