"""Chef Infra Server request signing.

Implements version 1.3 of the Chef authentication protocol: every request
carries X-Ops headers and an RSA/SHA-256 signature over a canonical
description of the request.
"""

from __future__ import annotations

import base64
import hashlib
import re
from datetime import datetime, timezone
from typing import Dict, Optional, Union
from urllib.parse import urlparse

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding
from requests.auth import AuthBase

from ..errors import ConfigError

SIGN_VERSION = "1.3"
SERVER_API_VERSION = "1"
CHEF_VERSION = "17.10.0"
AUTHORIZATION_CHUNK = 60


def load_private_key(pem: str):
    """Parse a PEM encoded RSA private key."""
    try:
        return serialization.load_pem_private_key(pem.encode("utf-8"), password=None)
    except (ValueError, TypeError) as e:
        raise ConfigError("unable to parse client key", e)


def canonical_path(url: str) -> str:
    """Path component used for signing: no query, no repeated or trailing slashes."""
    path = re.sub(r"/+", "/", urlparse(url).path or "/")
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def content_hash(body: Union[bytes, str, None]) -> str:
    if body is None:
        body = b""
    elif isinstance(body, str):
        body = body.encode("utf-8")
    return base64.b64encode(hashlib.sha256(body).digest()).decode("ascii")


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def canonical_request(
    method: str,
    path: str,
    hashed_body: str,
    timestamp: str,
    user_id: str,
    server_api_version: str = SERVER_API_VERSION,
) -> str:
    return "\n".join([
        f"Method:{method.upper()}",
        f"Path:{path}",
        f"X-Ops-Content-Hash:{hashed_body}",
        f"X-Ops-Sign:version={SIGN_VERSION}",
        f"X-Ops-Timestamp:{timestamp}",
        f"X-Ops-UserId:{user_id}",
        f"X-Ops-Server-API-Version:{server_api_version}",
    ])


class ChefAuth(AuthBase):
    """requests auth hook that signs each outgoing request."""

    def __init__(
        self,
        client_name: str,
        private_key_pem: str,
        server_api_version: str = SERVER_API_VERSION,
    ):
        self.client_name = client_name
        self.server_api_version = server_api_version
        self._key = load_private_key(private_key_pem)

    def sign(self, message: str) -> str:
        signature = self._key.sign(message.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256())
        return base64.b64encode(signature).decode("ascii")

    def signed_headers(
        self,
        method: str,
        url: str,
        body: Union[bytes, str, None] = None,
        timestamp: Optional[str] = None,
    ) -> Dict[str, str]:
        """Build the X-Ops header set for a request.

        Args:
            method: HTTP method.
            url: Full request URL; only its path is signed.
            body: Request body, hashed into X-Ops-Content-Hash.
            timestamp: Override for the signing time (UTC, ISO 8601).

        Returns:
            Headers to merge into the request.
        """
        timestamp = timestamp or utc_timestamp()
        hashed_body = content_hash(body)
        signature = self.sign(
            canonical_request(
                method,
                canonical_path(url),
                hashed_body,
                timestamp,
                self.client_name,
                self.server_api_version,
            )
        )

        headers = {
            "X-Ops-Sign": f"algorithm=sha256;version={SIGN_VERSION}",
            "X-Ops-Userid": self.client_name,
            "X-Ops-Timestamp": timestamp,
            "X-Ops-Content-Hash": hashed_body,
            "X-Ops-Server-API-Version": self.server_api_version,
            "X-Chef-Version": CHEF_VERSION,
        }
        for index in range(0, len(signature), AUTHORIZATION_CHUNK):
            number = index // AUTHORIZATION_CHUNK + 1
            headers[f"X-Ops-Authorization-{number}"] = signature[index:index + AUTHORIZATION_CHUNK]
        return headers

    def __call__(self, request):
        request.headers.update(self.signed_headers(request.method, request.url, request.body))
        return request
