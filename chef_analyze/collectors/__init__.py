"""Data sources - Chef Infra Server API client and the cookstyle analyzer."""

from .base import (
    CookbookArtifactFetcher,
    CookbookFetcher,
    EnvironmentFetcher,
    NodeFetcher,
    PartialSearcher,
    PolicyFetcher,
    RoleFetcher,
)
from .chef_server import ChefServerClient
from .cookstyle import CookstyleRunner

__all__ = [
    "ChefServerClient",
    "CookbookArtifactFetcher",
    "CookbookFetcher",
    "CookstyleRunner",
    "EnvironmentFetcher",
    "NodeFetcher",
    "PartialSearcher",
    "PolicyFetcher",
    "RoleFetcher",
]
