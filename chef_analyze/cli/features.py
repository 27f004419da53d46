"""Feature flags.

A feature is enabled by the environment (CHEF_FEAT_<KEY> or CHEF_FEAT_ALL)
or by the ``[features]`` table of config.toml. The flags are an explicit
value handed to the commands that need them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

ENV_PREFIX = "CHEF_FEAT_"
ALL_FEATURES_ENV = "CHEF_FEAT_ALL"


@dataclass(frozen=True)
class Feature:
    name: str  # display name
    key: str  # key in config.toml [features]

    @property
    def env(self) -> str:
        return f"{ENV_PREFIX}{self.key.upper()}"


ANALYZE = Feature(name="chef-analyze", key="analyze")


class FeatureFlags:
    """Resolves which features are enabled."""

    def __init__(
        self,
        config_features: Optional[Dict[str, bool]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.config_features = dict(config_features or {})
        self.environ = os.environ if environ is None else environ

    def enabled(self, feature: Feature) -> bool:
        if self._env_set(ALL_FEATURES_ENV) or self._env_set(feature.env):
            return True
        return bool(self.config_features.get(feature.key, False))

    def _env_set(self, name: str) -> bool:
        return bool(self.environ.get(name, ""))
