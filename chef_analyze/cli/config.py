"""Configuration management for chef-analyze.

Two files are read, both TOML and both located with the same finder:

- ``credentials``: knife-style profiles (required)
- ``config.toml``: Chef Workstation settings (optional)

The finder looks in ``.chef/`` and ``.chef-workstation/`` below the current
directory and each of its parents, then below the home directory.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..errors import (
    ConfigError,
    CredentialsNotFoundError,
    MalformedCredentialsError,
    MissingSettingsError,
    ProfileNotFoundError,
)
from . import messages

logger = logging.getLogger("chef_analyze.config")

CREDENTIALS_FILE = "credentials"
CONFIG_FILE = "config.toml"
CONFIG_DIRS = (".chef", ".chef-workstation")
DEFAULT_PROFILE = "default"

PathLike = Union[str, Path]


def find_config_file(
    filename: str, start: Optional[PathLike] = None, home: Optional[PathLike] = None
) -> Optional[Path]:
    """Locate ``filename`` by walking up from ``start``, then in the home directory.

    Returns:
        The first match, or None.
    """
    start_dir = Path(start or Path.cwd()).resolve()
    search = [start_dir, *start_dir.parents, Path(home) if home else Path.home()]
    for directory in search:
        for conf_dir in CONFIG_DIRS:
            candidate = directory / conf_dir / filename
            if candidate.is_file():
                return candidate
    return None


# =============================================================================
# Credentials
# =============================================================================


@dataclass
class Profile:
    """One named profile of the credentials file."""

    chef_server_url: str = ""
    client_name: str = ""
    client_key: str = ""  # path to a PEM file, or the PEM content itself

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        return cls(
            chef_server_url=str(data.get("chef_server_url", "")),
            client_name=str(data.get("client_name", "")),
            client_key=str(data.get("client_key", "")),
        )

    def missing_settings(self) -> List[str]:
        return [
            key for key in ("chef_server_url", "client_name", "client_key")
            if not getattr(self, key)
        ]

    def read_client_key(self, base_dir: Optional[Path] = None) -> str:
        """Return the PEM content of the client key.

        Relative key paths resolve against ``base_dir`` (the directory of
        the credentials file).
        """
        if "PRIVATE KEY" in self.client_key:
            return self.client_key
        path = Path(self.client_key).expanduser()
        if not path.is_absolute() and base_dir is not None:
            path = base_dir / path
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"unable to read client key {path}", e)


class Credentials:
    """A credentials store: named profiles with exactly one active."""

    def __init__(
        self,
        profiles: Dict[str, Profile],
        active: str = DEFAULT_PROFILE,
        path: Optional[Path] = None,
    ):
        self.profiles = profiles
        self.path = path
        self._active = ""
        self.switch_profile(active)

    @classmethod
    def from_toml(cls, text: str, profile: str = DEFAULT_PROFILE, path: Optional[Path] = None) -> "Credentials":
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as e:
            raise MalformedCredentialsError(messages.MALFORMED_CREDENTIALS, e)
        profiles = {}
        for name, values in data.items():
            if not isinstance(values, dict):
                raise MalformedCredentialsError(
                    messages.MALFORMED_CREDENTIALS,
                    ValueError(f"'{name}' is not a profile table"),
                )
            profiles[name] = Profile.from_dict(values)
        return cls(profiles, profile, path)

    @classmethod
    def load(cls, profile: str = DEFAULT_PROFILE, path: Optional[PathLike] = None) -> "Credentials":
        """Read the credentials file and select ``profile``.

        Raises:
            CredentialsNotFoundError: No credentials file could be found.
            MalformedCredentialsError: The file is not valid TOML.
            ProfileNotFoundError: The file has no such profile.
        """
        creds_path = Path(path).expanduser() if path else find_config_file(CREDENTIALS_FILE)
        if creds_path is None or not creds_path.is_file():
            raise CredentialsNotFoundError(messages.CREDENTIALS_NOT_FOUND)
        try:
            text = creds_path.read_text(encoding="utf-8")
        except OSError as e:
            raise CredentialsNotFoundError(messages.CREDENTIALS_NOT_FOUND, e)
        logger.debug("using credentials file %s", creds_path)
        return cls.from_toml(text, profile, creds_path)

    @property
    def active_name(self) -> str:
        return self._active

    @property
    def active_profile(self) -> Profile:
        return self.profiles[self._active]

    def switch_profile(self, name: str) -> None:
        """Make ``name`` the active profile; on failure the active one is kept."""
        if name not in self.profiles:
            raise ProfileNotFoundError(name, messages.PROFILE_NOT_FOUND.format(profile=name))
        self._active = name


# =============================================================================
# Workstation config.toml
# =============================================================================


@dataclass
class WorkstationConfig:
    """Settings read from config.toml. Every field has a default."""

    log_level: str = ""
    features: Dict[str, bool] = field(default_factory=dict)
    cache_dir: Optional[str] = None
    cookstyle_timeout: int = 600

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkstationConfig":
        analyze = data.get("analyze", {}) or {}
        return cls(
            log_level=str((data.get("log", {}) or {}).get("level", "")),
            features={k: bool(v) for k, v in (data.get("features", {}) or {}).items()},
            cache_dir=analyze.get("cache_dir"),
            cookstyle_timeout=int(analyze.get("cookstyle_timeout", 600)),
        )

    @classmethod
    def load(cls, path: Optional[PathLike] = None) -> "WorkstationConfig":
        """Load config.toml; a missing or malformed file yields the defaults."""
        config_path = Path(path) if path else find_config_file(CONFIG_FILE)
        if config_path is None or not config_path.is_file():
            return cls()
        try:
            with open(config_path, "rb") as f:
                return cls.from_dict(tomllib.load(f))
        except (OSError, tomllib.TOMLDecodeError, TypeError, ValueError) as e:
            logger.warning("%s%s", messages.MALFORMED_CONFIG_TOML, e)
            return cls()


# =============================================================================
# Settings
# =============================================================================


@dataclass
class Settings:
    """Everything a command needs to talk to the server."""

    credentials: Credentials
    config: WorkstationConfig = field(default_factory=WorkstationConfig)
    no_ssl_verify: bool = False

    @property
    def profile(self) -> Profile:
        return self.credentials.active_profile

    @classmethod
    def load(
        cls,
        profile: str = DEFAULT_PROFILE,
        credentials_file: Optional[PathLike] = None,
        overrides: Sequence["OverrideFn"] = (),
        config: Optional[WorkstationConfig] = None,
    ) -> "Settings":
        """Resolve credentials for ``profile`` and apply ``overrides`` in order."""
        settings = cls(
            credentials=Credentials.load(profile, credentials_file),
            config=config if config is not None else WorkstationConfig.load(),
        )
        for override in overrides:
            override(settings)
        return settings

    def validate(self) -> None:
        missing = self.profile.missing_settings()
        if missing:
            raise MissingSettingsError(
                messages.MISSING_MINIMUM_PARAMETERS_E001.format(missing=", ".join(missing))
            )

    def client_key_pem(self) -> str:
        base_dir = self.credentials.path.parent if self.credentials.path else None
        return self.profile.read_client_key(base_dir)


OverrideFn = Callable[[Settings], None]
