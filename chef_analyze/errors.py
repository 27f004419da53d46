"""Exception hierarchy for chef-analyze.

Every error carries an optional underlying cause. When present, the cause's
text is appended to the contextual message so users always see both.
"""

from typing import Optional


class ChefAnalyzeError(Exception):
    """Base class for all errors raised by chef-analyze."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        if cause is not None:
            super().__init__(f"{message}: {cause}")
            self.__cause__ = cause
        else:
            super().__init__(message)


# --- configuration ---


class ConfigError(ChefAnalyzeError):
    """Raised when credentials or settings cannot be resolved."""


class CredentialsNotFoundError(ConfigError):
    pass


class MalformedCredentialsError(ConfigError):
    pass


class ProfileNotFoundError(ConfigError):
    def __init__(self, profile: str, message: str):
        self.profile = profile
        super().__init__(message)


class MissingSettingsError(ConfigError):
    pass


# --- server and tooling ---


class ChefServerError(ChefAnalyzeError):
    """Raised when a Chef Infra Server request fails."""

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None,
    ):
        self.status_code = status_code
        super().__init__(message, cause)


class NotFoundError(ChefServerError):
    pass


class CookstyleError(ChefAnalyzeError):
    """Raised when the cookstyle analyzer fails or emits unreadable output."""


class ObjectWriteError(ChefAnalyzeError):
    """Raised when a captured object cannot be saved to disk."""


# --- pipelines ---


class CaptureError(ChefAnalyzeError):
    """Raised when any stage of a node capture fails."""


class PolicyfileUnsupportedError(CaptureError):
    def __init__(self, node_name: str):
        self.node_name = node_name
        super().__init__(
            f"node '{node_name}' is managed by Policyfile, "
            "capturing Policyfile-managed nodes is not supported"
        )


class ReportError(ChefAnalyzeError):
    """Raised when a report cannot be generated at all."""
