"""Cookstyle static analysis runner.

Runs the cookstyle binary inside a downloaded cookbook and parses its JSON
report into per-file offense lists.
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..data.models import CookstyleResult
from ..errors import CookstyleError

logger = logging.getLogger("chef_analyze.cookstyle")

DEFAULT_BINARY = "cookstyle"
DEFAULT_TIMEOUT = 600  # seconds

# https://docs.rubocop.org/rubocop/usage/basic_usage.html#exit-codes
# 1 means offenses were found, which is not a failure for us
ACCEPTED_EXIT_CODES = (0, 1)


class CookstyleRunner:
    """Invokes cookstyle with JSON output against a cookbook directory."""

    def __init__(
        self,
        binary: str = DEFAULT_BINARY,
        opts: Optional[Sequence[str]] = None,
        timeout: Optional[int] = DEFAULT_TIMEOUT,
    ):
        self.binary = binary
        self.opts: List[str] = list(opts) if opts is not None else ["--format", "json"]
        self.timeout = timeout

    def is_available(self) -> bool:
        """Check that the cookstyle binary can be executed."""
        try:
            result = subprocess.run(
                [self.binary, "--version"],
                capture_output=True,
                text=True,
                timeout=10,
            )
            return result.returncode == 0
        except Exception:
            return False

    def run(self, working_dir: Union[str, Path]) -> CookstyleResult:
        """Analyze the cookbook in ``working_dir``.

        Raises:
            CookstyleError: If the binary is missing, times out, exits with
                an unexpected status, or prints output that is not JSON.
        """
        cmd = [self.binary, *self.opts]
        logger.debug("running %s in %s", " ".join(cmd), working_dir)
        try:
            result = subprocess.run(
                cmd,
                cwd=str(working_dir),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise CookstyleError(f"unable to run {self.binary}", e)
        except subprocess.TimeoutExpired as e:
            raise CookstyleError(f"{self.binary} timed out after {self.timeout}s", e)

        if result.returncode not in ACCEPTED_EXIT_CODES:
            stderr = (result.stderr or "").strip()
            raise CookstyleError(
                f"{self.binary} exited with status {result.returncode}"
                + (f": {stderr}" if stderr else "")
            )

        try:
            return CookstyleResult.from_dict(json.loads(result.stdout))
        except (ValueError, TypeError, AttributeError) as e:
            raise CookstyleError(f"unable to parse {self.binary} output", e)
