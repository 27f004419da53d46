"""On-disk persistence for captures and reports.

Captured server objects are written as owner-only JSON files below a node
repository. Reports, error listings and downloaded cookbooks live in the
analyze cache directory (.analyze-cache/ by default).
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..errors import ObjectWriteError

DEFAULT_CACHE_DIR = ".analyze-cache"
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

DIR_MODE = 0o700
FILE_MODE = 0o600


def get_cache_dir(override: Optional[str] = None) -> Path:
    """Get the analyze cache directory.

    Uses the explicit override, then CHEF_ANALYZE_CACHE_DIR, then
    ./.analyze-cache.
    """
    return Path(override or os.environ.get("CHEF_ANALYZE_CACHE_DIR") or DEFAULT_CACHE_DIR)


def report_timestamp(when: Optional[datetime] = None) -> str:
    return (when or datetime.now()).strftime(TIMESTAMP_FORMAT)


def write_atomic(path: Path, content: Union[str, bytes], mode: int = FILE_MODE) -> None:
    """Write through a temporary file in the same directory, then rename."""
    data = content.encode("utf-8") if isinstance(content, str) else content
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class ObjectWriter:
    """Saves server objects as JSON below a root directory.

    Layout: ``<root>/<subdir>/<name>.json``, directories 0700, files 0600.
    """

    def __init__(self, root_dir: Union[str, Path]):
        self.root_dir = Path(root_dir)

    def write_object(self, subdir: str, name: str, obj: Dict[str, Any]) -> Path:
        """Serialize ``obj`` to ``<root>/<subdir>/<name>.json``.

        Raises:
            ObjectWriteError: If the directory cannot be created, the object
                cannot be encoded, or the file cannot be written.
        """
        directory = self.root_dir / subdir
        try:
            directory.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        except OSError as e:
            raise ObjectWriteError(f"unable to create directory {directory}", e)

        try:
            content = json.dumps(obj, indent=2)
        except (TypeError, ValueError) as e:
            raise ObjectWriteError(f"unable to encode {subdir} object '{name}'", e)

        path = directory / f"{name}.json"
        try:
            write_atomic(path, content + "\n")
        except OSError as e:
            raise ObjectWriteError(f"unable to write {path}", e)
        return path

    def write_file(self, relative_path: str, content: str) -> Path:
        """Write a plain file below the root, e.g. kitchen.yml."""
        path = self.root_dir / relative_path
        try:
            path.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            write_atomic(path, content)
        except OSError as e:
            raise ObjectWriteError(f"unable to write {path}", e)
        return path


class ReportStore:
    """Report and error files in the analyze cache.

    - reports/<kind>-<timestamp>.<ext>
    - errors/<kind>-<timestamp>.err
    - cookbooks/<name>-<version>/ and cookbook_artifacts/<name>-<id>/ downloads
    """

    def __init__(self, cache_dir: Optional[Union[str, Path]] = None):
        self.cache_dir = Path(cache_dir) if cache_dir else get_cache_dir()
        self.reports_dir = self.cache_dir / "reports"
        self.errors_dir = self.cache_dir / "errors"
        self.cookbooks_dir = self.cache_dir / "cookbooks"
        self.artifacts_dir = self.cache_dir / "cookbook_artifacts"

    def save_report(self, kind: str, extension: str, content: str, timestamp: Optional[str] = None) -> Path:
        path = self.reports_dir / f"{kind}-{timestamp or report_timestamp()}.{extension}"
        return self._save(path, content, "reports")

    def save_errors(self, kind: str, content: str, timestamp: Optional[str] = None) -> Path:
        path = self.errors_dir / f"{kind}-{timestamp or report_timestamp()}.err"
        return self._save(path, content, "errors")

    def download_dir(self, name: str, version: str, identifier: str = "") -> Path:
        if identifier:
            return self.artifacts_dir / f"{name}-{identifier}"
        return self.cookbooks_dir / f"{name}-{version}"

    def _save(self, path: Path, content: str, label: str) -> Path:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ObjectWriteError(f"unable to create {label}/ directory", e)
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise ObjectWriteError(f"unable to write {path}", e)
        return path
