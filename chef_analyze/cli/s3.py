"""S3 uploads and temporary AWS sessions for sharing reports."""

from __future__ import annotations

import json
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..data.persistence import TIMESTAMP_FORMAT
from ..errors import ChefAnalyzeError

DEFAULT_REGION = "us-east-1"
TOKENS_DIR = Path.home() / ".chef-workstation" / "tokens"


class UploadProgress:
    """boto3 transfer callback printing the uploaded percentage."""

    def __init__(self, total_bytes: int):
        self.total_bytes = total_bytes
        self.sent = 0
        self._lock = threading.Lock()

    def __call__(self, bytes_amount: int) -> None:
        with self._lock:
            self.sent += bytes_amount
            percent = (self.sent / self.total_bytes * 100) if self.total_bytes else 100.0
            print(f"\r  {self.sent}/{self.total_bytes} bytes ({percent:.0f}%)", end="", flush=True)


def upload_to_s3(bucket: str, file_path: str, client: Optional[Any] = None) -> str:
    """Upload ``file_path`` to ``bucket`` under its base name.

    The region defaults to us-east-1 unless AWS_REGION is set; credentials
    come from the standard AWS chain.

    Returns:
        The object key.
    """
    path = Path(file_path)
    if not path.is_file():
        raise ChefAnalyzeError(f"unable to upload {file_path}: file not found")

    if client is None:
        region = os.environ.get("AWS_REGION") or DEFAULT_REGION
        client = boto3.client("s3", region_name=region)

    key = path.name
    try:
        client.upload_file(
            Filename=str(path),
            Bucket=bucket,
            Key=key,
            Callback=UploadProgress(path.stat().st_size),
        )
    except (BotoCoreError, ClientError) as e:
        raise ChefAnalyzeError(f"unable to upload {file_path} to {bucket}", e)
    print(f"\nFile uploaded to {bucket}/{key}", flush=True)
    return key


def credentials_to_unix_variables(credentials: Dict[str, Any]) -> str:
    return (
        f'export AWS_ACCESS_KEY_ID="{credentials["AccessKeyId"]}"\n'
        f'export AWS_SECRET_ACCESS_KEY="{credentials["SecretAccessKey"]}"\n'
        f'export AWS_SESSION_TOKEN="{credentials["SessionToken"]}"\n'
    )


def credentials_to_powershell_variables(credentials: Dict[str, Any]) -> str:
    return (
        f'$Env:AWS_ACCESS_KEY_ID = "{credentials["AccessKeyId"]}"\n'
        f'$Env:AWS_SECRET_ACCESS_KEY = "{credentials["SecretAccessKey"]}"\n'
        f'$Env:AWS_SESSION_TOKEN = "{credentials["SessionToken"]}"\n'
    )


def create_session(
    minutes: int,
    tokens_dir: Optional[Path] = None,
    client: Optional[Any] = None,
) -> Dict[str, Path]:
    """Request an STS session token valid for ``minutes`` and save it.

    Three files are written to the tokens directory: the raw token payload
    plus shell and PowerShell snippets exporting the credentials.

    Returns:
        Mapping of 'token', 'sh' and 'ps1' to the written paths.
    """
    if minutes <= 0:
        raise ChefAnalyzeError(f"unable to use '{minutes}' as the session duration in minutes")

    client = client or boto3.client("sts")
    try:
        result = client.get_session_token(DurationSeconds=minutes * 60)
    except (BotoCoreError, ClientError) as e:
        raise ChefAnalyzeError("unable to create session token", e)

    credentials = result["Credentials"]
    unix_vars = credentials_to_unix_variables(credentials)
    ps_vars = credentials_to_powershell_variables(credentials)

    print(f"A new session has been created and will be active for {minutes} minutes.")
    print("Share these environment variables with a user that desires to upload files:\n")
    print(f"* Unix systems:\n{unix_vars}")
    print(f"* Windows systems:\n{ps_vars}")

    directory = tokens_dir or TOKENS_DIR
    token_name = f"token-{minutes}m-{datetime.now().strftime(TIMESTAMP_FORMAT)}"
    paths = {
        "token": directory / token_name,
        "sh": directory / f"{token_name}.sh",
        "ps1": directory / f"{token_name}.ps1",
    }
    try:
        directory.mkdir(parents=True, exist_ok=True)
        paths["token"].write_text(json.dumps(result, indent=2, default=str), encoding="utf-8")
        paths["sh"].write_text(unix_vars, encoding="utf-8")
        paths["ps1"].write_text(ps_vars, encoding="utf-8")
    except OSError as e:
        raise ChefAnalyzeError(f"unable to save session token to {directory}", e)

    print(f"Token payload saved to {paths['token']}")
    print(f"Unix shell file saved to {paths['sh']}")
    print(f"Powershell file saved to {paths['ps1']}")
    return paths
