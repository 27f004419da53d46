#!/usr/bin/env python3
"""
chef-analyze - Main entry point.

Analyzes a Chef Infra Server: cookbook and node reports, node capture into a
local repository, and helpers to share results through S3.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Mapping, Optional

from ..collectors.chef_server import ChefServerClient
from ..collectors.cookstyle import CookstyleRunner
from ..data.persistence import ObjectWriter, ReportStore, report_timestamp
from ..errors import CaptureError, ChefAnalyzeError, CookstyleError, CredentialsNotFoundError
from ..formatters.common import FormattedResult
from ..formatters.csv_report import cookbooks_report_csv, nodes_report_csv
from ..formatters.table import cookbooks_report_summary, nodes_report_summary
from ..formatters.txt import cookbooks_report_txt, nodes_report_txt
from ..reporting.capture import CaptureProgress, NodeCapture, NodeCapturer, resolve_cookbooks
from ..reporting.cookbooks import CookbooksReporter
from ..reporting.nodes import generate_nodes_report
from . import messages
from .config import (
    DEFAULT_PROFILE,
    Credentials,
    OverrideFn,
    Profile,
    Settings,
    WorkstationConfig,
)
from .features import ANALYZE, FeatureFlags
from .s3 import create_session, upload_to_s3

logger = logging.getLogger("chef_analyze.cli")

DEFAULT_TIMEOUT = 30  # seconds, per server request

CAPTURE_MESSAGES = {
    CaptureProgress.FETCHING_NODE: " - Capturing node object '{node}'",
    CaptureProgress.FETCHING_COOKBOOKS: " - Capturing cookbooks...",
    CaptureProgress.FETCHING_ENVIRONMENT: " - Capturing environment...",
    CaptureProgress.FETCHING_ROLES: " - Capturing roles...",
}


# =============================================================================
# Settings and client
# =============================================================================


def flag_client_key(value: str) -> str:
    """Client key given on the command line; paths are relative to the working directory."""
    if "PRIVATE KEY" in value:
        return value
    return str(Path(value).expanduser().absolute())


def credential_overrides(args: argparse.Namespace) -> List[OverrideFn]:
    """Turn command line flags into overrides applied after profile selection."""
    overrides: List[OverrideFn] = []
    if args.client_name:
        overrides.append(lambda s: setattr(s.profile, "client_name", args.client_name))
    if args.client_key:
        client_key = flag_client_key(args.client_key)
        overrides.append(lambda s: setattr(s.profile, "client_key", client_key))
    if args.chef_server_url:
        overrides.append(lambda s: setattr(s.profile, "chef_server_url", args.chef_server_url))
    if args.ssl_no_verify:
        overrides.append(lambda s: setattr(s, "no_ssl_verify", True))
    return overrides


def load_settings(args: argparse.Namespace, config: WorkstationConfig) -> Settings:
    """Resolve settings from the credentials file and flags.

    Without a credentials file, the three connection flags are enough.
    """
    overrides = credential_overrides(args)
    try:
        settings = Settings.load(args.profile, args.credentials, overrides, config=config)
    except CredentialsNotFoundError:
        if args.credentials or not (args.client_name and args.client_key and args.chef_server_url):
            raise
        settings = Settings(Credentials({args.profile: Profile()}, args.profile), config)
        for override in overrides:
            override(settings)
    settings.validate()
    return settings


def build_client(settings: Settings) -> ChefServerClient:
    profile = settings.profile
    return ChefServerClient(
        profile.chef_server_url,
        profile.client_name,
        settings.client_key_pem(),
        timeout=DEFAULT_TIMEOUT,
        verify=not settings.no_ssl_verify,
    )


def _print_progress(done: int, total: int) -> None:
    print(f"\r  [{done}/{total}]", end="\n" if done >= total else "", flush=True)


def _print_result(result: FormattedResult) -> None:
    print(result.report)
    if result.errors:
        print(result.errors, file=sys.stderr)


def _store_report(store: ReportStore, kind: str, extension: str, result: FormattedResult) -> None:
    if not result.report:
        return
    timestamp = report_timestamp()
    path = store.save_report(kind, extension, result.report, timestamp)
    print(messages.REPORT_GENERATED.format(kind=kind.capitalize(), path=path))
    if result.errors:
        errors_path = store.save_errors(kind, result.errors, timestamp)
        print(messages.REPORT_ERRORS.format(path=errors_path))


# =============================================================================
# Commands
# =============================================================================


def cmd_report_cookbooks(args: argparse.Namespace, config: WorkstationConfig) -> int:
    settings = load_settings(args, config)
    store = ReportStore(args.cache_dir or config.cache_dir)
    runner = CookstyleRunner(timeout=config.cookstyle_timeout)
    if args.run_cookstyle and not runner.is_available():
        raise CookstyleError(messages.COOKSTYLE_NOT_FOUND.format(binary=runner.binary))

    with build_client(settings) as client:
        reporter = CookbooksReporter(
            client.cookbooks,
            client.search,
            store,
            runner=runner,
            policies=client.policies,
            artifacts=client.cookbook_artifacts,
            progress=_print_progress,
        )
        print("Analyzing cookbooks...", flush=True)
        report = reporter.generate(
            run_cookstyle=args.run_cookstyle,
            node_filter=args.node_filter,
            only_unused=args.only_unused,
            skip_unused=args.skip_unused,
            anonymize=args.anonymize,
        )

    _print_result(cookbooks_report_summary(report))
    formatter = cookbooks_report_csv if args.format == "csv" else cookbooks_report_txt
    _store_report(store, "cookbooks", args.format, formatter(report))
    return 0


def cmd_report_nodes(args: argparse.Namespace, config: WorkstationConfig) -> int:
    settings = load_settings(args, config)
    store = ReportStore(args.cache_dir or config.cache_dir)

    with build_client(settings) as client:
        print("Analyzing nodes...", flush=True)
        records = generate_nodes_report(client.search, args.node_filter, args.anonymize)

    _print_result(nodes_report_summary(records, args.node_filter))
    formatter = nodes_report_csv if args.format == "csv" else nodes_report_txt
    _store_report(store, "nodes", args.format, formatter(records, args.node_filter))
    return 0


def cmd_capture(args: argparse.Namespace, config: WorkstationConfig) -> int:
    node_name = args.node
    repository = Path(f"node-{node_name}-repo")
    if repository.exists():
        print(messages.REPOSITORY_ALREADY_EXISTS_E002.format(path=repository, node=node_name), file=sys.stderr)
        return 1

    settings = load_settings(args, config)
    with build_client(settings) as client:
        print(" - Setting up local repository", flush=True)
        repository.mkdir(mode=0o700, parents=True)
        capturer = NodeCapturer(
            client.nodes,
            client.roles,
            client.environments,
            client.cookbooks,
            ObjectWriter(repository),
        )
        capture = NodeCapture(node_name, repository, capturer).start()
        for event in capture.events():
            if event in CAPTURE_MESSAGES:
                print(CAPTURE_MESSAGES[event].format(node=node_name), flush=True)
        capture.join()

    if capture.error is not None:
        if isinstance(capture.error, ChefAnalyzeError):
            raise capture.error
        raise CaptureError(f"capture of node '{node_name}' failed", capture.error)

    print(" - Writing kitchen configuration...", flush=True)
    capturer.save_kitchen_yml(capture.node)

    cookbooks = capture.cookbooks
    for source in args.cookbook_source or []:
        if not cookbooks:
            break
        cookbooks = resolve_cookbooks(cookbooks, repository, source)

    if cookbooks:
        listing = "\n".join(f"  - {cb.name} (v{cb.version})" for cb in cookbooks)
        print(messages.COOKBOOKS_NOT_SOURCED.format(
            cookbooks_dir=repository / "cookbooks", cookbooks=listing,
        ))
    print(messages.CAPTURE_COMPLETE.format(repository=repository))
    return 0


def cmd_config_noop(args: argparse.Namespace, config: WorkstationConfig) -> int:
    return 0


def cmd_session(args: argparse.Namespace, config: WorkstationConfig) -> int:
    create_session(args.minutes)
    return 0


def cmd_upload(args: argparse.Namespace, config: WorkstationConfig) -> int:
    upload_to_s3(args.bucket, args.file)
    return 0


# =============================================================================
# Parser
# =============================================================================


def _infra_flags() -> argparse.ArgumentParser:
    """Flags shared by every command that talks to the server."""
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("-c", "--credentials", default=None,
                        help="Credentials file (default $HOME/.chef/credentials)")
    parser.add_argument("-n", "--client-name", default=None, help="Chef Infra Server API client name")
    parser.add_argument("-k", "--client-key", default=None, help="Chef Infra Server API client key")
    parser.add_argument("-s", "--chef-server-url", default=None, help="Chef Infra Server URL")
    parser.add_argument("-p", "--profile", default=DEFAULT_PROFILE,
                        help="Profile to use from credentials file (default: %(default)s)")
    parser.add_argument("-o", "--ssl-no-verify", action="store_true",
                        help="Do not verify SSL when connecting to Chef Infra Server")
    return parser


def _report_flags() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("-f", "--format", choices=["txt", "csv"], default="txt",
                        help="Output format: txt is human readable, csv is machine readable")
    parser.add_argument("-F", "--node-filter", default="",
                        help="Search filter applied to nodes, e.g. 'chef_environment:production'")
    parser.add_argument("-a", "--anonymize", action="store_true", help="Replace node names with hashes")
    parser.add_argument("--cache-dir", default=None, help="Analyze cache directory (default: .analyze-cache)")
    return parser


def build_parser() -> argparse.ArgumentParser:
    infra = _infra_flags()
    report_flags = _report_flags()

    parser = argparse.ArgumentParser(
        prog="chef-analyze",
        description="Analyze your Chef Infra Server artifacts",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    report = commands.add_parser("report", help="Generate reports from a Chef Infra Server")
    reports = report.add_subparsers(dest="report", metavar="REPORT")
    reports.required = True

    cookbooks = reports.add_parser("cookbooks", parents=[infra, report_flags],
                                   help="Generate a cookbook oriented report")
    cookbooks.add_argument("-V", "--run-cookstyle", action="store_true",
                           help="Download cookbooks and analyze them with cookstyle")
    usage = cookbooks.add_mutually_exclusive_group()
    usage.add_argument("-u", "--only-unused", action="store_true",
                       help="Only include cookbooks that are not applied to any node")
    usage.add_argument("-U", "--skip-unused", action="store_true",
                       help="Do not include cookbooks that are not applied to any node")
    cookbooks.set_defaults(func=cmd_report_cookbooks)

    nodes = reports.add_parser("nodes", parents=[infra, report_flags], help="Generate a node oriented report")
    nodes.set_defaults(func=cmd_report_nodes)

    capture = commands.add_parser("capture", parents=[infra],
                                  help="Capture a node's state into a local chef-repo")
    capture.add_argument("node", metavar="NODE-NAME")
    capture.add_argument("--cookbook-source", action="append", metavar="PATH",
                         help="Directory with checked-out cookbooks to link instead of the downloaded copies")
    capture.set_defaults(func=cmd_capture)

    config = commands.add_parser("config", help="Manage chef-analyze configuration")
    config_commands = config.add_subparsers(dest="config_command", metavar="ACTION")
    config_commands.required = True
    config_commands.add_parser("init", help="Initialize a local configuration").set_defaults(func=cmd_config_noop)
    config_commands.add_parser("verify", help="Verify the local configuration").set_defaults(func=cmd_config_noop)

    session = commands.add_parser("session", help="Create temporary credentials to upload files to S3")
    session.add_argument("minutes", type=int, metavar="MINUTES")
    session.set_defaults(func=cmd_session)

    upload = commands.add_parser("upload", help="Upload a file to an S3 bucket")
    upload.add_argument("bucket", metavar="BUCKET")
    upload.add_argument("file", metavar="FILE")
    upload.set_defaults(func=cmd_upload)

    return parser


def configure_logging(debug: bool, level: str = "") -> None:
    if debug:
        resolved = logging.DEBUG
    else:
        resolved = getattr(logging, (level or "WARNING").upper(), logging.WARNING)
    logging.basicConfig(level=resolved, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")


def main(argv: Optional[List[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = WorkstationConfig.load()
    configure_logging(args.debug, config.log_level)

    flags = FeatureFlags(config.features, environ)
    if not flags.enabled(ANALYZE):
        print(
            messages.FEATURE_NOT_ENABLED_E003.format(feature=ANALYZE.name, env=ANALYZE.env, key=ANALYZE.key),
            file=sys.stderr,
        )
        return 1

    try:
        return args.func(args, config)
    except ChefAnalyzeError as e:
        logger.debug("command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
