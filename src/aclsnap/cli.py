"""
ACL Snapshot CLI entry point.

This module provides the command-line interface for ACL Snapshot.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import TextIO

from aclsnap import __version__
from aclsnap.compare import Change, summarize
from aclsnap.config import RunConfiguration, load_config_from_env
from aclsnap.errors import AclSnapError, InputError, NoInputError
from aclsnap.export import (
    artifact_filename,
    load_artifact_file,
    render_artifact,
    render_changes,
)
from aclsnap.gcloud import GCPMemberCache
from aclsnap.ingesters import IngesterConfig, ingest, kind_help, new
from aclsnap.models import Artifact

logger = logging.getLogger(__name__)

OUTPUT_FILE_MODE = 0o600


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="aclsnap",
        description="ACL Snapshot - who has access to what, as reviewable YAML",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Run with --list-kinds for per-kind collection instructions.",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"aclsnap {__version__}",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )
    parser.add_argument("--input", help="Export file to process")
    parser.add_argument(
        "--in-dir",
        help="Directory of exports to process (kinds guessed per file)",
    )
    parser.add_argument(
        "--kind",
        help="Kind of input (guessed from the file name when omitted)",
    )
    parser.add_argument("--project", help="Google Cloud project for the gcp kinds")
    parser.add_argument(
        "--gcp-identity-project",
        help="Project used for Cloud Identity group lookups (defaults to --project)",
    )
    parser.add_argument(
        "--out-dir",
        help="Write YAML files to this directory instead of standard output",
    )
    parser.add_argument(
        "--compare",
        help="Artifact file (or directory, with --in-dir) to compare against",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Start the upload UI",
    )
    parser.add_argument(
        "--port",
        type=int,
        help="Port for the upload UI (default: $PORT or 8080)",
    )
    parser.add_argument(
        "--list-kinds",
        action="store_true",
        help="List supported kinds with collection instructions",
    )

    return parser


def input_paths(config: RunConfiguration) -> list[str]:
    """
    Get the inputs to process for a run.

    Returns:
        Paths to process; a single empty path for kinds that need no input

    Raises:
        InputError: If the input directory cannot be listed
        NoInputError: If no input was given and the kind needs one
    """
    if config.in_dir:
        try:
            entries = sorted(os.scandir(config.in_dir), key=lambda e: e.name)
        except OSError as e:
            raise InputError(f"readdir {config.in_dir}: {e}") from e
        return [e.path for e in entries if not e.is_dir()]

    if config.input:
        return [config.input]

    if config.kind and new(config.kind).description().no_input_required:
        return [""]

    raise NoInputError("--input or --in-dir is required")


def write_artifact(artifact: Artifact, out_dir: str, stream: TextIO | None = None) -> None:
    """
    Write a rendered artifact to a directory, or to a stream when out_dir is empty.

    Raises:
        InputError: If the output file cannot be written
    """
    text = render_artifact(artifact)
    if not out_dir:
        stream = stream or sys.stdout
        stream.write("---\n")
        stream.write(text)
        return

    path = os.path.join(out_dir, artifact_filename(artifact))
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, OUTPUT_FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
    except OSError as e:
        raise InputError(f"write {path}: {e}") from e
    logger.info(f"Wrote {path}")


def cmd_generate(config: RunConfiguration) -> int:
    """
    Generate one artifact per input.

    Args:
        config: Run configuration

    Returns:
        Exit code
    """
    cache = GCPMemberCache()

    for path in input_paths(config):
        artifact = ingest(
            IngesterConfig(
                path=path,
                project=config.project,
                kind=config.kind,
                gcp_identity_project=config.gcp_identity_project,
                gcp_member_cache=cache,
            )
        )
        write_artifact(artifact, config.out_dir)

    if cache.hits or cache.misses:
        logger.info(f"Group cache: {cache.hits} hits, {cache.misses} misses")
    return 0


def cmd_compare(config: RunConfiguration, stream: TextIO | None = None) -> int:
    """
    Compare artifacts and print the changes as CSV.

    With --input, the input artifact is compared to the --compare file.
    With --in-dir, every artifact is compared to the same-named file in
    the --compare directory.

    Args:
        config: Run configuration
        stream: Output stream (default: stdout)

    Returns:
        Exit code
    """
    stream = stream or sys.stdout

    if config.in_dir:
        pairs = []
        for path in input_paths(config):
            counterpart = os.path.join(config.compare, os.path.basename(path))
            if not os.path.exists(counterpart):
                logger.warning(f"No counterpart for {path} in {config.compare}")
                continue
            pairs.append((path, counterpart))
    elif config.input:
        pairs = [(config.input, config.compare)]
    else:
        raise NoInputError("--compare requires --input or --in-dir")

    changes: list[Change] = []
    for from_path, to_path in pairs:
        changes.extend(
            summarize(load_artifact_file(from_path), load_artifact_file(to_path))
        )

    stream.write(render_changes(changes))
    return 0


def cmd_serve(config: RunConfiguration) -> int:
    """Start the upload UI (blocking)."""
    from aclsnap.web import serve

    serve(port=config.port)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose:
        level = logging.DEBUG if args.verbose > 1 else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )

    if args.list_kinds:
        print(kind_help(IngesterConfig(project=args.project or "")))
        return 0

    try:
        config = load_config_from_env().with_overrides(
            input=args.input,
            in_dir=args.in_dir,
            kind=args.kind,
            project=args.project,
            gcp_identity_project=args.gcp_identity_project,
            out_dir=args.out_dir,
            compare=args.compare,
            serve=args.serve,
            port=args.port,
        )

        if config.serve:
            return cmd_serve(config)
        if config.compare:
            return cmd_compare(config)
        return cmd_generate(config)

    except AclSnapError as e:
        logger.error(f"{e.kind}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
