from __future__ import annotations

from dataclasses import replace
from typing import Sequence
import argparse
import logging
import sys

from .config import ClusterConnectionConfig, parse_timeout
from .correlate import resolve_content_name_for_pod
from .errors import SnapshotVerificationError
from .k8s import load_cluster_clients
from .models import SchemaVersion
from .verify import verify_snapshot_count

logger = logging.getLogger(__name__)

_VERSION_CHOICES = [version.value for version in SchemaVersion]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="csi-snapshot-verifier",
        description="Verify CSI volume snapshots produced by a Velero backup",
    )
    parser.add_argument("--kubeconfig", help="Path to a kubeconfig file (default discovery if omitted)")
    parser.add_argument("--context", help="Kubeconfig context to use")
    parser.add_argument(
        "--in-cluster",
        action="store_true",
        default=None,
        help="Use the pod service account instead of a kubeconfig",
    )
    parser.add_argument("--request-timeout", help="Per-request timeout in seconds")
    parser.add_argument("--verbose", action="store_true")

    subcommands = parser.add_subparsers(dest="command", required=True)

    count = subcommands.add_parser("count", help="Check the number of snapshot contents of a backup")
    count.add_argument("--backup", required=True)
    count.add_argument("--expected", required=True, type=int)
    count.add_argument("--api-version", choices=_VERSION_CHOICES, default=SchemaVersion.V1.value)

    content = subcommands.add_parser("content-name", help="Find the snapshot content backing a pod's volume")
    content.add_argument("--pod", required=True)
    content.add_argument("--namespace", required=True)
    content.add_argument("--backup", required=True)
    content.add_argument("--api-version", choices=_VERSION_CHOICES, default=SchemaVersion.V1.value)

    return parser


def connection_from_args(args: argparse.Namespace, base: ClusterConnectionConfig) -> ClusterConnectionConfig:
    overrides = {}
    if args.kubeconfig:
        overrides["kubeconfig_path"] = args.kubeconfig
    if args.context:
        overrides["context"] = args.context
    if args.in_cluster is not None:
        overrides["in_cluster"] = args.in_cluster
    if args.request_timeout is not None:
        overrides["request_timeout_seconds"] = parse_timeout(args.request_timeout)
    return replace(base, **overrides)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        connection = connection_from_args(args, ClusterConnectionConfig.from_env())
        clients = load_cluster_clients(connection)
        if args.command == "count":
            handles = verify_snapshot_count(clients, args.backup, args.expected, args.api_version)
            for handle in handles:
                print(handle)
        else:
            print(
                resolve_content_name_for_pod(
                    clients,
                    pod_name=args.pod,
                    namespace=args.namespace,
                    backup_name=args.backup,
                    schema_version=args.api_version,
                )
            )
    except SnapshotVerificationError as error:
        logger.debug("Verification failed", exc_info=True)
        print(f"error: {error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
