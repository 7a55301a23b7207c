from __future__ import annotations

import logging

from .errors import CountMismatchError, SnapshotResolutionError, SnapshotVerificationError
from .k8s import ClusterClients
from .models import SchemaVersion
from .snapshots import resolve_snapshot_handles

logger = logging.getLogger(__name__)


def verify_snapshot_count(
    clients: ClusterClients,
    backup_name: str,
    expected_count: int,
    schema_version: SchemaVersion | str,
) -> list[str]:
    version = SchemaVersion.parse(schema_version)
    try:
        handles = resolve_snapshot_handles(clients, backup_name, version)
    except SnapshotVerificationError as error:
        raise SnapshotResolutionError(
            f"Failed to get CSI snapshot contents of backup '{backup_name}' ({version.value}): {error}"
        ) from error

    if len(handles) != expected_count:
        raise CountMismatchError(actual=len(handles), expected=expected_count, handles=handles)

    logger.info("Snapshot handles of backup %s: %s", backup_name, handles)
    return handles
