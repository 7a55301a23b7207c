from __future__ import annotations

from typing import Iterable, Protocol
import logging

from .k8s import ClusterClients, safe_cluster_call
from .models import (
    BACKUP_NAME_LABEL,
    SNAPSHOT_GROUP,
    SchemaVersion,
    SnapshotContentRecord,
    SnapshotRecord,
)

logger = logging.getLogger(__name__)

CONTENT_PLURAL = "volumesnapshotcontents"
SNAPSHOT_PLURAL = "volumesnapshots"


class SnapshotApiSurface(Protocol):
    """Read access to the snapshot.storage.k8s.io resources of one schema version."""

    version: SchemaVersion

    def list_contents(self) -> list[SnapshotContentRecord]:
        ...

    def list_snapshots(self, namespace: str) -> list[SnapshotRecord]:
        ...


class _CustomObjectSnapshotSurface:
    version: SchemaVersion
    hint = "Verify the external-snapshotter CRDs are installed and RBAC allows list on them."

    def __init__(self, clients: ClusterClients) -> None:
        self.clients = clients

    def list_contents(self) -> list[SnapshotContentRecord]:
        response = safe_cluster_call(
            operation=f"list VolumeSnapshotContents ({SNAPSHOT_GROUP}/{self.version.value})",
            hint=self.hint,
            func=lambda: self.clients.snapshot_api.list_cluster_custom_object(
                group=SNAPSHOT_GROUP,
                version=self.version.value,
                plural=CONTENT_PLURAL,
                **self.clients.request_kwargs(),
            ),
        )
        return [SnapshotContentRecord.from_object(item) for item in response.get("items") or []]

    def list_snapshots(self, namespace: str) -> list[SnapshotRecord]:
        response = safe_cluster_call(
            operation=(
                f"list VolumeSnapshots in namespace '{namespace}' ({SNAPSHOT_GROUP}/{self.version.value})"
            ),
            hint=self.hint,
            func=lambda: self.clients.snapshot_api.list_namespaced_custom_object(
                group=SNAPSHOT_GROUP,
                version=self.version.value,
                namespace=namespace,
                plural=SNAPSHOT_PLURAL,
                **self.clients.request_kwargs(),
            ),
        )
        return [SnapshotRecord.from_object(item) for item in response.get("items") or []]


class V1Beta1SnapshotSurface(_CustomObjectSnapshotSurface):
    version = SchemaVersion.V1BETA1
    hint = (
        "The v1beta1 snapshot API is removed from external-snapshotter v6 and later; "
        "use v1 on newer clusters, otherwise verify the CRDs and RBAC."
    )


class V1SnapshotSurface(_CustomObjectSnapshotSurface):
    version = SchemaVersion.V1


_SURFACES: dict[SchemaVersion, type[_CustomObjectSnapshotSurface]] = {
    SchemaVersion.V1BETA1: V1Beta1SnapshotSurface,
    SchemaVersion.V1: V1SnapshotSurface,
}


def snapshot_surface(clients: ClusterClients, version: SchemaVersion | str) -> SnapshotApiSurface:
    return _SURFACES[SchemaVersion.parse(version)](clients)


def resolve_snapshot_handles(
    clients: ClusterClients,
    backup_name: str,
    schema_version: SchemaVersion | str,
) -> list[str]:
    """Return the handle suffixes of every VolumeSnapshotContent labeled with ``backup_name``.

    Results follow the listing order of the cluster. Contents that have no status,
    no snapshot handle or no labels yet are skipped, since the snapshot controller
    fills those in asynchronously.
    """
    surface = snapshot_surface(clients, schema_version)
    return collect_snapshot_handles(surface.list_contents(), backup_name)


def collect_snapshot_handles(records: Iterable[SnapshotContentRecord], backup_name: str) -> list[str]:
    handles: list[str] = []
    for record in records:
        if not record.has_status:
            logger.warning("VolumeSnapshotContent %s has no status yet, skipping", record.name)
            continue
        if record.snapshot_handle is None:
            logger.warning("VolumeSnapshotContent %s has no snapshot handle yet, skipping", record.name)
            continue
        if record.labels is None:
            logger.warning("VolumeSnapshotContent %s has no labels, skipping", record.name)
            continue

        if record.labels.get(BACKUP_NAME_LABEL) == backup_name:
            handles.append(snapshot_handle_suffix(record.snapshot_handle))

    if not handles:
        logger.info("No VolumeSnapshotContent found for backup %s", backup_name)
    return handles


def snapshot_handle_suffix(handle: str) -> str:
    return handle.split("/")[-1]
