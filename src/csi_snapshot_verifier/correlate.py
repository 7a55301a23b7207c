from __future__ import annotations

import logging

from .errors import AmbiguousClaimError, AmbiguousSnapshotError, AmbiguousVolumeError, NotFoundError
from .k8s import ClusterClients, list_claim_volume_names, list_pod_claim_names, read_persistent_volume
from .models import PROVISIONED_BY_ANNOTATION, SchemaVersion
from .snapshots import snapshot_surface

logger = logging.getLogger(__name__)


def resolve_content_name_for_pod(
    clients: ClusterClients,
    *,
    pod_name: str,
    namespace: str,
    backup_name: str,
    schema_version: SchemaVersion | str,
) -> str:
    """Find the VolumeSnapshotContent that ``backup_name`` produced for the volume of a pod.

    Walks pod -> PVC -> PV -> VolumeSnapshot. The pod must mount exactly one PVC
    and that PVC must be bound to exactly one PV. Exactly one VolumeSnapshot in the
    namespace may reference the PVC under the backup label, and it must already be
    bound to its content.
    """
    surface = snapshot_surface(clients, schema_version)

    claim_names = list_pod_claim_names(clients, namespace=namespace, pod_name=pod_name)
    if len(claim_names) != 1:
        raise AmbiguousClaimError(
            f"Expected exactly 1 PVC for pod '{pod_name}' in namespace '{namespace}', "
            f"found {len(claim_names)}: {claim_names}",
            found=claim_names,
        )
    claim_name = claim_names[0]

    volume_names = list_claim_volume_names(clients, namespace=namespace, claim_name=claim_name)
    if len(volume_names) != 1:
        raise AmbiguousVolumeError(
            f"Expected exactly 1 PV for PVC '{claim_name}' of pod '{pod_name}' in namespace "
            f"'{namespace}', found {len(volume_names)}: {volume_names}",
            found=volume_names,
        )

    volume = read_persistent_volume(clients, volume_names[0])
    annotations = (volume.metadata.annotations if volume.metadata else None) or {}
    logger.info(
        "PV %s of PVC %s/%s provisioned by %s",
        volume_names[0],
        namespace,
        claim_name,
        annotations.get(PROVISIONED_BY_ANNOTATION, "<unknown>"),
    )

    matches = [
        snapshot
        for snapshot in surface.list_snapshots(namespace)
        if snapshot.source_claim_name == claim_name and snapshot.backup_name() == backup_name
    ]
    if not matches:
        raise NotFoundError(
            f"No VolumeSnapshot from backup '{backup_name}' references PVC '{claim_name}' "
            f"of pod '{pod_name}' in namespace '{namespace}'"
        )
    if len(matches) > 1:
        names = [snapshot.name for snapshot in matches]
        raise AmbiguousSnapshotError(
            f"Expected 1 VolumeSnapshot from backup '{backup_name}' for PVC '{claim_name}' in "
            f"namespace '{namespace}', found {len(names)}: {names}",
            found=names,
        )

    snapshot = matches[0]
    if not snapshot.bound_content_name:
        raise NotFoundError(
            f"VolumeSnapshot '{namespace}/{snapshot.name}' for pod '{pod_name}' is not bound "
            "to a VolumeSnapshotContent yet"
        )
    return snapshot.bound_content_name
