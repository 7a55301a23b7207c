from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from .errors import InvalidVersionError

SNAPSHOT_GROUP = "snapshot.storage.k8s.io"
BACKUP_NAME_LABEL = "velero.io/backup-name"
PROVISIONED_BY_ANNOTATION = "pv.kubernetes.io/provisioned-by"


class SchemaVersion(str, Enum):
    V1BETA1 = "v1beta1"
    V1 = "v1"

    @classmethod
    def parse(cls, value: SchemaVersion | str) -> SchemaVersion:
        if isinstance(value, cls):
            return value
        token = value.strip() if isinstance(value, str) else value
        for member in cls:
            if member.value == token:
                return member
        supported = ", ".join(member.value for member in cls)
        raise InvalidVersionError(f"API version '{value}' is invalid; expected one of: {supported}")


@dataclass(frozen=True)
class SnapshotContentRecord:
    name: str
    labels: dict[str, str] | None
    has_status: bool
    snapshot_handle: str | None

    @classmethod
    def from_object(cls, obj: Mapping[str, Any]) -> SnapshotContentRecord:
        metadata = obj.get("metadata") or {}
        status = obj.get("status")
        labels = metadata.get("labels")
        return cls(
            name=metadata.get("name") or "",
            labels=dict(labels) if labels is not None else None,
            has_status=status is not None,
            snapshot_handle=status.get("snapshotHandle") if status else None,
        )


@dataclass(frozen=True)
class SnapshotRecord:
    name: str
    namespace: str
    labels: dict[str, str] | None
    source_claim_name: str | None
    bound_content_name: str | None

    @classmethod
    def from_object(cls, obj: Mapping[str, Any]) -> SnapshotRecord:
        metadata = obj.get("metadata") or {}
        source = (obj.get("spec") or {}).get("source") or {}
        status = obj.get("status") or {}
        labels = metadata.get("labels")
        return cls(
            name=metadata.get("name") or "",
            namespace=metadata.get("namespace") or "",
            labels=dict(labels) if labels is not None else None,
            source_claim_name=source.get("persistentVolumeClaimName"),
            bound_content_name=status.get("boundVolumeSnapshotContentName"),
        )

    def backup_name(self) -> str | None:
        return (self.labels or {}).get(BACKUP_NAME_LABEL)
