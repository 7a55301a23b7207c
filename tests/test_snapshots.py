from __future__ import annotations

from typing import Any
from unittest.mock import Mock
import logging

import pytest
from kubernetes.client import ApiException

from csi_snapshot_verifier.errors import InvalidVersionError, ListingError
from csi_snapshot_verifier.k8s import ClusterClients
from csi_snapshot_verifier.models import SchemaVersion, SnapshotContentRecord
from csi_snapshot_verifier.snapshots import (
    V1Beta1SnapshotSurface,
    V1SnapshotSurface,
    collect_snapshot_handles,
    resolve_snapshot_handles,
    snapshot_handle_suffix,
    snapshot_surface,
)

_MISSING = object()


def _content(
    name: str,
    *,
    backup: str | None = None,
    handle: Any = _MISSING,
    labels: Any = _MISSING,
    status: Any = _MISSING,
) -> dict[str, Any]:
    metadata: dict[str, Any] = {"name": name}
    if labels is _MISSING:
        labels = {"velero.io/backup-name": backup} if backup is not None else {}
    if labels is not None:
        metadata["labels"] = labels

    obj: dict[str, Any] = {"metadata": metadata}
    if status is _MISSING:
        status = {"snapshotHandle": f"rg/{name}"} if handle is _MISSING else {"snapshotHandle": handle}
    if status is not None:
        obj["status"] = status
    return obj


def _clients(items: list[dict[str, Any]] | None = None) -> ClusterClients:
    snapshot_api = Mock()
    snapshot_api.list_cluster_custom_object.return_value = {"items": items or []}
    return ClusterClients(api_client=Mock(), core_api=Mock(), snapshot_api=snapshot_api)


def test_resolve_snapshot_handles_with_mixed_backups_returns_only_matching_suffixes() -> None:
    clients = _clients(
        [
            _content("disk-a", backup="backup-1"),
            _content("disk-c", backup="backup-2"),
            _content("disk-b", backup="backup-1"),
        ]
    )

    handles = resolve_snapshot_handles(clients, "backup-1", "v1")

    assert handles == ["disk-a", "disk-b"]
    clients.snapshot_api.list_cluster_custom_object.assert_called_once_with(
        group="snapshot.storage.k8s.io",
        version="v1",
        plural="volumesnapshotcontents",
    )


def test_resolve_snapshot_handles_with_v1beta1_queries_v1beta1_surface() -> None:
    clients = _clients([_content("disk-a", backup="backup-1")])

    assert resolve_snapshot_handles(clients, "backup-1", SchemaVersion.V1BETA1) == ["disk-a"]
    assert clients.snapshot_api.list_cluster_custom_object.call_args.kwargs["version"] == "v1beta1"


def test_resolve_snapshot_handles_preserves_listing_order() -> None:
    clients = _clients(
        [
            _content("zeta", backup="nightly"),
            _content("alpha", backup="nightly"),
            _content("mid", backup="nightly"),
        ]
    )

    assert resolve_snapshot_handles(clients, "nightly", "v1") == ["zeta", "alpha", "mid"]


def test_resolve_snapshot_handles_with_incomplete_contents_skips_them_and_logs(
    caplog: pytest.LogCaptureFixture,
) -> None:
    clients = _clients(
        [
            _content("no-status", backup="backup-1", status=None),
            _content("no-handle", backup="backup-1", status={"readyToUse": False}),
            _content("null-handle", backup="backup-1", handle=None),
            _content("no-labels", labels=None),
            _content("ready", backup="backup-1"),
        ]
    )

    with caplog.at_level(logging.WARNING, logger="csi_snapshot_verifier.snapshots"):
        handles = resolve_snapshot_handles(clients, "backup-1", "v1")

    assert handles == ["ready"]
    assert "no-status has no status" in caplog.text
    assert "no-handle has no snapshot handle" in caplog.text
    assert "null-handle has no snapshot handle" in caplog.text
    assert "no-labels has no labels" in caplog.text


def test_resolve_snapshot_handles_with_no_matches_returns_empty_list_and_logs(
    caplog: pytest.LogCaptureFixture,
) -> None:
    clients = _clients([_content("disk-a", backup="other"), _content("disk-b")])

    with caplog.at_level(logging.INFO, logger="csi_snapshot_verifier.snapshots"):
        handles = resolve_snapshot_handles(clients, "backup-1", "v1")

    assert handles == []
    assert "No VolumeSnapshotContent found for backup backup-1" in caplog.text


def test_resolve_snapshot_handles_with_listing_failure_raises_listing_error() -> None:
    clients = _clients()
    clients.snapshot_api.list_cluster_custom_object.side_effect = ApiException(status=500, reason="boom")

    with pytest.raises(ListingError, match=r"list VolumeSnapshotContents.*API status 500"):
        resolve_snapshot_handles(clients, "backup-1", "v1")


def test_resolve_snapshot_handles_with_v1beta1_not_served_mentions_removed_api() -> None:
    clients = _clients()
    clients.snapshot_api.list_cluster_custom_object.side_effect = ApiException(status=404, reason="Not Found")

    with pytest.raises(ListingError, match="v1beta1 snapshot API is removed"):
        resolve_snapshot_handles(clients, "backup-1", "v1beta1")


def test_resolve_snapshot_handles_with_invalid_version_raises_before_listing() -> None:
    clients = _clients()

    with pytest.raises(InvalidVersionError):
        resolve_snapshot_handles(clients, "backup-1", "v2")

    clients.snapshot_api.list_cluster_custom_object.assert_not_called()


def test_snapshot_surface_selects_implementation_per_version() -> None:
    clients = _clients()

    assert isinstance(snapshot_surface(clients, "v1beta1"), V1Beta1SnapshotSurface)
    assert isinstance(snapshot_surface(clients, SchemaVersion.V1), V1SnapshotSurface)


def test_surface_list_snapshots_normalizes_namespaced_items() -> None:
    snapshot_api = Mock()
    snapshot_api.list_namespaced_custom_object.return_value = {
        "items": [
            {
                "metadata": {"name": "vs-1", "namespace": "apps", "labels": {"velero.io/backup-name": "b1"}},
                "spec": {"source": {"persistentVolumeClaimName": "data"}},
                "status": {"boundVolumeSnapshotContentName": "snapcontent-1"},
            },
            {
                "metadata": {"name": "vs-2", "namespace": "apps"},
                "spec": {"source": {"volumeSnapshotContentName": "pre-provisioned"}},
            },
        ]
    }
    clients = ClusterClients(api_client=Mock(), core_api=Mock(), snapshot_api=snapshot_api, request_timeout_seconds=5)

    records = V1SnapshotSurface(clients).list_snapshots("apps")

    assert [record.name for record in records] == ["vs-1", "vs-2"]
    assert records[0].source_claim_name == "data"
    assert records[0].bound_content_name == "snapcontent-1"
    assert records[0].backup_name() == "b1"
    assert records[1].source_claim_name is None
    assert records[1].bound_content_name is None
    assert records[1].backup_name() is None
    snapshot_api.list_namespaced_custom_object.assert_called_once_with(
        group="snapshot.storage.k8s.io",
        version="v1",
        namespace="apps",
        plural="volumesnapshots",
        _request_timeout=5,
    )


def test_collect_snapshot_handles_with_label_for_other_backup_excludes_record() -> None:
    records = [
        SnapshotContentRecord(
            name="c1",
            labels={"velero.io/backup-name": "backup-10"},
            has_status=True,
            snapshot_handle="snap-1",
        ),
        SnapshotContentRecord(name="c2", labels={"app": "db"}, has_status=True, snapshot_handle="snap-2"),
    ]

    assert collect_snapshot_handles(records, "backup-1") == []


@pytest.mark.parametrize(
    ("handle", "expected"),
    [
        ("projects/p1/snapshots/abc123", "abc123"),
        ("abc123", "abc123"),
        ("/subscriptions/s/resourceGroups/rg/providers/Microsoft.Compute/snapshots/snap-1", "snap-1"),
    ],
)
def test_snapshot_handle_suffix_keeps_last_segment(handle: str, expected: str) -> None:
    assert snapshot_handle_suffix(handle) == expected
