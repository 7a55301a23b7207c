from __future__ import annotations


class SnapshotVerificationError(RuntimeError):
    """Base class for every failure surfaced by the verifier."""


class ConfigurationError(SnapshotVerificationError):
    """Raised when no usable cluster connection configuration is found."""


class ClientConstructionError(SnapshotVerificationError):
    """Raised when API clients cannot be built from a valid configuration."""


class ListingError(SnapshotVerificationError):
    """Raised when a cluster list or get call fails."""


class NotFoundError(SnapshotVerificationError):
    """Raised when a correlated record is missing from a successful listing."""


class InvalidVersionError(SnapshotVerificationError, ValueError):
    """Raised for a snapshot schema version other than v1beta1 or v1."""


class SnapshotResolutionError(SnapshotVerificationError):
    """Raised when snapshot handles for a backup cannot be resolved."""


class _CardinalityError(SnapshotVerificationError):
    def __init__(self, message: str, *, found: list[str]) -> None:
        super().__init__(message)
        self.found = list(found)


class AmbiguousClaimError(_CardinalityError):
    """Raised unless exactly one PVC resolves for a pod."""


class AmbiguousVolumeError(_CardinalityError):
    """Raised unless exactly one PV resolves for a PVC."""


class AmbiguousSnapshotError(_CardinalityError):
    """Raised when several VolumeSnapshots match one claim and backup."""


class CountMismatchError(SnapshotVerificationError):
    def __init__(self, *, actual: int, expected: int, handles: list[str] | None = None) -> None:
        super().__init__(f"Snapshot content count {actual} does not match expected count {expected}")
        self.actual = actual
        self.expected = expected
        self.handles = list(handles or [])
