from __future__ import annotations

import os

import pytest

from csi_snapshot_verifier.config import ClusterConnectionConfig, flag_enabled
from csi_snapshot_verifier.errors import ConfigurationError
from csi_snapshot_verifier.k8s import ClusterClients, load_cluster_clients

_ENV_RUN_FLAG = "CSV_RUN_CLUSTER_INTEGRATION"


def _verify_prerequisites() -> None:
    if not flag_enabled(os.getenv(_ENV_RUN_FLAG)):
        pytest.skip(
            "Cluster integration tests are disabled by default. "
            f"Set {_ENV_RUN_FLAG}=1 to run them against the current kubeconfig.",
            allow_module_level=True,
        )


@pytest.fixture(scope="session")
def cluster_clients() -> ClusterClients:
    _verify_prerequisites()
    try:
        return load_cluster_clients(ClusterConnectionConfig.from_env())
    except ConfigurationError as error:
        pytest.skip(f"No usable cluster configuration: {error}")
