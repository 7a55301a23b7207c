from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, TypeVar

from kubernetes import client, config
from kubernetes.client import ApiException

from .config import ENV_CONTEXT, ENV_IN_CLUSTER, ENV_KUBECONFIG, ClusterConnectionConfig
from .errors import ClientConstructionError, ConfigurationError, ListingError

T = TypeVar("T")


@dataclass(frozen=True)
class ClusterClients:
    api_client: client.ApiClient
    core_api: client.CoreV1Api
    snapshot_api: client.CustomObjectsApi
    request_timeout_seconds: int | None = None

    def request_kwargs(self) -> dict[str, Any]:
        if self.request_timeout_seconds is None:
            return {}
        return {"_request_timeout": self.request_timeout_seconds}


def load_cluster_clients(connection: ClusterConnectionConfig) -> ClusterClients:
    expanded = _kubeconfig_file(connection.kubeconfig_path)
    configuration = client.Configuration()
    try:
        if connection.in_cluster:
            config.load_incluster_config(client_configuration=configuration)
        else:
            config.load_kube_config(
                config_file=expanded,
                context=connection.context,
                client_configuration=configuration,
            )
    except Exception as error:  # pylint: disable=broad-except
        raise ConfigurationError(
            _format_configuration_error(
                in_cluster=connection.in_cluster,
                kubeconfig_path=expanded,
                context=connection.context,
                error=error,
            )
        ) from error

    try:
        api_client = client.ApiClient(configuration)
        return ClusterClients(
            api_client=api_client,
            core_api=client.CoreV1Api(api_client),
            snapshot_api=client.CustomObjectsApi(api_client),
            request_timeout_seconds=connection.request_timeout_seconds,
        )
    except Exception as error:  # pylint: disable=broad-except
        reason = str(error).strip() or error.__class__.__name__
        raise ClientConstructionError(
            f"Kubernetes API clients could not be constructed for host '{configuration.host}': {reason}."
        ) from error


def list_pod_claim_names(clients: ClusterClients, *, namespace: str, pod_name: str) -> list[str]:
    """Return the PVCs a pod mounts, de-duplicated, in volume declaration order.

    Generic ephemeral volumes count as claims too; Kubernetes names their PVC
    ``<pod>-<volume>``. A pod that does not exist mounts no claims.
    """
    pod = safe_cluster_call(
        operation=f"read Pod '{namespace}/{pod_name}'",
        hint="Verify RBAC allows get on pods in this namespace.",
        func=lambda: _read_pod(clients, namespace, pod_name),
    )
    if pod is None:
        return []

    claim_names: list[str] = []
    for volume in (pod.spec.volumes if pod.spec else None) or []:
        if volume.persistent_volume_claim and volume.persistent_volume_claim.claim_name:
            claim_name = volume.persistent_volume_claim.claim_name
        elif volume.ephemeral is not None:
            claim_name = f"{pod_name}-{volume.name}"
        else:
            continue
        if claim_name not in claim_names:
            claim_names.append(claim_name)
    return claim_names


def _read_pod(clients: ClusterClients, namespace: str, pod_name: str) -> client.V1Pod | None:
    try:
        return clients.core_api.read_namespaced_pod(
            name=pod_name,
            namespace=namespace,
            **clients.request_kwargs(),
        )
    except ApiException as error:
        if error.status == 404:
            return None
        raise


def list_claim_volume_names(clients: ClusterClients, *, namespace: str, claim_name: str) -> list[str]:
    volumes = safe_cluster_call(
        operation=f"list PersistentVolumes bound to PVC '{namespace}/{claim_name}'",
        hint="Verify RBAC verbs for persistentvolumes at cluster scope.",
        func=lambda: clients.core_api.list_persistent_volume(**clients.request_kwargs()).items,
    )

    names: list[str] = []
    for volume in volumes:
        claim_ref = volume.spec.claim_ref if volume.spec else None
        if claim_ref is None:
            continue
        if claim_ref.namespace == namespace and claim_ref.name == claim_name:
            names.append(volume.metadata.name)
    return names


def read_persistent_volume(clients: ClusterClients, name: str) -> client.V1PersistentVolume:
    return safe_cluster_call(
        operation=f"read PersistentVolume '{name}'",
        hint="Confirm the volume still exists and RBAC allows get on persistentvolumes.",
        func=lambda: clients.core_api.read_persistent_volume(name=name, **clients.request_kwargs()),
    )


def safe_cluster_call(*, operation: str, hint: str, func: Callable[[], T]) -> T:
    try:
        return func()
    except ApiException as error:
        raise ListingError(
            format_api_exception_message(
                operation=operation,
                hint=hint,
                error=error,
            )
        ) from error
    except Exception as error:
        raise ListingError(f"Kubernetes API call failed while trying to {operation}: {error}. {hint}") from error


def format_api_exception_message(*, operation: str, hint: str, error: ApiException) -> str:
    status = error.status if error.status is not None else "unknown"
    reason = error.reason or "no reason provided"
    return f"Kubernetes API call failed while trying to {operation}: API status {status} ({reason}). {hint}"


def _kubeconfig_file(kubeconfig_path: str | None) -> str | None:
    # None lets the client fall back to $KUBECONFIG, then ~/.kube/config.
    if not kubeconfig_path or not kubeconfig_path.strip():
        return None
    return str(Path(kubeconfig_path.strip()).expanduser())


def _format_configuration_error(
    *,
    in_cluster: bool,
    kubeconfig_path: str | None,
    context: str | None,
    error: Exception,
) -> str:
    reason = str(error).strip() or error.__class__.__name__
    if in_cluster:
        return (
            f"Cannot reach the cluster to verify snapshots: in-cluster service account credentials "
            f"did not load ({reason}). Run the verifier from a pod with a service account token mounted, "
            f"or drop --in-cluster / {ENV_IN_CLUSTER} and point it at a kubeconfig."
        )

    source = f"kubeconfig '{kubeconfig_path}'" if kubeconfig_path else "kubeconfig from $KUBECONFIG or ~/.kube/config"
    if context:
        source = f"{source} with context '{context}'"
    return (
        f"Cannot reach the cluster to verify snapshots: {source} did not load ({reason}). "
        f"Pass --kubeconfig/--context or set {ENV_KUBECONFIG}/{ENV_CONTEXT}."
    )
