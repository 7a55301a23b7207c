from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping
import os

from .errors import ConfigurationError

ENV_KUBECONFIG = "CSV_KUBECONFIG"
ENV_CONTEXT = "CSV_CONTEXT"
ENV_IN_CLUSTER = "CSV_IN_CLUSTER"
ENV_REQUEST_TIMEOUT_SECONDS = "CSV_REQUEST_TIMEOUT_SECONDS"


@dataclass(frozen=True)
class ClusterConnectionConfig:
    kubeconfig_path: str | None = None
    context: str | None = None
    in_cluster: bool = False
    request_timeout_seconds: int | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClusterConnectionConfig:
        env = os.environ if environ is None else environ
        return cls(
            kubeconfig_path=_optional(env.get(ENV_KUBECONFIG)),
            context=_optional(env.get(ENV_CONTEXT)),
            in_cluster=flag_enabled(env.get(ENV_IN_CLUSTER)),
            request_timeout_seconds=parse_timeout(env.get(ENV_REQUEST_TIMEOUT_SECONDS)),
        )


def flag_enabled(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_timeout(value: str | int | None) -> int | None:
    if value is None:
        return None
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            value = int(value.strip())
        except ValueError as error:
            raise ConfigurationError(
                f"Request timeout '{value}' is not an integer number of seconds."
            ) from error
    if value <= 0:
        raise ConfigurationError(f"Request timeout must be positive, got {value}.")
    return value


def _optional(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None
