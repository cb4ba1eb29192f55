import json
from collections.abc import Mapping
from typing import Any

import pulumi
from pydantic import ValidationError

from .core import (
    DEFAULT_KUBERNETES_VERSION,
    DEFAULT_PRIVATE_SUBNET_CIDRS,
    DEFAULT_PROJECT_NAME,
    DEFAULT_PUBLIC_SUBNET_CIDRS,
    DEFAULT_VPC_CIDR,
    MANAGED_BY,
)
from .errors import ConfigurationError, NodePoolOverrideError
from .logger import logger
from .schemas.cluster import (
    AwsAddons,
    AwsConfig,
    AzureConfig,
    CloudProvider,
    ClusterConfig,
    GcpConfig,
    InstanceSize,
    NetworkConfig,
    NodePoolConfig,
)

# Keys read from the project namespace of the stack configuration
PROJECT_KEYS = [
    "cloudProvider",
    "environment",
    "projectName",
    "region",
    "kubernetesVersion",
    "vpcCidr",
    "privateSubnetCidrs",
    "publicSubnetCidrs",
    "nodePools",
    "tags",
    "awsPrivateCluster",
    "awsEnableEbsCsi",
    "gcpPrivateCluster",
    "gcpEnableWorkloadIdentity",
    "gcpZonalCluster",
    "gcpZone",
    "azureResourceGroup",
    "azureEnableAd",
]

_TRUE = {"true", "yes", "1", "on"}
_FALSE = {"false", "no", "0", "off"}


def default_node_pools() -> list[NodePoolConfig]:
    # 20 GB keeps the default pool inside free-tier disk quotas
    return [
        NodePoolConfig(
            name="default",
            instance_size=InstanceSize.MEDIUM,
            min_size=1,
            max_size=5,
            desired_size=2,
            disk_size_gb=20,
            labels={"role": "worker"},
        )
    ]


def default_network() -> NetworkConfig:
    return NetworkConfig(
        vpc_cidr=DEFAULT_VPC_CIDR,
        private_subnet_cidrs=list(DEFAULT_PRIVATE_SUBNET_CIDRS),
        public_subnet_cidrs=list(DEFAULT_PUBLIC_SUBNET_CIDRS),
    )


def merge_tags(
    base: Mapping[str, str], overrides: Mapping[str, str] | None
) -> dict[str, str]:
    """
    Last-write-wins merge: every key of ``base`` is kept unless
    ``overrides`` sets the same key, in which case the override value wins.
    """
    merged = dict(base)
    for key, value in (overrides or {}).items():
        merged[str(key)] = str(value)
    return merged


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _require(raw: Mapping[str, Any], key: str) -> str:
    value = raw.get(key)
    if _is_missing(value):
        raise ConfigurationError(key, "missing required configuration value")
    return str(value).strip()


def _optional(raw: Mapping[str, Any], key: str, default: str | None) -> str | None:
    value = raw.get(key)
    return default if _is_missing(value) else str(value).strip()


def _bool(raw: Mapping[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key)
    if _is_missing(value):
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigurationError(key, f"expected a boolean, got {value!r}")


def _json(raw: Mapping[str, Any], key: str) -> Any:
    """Returns the decoded value for ``key``; strings are parsed as JSON."""
    value = raw.get(key)
    if _is_missing(value):
        return None
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise ConfigurationError(key, f"invalid JSON: {e}") from e


def _string_list(raw: Mapping[str, Any], key: str, default: list[str]) -> list[str]:
    value = _json(raw, key)
    if value is None:
        return list(default)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigurationError(key, "expected a list of CIDR strings")
    return value


def _network(raw: Mapping[str, Any]) -> NetworkConfig:
    private = _string_list(raw, "privateSubnetCidrs", DEFAULT_PRIVATE_SUBNET_CIDRS)
    if not private:
        raise ConfigurationError("privateSubnetCidrs", "at least one CIDR is required")

    return NetworkConfig(
        vpc_cidr=_optional(raw, "vpcCidr", DEFAULT_VPC_CIDR),
        private_subnet_cidrs=private,
        public_subnet_cidrs=_string_list(
            raw, "publicSubnetCidrs", DEFAULT_PUBLIC_SUBNET_CIDRS
        ),
    )


def _node_pools(raw: Mapping[str, Any]) -> list[NodePoolConfig]:
    value = raw.get("nodePools")
    if _is_missing(value):
        return default_node_pools()

    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise NodePoolOverrideError(f"invalid JSON: {e}") from e

    if not isinstance(value, list) or not value:
        raise NodePoolOverrideError("expected a non-empty JSON list of node pools")

    try:
        return [NodePoolConfig.model_validate(pool) for pool in value]
    except ValidationError as e:
        raise NodePoolOverrideError(str(e)) from e


def _provider(raw: Mapping[str, Any]) -> CloudProvider:
    value = _require(raw, "cloudProvider")
    try:
        return CloudProvider(value)
    except ValueError:
        allowed = ", ".join(p.value for p in CloudProvider)
        raise ConfigurationError(
            "cloudProvider",
            f"invalid cloud provider {value!r}. Must be one of: {allowed}",
        ) from None


def parse_cluster_config(raw: Mapping[str, Any]) -> ClusterConfig:
    """
    Validates and defaults raw key-value input into a ClusterConfig.

    ``raw`` uses the stack configuration option names (cloudProvider,
    region, nodePools, ...). Provider-scoped keys ``project`` (GCP) and
    ``subscriptionId`` (Azure) are read from the same mapping.
    Raises ConfigurationError naming the offending key.
    """
    provider = _provider(raw)
    environment = _require(raw, "environment")
    region = _require(raw, "region")
    project_name = _optional(raw, "projectName", DEFAULT_PROJECT_NAME)

    tag_overrides = _json(raw, "tags")
    if tag_overrides is not None and not isinstance(tag_overrides, dict):
        raise ConfigurationError("tags", "expected a JSON object of key/value tags")

    fields: dict[str, Any] = {
        "provider": provider,
        "project_name": project_name,
        "environment": environment,
        "cluster_name": f"{project_name}-{environment}",
        "kubernetes_version": _optional(
            raw, "kubernetesVersion", DEFAULT_KUBERNETES_VERSION
        ),
        "region": region,
        "network": _network(raw),
        "node_pools": _node_pools(raw),
        "tags": merge_tags(
            {
                "Project": project_name,
                "Environment": environment,
                "ManagedBy": MANAGED_BY,
            },
            tag_overrides,
        ),
    }

    # Only the block matching the provider is populated
    if provider is CloudProvider.AWS:
        fields["aws"] = AwsConfig(
            private_cluster=_bool(raw, "awsPrivateCluster", False),
            enable_addons=AwsAddons(
                ebs_csi_driver=_bool(raw, "awsEnableEbsCsi", True),
            ),
        )
    elif provider is CloudProvider.GCP:
        fields["gcp"] = GcpConfig(
            project_id=_require(raw, "project"),
            private_cluster=_bool(raw, "gcpPrivateCluster", False),
            enable_workload_identity=_bool(raw, "gcpEnableWorkloadIdentity", True),
            zonal_cluster=_bool(raw, "gcpZonalCluster", True),
            zone=_optional(raw, "gcpZone", None),
        )
    elif provider is CloudProvider.AZURE:
        fields["azure"] = AzureConfig(
            resource_group_name=_require(raw, "azureResourceGroup"),
            subscription_id=_optional(raw, "subscriptionId", None),
            enable_azure_ad=_bool(raw, "azureEnableAd", False),
        )

    try:
        config = ClusterConfig(**fields)
    except ValidationError as e:
        raise ConfigurationError("cluster", str(e)) from e

    logger.info(
        f"Loaded [bold]{config.provider.value}[/bold] config for "
        f"{config.cluster_name} in {config.region} "
        f"({len(config.node_pools)} node pool(s))"
    )
    return config


def read_stack_settings() -> dict[str, Any]:
    """Collects the raw option values from the Pulumi stack configuration."""
    project = pulumi.Config()
    raw: dict[str, Any] = {key: project.get(key) for key in PROJECT_KEYS}
    raw["project"] = pulumi.Config("gcp").get("project")
    raw["subscriptionId"] = pulumi.Config("azure-native").get("subscriptionId")
    return raw


def load_config() -> ClusterConfig:
    return parse_cluster_config(read_stack_settings())
