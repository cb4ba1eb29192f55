import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ..core import AKS_POOL_NAME_MAX


class CloudProvider(str, Enum):
    AWS = "aws"
    GCP = "gcp"
    AZURE = "azure"


class InstanceSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    XLARGE = "xlarge"


class TaintEffect(str, Enum):
    NO_SCHEDULE = "NoSchedule"
    PREFER_NO_SCHEDULE = "PreferNoSchedule"
    NO_EXECUTE = "NoExecute"


class _Model(BaseModel):
    # camelCase aliases match the stack configuration keys
    model_config = ConfigDict(
        frozen=True, populate_by_name=True, alias_generator=to_camel
    )


class NodeTaint(_Model):
    key: str
    value: str
    effect: TaintEffect


class NodePoolConfig(_Model):
    name: str
    instance_size: InstanceSize
    min_size: int = Field(ge=0)
    max_size: int = Field(ge=0)
    desired_size: int = Field(ge=0)
    disk_size_gb: int = Field(gt=0, description="Root/OS disk size in GB")
    labels: dict[str, str] = Field(default_factory=dict)
    taints: list[NodeTaint] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_scaling_bounds(self) -> "NodePoolConfig":
        if not self.min_size <= self.desired_size <= self.max_size:
            raise ValueError(
                f"node pool {self.name!r} requires minSize <= desiredSize <= maxSize "
                f"(got {self.min_size}/{self.desired_size}/{self.max_size})"
            )
        return self


class NetworkConfig(_Model):
    vpc_cidr: str
    private_subnet_cidrs: list[str] = Field(min_length=1)
    public_subnet_cidrs: list[str] = Field(
        default_factory=list, description="Only used by AWS"
    )


class AwsAddons(_Model):
    ebs_csi_driver: bool = True


class AwsConfig(_Model):
    private_cluster: bool = False
    enable_addons: AwsAddons = Field(default_factory=AwsAddons)


class GcpConfig(_Model):
    project_id: str
    private_cluster: bool = False
    enable_workload_identity: bool = True
    zonal_cluster: bool = True
    zone: str | None = None


class AzureConfig(_Model):
    resource_group_name: str
    subscription_id: str | None = None
    enable_azure_ad: bool = False


_AKS_POOL_NAME_INVALID = re.compile(r"[^a-z0-9]")


def sanitize_pool_name(name: str) -> str:
    """
    AKS agent pool names: at most 12 characters of [a-z0-9].
    Truncates first, then lowercases and strips everything else.
    """
    return _AKS_POOL_NAME_INVALID.sub("", name[:AKS_POOL_NAME_MAX].lower())


# Cluster name rules per provider: (pattern, max length)
CLUSTER_NAME_RULES: dict[CloudProvider, tuple[re.Pattern[str], int]] = {
    CloudProvider.AWS: (re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$"), 100),
    CloudProvider.GCP: (re.compile(r"^[a-z]([a-z0-9-]*[a-z0-9])?$"), 40),
    CloudProvider.AZURE: (re.compile(r"^[A-Za-z0-9]([A-Za-z0-9_-]*[A-Za-z0-9])?$"), 63),
}


class ClusterConfig(_Model):
    provider: CloudProvider
    project_name: str
    environment: str
    cluster_name: str
    kubernetes_version: str
    region: str
    network: NetworkConfig
    node_pools: list[NodePoolConfig] = Field(min_length=1)
    tags: dict[str, str] = Field(default_factory=dict)
    aws: AwsConfig | None = None
    gcp: GcpConfig | None = None
    azure: AzureConfig | None = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "ClusterConfig":
        blocks = {
            CloudProvider.AWS: self.aws,
            CloudProvider.GCP: self.gcp,
            CloudProvider.AZURE: self.azure,
        }
        populated = [p.value for p, block in blocks.items() if block is not None]
        if populated != [self.provider.value]:
            raise ValueError(
                f"exactly one provider block matching {self.provider.value!r} "
                f"must be set (got {populated or 'none'})"
            )

        names = [pool.name for pool in self.node_pools]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"node pool names must be unique: {duplicates}")

        if self.provider is CloudProvider.AZURE:
            agent_pools: dict[str, str] = {}
            for name in names:
                sanitized = sanitize_pool_name(name)
                if not sanitized:
                    raise ValueError(
                        f"node pool {name!r} has no characters valid in an "
                        f"AKS agent pool name"
                    )
                if sanitized in agent_pools:
                    raise ValueError(
                        f"node pools {agent_pools[sanitized]!r} and {name!r} "
                        f"both map to AKS agent pool name {sanitized!r}"
                    )
                agent_pools[sanitized] = name

        pattern, max_len = CLUSTER_NAME_RULES[self.provider]
        if len(self.cluster_name) > max_len or not pattern.match(self.cluster_name):
            raise ValueError(
                f"cluster name {self.cluster_name!r} is not valid for "
                f"{self.provider.value} (max {max_len} chars, "
                f"pattern {pattern.pattern})"
            )
        return self

    def split_node_pools(
        self, fold_first: bool
    ) -> tuple[NodePoolConfig | None, list[NodePoolConfig]]:
        """
        Splits the pools for a builder.
        With fold_first the first pool is the system pool carried by the
        cluster resource itself; otherwise every pool is declared explicitly.
        """
        if fold_first:
            return self.node_pools[0], list(self.node_pools[1:])
        return None, list(self.node_pools)
