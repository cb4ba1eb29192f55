import json
import re

import pulumi
import pulumi_gcp as gcp

from ..core import (
    GKE_DEFAULT_ZONE_SUFFIX,
    GKE_MASTER_CIDR,
    GKE_PODS_RANGE,
    GKE_SERVICES_RANGE,
)
from ..errors import ProviderMismatchError
from ..logger import logger
from ..schemas.cluster import CloudProvider, ClusterConfig, NodeTaint
from ..schemas.outputs import ClusterOutput
from ..sizes import machine_type
from ..taints import normalize_taint_effect

# GKE drops its default pool; every configured pool is an explicit NodePool
FOLDS_FIRST_POOL = False

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
AUTH_PLUGIN = "gke-gcloud-auth-plugin"

_LABEL_INVALID = re.compile(r"[^a-z0-9_-]")


def cluster_location(config: ClusterConfig) -> str:
    """
    Zonal clusters (default) run in one zone: the explicit override or
    ``<region>-b``. Regional clusters replicate nodes across every zone.
    """
    if config.gcp is None:
        raise ProviderMismatchError("GCP", "GKE")
    if config.gcp.zonal_cluster:
        return config.gcp.zone or f"{config.region}-{GKE_DEFAULT_ZONE_SUFFIX}"
    return config.region


def gcp_labels(tags: dict[str, str]) -> dict[str, str]:
    """GCP labels only allow lowercase letters, digits, '_' and '-'."""
    return {
        _LABEL_INVALID.sub("_", k.lower()): _LABEL_INVALID.sub("_", v.lower())
        for k, v in tags.items()
    }


def render_gke_kubeconfig(context: str, endpoint: str, ca_certificate: str) -> str:
    """
    Builds a single-context kubeconfig for a GKE cluster.
    Authentication goes through the gcloud exec plugin, never a static token.
    """
    return json.dumps(
        {
            "apiVersion": "v1",
            "kind": "Config",
            "clusters": [
                {
                    "name": context,
                    "cluster": {
                        "certificate-authority-data": ca_certificate,
                        "server": f"https://{endpoint}",
                    },
                }
            ],
            "contexts": [
                {
                    "name": context,
                    "context": {"cluster": context, "user": context},
                }
            ],
            "current-context": context,
            "users": [
                {
                    "name": context,
                    "user": {
                        "exec": {
                            "apiVersion": "client.authentication.k8s.io/v1beta1",
                            "command": AUTH_PLUGIN,
                            "installHint": f"Install {AUTH_PLUGIN} for kubectl auth",
                            "provideClusterInfo": True,
                        }
                    },
                }
            ],
        }
    )


def _taints(taints: list[NodeTaint]) -> list[gcp.container.NodePoolNodeConfigTaintArgs]:
    return [
        gcp.container.NodePoolNodeConfigTaintArgs(
            key=t.key,
            value=t.value,
            effect=normalize_taint_effect(t.effect),
        )
        for t in taints
    ]


def create_gke_cluster(config: ClusterConfig) -> ClusterOutput:
    """
    Creates a GKE cluster with its VPC, subnet, Cloud NAT and node pools.
    Zonal by default to reduce quota usage and cost.
    """
    if config.gcp is None or config.provider is not CloudProvider.GCP:
        raise ProviderMismatchError("GCP", "GKE")

    gcp_config = config.gcp
    project = gcp_config.project_id
    name = config.cluster_name
    location = cluster_location(config)
    _, pools = config.split_node_pools(FOLDS_FIRST_POOL)

    logger.info(
        f"Declaring GKE cluster [bold]{name}[/bold] in {location} "
        f"({len(pools)} node pool(s), project {project})"
    )

    # 1. Network
    network = gcp.compute.Network(
        "vpc",
        name=f"{name}-vpc",
        auto_create_subnetworks=False,
        project=project,
    )

    subnet = gcp.compute.Subnetwork(
        "subnet",
        name=f"{name}-subnet",
        network=network.id,
        ip_cidr_range=config.network.private_subnet_cidrs[0],
        region=config.region,
        project=project,
        private_ip_google_access=True,
        secondary_ip_ranges=[
            gcp.compute.SubnetworkSecondaryIpRangeArgs(
                range_name=range_name, ip_cidr_range=cidr
            )
            for range_name, cidr in (GKE_PODS_RANGE, GKE_SERVICES_RANGE)
        ],
    )

    # 2. Egress through Cloud NAT
    router = gcp.compute.Router(
        "router",
        name=f"{name}-router",
        network=network.id,
        region=config.region,
        project=project,
    )

    gcp.compute.RouterNat(
        "nat",
        name=f"{name}-nat",
        router=router.name,
        region=config.region,
        project=project,
        nat_ip_allocate_option="AUTO_ONLY",
        source_subnetwork_ip_ranges_to_nat="ALL_SUBNETWORKS_ALL_IP_RANGES",
    )

    # 3. Cluster (node pools are declared separately below)
    workload_identity = gcp_config.enable_workload_identity
    cluster = gcp.container.Cluster(
        "gke-cluster",
        name=name,
        location=location,
        project=project,
        min_master_version=config.kubernetes_version,
        network=network.name,
        subnetwork=subnet.name,
        ip_allocation_policy=gcp.container.ClusterIpAllocationPolicyArgs(
            cluster_secondary_range_name=GKE_PODS_RANGE[0],
            services_secondary_range_name=GKE_SERVICES_RANGE[0],
        ),
        release_channel=gcp.container.ClusterReleaseChannelArgs(channel="REGULAR"),
        remove_default_node_pool=True,
        initial_node_count=1,
        workload_identity_config=(
            gcp.container.ClusterWorkloadIdentityConfigArgs(
                workload_pool=f"{project}.svc.id.goog"
            )
            if workload_identity
            else None
        ),
        private_cluster_config=(
            gcp.container.ClusterPrivateClusterConfigArgs(
                enable_private_nodes=True,
                enable_private_endpoint=False,
                master_ipv4_cidr_block=GKE_MASTER_CIDR,
            )
            if gcp_config.private_cluster
            else None
        ),
        network_policy=gcp.container.ClusterNetworkPolicyArgs(
            enabled=True, provider="CALICO"
        ),
        addons_config=gcp.container.ClusterAddonsConfigArgs(
            http_load_balancing=gcp.container.ClusterAddonsConfigHttpLoadBalancingArgs(
                disabled=False
            ),
            horizontal_pod_autoscaling=gcp.container.ClusterAddonsConfigHorizontalPodAutoscalingArgs(
                disabled=False
            ),
            gce_persistent_disk_csi_driver_config=gcp.container.ClusterAddonsConfigGcePersistentDiskCsiDriverConfigArgs(
                enabled=True
            ),
        ),
        resource_labels=gcp_labels(config.tags),
    )

    # 4. Every pool, including the first
    for pool in pools:
        logger.debug(
            f"Node pool {pool.name}: {pool.instance_size.value} "
            f"{pool.min_size}-{pool.max_size} ({len(pool.taints)} taint(s))"
        )
        gcp.container.NodePool(
            f"nodepool-{pool.name}",
            name=pool.name,
            cluster=cluster.name,
            location=location,
            project=project,
            node_count=pool.desired_size,
            autoscaling=gcp.container.NodePoolAutoscalingArgs(
                min_node_count=pool.min_size,
                max_node_count=pool.max_size,
            ),
            node_config=gcp.container.NodePoolNodeConfigArgs(
                machine_type=machine_type(CloudProvider.GCP, pool.instance_size),
                disk_size_gb=pool.disk_size_gb,
                disk_type="pd-standard",
                oauth_scopes=[CLOUD_PLATFORM_SCOPE],
                labels=pool.labels,
                taints=_taints(pool.taints),
                workload_metadata_config=(
                    gcp.container.NodePoolNodeConfigWorkloadMetadataConfigArgs(
                        mode="GKE_METADATA"
                    )
                    if workload_identity
                    else None
                ),
                shielded_instance_config=gcp.container.NodePoolNodeConfigShieldedInstanceConfigArgs(
                    enable_secure_boot=True,
                    enable_integrity_monitoring=True,
                ),
            ),
            management=gcp.container.NodePoolManagementArgs(
                auto_repair=True,
                auto_upgrade=True,
            ),
        )

    # GKE hands back no kubeconfig; assemble one once name/endpoint/CA resolve.
    # The CA is lifted first: Output.all turns nested output types into dicts.
    kubeconfig = pulumi.Output.all(
        cluster.name, cluster.endpoint, cluster.master_auth.cluster_ca_certificate
    ).apply(
        lambda args: render_gke_kubeconfig(
            f"gke_{project}_{location}_{args[0]}", args[1], args[2]
        )
    )

    return ClusterOutput(
        cluster_name=cluster.name,
        kubeconfig=kubeconfig,
        endpoint=cluster.endpoint.apply(lambda endpoint: f"https://{endpoint}"),
        cluster_id=cluster.id,
    )
